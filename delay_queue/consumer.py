"""
Queue Consumer — Polls a DelayQueue on a timer and hands due bodies to a handler.

Runs as an async task inside the application process. Several consumers
may poll the same topic; whoever reads a message first wins, and a message
can occasionally reach two consumers, so handlers must be idempotent.

    ┌──────────┐  push   ┌──────────────────┐  pop every N s  ┌──────────┐
    │ Producer │────────▶│ DelayQueue(topic) │◀────────────────│ Consumer │
    └──────────┘         └──────────────────┘                  └────┬─────┘
                                  ▲                                 │
                                  └──── requeue on handler error ───┘
"""
from __future__ import annotations

import asyncio
import inspect
import structlog
from typing import Any, Callable, Optional

from delay_queue.engine import DelayQueue
from delay_queue.errors import PollQueryFailed
from delay_queue.message import Body

logger = structlog.get_logger()


class DelayQueueConsumer:
    """
    Usage:
        consumer = DelayQueueConsumer(queue, handle_offline)
        await consumer.start_background()   # returns immediately, runs as task
        ...
        await consumer.stop()
    """

    def __init__(
        self,
        queue: DelayQueue,
        handler: Callable[[Body], Any],
        interval_seconds: Optional[float] = None,
        batch_size: Optional[int] = None,
        requeue_on_error: bool = True,
        retry_delay_ms: Optional[int] = None,
    ):
        self.queue = queue
        self.handler = handler
        self.interval = (interval_seconds if interval_seconds is not None
                         else queue.config.poll_interval_seconds)
        self.batch_size = batch_size or queue.config.batch_size
        self.requeue_on_error = requeue_on_error
        self.retry_delay_ms = (retry_delay_ms if retry_delay_ms is not None
                               else queue.config.fetch_retry_delay_ms)
        self.handled = 0
        self.failed = 0
        self._task: Optional[asyncio.Task] = None
        self._running = False

    async def start_background(self) -> asyncio.Task:
        """Start polling in a background task. Returns the task handle."""
        self._running = True
        self._task = asyncio.create_task(self._run())
        return self._task

    async def stop(self):
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("delay_queue_consumer_stopped",
                    topic=self.queue.topic,
                    handled=self.handled,
                    failed=self.failed)

    async def poll_once(self) -> int:
        """Pop one batch and run the handler on each body. Returns the batch size seen."""
        messages = await self.queue.pop_messages(self.batch_size)
        for message_id, body in messages:
            try:
                result = self.handler(body)
                if inspect.isawaitable(result):
                    await result
                self.handled += 1
            except Exception as e:
                self.failed += 1
                logger.error("delay_queue_handler_error",
                             topic=self.queue.topic,
                             message_id=message_id,
                             error=str(e),
                             exc_info=True)
                if self.requeue_on_error:
                    # same id, so a refresh that follows still replaces it
                    await self.queue.push(body, message_id=message_id,
                                          delay_ms=self.retry_delay_ms)
        return len(messages)

    async def _run(self):
        logger.info("delay_queue_consumer_started",
                    topic=self.queue.topic,
                    interval=self.interval,
                    batch_size=self.batch_size)
        while self._running:
            try:
                seen = await self.poll_once()
            except asyncio.CancelledError:
                break
            except PollQueryFailed as e:
                logger.error("delay_queue_consumer_poll_error",
                             topic=self.queue.topic,
                             error=str(e.__cause__ or e))
                seen = 0
            if seen >= self.batch_size:
                continue  # more may be due right now
            await asyncio.sleep(self.interval)
