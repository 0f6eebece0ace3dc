"""
Delay Queue — Per-topic delayed delivery over two independent stores.

  1. Bodies live in the content store as key → body, with an expiration
     comfortably longer than the delay, so abandoned bodies clean themselves up
  2. The visibility index is a sorted set of message ids scored by
     create_time + delay
  3. pop() reads ids whose score is <= now, earliest first
  4. For each id the body is fetched and returned
  5. A consumed message is removed from the index, then from the content store
  6. If the fetch fails the message stays where it is and is rescheduled
     for a later poll

Pushing an id that is already pending overwrites both its body and its
score (refresh). Nothing spans both stores atomically, which leaves two
known races:

  - two consumers may both read and deliver the same due message, so
    delivery is at-least-once
  - a refresh that lands after pop() has read a due body but before it
    removes the entry is removed along with it; the old body is delivered
    and the refreshed schedule is lost. Callers that refresh a watchdog
    right at its deadline must tolerate that delivery as the firing
"""
from __future__ import annotations

import time
import structlog
from datetime import datetime, timezone
from typing import Callable, Optional

from config.settings import DelayQueueConfig
from delay_queue.errors import PollQueryFailed
from delay_queue.events import EventListener, QueueEvent, QueueEventKind
from delay_queue.keys import content_key, index_key
from delay_queue.message import Body, DelayMessage, is_blank, new_message_id
from store.store_base import ContentStore, VisibilityIndex

logger = structlog.get_logger()


def _wall_clock_ms() -> int:
    return int(time.time() * 1000)


def _fmt_ms(ms: float) -> str:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).isoformat(timespec="seconds")


def _unpack(entry) -> tuple[Optional[str], Optional[float]]:
    try:
        message_id, score = entry
    except (TypeError, ValueError):
        return None, None
    return message_id, score


class DelayQueue:
    """
    Delay queue for one topic.

    Usage:
        queue = DelayQueue("gateway-offline", content=store, index=store)
        await queue.push("offline", message_id="gw-17", delay_ms=20 * 60 * 1000)
        bodies = await queue.pop()
    """

    def __init__(
        self,
        topic: str,
        content: ContentStore,
        index: VisibilityIndex,
        config: DelayQueueConfig = None,
        clock: Callable[[], int] = None,
        on_event: Optional[EventListener] = None,
    ):
        if not topic:
            raise ValueError("topic is required")
        self.topic = topic
        self.content = content
        self.index = index
        self.config = config or DelayQueueConfig()
        self._clock = clock or _wall_clock_ms
        self._on_event = on_event
        self._index_key = index_key(topic, self.config.key_prefix)

    @property
    def index_key(self) -> str:
        return self._index_key

    def content_key(self, message_id: str) -> str:
        return content_key(self.topic, message_id, self.config.key_prefix)

    # ── Push ──────────────────────────────────────────────

    async def push(
        self,
        body: Body,
        message_id: Optional[str] = None,
        delay_ms: Optional[int] = None,
    ) -> None:
        """
        Schedule `body` for delivery after `delay_ms` (default: the configured delay).

        With a `message_id` that is already pending, the earlier schedule and
        body are replaced; this is how a watchdog gets refreshed. Without one
        a random id is generated, so the message can never be refreshed.

        Never raises: failures are logged and reported as ENQUEUE_FAILED
        events, so a normal return does not mean the message was stored.
        """
        if delay_ms is None:
            delay_ms = self.config.default_delay_seconds * 1000
        if not message_id:
            message_id = new_message_id()

        logger.info("delay_queue_push_param",
                    topic=self.topic,
                    message_id=message_id,
                    delay_ms=delay_ms)

        if is_blank(body):
            logger.info("delay_queue_push_empty_body",
                        topic=self.topic,
                        message_id=message_id)
            self._emit(QueueEventKind.ENQUEUE_SKIPPED, message_id, reason="blank_body")
            return

        try:
            message = DelayMessage.create(
                message_id=message_id,
                body=body,
                delay_ms=delay_ms,
                now_ms=self._clock(),
                grace_period_seconds=self.config.grace_period_seconds,
            )
            # body first: an index entry without a body reads as a miss,
            # a body without an index entry just expires
            await self.content.set(
                self.content_key(message.id),
                message.body,
                message.content_ttl(self.config.pool_extension_seconds),
            )
            await self.index.zadd(self._index_key, message.id, message.visible_at)
        except Exception as e:
            logger.warning("delay_queue_push_error",
                           topic=self.topic,
                           message_id=message_id,
                           error=str(e),
                           exc_info=True)
            self._emit(QueueEventKind.ENQUEUE_FAILED, message_id, error=str(e))
            return

        logger.info("delay_queue_pushed",
                    topic=self.topic,
                    message_id=message.id,
                    created_at=_fmt_ms(message.create_time),
                    consume_at=_fmt_ms(message.visible_at))
        self._emit(QueueEventKind.ENQUEUED, message.id)

    # ── Pop ───────────────────────────────────────────────

    async def pop(self, batch_size: Optional[int] = None) -> list[Body]:
        """
        Return the bodies of up to `batch_size` due messages, earliest first.

        Per-item problems are logged, reported as events and skipped. Only a
        failure of the range query itself is raised, as PollQueryFailed.
        """
        return [body for _, body in await self.pop_messages(batch_size)]

    async def pop_messages(
        self, batch_size: Optional[int] = None,
    ) -> list[tuple[str, Body]]:
        """Same as pop(), but each body comes with its message id."""
        if batch_size is None:
            batch_size = self.config.batch_size
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")

        try:
            entries = await self.index.zrangebyscore(
                self._index_key, 0, self._clock(), 0, batch_size,
            )
        except Exception as e:
            logger.error("delay_queue_poll_query_error",
                         topic=self.topic,
                         error=str(e))
            self._emit(QueueEventKind.POLL_QUERY_FAILED, error=str(e))
            raise PollQueryFailed(self.topic) from e

        data: list[tuple[str, Body]] = []
        if not entries:
            return data

        now = self._clock()
        for entry in entries:
            message_id, score = _unpack(entry)
            if message_id is None or score is None:
                logger.warning("delay_queue_pop_item_malformed",
                               topic=self.topic,
                               entry=entry)
                self._emit(QueueEventKind.POLL_ITEM_SKIPPED, message_id, reason="malformed")
                continue

            if score > now:
                logger.info("delay_queue_pop_score_ahead",
                            topic=self.topic,
                            message_id=message_id,
                            score=score,
                            now=now)
                self._emit(QueueEventKind.POLL_ITEM_SKIPPED, message_id, reason="not_due")
                continue

            try:
                body = await self.content.get(self.content_key(message_id))
            except Exception as e:
                logger.warning("delay_queue_pop_fetch_error",
                               topic=self.topic,
                               message_id=message_id,
                               error=str(e))
                self._emit(QueueEventKind.FETCH_FAILED, message_id, error=str(e))
                await self._reschedule(message_id, now + self.config.fetch_retry_delay_ms)
                continue

            if is_blank(body):
                # consumed by another poller first, or expired
                logger.info("delay_queue_pop_miss",
                            topic=self.topic,
                            message_id=message_id)
                self._emit(QueueEventKind.FETCH_MISS, message_id)
                await self._discard(message_id)
                continue

            data.append((message_id, body))
            logger.info("delay_queue_pop",
                        topic=self.topic,
                        message_id=message_id,
                        scheduled_at=_fmt_ms(score),
                        consumed_at=_fmt_ms(self._clock()))
            await self._discard(message_id)
            self._emit(QueueEventKind.DELIVERED, message_id)

        return data

    # ── Internals ─────────────────────────────────────────

    async def _discard(self, message_id: str) -> bool:
        """Remove message_id from the index, then its body. Absent entries are a no-op."""
        try:
            await self.index.zrem(self._index_key, message_id)
            await self.content.delete(self.content_key(message_id))
        except Exception as e:
            logger.warning("delay_queue_discard_error",
                           topic=self.topic,
                           message_id=message_id,
                           error=str(e))
            self._emit(QueueEventKind.CLEANUP_FAILED, message_id, error=str(e))
            return False
        return True

    async def _reschedule(self, message_id: str, visible_at: int) -> bool:
        """
        Move an index entry to a new score, leaving its body untouched.

        An entry that another poller consumed meanwhile is not recreated.
        """
        try:
            await self.index.zadd(self._index_key, message_id, visible_at, only_existing=True)
        except Exception as e:
            # entry keeps its old score and stays due
            logger.warning("delay_queue_reschedule_error",
                           topic=self.topic,
                           message_id=message_id,
                           error=str(e))
            return False
        logger.info("delay_queue_rescheduled",
                    topic=self.topic,
                    message_id=message_id,
                    consume_at=_fmt_ms(visible_at))
        return True

    def _emit(
        self,
        kind: QueueEventKind,
        message_id: Optional[str] = None,
        reason: str = "",
        error: str = "",
    ) -> None:
        if self._on_event is None:
            return
        event = QueueEvent(
            kind=kind,
            topic=self.topic,
            message_id=message_id,
            at_ms=self._clock(),
            reason=reason,
            error=error,
        )
        try:
            self._on_event(event)
        except Exception as e:
            logger.warning("delay_queue_event_listener_error",
                           topic=self.topic,
                           kind=kind.value,
                           error=str(e))
