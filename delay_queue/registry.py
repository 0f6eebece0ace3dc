"""
Queue registry — one DelayQueue per topic, wired from settings and the store factory.

Usage:
    from delay_queue.registry import get_delay_queue
    watchdog = get_delay_queue("gateway-offline")
    await watchdog.push("offline", message_id="gw-17")
"""
from __future__ import annotations

import structlog
from typing import Optional

from config.settings import get_settings
from delay_queue.engine import DelayQueue
from delay_queue.events import EventListener
from store.store_factory import create_store

logger = structlog.get_logger()

_queues: dict[str, DelayQueue] = {}


def get_delay_queue(topic: str, on_event: Optional[EventListener] = None) -> DelayQueue:
    """Return the cached queue for `topic`, creating it on first use."""
    queue = _queues.get(topic)
    if queue is not None:
        return queue

    settings = get_settings()
    store = create_store({
        "backend": settings.store.backend,
        "redis_url": settings.store.redis_url,
        "max_connections": settings.store.max_connections,
        "connect_retries": settings.store.connect_retries,
    })
    queue = DelayQueue(
        topic,
        content=store,
        index=store,
        config=settings.queue,
        on_event=on_event,
    )
    _queues[topic] = queue
    logger.info("delay_queue_registered", topic=topic, backend=settings.store.backend)
    return queue


def register_configured_topics() -> list[str]:
    """Create a queue for every topic listed in settings. Returns the topics."""
    topics = get_settings().topics
    for topic in topics:
        get_delay_queue(topic)
    return list(topics)


def registered_topics() -> list[str]:
    return sorted(_queues)


def reset_delay_queues() -> None:
    """Forget all cached queues (for testing)."""
    _queues.clear()
