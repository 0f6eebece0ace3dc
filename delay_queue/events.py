"""
Queue events — per-item outcomes of push() and pop().

push() and pop() swallow per-item failures, so the outcome of each step is
also reported here. Pass any callable as `on_event` to a DelayQueue;
EventRecorder is the simplest one.
"""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional


class QueueEventKind(str, Enum):
    ENQUEUED = "enqueued"
    ENQUEUE_SKIPPED = "enqueue_skipped"        # blank body
    ENQUEUE_FAILED = "enqueue_failed"          # a store write raised
    POLL_ITEM_SKIPPED = "poll_item_skipped"    # malformed or not yet due, left in place
    FETCH_MISS = "fetch_miss"                  # body gone: consumed elsewhere or expired
    FETCH_FAILED = "fetch_failed"              # body read raised, entry rescheduled
    DELIVERED = "delivered"
    CLEANUP_FAILED = "cleanup_failed"
    POLL_QUERY_FAILED = "poll_query_failed"


@dataclass(frozen=True)
class QueueEvent:
    kind: QueueEventKind
    topic: str
    message_id: Optional[str] = None
    at_ms: int = 0
    reason: str = ""
    error: str = ""


EventListener = Callable[[QueueEvent], None]


class EventRecorder:
    """Listener that keeps every event it sees."""

    def __init__(self):
        self.events: list[QueueEvent] = []
        self.counts: Counter = Counter()

    def __call__(self, event: QueueEvent) -> None:
        self.events.append(event)
        self.counts[event.kind] += 1

    def of_kind(self, kind: QueueEventKind) -> list[QueueEvent]:
        return [e for e in self.events if e.kind == kind]

    def count(self, kind: QueueEventKind) -> int:
        return self.counts[kind]

    def clear(self) -> None:
        self.events.clear()
        self.counts.clear()
