"""
Delay message model.

A message lives in two places while in flight:
  - its body in the content store, under a per-topic key, with an expiration
  - its id in the topic's visibility index, scored by `visible_at`

Pushing again with the same id overwrites both, which is what gives
refresh / debounce semantics.
"""
from __future__ import annotations

import math
import uuid
from dataclasses import dataclass
from typing import Any, Union

Body = Union[str, bytes]


def new_message_id() -> str:
    """128 random bits as 32 hex chars."""
    return uuid.uuid4().hex


def is_blank(body: Any) -> bool:
    """True for None, empty, or whitespace-only str/bytes bodies."""
    if body is None:
        return True
    if isinstance(body, (str, bytes)):
        return not body.strip()
    return False


@dataclass
class DelayMessage:
    """A unit of work scheduled for future visibility."""
    id: str
    delay: int          # milliseconds from create_time to visibility
    ttl: int            # seconds the body must survive in the content store
    body: Body
    create_time: int    # epoch milliseconds at enqueue

    @property
    def visible_at(self) -> int:
        """Score in the visibility index."""
        return self.create_time + self.delay

    def content_ttl(self, pool_extension_seconds: int = 0) -> int:
        """Expiration (seconds) for the stored body."""
        return self.ttl + pool_extension_seconds

    @classmethod
    def create(
        cls,
        message_id: str,
        body: Body,
        delay_ms: int,
        now_ms: int,
        grace_period_seconds: int,
    ) -> DelayMessage:
        delay_ms = max(0, int(delay_ms))
        return cls(
            id=message_id,
            delay=delay_ms,
            ttl=math.ceil(delay_ms / 1000) + grace_period_seconds,
            body=body,
            create_time=now_ms,
        )
