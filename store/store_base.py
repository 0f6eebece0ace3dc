"""
Abstract store interfaces — the two primitives the delay queue is built on.

  - ContentStore     key → value with per-entry expiration
  - VisibilityIndex  sorted set: member → score, range queries by score

Implementations:
  - InMemoryStore  (dict-based, single-process, no persistence)
  - RedisStore     (redis.asyncio, shared across processes)

Only single-key atomicity is assumed. Nothing here offers a transaction
spanning both structures, and the engine must not rely on one.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional, Union

Value = Union[str, bytes]


class StoreError(Exception):
    """Raised when a store is used in an unusable state (e.g. not connected)."""
    pass


class ContentStore(ABC):
    """Expiring key/value storage for message bodies."""

    @abstractmethod
    async def set(self, key: str, value: Value, ttl_seconds: int) -> None:
        """Write value under key, replacing any previous value, expiring after ttl_seconds."""
        ...

    @abstractmethod
    async def get(self, key: str) -> Optional[Value]:
        """Return the value, or None when the key is absent or expired."""
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove key. Absent keys are a no-op."""
        ...


class VisibilityIndex(ABC):
    """Score-ordered index of members, one score per member."""

    @abstractmethod
    async def zadd(
        self, key: str, member: str, score: float, only_existing: bool = False,
    ) -> None:
        """
        Insert member, or overwrite its score if already present.

        With only_existing=True an absent member is left absent (ZADD XX).
        """
        ...

    @abstractmethod
    async def zrem(self, key: str, member: str) -> None:
        """Remove member. Absent members are a no-op."""
        ...

    @abstractmethod
    async def zrangebyscore(
        self, key: str, min_score: float, max_score: float,
        offset: int = 0, count: int = 50,
    ) -> list[tuple[str, Optional[float]]]:
        """
        Return up to `count` (member, score) pairs with min_score <= score <= max_score,
        ascending by score, skipping the first `offset` matches.
        """
        ...
