"""
InMemoryStore — Dict-backed ContentStore + VisibilityIndex for development and testing.

Features:
  - Zero dependencies (no Redis)
  - Same semantics as RedisStore: overwrite on set/zadd, no-op deletes,
    lazy expiry of content entries
  - Every operation yields to the event loop once, the way a network
    round trip would, so concurrent callers interleave between steps
  - All data lost on process restart

Best for: local development, unit tests, single-process deployments.
"""
from __future__ import annotations

import asyncio
import time
import structlog
from collections import defaultdict
from typing import Callable, Optional

from store.store_base import ContentStore, VisibilityIndex, Value

logger = structlog.get_logger()


def _wall_clock_ms() -> int:
    return int(time.time() * 1000)


class InMemoryStore(ContentStore, VisibilityIndex):
    """
    Single-process store. Expiry is evaluated against `clock` (epoch ms),
    so tests can drive time by hand.
    """

    def __init__(self, clock: Callable[[], int] = None):
        self._clock = clock or _wall_clock_ms
        self._values: dict[str, tuple[Value, int]] = {}             # key → (value, expires_at_ms)
        self._zsets: dict[str, dict[str, float]] = defaultdict(dict)  # key → {member: score}
        logger.info("inmemory_store_initialized")

    # ── Content ───────────────────────────────────────────

    async def set(self, key: str, value: Value, ttl_seconds: int) -> None:
        await asyncio.sleep(0)
        self._values[key] = (value, self._clock() + int(ttl_seconds) * 1000)

    async def get(self, key: str) -> Optional[Value]:
        await asyncio.sleep(0)
        entry = self._values.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._values[key]
            return None
        return value

    async def delete(self, key: str) -> None:
        await asyncio.sleep(0)
        self._values.pop(key, None)

    # ── Index ─────────────────────────────────────────────

    async def zadd(
        self, key: str, member: str, score: float, only_existing: bool = False,
    ) -> None:
        await asyncio.sleep(0)
        if only_existing and member not in self._zsets.get(key, {}):
            return
        self._zsets[key][member] = score

    async def zrem(self, key: str, member: str) -> None:
        await asyncio.sleep(0)
        zset = self._zsets.get(key)
        if zset is not None:
            zset.pop(member, None)

    async def zrangebyscore(
        self, key: str, min_score: float, max_score: float,
        offset: int = 0, count: int = 50,
    ) -> list[tuple[str, Optional[float]]]:
        await asyncio.sleep(0)
        zset = self._zsets.get(key, {})
        matched = sorted(
            ((member, score) for member, score in zset.items()
             if min_score <= score <= max_score),
            key=lambda item: (item[1], item[0]),
        )
        return matched[offset:offset + count]

    # ── Introspection (tests / debugging) ─────────────────

    def has_content(self, key: str) -> bool:
        entry = self._values.get(key)
        return entry is not None and self._clock() < entry[1]

    def expires_at(self, key: str) -> Optional[int]:
        entry = self._values.get(key)
        return entry[1] if entry else None

    def score(self, key: str, member: str) -> Optional[float]:
        return self._zsets.get(key, {}).get(member)

    def index_size(self, key: str) -> int:
        return len(self._zsets.get(key, {}))
