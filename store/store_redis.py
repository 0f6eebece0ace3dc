"""
RedisStore — Production ContentStore + VisibilityIndex backed by Redis.

  - Content entries are plain string keys written with SET ... EX
  - The visibility index is a sorted set (ZADD / ZREM / ZRANGEBYSCORE)

Each call is a single Redis command, so every step is atomic on its own
and nothing is atomic across steps.

The client never decodes responses. Bodies are stored with a one-byte type
tag so a `str` comes back as `str` and `bytes` as `bytes`, byte for byte;
only sorted-set members are decoded, and those are always text ids.
"""
from __future__ import annotations

import structlog
from typing import Any, Optional

from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential

from store.store_base import ContentStore, StoreError, VisibilityIndex, Value

logger = structlog.get_logger()

_TAG_TEXT = b"s"
_TAG_BINARY = b"b"


def _as_member(raw: Any) -> str:
    if isinstance(raw, bytes):
        return raw.decode("utf-8")
    return str(raw)


def encode_value(value: Value) -> bytes:
    if isinstance(value, bytes):
        return _TAG_BINARY + value
    return _TAG_TEXT + str(value).encode("utf-8")


def decode_value(raw: Optional[bytes]) -> Optional[Value]:
    if raw is None:
        return None
    if isinstance(raw, str):
        raw = raw.encode("utf-8")
    tag, payload = raw[:1], raw[1:]
    if tag == _TAG_BINARY:
        return payload
    if tag == _TAG_TEXT:
        return payload.decode("utf-8")
    raise StoreError(f"Unrecognised value tag {tag!r}")


class RedisStore(ContentStore, VisibilityIndex):
    """
    Shared store for multi-process producers and consumers.

    Usage:
        store = RedisStore("redis://localhost:6379")
        await store.connect()
        ...
        await store.close()
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379",
        max_connections: int = 20,
        connect_retries: int = 3,
        client: Any = None,
    ):
        self._redis_url = redis_url
        self._max_connections = max_connections
        self._connect_retries = max(1, connect_retries)
        self._redis = client

    async def connect(self):
        if self._redis is None:
            import redis.asyncio as aioredis
            self._redis = aioredis.from_url(
                self._redis_url,
                decode_responses=False,
                max_connections=self._max_connections,
            )
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._connect_retries),
            wait=wait_exponential(multiplier=1, max=10),
            reraise=True,
        ):
            with attempt:
                await self._redis.ping()
        logger.info("redis_store_connected", url=self._redis_url)

    async def close(self):
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

    @property
    def client(self):
        if self._redis is None:
            raise StoreError("RedisStore is not connected; call connect() first")
        return self._redis

    # ── Content ───────────────────────────────────────────

    async def set(self, key: str, value: Value, ttl_seconds: int) -> None:
        await self.client.set(key, encode_value(value), ex=max(1, int(ttl_seconds)))

    async def get(self, key: str) -> Optional[Value]:
        return decode_value(await self.client.get(key))

    async def delete(self, key: str) -> None:
        await self.client.delete(key)

    # ── Index ─────────────────────────────────────────────

    async def zadd(
        self, key: str, member: str, score: float, only_existing: bool = False,
    ) -> None:
        await self.client.zadd(key, {member: score}, xx=only_existing)

    async def zrem(self, key: str, member: str) -> None:
        await self.client.zrem(key, member)

    async def zrangebyscore(
        self, key: str, min_score: float, max_score: float,
        offset: int = 0, count: int = 50,
    ) -> list[tuple[str, Optional[float]]]:
        rows = await self.client.zrangebyscore(
            key, min_score, max_score,
            start=offset, num=count, withscores=True,
        )
        return [(_as_member(member), score) for member, score in rows]
