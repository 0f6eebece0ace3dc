"""
Store Factory — Create the right store backend from configuration.

Configuration in settings.yaml:
    store:
      # Where message bodies and the visibility index live
      #   "memory"   — In-memory dicts (development, testing, single process)
      #   "redis"    — Redis server shared by all producers and consumers
      backend: "memory"
      redis_url: "redis://localhost:6379"

Usage:
    from store.store_factory import create_store, get_store
    store = create_store({"backend": "redis", "redis_url": "redis://..."})
    store = get_store()              # Get singleton instance

A RedisStore still needs `await store.connect()` before first use.
"""
from __future__ import annotations

import structlog
from typing import Union

from store.store_base import ContentStore, VisibilityIndex

logger = structlog.get_logger()

_instance = None


def create_store(config: dict = None) -> Union[ContentStore, VisibilityIndex]:
    """
    Factory: create the appropriate store backend.

    Args:
        config: dict with keys:
            backend: "memory" | "redis"  (default: "memory")
            redis_url: str (for redis backend)
    """
    global _instance
    if _instance is not None:
        return _instance

    config = config or {}
    backend = config.get("backend", "memory")

    if backend == "redis":
        from store.store_redis import RedisStore
        url = config.get("redis_url", "redis://localhost:6379")
        _instance = RedisStore(
            redis_url=url,
            max_connections=config.get("max_connections", 20),
            connect_retries=config.get("connect_retries", 3),
        )
        logger.info("store_created", backend="redis", url=url)

    else:  # "memory" or default
        from store.store_memory import InMemoryStore
        _instance = InMemoryStore()
        logger.info("store_created", backend="memory")

    return _instance


def get_store() -> Union[ContentStore, VisibilityIndex]:
    """Return the singleton store instance, creating a memory store if none exists."""
    global _instance
    if _instance is None:
        _instance = create_store()
    return _instance


def reset_store() -> None:
    """Reset the singleton (for testing)."""
    global _instance
    _instance = None
