"""
Store layer — the two primitives behind every delay queue topic.

Backends:
  - In-memory (dict-based, for development/testing)
  - Redis (sorted set + expiring string keys)

Quick start:
  from store import create_store
  store = create_store({"backend": "memory"})
  await store.set("k", "v", ttl_seconds=60)
"""
from store.store_base import ContentStore, VisibilityIndex, StoreError
from store.store_memory import InMemoryStore
from store.store_redis import RedisStore
from store.store_factory import create_store, get_store, reset_store

__all__ = [
    # Interfaces
    "ContentStore", "VisibilityIndex", "StoreError",
    # Backends
    "InMemoryStore", "RedisStore",
    # Factory
    "create_store", "get_store", "reset_store",
]
