"""Key naming — every key is namespaced by topic so topics never collide."""
from __future__ import annotations

DEFAULT_PREFIX = "queue_delay"

CONTENT_KEY_FORMAT = "{prefix}:pool:{topic}:{id}"
INDEX_KEY_FORMAT = "{prefix}:queue:{topic}"


def content_key(topic: str, message_id: str, prefix: str = DEFAULT_PREFIX) -> str:
    return CONTENT_KEY_FORMAT.format(prefix=prefix, topic=topic, id=message_id)


def index_key(topic: str, prefix: str = DEFAULT_PREFIX) -> str:
    return INDEX_KEY_FORMAT.format(prefix=prefix, topic=topic)
