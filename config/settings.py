"""
Configuration loader for the delay queue.
Reads settings from YAML file with environment variable substitution.
"""
from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv


@dataclass
class DelayQueueConfig:
    default_delay_seconds: int = 30     # used when push() gets no delay
    batch_size: int = 50                # default pop() batch
    grace_period_seconds: int = 360     # added to the delay to get the message ttl
    pool_extension_seconds: int = 1800  # extra content lifetime to absorb poll latency
    fetch_retry_delay_ms: int = 1000    # reschedule offset after a failed body fetch
    key_prefix: str = "queue_delay"
    poll_interval_seconds: int = 5      # consumer loop cadence

    def __post_init__(self):
        if self.batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {self.batch_size}")
        if self.default_delay_seconds < 0:
            raise ValueError("default_delay_seconds must not be negative")
        if self.grace_period_seconds <= self.poll_interval_seconds:
            raise ValueError(
                "grace_period_seconds must exceed poll_interval_seconds "
                f"({self.grace_period_seconds} <= {self.poll_interval_seconds})"
            )


@dataclass
class StoreConfig:
    backend: str = "memory"             # "memory" for dev, "redis" for production
    redis_url: str = "redis://localhost:6379"
    max_connections: int = 20
    connect_retries: int = 3


@dataclass
class Settings:
    queue: DelayQueueConfig = field(default_factory=DelayQueueConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    topics: list[str] = field(default_factory=list)


_settings: Optional[Settings] = None


def _substitute_env_vars(value: str) -> str:
    """Replace ${VAR_NAME} patterns with environment variable values."""
    pattern = re.compile(r'\$\{(\w+)\}')
    def replacer(match):
        var_name = match.group(1)
        return os.environ.get(var_name, match.group(0))
    return pattern.sub(replacer, value)


def _process_values(obj: Any) -> Any:
    """Recursively substitute env vars in all string values."""
    if isinstance(obj, str):
        return _substitute_env_vars(obj)
    elif isinstance(obj, dict):
        return {k: _process_values(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_process_values(v) for v in obj]
    return obj


def load_settings(config_path: str = None) -> Settings:
    """Load settings from YAML file."""
    global _settings

    load_dotenv()

    if config_path is None:
        config_path = os.environ.get(
            "DELAY_QUEUE_CONFIG",
            str(Path(__file__).parent / "settings.yaml"),
        )

    settings = Settings()

    if Path(config_path).exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}
        raw = _process_values(raw)

        settings.topics = list(raw.get("topics", []))

        if "queue" in raw:
            q = raw["queue"]
            defaults = DelayQueueConfig()
            settings.queue = DelayQueueConfig(
                default_delay_seconds=int(q.get("default_delay_seconds", defaults.default_delay_seconds)),
                batch_size=int(q.get("batch_size", defaults.batch_size)),
                grace_period_seconds=int(q.get("grace_period_seconds", defaults.grace_period_seconds)),
                pool_extension_seconds=int(q.get("pool_extension_seconds", defaults.pool_extension_seconds)),
                fetch_retry_delay_ms=int(q.get("fetch_retry_delay_ms", defaults.fetch_retry_delay_ms)),
                key_prefix=q.get("key_prefix", defaults.key_prefix),
                poll_interval_seconds=int(q.get("poll_interval_seconds", defaults.poll_interval_seconds)),
            )

        if "store" in raw:
            s = raw["store"]
            settings.store = StoreConfig(
                backend=s.get("backend", "memory"),
                redis_url=s.get("redis_url", "redis://localhost:6379"),
                max_connections=int(s.get("max_connections", 20)),
                connect_retries=int(s.get("connect_retries", 3)),
            )

    _settings = settings
    return settings


def get_settings() -> Settings:
    """Return cached settings or load from default path."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings (for testing)."""
    global _settings
    _settings = None
