"""Shared test fixtures for the delay queue."""
import pytest

from config.settings import DelayQueueConfig
from delay_queue.engine import DelayQueue
from delay_queue.events import EventRecorder
from store.store_memory import InMemoryStore


class ManualClock:
    """Epoch-millisecond clock that only moves when told to."""

    def __init__(self, start_ms: int = 1_700_000_000_000):
        self.start = start_ms
        self.now = start_ms

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms

    def set_elapsed(self, ms: int) -> None:
        """Jump to `ms` after the starting instant."""
        self.now = self.start + ms


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def store(clock) -> InMemoryStore:
    return InMemoryStore(clock=clock)


@pytest.fixture
def recorder() -> EventRecorder:
    return EventRecorder()


@pytest.fixture
def queue_config() -> DelayQueueConfig:
    return DelayQueueConfig()


@pytest.fixture
def make_queue():
    """Build an independent (queue, store, clock) triple."""
    def _make(topic: str = "devices", config: DelayQueueConfig = None):
        clock = ManualClock()
        store = InMemoryStore(clock=clock)
        return DelayQueue(topic, store, store, config=config, clock=clock), store, clock
    return _make


@pytest.fixture
def queue(store, clock, recorder, queue_config) -> DelayQueue:
    return DelayQueue(
        "devices",
        content=store,
        index=store,
        config=queue_config,
        clock=clock,
        on_event=recorder,
    )
