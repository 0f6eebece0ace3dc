"""
Delay Queue — Messages that become visible only after a requested delay.

- Producers PUSH a body with a delay, optionally under an id; pushing the
  same id again before it fires reschedules it (watchdog / debounce)
- Consumers POP due bodies in batches, earliest first
- Bodies live in an expiring key/value store, ids in a sorted index
  (Redis in production, in-memory for dev and tests)
- Delivery is at-least-once
"""
from delay_queue.engine import DelayQueue
from delay_queue.errors import DelayQueueError, PollQueryFailed
from delay_queue.events import EventRecorder, QueueEvent, QueueEventKind
from delay_queue.message import DelayMessage, new_message_id
from delay_queue.registry import get_delay_queue, register_configured_topics, reset_delay_queues
from delay_queue.consumer import DelayQueueConsumer

__all__ = [
    "DelayQueue", "DelayMessage", "new_message_id",
    "DelayQueueError", "PollQueryFailed",
    "EventRecorder", "QueueEvent", "QueueEventKind",
    "get_delay_queue", "register_configured_topics", "reset_delay_queues",
    "DelayQueueConsumer",
]
