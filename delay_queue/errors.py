"""Delay queue exceptions."""


class DelayQueueError(Exception):
    """Base class for delay queue errors."""
    pass


class PollQueryFailed(DelayQueueError):
    """
    The due-entry range query failed. This is the only failure pop() lets
    through; the caller may simply poll again later.
    """

    def __init__(self, topic: str, message: str = ""):
        self.topic = topic
        super().__init__(message or f"Poll query failed for topic '{topic}'")
