"""Work queue implementations."""

from .memory_queue import MemoryQueue, QueueEntry, normalize_url

__all__ = ["MemoryQueue", "QueueEntry", "normalize_url"]
