"""
Holding area for queue-fetched resources that could not be admitted yet.
"""

from __future__ import annotations

from collections import deque
from typing import Deque, Iterable, Iterator, List, Optional

from scrapegate.observability import gauge
from scrapegate.protocols import Resource


class ResourceBuffer:
    """FIFO of candidates, replayed before the work queue is queried again."""

    def __init__(self) -> None:
        self._items: Deque[Resource] = deque()

    def extend(self, resources: Iterable[Resource]) -> None:
        self._items.extend(resources)
        self._update_gauge()

    def pop(self) -> Resource:
        """Remove and return the oldest resource."""
        resource = self._items.popleft()
        self._update_gauge()
        return resource

    def push_front(self, resource: Resource) -> None:
        """Return a blocked candidate to the head so arrival order is kept."""
        self._items.appendleft(resource)
        self._update_gauge()

    def peek(self) -> Optional[Resource]:
        return self._items[0] if self._items else None

    def clear(self) -> List[Resource]:
        drained = list(self._items)
        self._items.clear()
        self._update_gauge()
        return drained

    def _update_gauge(self) -> None:
        gauge("resource_buffer_size", len(self._items))

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)

    def __iter__(self) -> Iterator[Resource]:
        return iter(self._items)
