"""
In-memory work queue.

Reference implementation of ``WorkQueueProtocol`` for single-process jobs and
tests. Entries are never persisted.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional
from urllib.parse import urlsplit, urlunsplit

import structlog

from scrapegate.protocols import Proxy, QueueEntryStatus, Resource

logger = structlog.get_logger(__name__)


def normalize_url(url: str) -> str:
    """Lowercase scheme and host, drop the fragment, default the path to ``/``."""
    parts = urlsplit(url.strip())
    if not parts.scheme or not parts.netloc:
        raise ValueError(f"not an absolute URL: {url!r}")
    return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), parts.path or "/", parts.query, ""))


@dataclass
class QueueEntry:
    id: int
    url: str
    depth: int = 0
    status: QueueEntryStatus = QueueEntryStatus.PENDING


class MemoryQueue:
    """Insertion-ordered queue with URL de-duplication."""

    def __init__(self, batch_size: int = 10):
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self.batch_size = batch_size
        self._entries: Dict[int, QueueEntry] = {}
        self._ids_by_url: Dict[str, int] = {}
        self._next_id = 1

    async def add(self, urls: Iterable[str], depth: int = 0) -> int:
        """Add unseen URLs. Returns how many were new."""
        added = 0
        for url in urls:
            try:
                normalized = normalize_url(url)
            except ValueError:
                logger.warning("Invalid URL skipped", url=url)
                continue
            if normalized in self._ids_by_url:
                continue
            entry = QueueEntry(id=self._next_id, url=normalized, depth=depth)
            self._entries[entry.id] = entry
            self._ids_by_url[normalized] = entry.id
            self._next_id += 1
            added += 1
        if added:
            logger.debug("Resources queued", added=added, depth=depth)
        return added

    async def get_resources_to_scrape(self, proxy: Optional[Proxy] = None) -> List[Resource]:
        batch = [entry for entry in self._entries.values() if entry.status is QueueEntryStatus.PENDING][
            : self.batch_size
        ]
        await self.update_status([entry.id for entry in batch], QueueEntryStatus.IN_PROGRESS)
        return [Resource(url=entry.url, queue_entry_id=entry.id, depth=entry.depth) for entry in batch]

    async def update_status(self, queue_entry_ids: Iterable[int], status: QueueEntryStatus) -> None:
        for entry_id in queue_entry_ids:
            self._entries[entry_id].status = status

    async def resource_scraped(self, resource: Resource) -> None:
        await self._complete(resource, QueueEntryStatus.SCRAPED)

    async def resource_error(self, resource: Resource, error: Optional[BaseException] = None) -> None:
        await self._complete(resource, QueueEntryStatus.ERROR)
        if error is not None:
            logger.debug("Queue entry marked as failed", url=resource.url, error=str(error))

    async def _complete(self, resource: Resource, status: QueueEntryStatus) -> None:
        if resource.queue_entry_id is None:
            raise ValueError(f"resource {resource.url} has no queue entry")
        await self.update_status([resource.queue_entry_id], status)

    async def count(self) -> int:
        return len(self._entries)

    async def count_scraped(self) -> int:
        """Entries done with, successfully or not."""
        return self._count(QueueEntryStatus.SCRAPED, QueueEntryStatus.ERROR)

    async def count_pending(self) -> int:
        return self._count(QueueEntryStatus.PENDING)

    def _count(self, *statuses: QueueEntryStatus) -> int:
        return sum(1 for entry in self._entries.values() if entry.status in statuses)

    def get_entry(self, url: str) -> Optional[QueueEntry]:
        entry_id = self._ids_by_url.get(normalize_url(url))
        return self._entries.get(entry_id) if entry_id is not None else None
