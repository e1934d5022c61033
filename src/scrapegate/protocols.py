"""
Core contracts and dataclasses for scrapegate.

Defines the records exchanged between the admission controller, the work
queue and the scrape loop, plus the protocols the external collaborators
must satisfy.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, NamedTuple, Optional, Protocol
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field

# ============================================================================
# Enums and Constants
# ============================================================================

NO_PROXY_ID = "none"


class QueueEntryStatus(Enum):
    """Lifecycle of a queue entry."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    SCRAPED = "scraped"
    ERROR = "error"


# ============================================================================
# Identity
# ============================================================================


class Proxy(BaseModel):
    """Outbound proxy descriptor. Frozen so it can key the status mappings."""

    model_config = ConfigDict(frozen=True)

    host: str = Field(min_length=1)
    port: int = Field(ge=1, le=65535)

    def __str__(self) -> str:
        return f"{self.host}-{self.port}"


class SessionKey(NamedTuple):
    """A proxy paired with a target host."""

    proxy: Optional[Proxy]
    host: str


def proxy_id(proxy: Optional[Proxy]) -> str:
    """Display id of a proxy, ``"none"`` when no proxy is attached."""
    return NO_PROXY_ID if proxy is None else str(proxy)


def session_id(proxy: Optional[Proxy], host: str) -> str:
    """Display id of a proxy+host session."""
    return f"{proxy_id(proxy)}-{host}"


def host_from_url(url: str) -> str:
    """Lowercase hostname of a URL, empty string when there is none."""
    return urlparse(url).hostname or ""


# ============================================================================
# Core Dataclasses
# ============================================================================


@dataclass
class Resource:
    """A unit of work handed out by the work queue."""

    url: str
    queue_entry_id: Optional[int] = None
    depth: int = 0
    proxy: Optional[Proxy] = None
    data: Dict[str, Any] = field(default_factory=dict)

    @property
    def host(self) -> str:
        return host_from_url(self.url)


# ============================================================================
# Protocol Interfaces
# ============================================================================


class WorkQueueProtocol(Protocol):
    """Persistent queue of discovered resources."""

    async def get_resources_to_scrape(self, proxy: Optional[Proxy]) -> List[Resource]:
        """Return a small batch of not-yet-scraped resources, marking them in progress."""
        ...

    async def update_status(self, queue_entry_ids: Iterable[int], status: QueueEntryStatus) -> None:
        ...

    async def add(self, urls: Iterable[str], depth: int = 0) -> int:
        ...

    async def resource_scraped(self, resource: Resource) -> None:
        ...

    async def resource_error(self, resource: Resource, error: Optional[BaseException] = None) -> None:
        ...

    async def count(self) -> int:
        ...

    async def count_scraped(self) -> int:
        ...

    async def count_pending(self) -> int:
        ...


class ProjectProtocol(Protocol):
    """A scraping job: a name and the queue holding its resources."""

    name: str
    queue: WorkQueueProtocol


@dataclass
class Project:
    """Plain project holder satisfying ``ProjectProtocol``."""

    name: str
    queue: WorkQueueProtocol


__all__ = [
    "NO_PROXY_ID",
    "QueueEntryStatus",
    "Proxy",
    "SessionKey",
    "proxy_id",
    "session_id",
    "host_from_url",
    "Resource",
    "WorkQueueProtocol",
    "ProjectProtocol",
    "Project",
]
