"""
Concurrency Manager - admission control for a single scraping job.

Decides, for each attempt to pull the next resource, whether dispatching it now
keeps every configured level (project, proxy, domain, session) within its
limits, which proxy to attach, and keeps resources blocked by host-scoped
limits in a buffer so the work queue is not queried for them again.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional

import structlog

from scrapegate.config.config import ConcurrencyConfig, LevelConfig
from scrapegate.observability import gauge, increment
from scrapegate.protocols import ProjectProtocol, Proxy, QueueEntryStatus, Resource, SessionKey, proxy_id

from .errors import ConcurrencyError, ConcurrencyLevel
from .proxy_selector import ProxySelection, ProxySelector
from .resource_buffer import ResourceBuffer
from .status import Clock, ConcurrencyStatus, LevelStatus, LevelStatusTable, conditions_met, monotonic_ms

logger = structlog.get_logger(__name__)


class ConcurrencyManager:
    """
    Admission controller. One instance per scraping job.

    Dispatch attempts are serialised with an ``asyncio.Lock`` held across the
    whole gate / queue lookup / reserve sequence, so concurrent workers cannot
    both pass a gate that only has room for one of them. Releases never
    suspend and need no lock.
    """

    def __init__(self, config: Optional[ConcurrencyConfig] = None, clock: Clock = monotonic_ms):
        self.config = config or ConcurrencyConfig()
        self.table = LevelStatusTable(self.config, clock)
        self.selector = ProxySelector(self.table)
        self.resource_buffer = ResourceBuffer()
        self._dispatch_lock = asyncio.Lock()

        logger.debug(
            "ConcurrencyManager initialized",
            levels={name: level.model_dump() if level else None for name, level in self.config.levels().items()},
            proxy_pool=[proxy_id(proxy) for proxy in self.config.proxy_pool],
        )

    @property
    def status(self) -> ConcurrencyStatus:
        return self.table.status

    @property
    def in_flight(self) -> int:
        """Resources admitted and not yet released."""
        return self.table.in_flight

    # --- Level Status Table -------------------------------------------------

    def conditions_met(self, status: LevelStatus, level_config: Optional[LevelConfig]) -> bool:
        return conditions_met(status, level_config, self.table.clock())

    def get_check_interval(self) -> int:
        return self.table.get_check_interval()

    def add_resource(self, proxy: Optional[Proxy], host: str) -> None:
        self.table.add_resource(proxy, host)
        gauge("requests_in_flight", self.in_flight)

    def remove_resource(self, proxy: Optional[Proxy], host: str) -> None:
        self.table.remove_resource(proxy, host)
        gauge("requests_in_flight", self.in_flight)

    # --- Proxy Selector -----------------------------------------------------

    def get_next_proxy(self) -> Optional[Proxy]:
        return self.selector.get_next_proxy()

    def get_next_available_proxy(self) -> ProxySelection:
        return self.selector.get_next_available_proxy()

    def get_next_available_session_proxy(self, host: str) -> ProxySelection:
        return self.selector.get_next_available_session_proxy(host)

    # --- Dispatch -----------------------------------------------------------

    async def get_resource_to_scrape(self, project: Optional[ProjectProtocol]) -> Optional[Resource]:
        """
        Admit the next resource of ``project``.

        Returns:
            The resource, with its proxy attached and capacity reserved at
            every level, or None when the queue has nothing ready right now.

        Raises:
            ConcurrencyError: a level has no room yet; wait and retry.

        The session-aware proxy scan needs a buffered candidate, so with an
        empty buffer a saturated session is only detected after the lookup
        and the first attempt may raise a SESSION block before rerouting.
        """
        async with self._dispatch_lock:
            if not self.table.project_available():
                raise self._blocked(ConcurrencyLevel.PROJECT)

            proxy = self._select_proxy().proxy

            if self.resource_buffer:
                resource = self.resource_buffer.pop()
            else:
                if project is None:
                    raise ValueError("a project is required to query the work queue")
                increment("queue_lookups_total")
                batch = await project.queue.get_resources_to_scrape(proxy)
                if not batch:
                    logger.debug("No resources ready to scrape", proxy=proxy)
                    return None
                self.resource_buffer.extend(batch)
                resource = self.resource_buffer.pop()

            host = resource.host
            if not self.table.domain_available(host):
                self.resource_buffer.push_front(resource)
                raise self._blocked(ConcurrencyLevel.DOMAIN, host=host)
            if not self.table.session_available(proxy, host):
                self.resource_buffer.push_front(resource)
                raise self._blocked(ConcurrencyLevel.SESSION, session=SessionKey(proxy, host))

            self.add_resource(proxy, host)
            resource.proxy = proxy
            increment("admissions_total")
            logger.debug("Resource admitted", url=resource.url, proxy=proxy)
            return resource

    def _select_proxy(self) -> ProxySelection:
        # The session-aware scan needs the candidate's host, known only when
        # the next candidate comes from the buffer.
        head = self.resource_buffer.peek()
        if self.config.session is not None and head is not None:
            selection = self.selector.get_next_available_session_proxy(head.host)
            level = ConcurrencyLevel.SESSION
        else:
            selection = self.selector.get_next_available_proxy()
            level = ConcurrencyLevel.PROXY

        if selection.blocked:
            raise self._blocked(level)
        return selection

    def _blocked(self, level: ConcurrencyLevel, **context: Any) -> ConcurrencyError:
        increment("admission_blocked_total", labels={"level": level.value})
        logger.debug("Admission blocked", level=level.value, buffered=len(self.resource_buffer), **context)
        return ConcurrencyError(level)

    # --- Completion callbacks -----------------------------------------------

    def resource_scraped(self, proxy: Optional[Proxy], resource: Resource) -> None:
        """Release the capacity reserved for a successfully scraped resource."""
        self._release(proxy, resource)
        increment("resources_completed_total", labels={"outcome": "scraped"})

    def resource_error(self, proxy: Optional[Proxy], resource: Resource) -> None:
        """Release the capacity reserved for a resource whose scraping failed."""
        self._release(proxy, resource)
        increment("resources_completed_total", labels={"outcome": "error"})

    def _release(self, proxy: Optional[Proxy], resource: Resource) -> None:
        # Capacity was reserved under the proxy recorded on the resource.
        self.remove_resource(proxy if proxy is not None else resource.proxy, resource.host)

    def get_status(self) -> Dict[str, Any]:
        """Current counters for monitoring."""
        return {
            "in_flight": self.in_flight,
            "buffered": len(self.resource_buffer),
            "check_interval_ms": self.get_check_interval(),
            "levels": self.status.snapshot(),
        }

    # --- Job lifecycle ------------------------------------------------------

    async def is_drained(self, project: ProjectProtocol) -> bool:
        """
        True when no resource is in flight, buffered or pending in the queue.

        Checked under the dispatch lock, so no lookup is midway between
        taking entries from the queue and reserving them.
        """
        async with self._dispatch_lock:
            if self.in_flight or self.resource_buffer:
                return False
            return await project.queue.count_pending() == 0

    async def return_buffered(self, project: ProjectProtocol) -> List[Resource]:
        """Hand buffered candidates back to the queue as pending entries."""
        async with self._dispatch_lock:
            drained = self.resource_buffer.clear()
            ids = [resource.queue_entry_id for resource in drained if resource.queue_entry_id is not None]
            if ids:
                await project.queue.update_status(ids, QueueEntryStatus.PENDING)
        if drained:
            logger.info("Returned buffered resources to the queue", count=len(drained))
        return drained
