"""
Scrape loop driving the admission controller.
"""

from __future__ import annotations

import asyncio
import contextlib
import math
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional

import structlog
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type, wait_exponential

from scrapegate.config.config import ScraperConfig
from scrapegate.observability import histogram
from scrapegate.protocols import ProjectProtocol, Resource

from .concurrency_manager import ConcurrencyManager
from .errors import ConcurrencyError, NoResourceReady

FetchFn = Callable[[Resource], Awaitable[Optional[Iterable[str]]]]


def completion_percentage(scraped: int, total: int) -> int:
    """Whole percent of ``total`` already scraped."""
    if total <= 0:
        return 0
    return math.floor(scraped / total * 100)


@dataclass
class ScrapeStats:
    scraped: int = 0
    failed: int = 0
    start_time: float = field(default_factory=time.time)
    end_time: Optional[float] = None

    @property
    def duration(self) -> Optional[float]:
        if self.end_time is None:
            return None
        return self.end_time - self.start_time

    def to_dict(self) -> Dict[str, Any]:
        return {"scraped": self.scraped, "failed": self.failed, "duration": self.duration}


class Scraper:
    """
    Runs a bounded pool of workers against one project.

    Each worker loops: dispatch through the concurrency manager, fetch the
    admitted resource, queue the URLs it discovered, report the outcome and
    release the reserved capacity. Concurrency blocks are retried every
    check interval. An empty lookup is retried with exponential backoff until
    the job is drained: nothing in flight, buffered or pending. Candidates
    still buffered when the loop ends are handed back to the queue.
    """

    def __init__(
        self,
        manager: ConcurrencyManager,
        fetch: FetchFn,
        config: Optional[ScraperConfig] = None,
    ):
        self.manager = manager
        self.fetch = fetch
        self.config = config or ScraperConfig()
        self.logger = structlog.get_logger(self.__class__.__name__)
        self.stats = ScrapeStats()

        self._empty_wait = wait_exponential(
            multiplier=self.config.empty_backoff_base_ms / 1000,
            max=self.config.empty_backoff_max_ms / 1000,
        )
        self._shutdown_requested = False

    def request_shutdown(self) -> None:
        """Stop dispatching. Resources already admitted are finished."""
        if not self._shutdown_requested:
            self.logger.info("Shutdown requested, stopping dispatch")
        self._shutdown_requested = True

    async def scrape(self, project: ProjectProtocol) -> ScrapeStats:
        self.stats = ScrapeStats()
        self._shutdown_requested = False

        with structlog.contextvars.bound_contextvars(project=project.name):
            self.logger.info("Scraping started", workers=self.config.workers)
            reporter = None
            if self.config.report_interval_s:
                reporter = asyncio.create_task(self._report_loop(project, self.config.report_interval_s))

            try:
                async with asyncio.TaskGroup() as tg:
                    for i in range(self.config.workers):
                        tg.create_task(self._worker(project, f"worker-{i}"))
            except* Exception as eg:
                for e in eg.exceptions:
                    self.logger.error("Worker failed", error=str(e))
                raise
            finally:
                if reporter is not None:
                    reporter.cancel()
                    with contextlib.suppress(asyncio.CancelledError):
                        await reporter

            await self.manager.return_buffered(project)
            self.stats.end_time = time.time()
            await self.report_progress(project)
            self.logger.info(f"Project {project.name} scraping complete", **self.stats.to_dict())
            return self.stats

    async def _worker(self, project: ProjectProtocol, worker_id: str) -> None:
        # Admission and release lines logged on this worker's behalf carry its id.
        with structlog.contextvars.bound_contextvars(worker_id=worker_id):
            while not self._shutdown_requested:
                resource = await self._dispatch(project)
                if resource is None:
                    break
                await self._scrape_resource(project, resource)
            self.logger.debug("Worker stopped")

    async def _dispatch(self, project: ProjectProtocol) -> Optional[Resource]:
        # Outer policy: empty lookups, so its attempt number counts only those.
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(NoResourceReady),
            wait=self._empty_wait,
            stop=self._stop_on_shutdown,
            retry_error_callback=lambda retry_state: None,
        )
        return await retrying(self._next_resource, project)

    async def _next_resource(self, project: ProjectProtocol) -> Optional[Resource]:
        """One lookup, waiting out concurrency blocks. None once the job is drained."""
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(ConcurrencyError),
            wait=self._blocked_wait,
            stop=self._stop_on_shutdown,
            retry_error_callback=lambda retry_state: None,
        )
        resource = await retrying(self._attempt, project)
        if resource is None and not self._shutdown_requested and not await self.manager.is_drained(project):
            raise NoResourceReady()
        return resource

    async def _attempt(self, project: ProjectProtocol) -> Optional[Resource]:
        if self._shutdown_requested:
            return None
        return await self.manager.get_resource_to_scrape(project)

    def _blocked_wait(self, retry_state: RetryCallState) -> float:
        interval = max(self.manager.get_check_interval(), self.config.min_check_interval_ms)
        return interval / 1000

    def _stop_on_shutdown(self, retry_state: RetryCallState) -> bool:
        return self._shutdown_requested

    async def _scrape_resource(self, project: ProjectProtocol, resource: Resource) -> None:
        scraped = False
        start_time = time.perf_counter()
        try:
            try:
                discovered = await self.fetch(resource)
            except Exception as e:
                self.stats.failed += 1
                self.logger.warning(
                    "Resource scraping failed",
                    url=resource.url,
                    proxy=resource.proxy,
                    error=str(e),
                )
                await project.queue.resource_error(resource, e)
                return
            finally:
                histogram("fetch_latency_seconds", time.perf_counter() - start_time)

            # New work is queued before capacity is released, so idle workers
            # never see an empty queue with nothing in flight too early.
            if discovered:
                added = await project.queue.add(discovered, depth=resource.depth + 1)
                self.logger.debug("Discovered resources", url=resource.url, added=added)
            await project.queue.resource_scraped(resource)
            scraped = True
            self.stats.scraped += 1
            self.logger.info(f"Resource {resource.url} successfully scraped")
        finally:
            if scraped:
                self.manager.resource_scraped(resource.proxy, resource)
            else:
                self.manager.resource_error(resource.proxy, resource)

    async def _report_loop(self, project: ProjectProtocol, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            await self.report_progress(project)

    async def report_progress(self, project: ProjectProtocol) -> str:
        total = await project.queue.count()
        scraped = await project.queue.count_scraped()
        message = (
            f"progress (scraped / total resources): {scraped} / {total} | "
            f"{completion_percentage(scraped, total)}%"
        )
        self.logger.info(message)
        return message
