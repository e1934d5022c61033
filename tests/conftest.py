"""
Test configuration for scrapegate.

Fixtures for deterministic clocks, stubbed work queues and task cleanup.
"""

# Standard library imports
import asyncio
from typing import AsyncGenerator, List
from unittest.mock import AsyncMock

# Third-party imports
import pytest
import pytest_asyncio
from hypothesis import HealthCheck, settings

# Local imports
from scrapegate.config import ConcurrencyConfig
from scrapegate.protocols import Project, Resource
from scrapegate.scraper import ConcurrencyManager

# ============================================================================
# Pytest Configuration
# ============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests for individual components")
    config.addinivalue_line("markers", "integration: Integration tests across modules")


settings.register_profile(
    "scrapegate",
    deadline=None,
    suppress_health_check=[HealthCheck.function_scoped_fixture],
)
settings.load_profile("scrapegate")


# ============================================================================
# Core Test Fixtures
# ============================================================================


@pytest_asyncio.fixture(autouse=True)
async def cleanup_tasks() -> AsyncGenerator[None, None]:
    """Cancel any task a test leaves behind."""
    tasks_before = asyncio.all_tasks()
    yield
    new_tasks = asyncio.all_tasks() - tasks_before

    for task in new_tasks:
        if not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass


class FakeClock:
    """Millisecond clock advanced by hand."""

    def __init__(self, now: float = 10_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_manager(clock):
    """Build a ConcurrencyManager on the fake clock from a plain config dict."""

    def _make(**config) -> ConcurrencyManager:
        return ConcurrencyManager(ConcurrencyConfig.model_validate(config), clock=clock)

    return _make


# ============================================================================
# Work Queue Fixtures
# ============================================================================


@pytest.fixture
def queue() -> AsyncMock:
    """Work queue stub returning no resources by default."""
    stub = AsyncMock()
    stub.get_resources_to_scrape.return_value = []
    return stub


@pytest.fixture
def project(queue) -> Project:
    return Project(name="sitea.com", queue=queue)


@pytest.fixture
def make_resources():
    def _make(*urls: str) -> List[Resource]:
        return [Resource(url=url, queue_entry_id=idx) for idx, url in enumerate(urls, start=10)]

    return _make
