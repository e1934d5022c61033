"""
scrapegate scraper module - admission control and the scrape loop.

- Level status table with per project / proxy / domain / session counters
- Round-robin proxy selection respecting proxy and session capacity
- Admission controller with a resource buffer for host-blocked candidates
- Worker pool driving dispatch, fetch and completion callbacks
"""

from .concurrency_manager import ConcurrencyManager
from .errors import ConcurrencyError, ConcurrencyLevel, NoResourceReady
from .proxy_selector import ProxySelection, ProxySelector, SelectionOutcome
from .resource_buffer import ResourceBuffer
from .scraper import Scraper, ScrapeStats, completion_percentage
from .status import ConcurrencyStatus, LevelStatus, LevelStatusTable, conditions_met

__all__ = [
    "ConcurrencyManager",
    "ConcurrencyError",
    "ConcurrencyLevel",
    "NoResourceReady",
    "ProxySelection",
    "ProxySelector",
    "SelectionOutcome",
    "ResourceBuffer",
    "Scraper",
    "ScrapeStats",
    "completion_percentage",
    "ConcurrencyStatus",
    "LevelStatus",
    "LevelStatusTable",
    "conditions_met",
]
