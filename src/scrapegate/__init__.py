"""
scrapegate - Crawling engine core with multi-level admission control.
"""

from __future__ import annotations

__version__ = "0.1.0"

from .config import Config, ConcurrencyConfig
from .protocols import Project, Proxy, Resource
from .scraper import ConcurrencyError, ConcurrencyLevel, ConcurrencyManager, Scraper

__all__ = [
    "__version__",
    "Config",
    "ConcurrencyConfig",
    "Project",
    "Proxy",
    "Resource",
    "ConcurrencyError",
    "ConcurrencyLevel",
    "ConcurrencyManager",
    "Scraper",
]
