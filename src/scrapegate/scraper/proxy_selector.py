"""
Round-robin proxy selection that respects proxy and session capacity.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

import structlog

from scrapegate.protocols import Proxy, proxy_id

from .status import LevelStatusTable

logger = structlog.get_logger(__name__)


class SelectionOutcome(Enum):
    """Result kinds of an availability scan."""

    UNNEEDED = "unneeded"  # Proceed without a proxy
    SELECTED = "selected"
    BLOCKED = "blocked"  # Every pool entry is saturated


@dataclass(frozen=True)
class ProxySelection:
    outcome: SelectionOutcome
    proxy: Optional[Proxy] = None

    @property
    def blocked(self) -> bool:
        return self.outcome is SelectionOutcome.BLOCKED


BLOCKED = ProxySelection(SelectionOutcome.BLOCKED)


class ProxySelector:
    """
    Cursor over the configured proxy pool.

    ``cursor`` is the index of the next pool entry to examine. Availability
    scans start there and wrap once, so a blocked entry never starves the
    ones after it.
    """

    def __init__(self, table: LevelStatusTable):
        self.table = table
        self.pool: List[Optional[Proxy]] = list(table.config.proxy_pool)
        self.cursor = 0

    def get_next_proxy(self) -> Optional[Proxy]:
        """Plain round robin, no capacity check."""
        proxy = self.pool[self.cursor]
        self.cursor = (self.cursor + 1) % len(self.pool)
        return proxy

    def get_next_available_proxy(self) -> ProxySelection:
        """First pool entry, from the cursor on, whose proxy level admits."""
        return self._scan(self.table.proxy_available)

    def get_next_available_session_proxy(self, host: str) -> ProxySelection:
        """First pool entry, from the cursor on, free for a session with ``host``."""
        return self._scan(
            lambda proxy: self.table.session_available(proxy, host) and self.table.proxy_available(proxy)
        )

    def _scan(self, available: Callable[[Optional[Proxy]], bool]) -> ProxySelection:
        size = len(self.pool)
        for offset in range(size):
            idx = (self.cursor + offset) % size
            proxy = self.pool[idx]
            if available(proxy):
                self.cursor = (idx + 1) % size
                if proxy is None:
                    return ProxySelection(SelectionOutcome.UNNEEDED)
                return ProxySelection(SelectionOutcome.SELECTED, proxy)

        logger.debug("No proxy available", pool=[proxy_id(proxy) for proxy in self.pool], cursor=self.cursor)
        return BLOCKED
