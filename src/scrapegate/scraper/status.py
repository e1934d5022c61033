"""
Level Status Table

In-flight request counters and last dispatch start times for the project,
proxy, domain and session levels, plus the admission predicate evaluated
against them. Entries are created lazily on first reference and live as long
as the owning controller.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

import structlog

from scrapegate.config.config import ConcurrencyConfig, LevelConfig
from scrapegate.protocols import Proxy, SessionKey, proxy_id, session_id

logger = structlog.get_logger(__name__)

Clock = Callable[[], float]


def monotonic_ms() -> float:
    """Default clock, milliseconds."""
    return time.monotonic() * 1000


@dataclass
class LevelStatus:
    """Requests in flight and start time of the most recent dispatch."""

    requests: int = 0
    last_start_time: Optional[float] = None


def conditions_met(status: LevelStatus, level_config: Optional[LevelConfig], now: float) -> bool:
    """
    Check whether one more request may start at a level.

    A disabled level (no config) always admits. A level that never dispatched
    admits regardless of its delay.
    """
    if level_config is None:
        return True
    if status.requests >= level_config.max_requests:
        return False
    return status.last_start_time is None or now - status.last_start_time >= level_config.delay_ms


@dataclass
class ConcurrencyStatus:
    """Status entries for all four levels of a single scraping job."""

    project: LevelStatus = field(default_factory=LevelStatus)
    proxy: Dict[Optional[Proxy], LevelStatus] = field(default_factory=dict)
    domain: Dict[str, LevelStatus] = field(default_factory=dict)
    session: Dict[SessionKey, LevelStatus] = field(default_factory=dict)

    def proxy_status(self, proxy: Optional[Proxy]) -> LevelStatus:
        return self.proxy.setdefault(proxy, LevelStatus())

    def domain_status(self, host: str) -> LevelStatus:
        return self.domain.setdefault(host, LevelStatus())

    def session_status(self, proxy: Optional[Proxy], host: str) -> LevelStatus:
        return self.session.setdefault(SessionKey(proxy, host), LevelStatus())

    def entries(self, proxy: Optional[Proxy], host: str) -> tuple[LevelStatus, ...]:
        return (
            self.project,
            self.proxy_status(proxy),
            self.domain_status(host),
            self.session_status(proxy, host),
        )

    def snapshot(self) -> Dict[str, Any]:
        """Plain dict view keyed by display ids, for diagnostics and logs."""

        def as_dict(status: LevelStatus) -> Dict[str, Any]:
            return {"requests": status.requests, "last_start_time": status.last_start_time}

        return {
            "project": as_dict(self.project),
            "proxy": {proxy_id(key): as_dict(value) for key, value in self.proxy.items()},
            "domain": {key: as_dict(value) for key, value in self.domain.items()},
            "session": {session_id(key.proxy, key.host): as_dict(value) for key, value in self.session.items()},
        }


class LevelStatusTable:
    """
    Owns the configuration and status of one job and applies reservations
    and releases to it.

    Reservation and release never suspend, so under cooperative scheduling
    each one is a single atomic step relative to other workers.
    """

    def __init__(self, config: ConcurrencyConfig, clock: Clock = monotonic_ms):
        self.config = config
        self.clock = clock
        self.status = ConcurrencyStatus()

    def project_available(self) -> bool:
        return conditions_met(self.status.project, self.config.project, self.clock())

    def proxy_available(self, proxy: Optional[Proxy]) -> bool:
        return conditions_met(self.status.proxy_status(proxy), self.config.proxy, self.clock())

    def domain_available(self, host: str) -> bool:
        return conditions_met(self.status.domain_status(host), self.config.domain, self.clock())

    def session_available(self, proxy: Optional[Proxy], host: str) -> bool:
        return conditions_met(self.status.session_status(proxy, host), self.config.session, self.clock())

    def get_check_interval(self) -> int:
        """Smallest delay among the enabled levels, in milliseconds. Advisory only."""
        delays = [self.config.proxy.delay_ms, self.config.domain.delay_ms]
        if self.config.project is not None:
            delays.append(self.config.project.delay_ms)
        elif self.config.session is not None:
            delays.append(self.config.session.delay_ms)
        return min(delays)

    def add_resource(self, proxy: Optional[Proxy], host: str) -> None:
        """Reserve one request slot at every level. Callers check conditions first."""
        now = self.clock()
        for entry in self.status.entries(proxy, host):
            entry.requests += 1
            entry.last_start_time = now
        logger.debug("Reserved", proxy=proxy, host=host, in_flight=self.status.project.requests)

    def remove_resource(self, proxy: Optional[Proxy], host: str) -> None:
        """Release one request slot at every level. Start times are kept."""
        for entry in self.status.entries(proxy, host):
            entry.requests = max(0, entry.requests - 1)
        logger.debug("Released", proxy=proxy, host=host, in_flight=self.status.project.requests)

    @property
    def in_flight(self) -> int:
        return self.status.project.requests
