"""
Admission control signals.
"""

from __future__ import annotations

from enum import Enum


class ConcurrencyLevel(Enum):
    """Scopes at which concurrency and rate limits are enforced."""

    PROJECT = "project"
    PROXY = "proxy"
    DOMAIN = "domain"
    SESSION = "session"


class ConcurrencyError(Exception):
    """
    Dispatching now would exceed the limit of ``level``.

    This is a wait-and-retry signal, never a reason to abort the job.
    """

    def __init__(self, level: ConcurrencyLevel):
        super().__init__(f"concurrency conditions not met at {level.value} level")
        self.level = level


class NoResourceReady(Exception):
    """The queue had nothing ready, but the job is not drained yet."""
