"""Logging and metrics."""

from __future__ import annotations

from typing import Any, Dict, Optional

from .logging import configure_logging, render_identities
from .metrics import METRICS, start_metrics_server

__all__ = [
    "configure_logging",
    "render_identities",
    "METRICS",
    "start_metrics_server",
    "increment",
    "gauge",
    "histogram",
]


def _collector(name: str, labels: Optional[Dict[str, Any]]) -> Any:
    # Unknown names raise KeyError: every metric is declared in METRICS.
    metric = METRICS[name]
    return metric.labels(**labels) if labels else metric


def increment(name: str, value: float = 1.0, labels: Optional[Dict[str, Any]] = None) -> None:
    """Increment a counter metric."""
    _collector(name, labels).inc(value)


def gauge(name: str, value: float, labels: Optional[Dict[str, Any]] = None) -> None:
    """Set a gauge metric."""
    _collector(name, labels).set(value)


def histogram(name: str, value: float, labels: Optional[Dict[str, Any]] = None) -> None:
    _collector(name, labels).observe(value)
