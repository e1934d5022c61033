"""
Defines Prometheus metrics for admission control and the scrape loop.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict

import structlog
from prometheus_client import REGISTRY as _PROM_REGISTRY
from prometheus_client import Counter as _OrigCounter
from prometheus_client import Gauge as _OrigGauge
from prometheus_client import Histogram as _OrigHistogram
from prometheus_client import start_http_server

if TYPE_CHECKING:
    from scrapegate.config.config import MonitoringConfig

logger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Duplicate-safe Prometheus metric wrappers
# ---------------------------------------------------------------------------
# Importing this module more than once (test collection does) must not
# register the same collector twice.


def _duplicate_safe_factory(metric_cls):
    """Return a factory that reuses an existing collector if already present."""

    def _factory(name: str, documentation: str, *args, **kwargs):  # type: ignore[override]
        existing = _PROM_REGISTRY._names_to_collectors.get(name)
        if existing is not None:
            return existing  # type: ignore[return-value]

        try:
            return metric_cls(name, documentation, *args, **kwargs)  # type: ignore[call-arg]
        except ValueError:
            # Registration lost the race, fall back to the now-existing collector.
            return _PROM_REGISTRY._names_to_collectors[name]  # type: ignore[return-value]

    return _factory


Counter = _duplicate_safe_factory(_OrigCounter)  # type: ignore[assignment]
Gauge = _duplicate_safe_factory(_OrigGauge)  # type: ignore[assignment]
Histogram = _duplicate_safe_factory(_OrigHistogram)  # type: ignore[assignment]


def _create_metrics() -> Dict[str, Any]:
    return {
        "admissions_total": Counter(
            "scrapegate_admissions_total",
            "Total number of resources admitted for scraping",
        ),
        "admission_blocked_total": Counter(
            "scrapegate_admission_blocked_total",
            "Total number of dispatch attempts blocked by a concurrency level",
            ["level"],
        ),
        "queue_lookups_total": Counter(
            "scrapegate_queue_lookups_total",
            "Total number of work queue lookups made by the admission controller",
        ),
        "requests_in_flight": Gauge(
            "scrapegate_requests_in_flight",
            "Number of admitted resources not yet released",
        ),
        "resource_buffer_size": Gauge(
            "scrapegate_resource_buffer_size",
            "Number of queue-fetched resources waiting for admission",
        ),
        "resources_completed_total": Counter(
            "scrapegate_resources_completed_total",
            "Total number of resources released by outcome",
            ["outcome"],
        ),
        "fetch_latency_seconds": Histogram(
            "scrapegate_fetch_latency_seconds",
            "Time taken by the fetch callable for one resource",
            buckets=[0.05, 0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0],
        ),
    }


METRICS: Dict[str, Any] = _create_metrics()


def start_metrics_server(config: MonitoringConfig) -> bool:
    """Expose the registry over HTTP when a port is configured."""
    if config.prometheus_port is None:
        return False
    start_http_server(config.prometheus_port)
    logger.info("Prometheus exporter started", port=config.prometheus_port)
    return True
