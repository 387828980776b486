"""Metrics collector — Prometheus counters and histograms for dispatch.

- ``pushrelay_events_total`` counter-vec (event_type, outcome)
- ``pushrelay_deliveries_total`` counter-vec (result)
- ``pushrelay_tokens_pruned_total`` counter
- ``pushrelay_dispatch_duration_seconds`` histogram
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import TYPE_CHECKING

from prometheus_client import CollectorRegistry, Counter, Histogram

if TYPE_CHECKING:
    from collections.abc import Iterator

_PREFIX = "pushrelay"


class MetricsCollector:
    """Low-level Prometheus collector that owns the registry.

    Use :class:`DispatchMetrics` for the high-level tracking interface.
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self._registry = registry or CollectorRegistry()

    @property
    def registry(self) -> CollectorRegistry:
        """Return the underlying Prometheus registry."""
        return self._registry

    def histogram(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Histogram:
        """Register and return a Histogram."""
        return Histogram(name, doc, labels, registry=self._registry)

    def counter(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Counter:
        """Register and return a Counter."""
        return Counter(name, doc, labels, registry=self._registry)


class DispatchMetrics:
    """High-level metrics for the dispatch pipeline."""

    def __init__(self, collector: MetricsCollector | None = None) -> None:
        self._collector = collector or MetricsCollector()

        self._events = self._collector.counter(
            f"{_PREFIX}_events",
            "Inbound events by type and dispatch outcome",
            ("event_type", "outcome"),
        )
        self._deliveries = self._collector.counter(
            f"{_PREFIX}_deliveries",
            "Per-token delivery results",
            ("result",),
        )
        self._pruned = self._collector.counter(
            f"{_PREFIX}_tokens_pruned",
            "Tokens pruned after the transport reported them unregistered",
        )
        self._duration = self._collector.histogram(
            f"{_PREFIX}_dispatch_duration_seconds",
            "Duration of a full dispatch call",
        )

    @property
    def registry(self) -> CollectorRegistry:
        """Return the underlying Prometheus registry."""
        return self._collector.registry

    def record_event(self, event_type: str, outcome: str) -> None:
        """Count one dispatched event (outcome: notified, skipped, undelivered, failed)."""
        self._events.labels(event_type=event_type, outcome=outcome).inc()

    def record_deliveries(self, result: str, count: int = 1) -> None:
        """Count token deliveries (result: success or a failure reason)."""
        if count > 0:
            self._deliveries.labels(result=result).inc(count)

    def record_pruned(self, count: int = 1) -> None:
        if count > 0:
            self._pruned.inc(count)

    @contextmanager
    def track_dispatch(self) -> Iterator[None]:
        """Context manager timing one dispatch call."""
        start = time.monotonic()
        try:
            yield
        finally:
            self._duration.observe(time.monotonic() - start)
