"""Metrics — Prometheus metrics collection and exposure."""

from __future__ import annotations

from push_relay.metrics.collector import DispatchMetrics, MetricsCollector

__all__ = ["DispatchMetrics", "MetricsCollector"]
