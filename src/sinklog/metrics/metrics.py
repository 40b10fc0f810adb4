"""
Metrics collection for the buffered sink.

Implements minimal Prometheus-compatible counters, histograms and a gauge for
the append and flush paths.

Design goals:
- Zero global state; instances are runtime-scoped with an isolated registry
- Safe no-op exporters when metrics are disabled by settings
- Thread-safe: appends are counted on producer threads, flushes on the
  scheduler's event loop
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram


@dataclass
class SinkMetrics:
    """Captured runtime metrics for quick assertions in tests."""

    records_appended: int = 0
    records_evicted: int = 0
    flushes: int = 0
    records_persisted: int = 0
    insert_failures: int = 0


class MetricsCollector:
    """Runtime-scoped metrics collector.

    When disabled, all methods still update the in-memory counters so tests
    can assert on them, but nothing is exported.
    """

    def __init__(self, *, enabled: bool = False) -> None:
        self._enabled = bool(enabled)
        self._lock = threading.Lock()
        self._state = SinkMetrics()

        self._c_appended: Any | None = None
        self._c_evicted: Any | None = None
        self._c_flushes: Any | None = None
        self._c_persisted: Any | None = None
        self._c_insert_failures: Any | None = None
        self._h_batch_size: Any | None = None
        self._h_flush_latency: Any | None = None
        self._g_high_watermark: Any | None = None
        self._registry: CollectorRegistry | None = None

        if self._enabled:
            # Isolated registry avoids duplicate registration across runtimes
            self._registry = CollectorRegistry()
            self._c_appended = Counter(
                "sinklog_records_appended_total",
                "Total number of records appended to the buffer",
                registry=self._registry,
            )
            self._c_evicted = Counter(
                "sinklog_records_evicted_total",
                "Total number of pending records evicted by the buffer cap",
                registry=self._registry,
            )
            self._c_flushes = Counter(
                "sinklog_flushes_total",
                "Total number of flushes executed",
                registry=self._registry,
            )
            self._c_persisted = Counter(
                "sinklog_records_persisted_total",
                "Total number of records inserted into storage",
                registry=self._registry,
            )
            self._c_insert_failures = Counter(
                "sinklog_insert_failures_total",
                "Total number of record inserts that failed",
                registry=self._registry,
            )
            self._h_batch_size = Histogram(
                "sinklog_batch_size",
                "Number of records per flushed batch",
                buckets=(0, 1, 5, 10, 50, 100, 500, 1000, 5000),
                registry=self._registry,
            )
            self._h_flush_latency = Histogram(
                "sinklog_flush_seconds",
                "Time spent persisting one batch",
                buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 5.0),
                registry=self._registry,
            )
            self._g_high_watermark = Gauge(
                "sinklog_buffer_high_watermark",
                "Largest number of pending records observed",
                registry=self._registry,
            )

    @property
    def is_enabled(self) -> bool:
        return self._enabled

    @property
    def registry(self) -> CollectorRegistry | None:
        """Expose the isolated Prometheus registry when enabled."""
        return self._registry

    def record_appended(self, count: int = 1) -> None:
        with self._lock:
            self._state.records_appended += count
        if self._c_appended is not None:
            self._c_appended.inc(count)

    def record_evicted(self, count: int = 1) -> None:
        with self._lock:
            self._state.records_evicted += count
        if self._c_evicted is not None:
            self._c_evicted.inc(count)

    def record_flush(
        self,
        *,
        batch_size: int,
        persisted: int,
        failed: int,
        latency_seconds: float,
    ) -> None:
        with self._lock:
            self._state.flushes += 1
            self._state.records_persisted += persisted
            self._state.insert_failures += failed
        if not self._enabled:
            return
        if self._c_flushes is not None:
            self._c_flushes.inc()
        if self._c_persisted is not None and persisted:
            self._c_persisted.inc(persisted)
        if self._c_insert_failures is not None and failed:
            self._c_insert_failures.inc(failed)
        if self._h_batch_size is not None:
            self._h_batch_size.observe(batch_size)
        if self._h_flush_latency is not None:
            self._h_flush_latency.observe(latency_seconds)

    def set_buffer_high_watermark(self, value: int) -> None:
        if self._g_high_watermark is not None:
            self._g_high_watermark.set(value)

    def snapshot(self) -> SinkMetrics:
        with self._lock:
            return SinkMetrics(
                records_appended=self._state.records_appended,
                records_evicted=self._state.records_evicted,
                flushes=self._state.flushes,
                records_persisted=self._state.records_persisted,
                insert_failures=self._state.insert_failures,
            )
