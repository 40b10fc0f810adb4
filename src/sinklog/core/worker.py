"""
Flush engine: persists detached batches through the storage gateway.

Extracted from the scheduler so the write path can be exercised without a
timer.
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from dataclasses import dataclass

from ..metrics.metrics import MetricsCollector
from ..plugins.sinks import StorageGateway
from .diagnostics import debug, warn
from .events import LogRecord
from .levels import Severity

BOOKKEEPING_PREFIX = "sinklog"


def bookkeeping_record(batch_size: int) -> LogRecord:
    """Synthetic entry written ahead of every flushed batch."""
    return LogRecord(
        level=Severity.INFO,
        text=f"flushing {batch_size} records",
        prefix=BOOKKEEPING_PREFIX,
    )


@dataclass(frozen=True)
class FlushResult:
    """Outcome of one flush."""

    submitted: int
    persisted: int
    failed: int
    latency_seconds: float


class FlushEngine:
    """Writes batches record by record; one failure never aborts a batch."""

    def __init__(
        self,
        storage: StorageGateway,
        *,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self._storage = storage
        self._metrics = metrics

    @property
    def storage(self) -> StorageGateway:
        return self._storage

    async def flush(self, batch: Sequence[LogRecord]) -> FlushResult:
        """Persist ``batch`` in order, after its bookkeeping record.

        Write sequence:

        1. BOOKKEEPING: a ``flushing N records`` info entry, so storage keeps a
           trail of flush activity even when the batch is empty or fails.
        2. RECORDS: each record through the gateway's single insert. A failed
           insert is reported to diagnostics and the record is dropped; the
           remaining records are still written. There is no retry.
        3. COMMIT: once, after the last insert. A failed commit is reported
           and not raised.

        The bookkeeping record is not counted in ``submitted``/``persisted``.
        """
        start = time.perf_counter()
        submitted = len(batch)

        await self._insert_one(bookkeeping_record(submitted), bookkeeping=True)

        persisted = 0
        failed = 0
        for record in batch:
            if await self._insert_one(record):
                persisted += 1
            else:
                failed += 1

        try:
            await self._storage.commit()
        except Exception as exc:
            warn(
                "flush",
                "commit failed",
                sink=self._sink_name(),
                error_type=type(exc).__name__,
                error=str(exc),
                batch_size=submitted,
            )

        latency_seconds = time.perf_counter() - start
        debug(
            "flush",
            "flushing logs: finish",
            batch_size=submitted,
            persisted=persisted,
            failed=failed,
        )
        if self._metrics is not None:
            self._metrics.record_flush(
                batch_size=submitted,
                persisted=persisted,
                failed=failed,
                latency_seconds=latency_seconds,
            )
        return FlushResult(
            submitted=submitted,
            persisted=persisted,
            failed=failed,
            latency_seconds=latency_seconds,
        )

    async def _insert_one(self, record: LogRecord, *, bookkeeping: bool = False) -> bool:
        """Insert a single record. Returns True on success."""
        try:
            await self._storage.insert(record)
            return True
        except Exception as exc:
            warn(
                "flush",
                "bookkeeping insert failed" if bookkeeping else "log insert failed",
                sink=self._sink_name(),
                error_type=type(exc).__name__,
                error=str(exc),
                record=record.to_dict(),
            )
            return False

    def _sink_name(self) -> str:
        return getattr(self._storage, "name", type(self._storage).__name__)


__all__ = ["BOOKKEEPING_PREFIX", "FlushEngine", "FlushResult", "bookkeeping_record"]
