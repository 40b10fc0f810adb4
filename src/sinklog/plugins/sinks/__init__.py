from __future__ import annotations

from typing import Protocol, runtime_checkable

from ...core.events import LogRecord
from .sqlite import SqliteStorage, SqliteStorageConfig


@runtime_checkable
class StorageGateway(Protocol):
    """Durable storage behind the flush engine.

    Gateways own a single connection. Only the flush engine writes to them and
    the scheduler closes them exactly once, after the final drain flush has
    completed.

    ``start`` is the startup tier: it must raise
    :class:`~sinklog.core.errors.StorageStartupError` when the store is
    unreachable or cannot be bootstrapped. ``insert`` may raise for a single
    record; the engine contains it and continues with the next record.
    """

    name: str

    async def start(self) -> None: ...

    async def insert(self, record: LogRecord) -> None:  # noqa: D401
        """Persist a single record."""
        ...

    async def commit(self) -> None: ...

    async def close(self) -> None: ...


__all__ = ["SqliteStorage", "SqliteStorageConfig", "StorageGateway"]
