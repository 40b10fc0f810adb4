"""
Public entrypoints for sinklog.

sinklog buffers leveled log records in memory and persists them to SQLite in
periodic batches, draining whatever is pending on shutdown.
"""

from __future__ import annotations

import asyncio
from contextlib import contextmanager
from typing import Iterator

from ._version import __version__
from .core.errors import SinklogError, StorageStartupError, StorageWriteError
from .core.events import LogRecord
from .core.levels import Severity
from .core.logger import LoggerProtocol, SinkLoggerFacade
from .core.runtime import ExitHook, SinkRuntime
from .core.settings import Settings
from .core.shutdown import register_runtime, unregister_runtime

__all__ = [
    "ExitHook",
    "LogRecord",
    "LoggerProtocol",
    "Settings",
    "Severity",
    "SinkLoggerFacade",
    "SinkRuntime",
    "SinklogError",
    "StorageStartupError",
    "StorageWriteError",
    "VERSION",
    "__version__",
    "get_logger",
    "runtime",
    "start_logger",
]


def get_logger(
    label: str | None = None,
    *,
    settings: Settings | None = None,
    exit_hook: ExitHook | None = None,
) -> SinkLoggerFacade:
    """Return a logger backed by a runtime on its own scheduler thread.

    Storage is opened before this returns; the runtime is registered for a
    drain at interpreter exit.

    @docs:examples
    ```python
    from sinklog import get_logger

    logger = get_logger("billing")
    logger.info("invoice created")
    logger.close()
    logger.runtime.wait_drained_sync()
    ```

    Raises:
        StorageStartupError: the database cannot be opened or bootstrapped.
    """
    sink_runtime = SinkRuntime.from_settings(settings, exit_hook=exit_hook)
    sink_runtime.start_in_thread()
    register_runtime(sink_runtime)
    return sink_runtime.logger(label or "")


async def start_logger(
    label: str | None = None,
    *,
    settings: Settings | None = None,
    cancel_event: asyncio.Event | None = None,
    exit_hook: ExitHook | None = None,
) -> SinkLoggerFacade:
    """Return a logger whose scheduler runs on the current event loop.

    Setting ``cancel_event`` triggers the shutdown drain, the same way
    ``close()`` does. Await ``logger.runtime.wait_drained()`` before the loop
    ends to make sure the final batch was written.

    Raises:
        StorageStartupError: the database cannot be opened or bootstrapped.
    """
    sink_runtime = SinkRuntime.from_settings(
        settings, cancel_event=cancel_event, exit_hook=exit_hook
    )
    await sink_runtime.start()
    return sink_runtime.logger(label or "")


@contextmanager
def runtime(
    label: str | None = None, *, settings: Settings | None = None
) -> Iterator[SinkLoggerFacade]:
    """Context manager yielding a thread-mode logger, drained on exit."""
    logger = get_logger(label, settings=settings)
    try:
        yield logger
    finally:
        logger.close()
        logger.runtime.wait_drained_sync()
        unregister_runtime(logger.runtime)


VERSION = __version__
