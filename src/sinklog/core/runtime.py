"""
Long-lived runtime context for a buffered sink.

A :class:`SinkRuntime` is built once per process (or per storage target) and
injected into every facade. It owns the pieces that must be shared: the entry
buffer, the flush engine, the flush scheduler, the storage gateway, the
console echo and the exit hook used by ``fatal``.

The scheduler runs on an asyncio event loop in one of two modes:

- async mode: ``await runtime.start()`` from a running loop; the scheduler's
  tasks live on that loop and ``await runtime.wait_drained()`` tracks them.
- thread mode: ``runtime.start_in_thread()`` hosts a private loop on a daemon
  thread; ``runtime.wait_drained_sync()`` joins it.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import os
import sys
import threading
from typing import TYPE_CHECKING, Callable

from ..metrics.metrics import MetricsCollector
from ..plugins.sinks import StorageGateway
from ..plugins.sinks.sqlite import SqliteStorage, SqliteStorageConfig
from .buffer import EntryBuffer
from .console import ConsoleEcho
from .diagnostics import warn
from .events import LogRecord
from .scheduler import FlushScheduler, SchedulerState
from .settings import Settings
from .worker import FlushEngine

if TYPE_CHECKING:
    from .logger import SinkLoggerFacade

ExitHook = Callable[[int], None]


def exit_process(status: int) -> None:
    """Terminate the process immediately, without unwinding or atexit hooks."""
    try:
        sys.stderr.flush()
    except (OSError, ValueError):
        pass
    os._exit(status)


class SinkRuntime:
    """Shared state behind every facade of one sink."""

    def __init__(
        self,
        *,
        storage: StorageGateway,
        flush_interval_seconds: float,
        cancel_event: asyncio.Event | None = None,
        max_buffer_size: int | None = None,
        console: ConsoleEcho | None = None,
        metrics: MetricsCollector | None = None,
        exit_hook: ExitHook | None = None,
    ) -> None:
        self._storage = storage
        self._metrics = metrics
        self._console = console if console is not None else ConsoleEcho()
        self._exit_hook: ExitHook = exit_hook or exit_process
        self._buffer: EntryBuffer[LogRecord] = EntryBuffer(max_size=max_buffer_size)
        self._engine = FlushEngine(storage, metrics=metrics)
        self._scheduler = FlushScheduler(
            buffer=self._buffer,
            engine=self._engine,
            interval_seconds=flush_interval_seconds,
            cancel_event=cancel_event,
        )
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        *,
        storage: StorageGateway | None = None,
        cancel_event: asyncio.Event | None = None,
        exit_hook: ExitHook | None = None,
    ) -> SinkRuntime:
        cfg = (settings or Settings()).core
        if storage is None:
            storage = SqliteStorage(SqliteStorageConfig(path=cfg.database_path))
        metrics = MetricsCollector(enabled=True) if cfg.enable_metrics else None
        return cls(
            storage=storage,
            flush_interval_seconds=cfg.flush_interval_seconds,
            cancel_event=cancel_event,
            max_buffer_size=cfg.max_buffer_size,
            console=ConsoleEcho(enabled=cfg.console_echo),
            metrics=metrics,
            exit_hook=exit_hook,
        )

    @property
    def buffer(self) -> EntryBuffer[LogRecord]:
        return self._buffer

    @property
    def engine(self) -> FlushEngine:
        return self._engine

    @property
    def scheduler(self) -> FlushScheduler:
        return self._scheduler

    @property
    def storage(self) -> StorageGateway:
        return self._storage

    @property
    def console(self) -> ConsoleEcho:
        return self._console

    @property
    def metrics(self) -> MetricsCollector | None:
        return self._metrics

    @property
    def exit_hook(self) -> ExitHook:
        return self._exit_hook

    @property
    def state(self) -> SchedulerState:
        return self._scheduler.state

    def logger(self, label: str = "") -> SinkLoggerFacade:
        """Return a facade writing into this runtime."""
        from .logger import SinkLoggerFacade

        return SinkLoggerFacade(self, prefix=label)

    def append(self, record: LogRecord) -> None:
        if self._scheduler.state is SchedulerState.CLOSED:
            # Nothing flushes any more; keep the buffer from growing forever
            warn(
                "buffer",
                "append after close",
                record=record.to_dict(),
                _rate_limit_key="append-after-close",
            )
            return
        stored = self._buffer.append(record)
        if not stored:
            warn(
                "buffer",
                "buffer full, evicted oldest record",
                max_size=self._buffer.max_size,
                evicted_total=self._buffer.evicted,
                _rate_limit_key="buffer-evict",
            )
        if self._metrics is not None:
            self._metrics.record_appended()
            if not stored:
                self._metrics.record_evicted()
            self._metrics.set_buffer_high_watermark(self._buffer.high_watermark)

    async def start(self) -> None:
        """Open storage and start the scheduler on the running loop.

        Raises:
            StorageStartupError: storage is unreachable or cannot be
                bootstrapped. Nothing is scheduled in that case.
        """
        await self._storage.start()
        self._loop = asyncio.get_running_loop()
        self._scheduler.start()

    def start_in_thread(self) -> None:
        """Start on a private event loop hosted by a daemon thread.

        Blocks until storage is open, then returns. Startup errors are
        re-raised in the calling thread.
        """
        if self._thread is not None:
            return
        started = threading.Event()
        errors: list[BaseException] = []

        def _thread_main() -> None:
            loop = asyncio.new_event_loop()
            asyncio.set_event_loop(loop)
            try:
                try:
                    loop.run_until_complete(self.start())
                except BaseException as exc:
                    errors.append(exc)
                    return
                finally:
                    started.set()
                loop.run_until_complete(self.wait_drained())
            finally:
                loop.run_until_complete(loop.shutdown_asyncgens())
                loop.close()

        thread = threading.Thread(
            target=_thread_main, name="sinklog-scheduler", daemon=True
        )
        self._thread = thread
        thread.start()
        started.wait()
        if errors:
            thread.join()
            self._thread = None
            raise errors[0]

    def request_shutdown(self) -> None:
        self._scheduler.request_shutdown()

    async def wait_drained(self) -> None:
        await self._scheduler.wait_drained()

    async def aclose(self) -> None:
        """Request shutdown and wait for the drain to finish."""
        self.request_shutdown()
        await self.wait_drained()

    def wait_drained_sync(self, timeout: float | None = None) -> bool:
        """Block until the drain finished. Returns False on timeout."""
        if self._thread is not None:
            self._thread.join(timeout)
            return not self._thread.is_alive()
        loop = self._loop
        if loop is None or loop.is_closed() or not loop.is_running():
            return self._scheduler.state is SchedulerState.CLOSED or not (
                self._scheduler.started
            )
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            raise RuntimeError(
                "wait_drained_sync() would block the runtime's own event loop; "
                "await wait_drained() instead"
            )
        future = asyncio.run_coroutine_threadsafe(self.wait_drained(), loop)
        try:
            future.result(timeout)
        except concurrent.futures.TimeoutError:
            return False
        return True


__all__ = ["ExitHook", "SinkRuntime", "exit_process"]
