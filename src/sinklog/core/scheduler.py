"""
Flush scheduler: periodic flushes plus the one-time shutdown drain.

Two asyncio tasks run on the scheduler's event loop:

- the *timer loop* waits for whichever comes first, the next tick or the
  internal shutdown event. A tick flushes the buffer when it holds records;
  shutdown performs the final drain and closes storage.
- the *cancellation bridge* forwards an external ``asyncio.Event`` (owned by
  the parent lifecycle) into the internal shutdown event. It also finishes
  when shutdown was requested some other way, so both tasks always end.

``wait_drained()`` returns once both tasks have finished.

State machine::

    RUNNING --shutdown--> DRAINING --drain flushed, storage closed--> CLOSED

Only the first shutdown request moves the machine; later ones are no-ops.
Cancelling the timer task (e.g. ``asyncio.run`` tearing down its loop) counts
as a shutdown request: the in-flight tick completes, the drain runs and the
cancellation is re-raised afterwards.
"""

from __future__ import annotations

import asyncio
import threading
from enum import Enum

from .buffer import EntryBuffer
from .diagnostics import debug, warn
from .events import LogRecord
from .worker import FlushEngine, FlushResult


class SchedulerState(str, Enum):
    RUNNING = "running"
    DRAINING = "draining"
    CLOSED = "closed"


class FlushScheduler:
    """Drives a :class:`FlushEngine` from a fixed-interval timer."""

    def __init__(
        self,
        *,
        buffer: EntryBuffer[LogRecord],
        engine: FlushEngine,
        interval_seconds: float,
        cancel_event: asyncio.Event | None = None,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        self._buffer = buffer
        self._engine = engine
        self._interval = interval_seconds
        self._cancel_event = cancel_event
        self._state = SchedulerState.RUNNING
        self._state_lock = threading.Lock()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._shutdown_event: asyncio.Event | None = None
        self._shutdown_requested = False
        self._tasks: list[asyncio.Task[None]] = []
        self._last_drain: FlushResult | None = None
        self._inflight: asyncio.Future[FlushResult] | None = None

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def interval_seconds(self) -> float:
        return self._interval

    @property
    def last_drain(self) -> FlushResult | None:
        """Result of the shutdown drain, once it ran."""
        return self._last_drain

    @property
    def started(self) -> bool:
        return bool(self._tasks)

    def start(self) -> None:
        """Spawn the timer loop and the cancellation bridge.

        Must be called from inside the event loop that will own them.
        """
        if self._tasks:
            return
        loop = asyncio.get_running_loop()
        self._loop = loop
        self._shutdown_event = asyncio.Event()
        if self._shutdown_requested:
            # close() raced ahead of start()
            self._shutdown_event.set()
        self._tasks.append(loop.create_task(self._run(), name="sinklog-flush-timer"))
        self._tasks.append(
            loop.create_task(self._bridge_cancellation(), name="sinklog-cancel-bridge")
        )

    def request_shutdown(self) -> None:
        """Ask for the final drain. Safe from any thread, any number of times."""
        with self._state_lock:
            if self._shutdown_requested:
                return
            self._shutdown_requested = True
        loop = self._loop
        event = self._shutdown_event
        if loop is None or event is None:
            # Not started yet; start() picks the flag up
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            event.set()
            return
        try:
            loop.call_soon_threadsafe(event.set)
        except RuntimeError:
            # Loop already closed: the scheduler can no longer be running
            return

    async def wait_drained(self) -> None:
        """Wait until both listeners have finished."""
        if not self._tasks:
            return
        await asyncio.gather(*self._tasks)

    async def _bridge_cancellation(self) -> None:
        assert self._shutdown_event is not None
        if self._cancel_event is None:
            return
        waiters = {
            asyncio.ensure_future(self._cancel_event.wait()),
            asyncio.ensure_future(self._shutdown_event.wait()),
        }
        try:
            await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for waiter in waiters:
                waiter.cancel()
        if self._cancel_event.is_set():
            self.request_shutdown()

    async def _run(self) -> None:
        assert self._shutdown_event is not None
        try:
            while True:
                try:
                    await asyncio.wait_for(
                        self._shutdown_event.wait(), timeout=self._interval
                    )
                except asyncio.TimeoutError:
                    await self._tick()
                    continue
                await self._drain()
                return
        except asyncio.CancelledError:
            # Loop teardown cancels the timer: finish the batch already taken,
            # then drain what is left and close storage before unwinding
            debug("scheduler", "timer cancelled, draining buffer")
            inflight = self._inflight
            if inflight is not None and not inflight.done():
                await asyncio.wait({inflight})
            await self._drain()
            raise

    async def _tick(self) -> None:
        debug("scheduler", "checking new logs to flush", _rate_limit_key="tick")
        if len(self._buffer) == 0:
            return
        batch = self._buffer.take_and_clear()
        await self._flush_and_wait(batch)

    async def _drain(self) -> None:
        with self._state_lock:
            if self._state is not SchedulerState.RUNNING:
                return
            self._state = SchedulerState.DRAINING
        debug("scheduler", "draining buffer before close")
        batch = self._buffer.take_and_clear()
        completion = asyncio.ensure_future(self._engine.flush(batch))
        try:
            # Shielded: cancelling the timer task must not cut the drain short
            self._last_drain = await asyncio.shield(completion)
        finally:
            if not completion.done():
                await asyncio.wait({completion})
            await self._close_storage()
            with self._state_lock:
                self._state = SchedulerState.CLOSED

    async def _flush_and_wait(self, batch: tuple[LogRecord, ...]) -> FlushResult:
        # The flush task is the one-shot completion signal for this batch.
        # Shielded so a cancelled timer never abandons a detached batch.
        completion = asyncio.ensure_future(self._engine.flush(batch))
        self._inflight = completion
        return await asyncio.shield(completion)

    async def _close_storage(self) -> None:
        try:
            await self._engine.storage.close()
        except Exception as exc:
            warn(
                "scheduler",
                "storage close failed",
                error_type=type(exc).__name__,
                error=str(exc),
            )


__all__ = ["FlushScheduler", "SchedulerState"]
