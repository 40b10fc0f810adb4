from __future__ import annotations

import asyncio

import pytest

from sinklog.core.buffer import EntryBuffer
from sinklog.core.events import LogRecord
from sinklog.core.levels import Severity
from sinklog.core.scheduler import FlushScheduler, SchedulerState
from sinklog.core.worker import FlushEngine


def _record(text: str) -> LogRecord:
    return LogRecord(level=Severity.INFO, text=text, prefix="svc")


def _scheduler(
    storage,
    *,
    interval: float = 0.02,
    cancel_event: asyncio.Event | None = None,
) -> tuple[FlushScheduler, EntryBuffer[LogRecord], FlushEngine]:
    buffer: EntryBuffer[LogRecord] = EntryBuffer()
    engine = FlushEngine(storage)
    scheduler = FlushScheduler(
        buffer=buffer,
        engine=engine,
        interval_seconds=interval,
        cancel_event=cancel_event,
    )
    return scheduler, buffer, engine


def test_interval_must_be_positive(storage) -> None:
    with pytest.raises(ValueError):
        FlushScheduler(
            buffer=EntryBuffer(),
            engine=FlushEngine(storage),
            interval_seconds=0,
        )


@pytest.mark.asyncio
async def test_empty_ticks_do_not_flush(storage) -> None:
    scheduler, _, _ = _scheduler(storage, interval=0.01)
    scheduler.start()

    await asyncio.sleep(0.08)

    assert storage.calls == []
    scheduler.request_shutdown()
    await asyncio.wait_for(scheduler.wait_drained(), timeout=1.0)


@pytest.mark.asyncio
async def test_tick_flushes_pending_records_once(storage) -> None:
    scheduler, buffer, _ = _scheduler(storage, interval=0.02)
    scheduler.start()
    buffer.append(_record("started"))

    await asyncio.sleep(0.15)

    assert storage.texts == ["flushing 1 records", "started"]
    assert len(buffer) == 0
    assert scheduler.state is SchedulerState.RUNNING
    scheduler.request_shutdown()
    await asyncio.wait_for(scheduler.wait_drained(), timeout=1.0)


@pytest.mark.asyncio
async def test_at_most_one_flush_in_flight(make_storage) -> None:
    storage = make_storage(insert_delay=0.03)
    scheduler, buffer, engine = _scheduler(storage, interval=0.005)
    in_flight = 0
    max_in_flight = 0
    original_flush = engine.flush

    async def tracking_flush(batch):
        nonlocal in_flight, max_in_flight
        in_flight += 1
        max_in_flight = max(max_in_flight, in_flight)
        try:
            return await original_flush(batch)
        finally:
            in_flight -= 1

    engine.flush = tracking_flush  # type: ignore[method-assign]
    scheduler.start()
    for i in range(3):
        buffer.append(_record(f"r{i}"))
        await asyncio.sleep(0.02)

    scheduler.request_shutdown()
    await asyncio.wait_for(scheduler.wait_drained(), timeout=2.0)

    assert max_in_flight == 1
    assert [t for t in storage.texts if not t.startswith("flushing")] == [
        "r0",
        "r1",
        "r2",
    ]


@pytest.mark.critical
@pytest.mark.asyncio
async def test_shutdown_drains_everything_then_closes(make_storage) -> None:
    storage = make_storage(insert_delay=0.005)
    scheduler, buffer, _ = _scheduler(storage, interval=10.0)
    scheduler.start()
    for i in range(5):
        buffer.append(_record(f"m{i}"))

    scheduler.request_shutdown()
    await asyncio.wait_for(scheduler.wait_drained(), timeout=2.0)

    assert storage.texts == ["flushing 5 records", "m0", "m1", "m2", "m3", "m4"]
    assert storage.calls[-2:] == ["commit", "close"]
    assert storage.close_calls == 1
    assert scheduler.state is SchedulerState.CLOSED
    assert scheduler.last_drain is not None
    assert scheduler.last_drain.persisted == 5


@pytest.mark.asyncio
async def test_drain_runs_even_when_buffer_is_empty(storage) -> None:
    scheduler, _, _ = _scheduler(storage, interval=10.0)
    scheduler.start()

    scheduler.request_shutdown()
    await asyncio.wait_for(scheduler.wait_drained(), timeout=1.0)

    assert storage.texts == ["flushing 0 records"]
    assert storage.close_calls == 1


@pytest.mark.critical
@pytest.mark.asyncio
async def test_repeated_shutdown_is_a_noop(storage) -> None:
    scheduler, buffer, _ = _scheduler(storage, interval=10.0)
    scheduler.start()
    buffer.append(_record("once"))
    scheduler.request_shutdown()
    await asyncio.wait_for(scheduler.wait_drained(), timeout=1.0)

    scheduler.request_shutdown()
    scheduler.request_shutdown()
    await asyncio.wait_for(scheduler.wait_drained(), timeout=1.0)

    assert storage.texts == ["flushing 1 records", "once"]
    assert storage.close_calls == 1


@pytest.mark.asyncio
async def test_external_cancellation_triggers_drain(storage) -> None:
    cancel = asyncio.Event()
    scheduler, buffer, _ = _scheduler(storage, interval=10.0, cancel_event=cancel)
    scheduler.start()
    buffer.append(_record("pending"))

    cancel.set()
    await asyncio.wait_for(scheduler.wait_drained(), timeout=1.0)

    assert storage.texts == ["flushing 1 records", "pending"]
    assert scheduler.state is SchedulerState.CLOSED


@pytest.mark.asyncio
async def test_close_without_cancellation_finishes_both_listeners(storage) -> None:
    cancel = asyncio.Event()
    scheduler, _, _ = _scheduler(storage, interval=10.0, cancel_event=cancel)
    scheduler.start()

    scheduler.request_shutdown()
    await asyncio.wait_for(scheduler.wait_drained(), timeout=1.0)

    # A late parent cancellation after close is harmless
    cancel.set()
    await asyncio.sleep(0)
    assert storage.close_calls == 1
    assert storage.texts == ["flushing 0 records"]


@pytest.mark.asyncio
async def test_shutdown_requested_from_another_thread(storage) -> None:
    scheduler, buffer, _ = _scheduler(storage, interval=10.0)
    scheduler.start()
    buffer.append(_record("from-thread"))

    await asyncio.to_thread(scheduler.request_shutdown)
    await asyncio.wait_for(scheduler.wait_drained(), timeout=1.0)

    assert storage.texts == ["flushing 1 records", "from-thread"]


@pytest.mark.asyncio
async def test_shutdown_requested_before_start(storage) -> None:
    scheduler, buffer, _ = _scheduler(storage, interval=10.0)
    buffer.append(_record("early"))
    scheduler.request_shutdown()

    scheduler.start()
    await asyncio.wait_for(scheduler.wait_drained(), timeout=1.0)

    assert storage.texts == ["flushing 1 records", "early"]
    assert scheduler.state is SchedulerState.CLOSED


@pytest.mark.asyncio
async def test_cancelling_timer_does_not_cut_drain_short(make_storage) -> None:
    storage = make_storage(insert_delay=0.02)
    scheduler, buffer, _ = _scheduler(storage, interval=10.0)
    scheduler.start()
    for i in range(3):
        buffer.append(_record(f"d{i}"))

    scheduler.request_shutdown()
    await asyncio.sleep(0.01)
    timer = scheduler._tasks[0]
    timer.cancel()
    with pytest.raises(asyncio.CancelledError):
        await timer

    assert storage.texts == ["flushing 3 records", "d0", "d1", "d2"]
    assert storage.calls[-1] == "close"
    assert scheduler.state is SchedulerState.CLOSED


@pytest.mark.asyncio
async def test_wait_drained_before_start_returns_immediately(storage) -> None:
    scheduler, _, _ = _scheduler(storage)
    await asyncio.wait_for(scheduler.wait_drained(), timeout=0.5)
    assert scheduler.started is False


@pytest.mark.critical
@pytest.mark.asyncio
async def test_cancelled_tasks_finish_tick_then_drain(make_storage) -> None:
    storage = make_storage(insert_delay=0.05)
    scheduler, buffer, _ = _scheduler(storage, interval=0.01)
    scheduler.start()
    for i in range(4):
        buffer.append(_record(f"c{i}"))

    # Wait until a tick detached the batch and is writing it
    for _ in range(100):
        if len(buffer) == 0:
            break
        await asyncio.sleep(0.005)
    buffer.append(_record("late"))
    for task in scheduler._tasks:
        task.cancel()
    await asyncio.gather(*scheduler._tasks, return_exceptions=True)

    assert storage.texts == [
        "flushing 4 records",
        "c0",
        "c1",
        "c2",
        "c3",
        "flushing 1 records",
        "late",
    ]
    assert storage.close_calls == 1
    assert scheduler.state is SchedulerState.CLOSED


@pytest.mark.asyncio
async def test_cancelled_idle_timer_drains_pending_records(storage) -> None:
    scheduler, buffer, _ = _scheduler(storage, interval=10.0)
    scheduler.start()
    buffer.append(_record("pending"))
    await asyncio.sleep(0)

    timer = scheduler._tasks[0]
    timer.cancel()
    with pytest.raises(asyncio.CancelledError):
        await timer

    assert storage.texts == ["flushing 1 records", "pending"]
    assert storage.calls[-1] == "close"
    assert scheduler.state is SchedulerState.CLOSED
