from __future__ import annotations

import asyncio
from collections.abc import Callable, Generator
from typing import Any

import pytest

from sinklog.core import diagnostics
from sinklog.core.errors import StorageStartupError, StorageWriteError
from sinklog.core.events import LogRecord


class RecordingStorage:
    """In-memory storage gateway that records every call in order."""

    name = "recording"

    def __init__(
        self,
        *,
        fail_texts: set[str] | None = None,
        fail_start: bool = False,
        fail_commit: bool = False,
        insert_delay: float = 0.0,
    ) -> None:
        self.rows: list[LogRecord] = []
        self.calls: list[str] = []
        self.fail_texts = set(fail_texts or ())
        self.fail_start = fail_start
        self.fail_commit = fail_commit
        self.insert_delay = insert_delay
        self.close_calls = 0

    @property
    def texts(self) -> list[str]:
        return [r.text for r in self.rows]

    async def start(self) -> None:
        self.calls.append("start")
        if self.fail_start:
            raise StorageStartupError("can't open database: boom", location=":memory:")

    async def insert(self, record: LogRecord) -> None:
        if self.insert_delay:
            await asyncio.sleep(self.insert_delay)
        if record.text in self.fail_texts:
            self.calls.append("insert-failed")
            raise StorageWriteError("log insert failed", sink_name=self.name)
        self.calls.append("insert")
        self.rows.append(record)

    async def commit(self) -> None:
        self.calls.append("commit")
        if self.fail_commit:
            raise RuntimeError("disk I/O error")

    async def close(self) -> None:
        self.calls.append("close")
        self.close_calls += 1


@pytest.fixture
def make_storage() -> Callable[..., RecordingStorage]:
    def _make(**kwargs: Any) -> RecordingStorage:
        return RecordingStorage(**kwargs)

    return _make


@pytest.fixture
def storage() -> RecordingStorage:
    return RecordingStorage()


@pytest.fixture
def capture_diagnostics(
    monkeypatch: pytest.MonkeyPatch,
) -> Generator[list[dict[str, Any]], None, None]:
    monkeypatch.setenv("SINKLOG_CORE__INTERNAL_LOGGING_ENABLED", "true")
    captured: list[dict[str, Any]] = []
    diagnostics.set_writer_for_tests(captured.append)
    yield captured


@pytest.fixture
def exit_calls() -> list[int]:
    return []


@pytest.fixture
def exit_hook(exit_calls: list[int]) -> Callable[[int], None]:
    return exit_calls.append
