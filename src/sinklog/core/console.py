"""Console echo of appended records.

Every record appended by a facade is mirrored to stderr as
``<severity-prefix><text>``. The echo is best-effort: a closed or broken
stream is ignored and never affects buffering.
"""

from __future__ import annotations

import sys
import threading
from typing import TextIO

from .events import LogRecord


class ConsoleEcho:
    """Unbuffered line writer shared by all facades of a runtime."""

    def __init__(self, stream: TextIO | None = None, *, enabled: bool = True) -> None:
        self._stream = stream
        self._enabled = enabled
        self._lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return self._enabled

    def echo(self, record: LogRecord) -> None:
        if not self._enabled:
            return
        # Resolve lazily so pytest's capsys swap of sys.stderr is honoured
        stream = self._stream if self._stream is not None else sys.stderr
        line = f"{record.level.prefix}{record.text}\n"
        try:
            with self._lock:
                stream.write(line)
                stream.flush()
        except (OSError, ValueError):
            return
