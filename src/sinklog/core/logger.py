"""
Caller-facing logging surface.

Facades are cheap handles: each one carries an immutable prefix and a
reference to the shared :class:`~sinklog.core.runtime.SinkRuntime`. Any number
of them may write concurrently from any thread.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from .diagnostics import debug, warn
from .events import LogRecord
from .levels import Severity

if TYPE_CHECKING:
    from .runtime import SinkRuntime


@runtime_checkable
class LoggerProtocol(Protocol):
    """Surface shared by every sinklog logger."""

    def info(self, text: str) -> None: ...

    def warn(self, text: str) -> None: ...

    def error(self, text: str) -> None: ...

    def fatal(self, text: str) -> None: ...

    def with_label(self, label: str) -> LoggerProtocol: ...

    def close(self) -> None: ...


class SinkLoggerFacade:
    """Buffers leveled records for periodic persistence.

    Severity methods never raise: the record is appended, echoed to stderr
    and left for the scheduler.

    ``fatal`` terminates the process right after the append and echo, through
    the runtime's exit hook. The fatal record reaches storage only if a flush
    happens to run before the process is gone.
    """

    __slots__ = ("_prefix", "_runtime")

    def __init__(self, runtime: SinkRuntime, prefix: str = "") -> None:
        self._runtime = runtime
        self._prefix = prefix

    @property
    def prefix(self) -> str:
        return self._prefix

    @property
    def runtime(self) -> SinkRuntime:
        return self._runtime

    def with_label(self, label: str) -> SinkLoggerFacade:
        """Return a facade on the same runtime stamping ``label`` as prefix."""
        return SinkLoggerFacade(self._runtime, prefix=label)

    def info(self, text: str) -> None:
        self._append(Severity.INFO, text)

    def warn(self, text: str) -> None:
        self._append(Severity.WARN, text)

    def error(self, text: str) -> None:
        """Alias of :meth:`warn`; errors are stored with warn severity."""
        self._append(Severity.WARN, text)

    def fatal(self, text: str) -> None:
        self._append(Severity.FATAL, text)
        self._runtime.exit_hook(1)

    def close(self) -> None:
        """Request the shutdown drain without waiting for it."""
        debug("logger", "closing logger", prefix=self._prefix)
        self._runtime.request_shutdown()

    def _append(self, severity: Severity, text: str) -> None:
        record = LogRecord(level=severity, text=str(text), prefix=self._prefix)
        try:
            self._runtime.append(record)
        except Exception as exc:
            warn(
                "logger",
                "append failed",
                error_type=type(exc).__name__,
                error=str(exc),
            )
        self._runtime.console.echo(record)


__all__ = ["LoggerProtocol", "SinkLoggerFacade"]
