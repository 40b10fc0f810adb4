"""
Error taxonomy for sinklog.

Only startup failures reach callers. Everything raised while the sink is
running (a failed insert, a failed commit) is contained by the flush engine
and reported through diagnostics.
"""

from __future__ import annotations


class SinklogError(Exception):
    """Base class for all sinklog errors."""


class StorageStartupError(SinklogError):
    """Storage could not be opened, pinged or bootstrapped.

    The runtime refuses to start when this is raised; nothing is scheduled and
    no records are accepted for persistence.
    """

    def __init__(self, message: str, *, location: str | None = None) -> None:
        super().__init__(message)
        self.location = location


class StorageWriteError(SinklogError):
    """A single record could not be written to storage."""

    def __init__(
        self,
        message: str,
        *,
        sink_name: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.sink_name = sink_name
        self.cause = cause


__all__ = ["SinklogError", "StorageStartupError", "StorageWriteError"]
