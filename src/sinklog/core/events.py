"""
Log record model for the buffered sink.

A record is created when a severity method is called on a facade and is never
mutated afterwards. The timestamp is captured at that moment, not when the
record is flushed, so storage order reflects event order even when a flush is
delayed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from .levels import Severity, get_severity

# Same textual shape SQLite uses for CURRENT_TIMESTAMP, plus microseconds
STORAGE_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S.%f"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class LogRecord:
    """One buffered log entry awaiting persistence."""

    level: Severity
    text: str
    prefix: str = ""
    timestamp: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        """Normalize level names and naive timestamps."""
        if not isinstance(self.level, Severity):
            object.__setattr__(self, "level", get_severity(self.level))
        if self.timestamp.tzinfo is None:
            object.__setattr__(
                self, "timestamp", self.timestamp.replace(tzinfo=timezone.utc)
            )

    @property
    def created_at(self) -> str:
        """Timestamp rendered in UTC for the ``created_at`` column."""
        return self.timestamp.astimezone(timezone.utc).strftime(
            STORAGE_TIMESTAMP_FORMAT
        )

    def to_row(self) -> tuple[str | None, str, str, str]:
        """Bound values for the insert, in column order.

        Order is ``(prefix, level, description, created_at)``; an empty
        prefix is stored as NULL.
        """
        return (self.prefix or None, self.level.value, self.text, self.created_at)

    def to_dict(self) -> dict[str, Any]:
        """Convert record to a dictionary for diagnostics and tests."""
        return {
            "prefix": self.prefix,
            "level": self.level.value,
            "text": self.text,
            "timestamp": self.timestamp.isoformat(),
        }
