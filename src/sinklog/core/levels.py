"""Severity levels accepted by the sink.

The set is closed: ``info``, ``warn`` and ``fatal``. Each severity carries the
bracketed prefix used on the console echo (``[info]``, ``[warn]``,
``[fatal]``).

Example:
    >>> Severity.WARN.prefix
    '[warn]'
    >>> get_severity("warning") is Severity.WARN
    True
"""

from __future__ import annotations

from enum import Enum
from typing import Final

LEVEL_PREFIX_INFO: Final[str] = "[info]"
LEVEL_PREFIX_WARN: Final[str] = "[warn]"
LEVEL_PREFIX_FATAL: Final[str] = "[fatal]"


class Severity(str, Enum):
    INFO = "info"
    WARN = "warn"
    FATAL = "fatal"

    @property
    def prefix(self) -> str:
        return _PREFIXES[self]


_PREFIXES: Final[dict[Severity, str]] = {
    Severity.INFO: LEVEL_PREFIX_INFO,
    Severity.WARN: LEVEL_PREFIX_WARN,
    Severity.FATAL: LEVEL_PREFIX_FATAL,
}

# Names accepted by get_severity() besides the canonical values
_ALIASES: Final[dict[str, Severity]] = {
    "warning": Severity.WARN,
    "error": Severity.WARN,
    "critical": Severity.FATAL,
}


def get_severity(name: str | Severity) -> Severity:
    """Resolve a severity from its name or alias (case-insensitive).

    Args:
        name: ``info``, ``warn``, ``fatal`` or one of the aliases
            ``warning``, ``error``, ``critical``.

    Raises:
        ValueError: If the name is not a known severity.
    """
    if isinstance(name, Severity):
        return name
    key = name.strip().lower()
    try:
        return Severity(key)
    except ValueError:
        pass
    if key in _ALIASES:
        return _ALIASES[key]
    raise ValueError(f"Unknown severity '{name}'")


__all__ = [
    "LEVEL_PREFIX_FATAL",
    "LEVEL_PREFIX_INFO",
    "LEVEL_PREFIX_WARN",
    "Severity",
    "get_severity",
]
