"""
Internal diagnostics side-channel.

Non-fatal problems inside the sink (failed inserts, evicted records, drain
timeouts) are reported here as one JSON object per line on stderr. The sink
never reports them to the code that called a logging method.

Emission is gated by ``core.internal_logging_enabled``. The setting is read
once and cached in ``_internal_logging_enabled``; tests reset the cache.
"""

from __future__ import annotations

import json
import sys
import threading
import time
from datetime import datetime, timezone
from typing import Any, Callable

Writer = Callable[[dict[str, Any]], None]

# Minimum seconds between two emissions sharing a rate-limit key
RATE_LIMIT_WINDOW_SECONDS = 1.0

_internal_logging_enabled: bool | None = None
_rate_limit_lock = threading.Lock()
_last_emitted: dict[str, float] = {}


def _stderr_writer(payload: dict[str, Any]) -> None:
    line = json.dumps(payload, separators=(",", ":"), default=str)
    sys.stderr.write(line + "\n")
    sys.stderr.flush()


_writer: Writer = _stderr_writer


def is_enabled() -> bool:
    global _internal_logging_enabled
    if _internal_logging_enabled is None:
        try:
            from .settings import Settings

            _internal_logging_enabled = bool(
                Settings().core.internal_logging_enabled
            )
        except Exception:
            # Unreadable settings must not silence failure reports
            _internal_logging_enabled = True
    return _internal_logging_enabled


def set_writer_for_tests(writer: Writer) -> None:
    """Replace the payload writer (tests capture payloads in a list)."""
    global _writer
    _writer = writer


def _reset_for_tests() -> None:
    global _internal_logging_enabled, _writer
    _internal_logging_enabled = None
    _writer = _stderr_writer
    with _rate_limit_lock:
        _last_emitted.clear()


def _rate_limited(key: str) -> bool:
    now = time.monotonic()
    with _rate_limit_lock:
        last = _last_emitted.get(key)
        if last is not None and now - last < RATE_LIMIT_WINDOW_SECONDS:
            return True
        _last_emitted[key] = now
        return False


def _emit(
    level: str,
    component: str,
    message: str,
    rate_limit_key: str | None,
    fields: dict[str, Any],
) -> None:
    if not is_enabled():
        return
    if rate_limit_key is not None and _rate_limited(rate_limit_key):
        return
    payload: dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "level": level,
        "component": component,
        "message": message,
    }
    payload.update(fields)
    try:
        _writer(payload)
    except Exception:
        # A broken stderr must not break the flush path
        return


def warn(
    component: str,
    message: str,
    *,
    _rate_limit_key: str | None = None,
    **fields: Any,
) -> None:
    """Report a recoverable problem in ``component``."""
    _emit("WARN", component, message, _rate_limit_key, fields)


def debug(
    component: str,
    message: str,
    *,
    _rate_limit_key: str | None = None,
    **fields: Any,
) -> None:
    """Report routine activity such as flush progress."""
    _emit("DEBUG", component, message, _rate_limit_key, fields)


__all__ = ["debug", "is_enabled", "set_writer_for_tests", "warn"]
