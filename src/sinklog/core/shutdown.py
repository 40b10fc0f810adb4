"""Graceful process shutdown for sinklog.

This module provides:
- Atexit handler that drains registered runtimes on normal exit
- Optional SIGTERM/SIGINT handlers doing the same before the default action
- WeakSet-based runtime registration to avoid keeping runtimes alive

For thread-mode runtimes these handlers play the role of the parent lifecycle
signal: they request shutdown and wait for the drain flush to finish.
"""

from __future__ import annotations

import atexit
import signal
import sys
import weakref
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from types import FrameType

    from .runtime import SinkRuntime


_shutdown_in_progress: bool = False
_signal_handlers_installed: bool = False
_registered_runtimes: weakref.WeakSet[Any] = weakref.WeakSet()


def _get_shutdown_settings() -> dict[str, Any]:
    """Get shutdown settings from Settings, with fallback defaults."""
    try:
        from .settings import Settings

        core = Settings().core
        return {
            "atexit_drain_enabled": core.atexit_drain_enabled,
            "atexit_drain_timeout_seconds": core.atexit_drain_timeout_seconds,
            "signal_handler_enabled": core.signal_handler_enabled,
        }
    except Exception:  # pragma: no cover - invalid environment
        return {
            "atexit_drain_enabled": True,
            "atexit_drain_timeout_seconds": None,
            "signal_handler_enabled": False,
        }


def register_runtime(runtime: SinkRuntime) -> None:
    """Register a runtime for automatic drain on exit.

    Installs the signal handlers on first registration when enabled.
    """
    _registered_runtimes.add(runtime)
    _install_signal_handlers()


def unregister_runtime(runtime: SinkRuntime) -> None:
    """Unregister a runtime, typically after it was drained explicitly."""
    _registered_runtimes.discard(runtime)


def drain_runtime(runtime: Any, timeout: float | None) -> bool:
    """Request shutdown on ``runtime`` and wait for its drain.

    Returns False when the drain did not finish within ``timeout``.
    """
    from .diagnostics import warn

    try:
        runtime.request_shutdown()
        finished = bool(runtime.wait_drained_sync(timeout))
    except Exception as exc:
        warn(
            "shutdown",
            "drain failed",
            error_type=type(exc).__name__,
            error=str(exc),
        )
        return False
    if not finished:
        warn("shutdown", "drain timed out", timeout_seconds=timeout)
    return finished


def _atexit_handler() -> None:
    """Drain every registered runtime on normal exit. Never raises."""
    global _shutdown_in_progress

    if _shutdown_in_progress:
        return

    settings = _get_shutdown_settings()
    if not settings["atexit_drain_enabled"]:
        return

    _shutdown_in_progress = True
    timeout = settings["atexit_drain_timeout_seconds"]

    # Snapshot: WeakSet iteration can fail if GC runs mid-loop
    try:
        runtimes = list(_registered_runtimes)
    except Exception:  # pragma: no cover - rare GC race
        return

    for runtime in runtimes:
        drain_runtime(runtime, timeout)


def _signal_handler(signum: int, _frame: FrameType | None) -> None:
    """Drain on SIGTERM/SIGINT, then re-raise with the default handler."""
    if _shutdown_in_progress:
        return

    _atexit_handler()

    try:
        signal.signal(signum, signal.SIG_DFL)
        signal.raise_signal(signum)
    except Exception:  # pragma: no cover - rare signal error
        sys.exit(128 + signum)


def _install_signal_handlers() -> None:
    """Install signal handlers once, when enabled in settings."""
    global _signal_handlers_installed

    if _signal_handlers_installed:
        return
    if not _get_shutdown_settings()["signal_handler_enabled"]:
        return

    try:
        signal.signal(signal.SIGINT, _signal_handler)
    except ValueError:
        # Not the main thread; signals can only be wired from there
        return

    # SIGTERM is not available on Windows
    if hasattr(signal, "SIGTERM"):
        signal.signal(signal.SIGTERM, _signal_handler)
    _signal_handlers_installed = True


def _reset_for_tests() -> None:
    global _shutdown_in_progress
    _shutdown_in_progress = False
    _registered_runtimes.clear()


atexit.register(_atexit_handler)
