"""
Root pytest configuration.
"""

from __future__ import annotations

from collections.abc import Generator

import pytest


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for test categorization."""
    config.addinivalue_line(
        "markers",
        "critical: Tests that must never fail - core functionality",
    )
    config.addinivalue_line(
        "markers",
        "integration: Tests touching a real SQLite database file",
    )
    config.addinivalue_line(
        "markers",
        "property: Property-based tests (may be slow)",
    )


@pytest.fixture(autouse=True)
def reset_diagnostics_cache() -> Generator[None, None, None]:
    """Reset the diagnostics module state before and after each test.

    The diagnostics module caches the ``internal_logging_enabled`` setting at
    first access and rate-limits by key; both would leak between tests.
    """
    import sinklog.core.diagnostics as diag

    diag._reset_for_tests()
    yield
    diag._reset_for_tests()


@pytest.fixture(autouse=True)
def reset_shutdown_registry() -> Generator[None, None, None]:
    """Keep runtimes registered by one test out of the exit-time drain."""
    import sinklog.core.shutdown as shutdown

    shutdown._reset_for_tests()
    yield
    shutdown._reset_for_tests()
