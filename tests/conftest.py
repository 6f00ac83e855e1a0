"""
Shared pytest fixtures for chainroute tests.

This module provides:
- Router fixtures with isolated settings
- A stub event loop for synchronous queue bookkeeping tests
- Helpers to let the real event loop settle and to capture loop errors

Usage:
    Fixtures are auto-discovered by pytest. Use them as test arguments.
"""

import asyncio
import sys
from pathlib import Path
from typing import Any, Callable, Generator

import pytest

# Ensure chainroute package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from chainroute.core.settings import RouterSettings, get_settings


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-mark tests: coroutine tests drive whole chains, the rest are unit tests."""
    for item in items:
        markers = {mark.name for mark in item.iter_markers()}
        if markers.intersection({"unit", "integration"}):
            continue
        if "asyncio" in markers:
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Settings
# =============================================================================


@pytest.fixture(autouse=True)
def clean_settings_cache() -> Generator[None, None, None]:
    """Drop the cached global settings so env changes never leak between tests."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings() -> RouterSettings:
    """Default settings, independent of the environment's .env file."""
    return RouterSettings(_env_file=None)


# =============================================================================
# Event loop helpers
# =============================================================================


class StubLoop:
    """
    Records ``call_soon`` requests instead of running them.

    Lets queue tests assert that nothing runs synchronously and then step
    through deferred runs explicitly with :meth:`run_pending`.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[Callable[..., Any], tuple[Any, ...]]] = []
        self.exception_contexts: list[dict[str, Any]] = []

    def call_soon(self, callback: Callable[..., Any], *args: Any) -> object:
        self.calls.append((callback, args))
        return object()

    def call_exception_handler(self, context: dict[str, Any]) -> None:
        self.exception_contexts.append(context)

    def run_pending(self) -> int:
        """Run everything scheduled so far; return how many callbacks ran."""
        calls, self.calls = self.calls, []
        for callback, args in calls:
            callback(*args)
        return len(calls)


@pytest.fixture
def stub_loop() -> StubLoop:
    return StubLoop()


@pytest.fixture
def settle() -> Callable[..., Any]:
    """Coroutine function yielding to the event loop ``ticks`` times."""

    async def _settle(ticks: int = 20) -> None:
        for _ in range(ticks):
            await asyncio.sleep(0)

    return _settle


@pytest.fixture
def capture_loop_errors() -> Callable[[], list[dict[str, Any]]]:
    """
    Install a recording exception handler on the running loop.

    Call it from inside an async test; it returns the list the handler
    appends contexts to.
    """

    def _install() -> list[dict[str, Any]]:
        captured: list[dict[str, Any]] = []
        loop = asyncio.get_running_loop()
        loop.set_exception_handler(lambda _loop, context: captured.append(context))
        return captured

    return _install
