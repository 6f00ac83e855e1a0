"""Router settings.

Configuration is explicit, validated and environment-driven. Every field
can be overridden with a ``CHAINROUTE_`` prefixed environment variable or
a ``.env`` file.

Fields
──────
log_level               : structlog log level
json_logs               : JSON output (None auto-detects from the TTY)
trace_tasks             : emit a debug event for every dispatch/suspend/resume
unhandled_error_policy  : what a parentless chain does with a leftover error
                          ``raise``  - re-raise from the loop callback so the
                                       loop's exception handler receives it
                          ``report`` - hand it to ``loop.call_exception_handler``
                                       without unwinding

Examples:
    >>> from chainroute.core.settings import RouterSettings
    >>> RouterSettings(trace_tasks=True).trace_tasks
    True
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RouterSettings(BaseSettings):
    """Settings shared by every router, queue and chain."""

    model_config = SettingsConfigDict(
        env_prefix="CHAINROUTE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    json_logs: bool | None = None
    trace_tasks: bool = False

    # ── Fatal errors ─────────────────────────────────────────────
    unhandled_error_policy: Literal["raise", "report"] = Field(
        default="raise",
        description="How a parentless chain surfaces an error nothing handled",
    )


@lru_cache(maxsize=1)
def get_settings() -> RouterSettings:
    """Return the process-wide settings, read once from the environment."""
    return RouterSettings()
