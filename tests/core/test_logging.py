"""
Tests for the logging module.

Tests verify:
- JSON output carries the event, fields, service and logger name
- DEBUG logs are suppressed at INFO level
- Context binding reaches subsequent logs
- Engine trace events are emitted only with trace_tasks
"""

import asyncio
import json

import pytest
import structlog

from chainroute.core.logging import (
    bind_context,
    configure_from_settings,
    configure_logging,
    get_logger,
    unbind_context,
)
from chainroute.core.settings import RouterSettings
from chainroute.engine.router import Router


@pytest.fixture(autouse=True)
def reset_structlog():
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


def _json_lines(out: str) -> list[dict]:
    return [json.loads(line) for line in out.splitlines() if line.startswith("{")]


class TestConfigureLogging:
    def test_json_fields(self, capsys):
        configure_logging(level="INFO", json_format=True, service="test-svc", cache_loggers=False)
        get_logger("chainroute.test").info("route.start", route="load")

        [record] = _json_lines(capsys.readouterr().out)
        assert record["event"] == "route.start"
        assert record["route"] == "load"
        assert record["service.name"] == "test-svc"
        assert record["logger_name"] == "chainroute.test"
        assert record["level"] == "info"
        assert "timestamp" in record

    def test_debug_suppressed_at_info(self, capsys):
        configure_logging(level="INFO", json_format=True, cache_loggers=False)
        get_logger("x").debug("hidden")
        assert _json_lines(capsys.readouterr().out) == []

    def test_bind_context(self, capsys):
        configure_logging(level="INFO", json_format=True, cache_loggers=False)
        bind_context(request_id="r-1")
        get_logger("x").info("with.context")
        unbind_context("request_id")
        get_logger("x").info("without.context")

        first, second = _json_lines(capsys.readouterr().out)
        assert first["request_id"] == "r-1"
        assert "request_id" not in second

    def test_configure_from_settings(self, capsys):
        configure_from_settings(RouterSettings(_env_file=None, log_level="WARNING", json_logs=True), cache_loggers=False)
        get_logger("x").info("hidden")
        get_logger("x").warning("shown")
        [record] = _json_lines(capsys.readouterr().out)
        assert record["event"] == "shown"


class TestEngineTracing:
    @pytest.mark.asyncio
    async def test_trace_events_when_enabled(self, capsys):
        configure_logging(level="DEBUG", json_format=True, cache_loggers=False)
        router = Router(
            {"load": lambda route: None},
            settings=RouterSettings(_env_file=None, trace_tasks=True),
        )
        await router.run().load().as_future()

        events = [r["event"] for r in _json_lines(capsys.readouterr().out)]
        assert "queue.dispatch" in events
        assert "queue.finish" in events

    @pytest.mark.asyncio
    async def test_no_trace_by_default(self, capsys, settings):
        configure_logging(level="DEBUG", json_format=True, cache_loggers=False)
        router = Router({"load": lambda route: None}, settings=settings)
        await router.run().load().as_future()
        await asyncio.sleep(0)

        events = [r["event"] for r in _json_lines(capsys.readouterr().out)]
        assert "queue.dispatch" not in events
