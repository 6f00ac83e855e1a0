"""Tests for RouteContext primitives outside a running chain."""

import pytest

from chainroute.core.errors import ConfigError
from chainroute.engine.context import RouteContext
from chainroute.engine.queue import TaskQueue
from chainroute.engine.resolver import CAUSE, ERR, ErrorWrapper


@pytest.fixture
def queue(stub_loop, settings) -> TaskQueue:
    return TaskQueue(("event",), loop=stub_loop, context_factory=RouteContext, settings=settings)


class TestError:
    def test_no_argument_returns_sentinel(self, queue):
        assert queue.route.error() is ERR
        assert queue.errors is None

    def test_argument_is_recorded(self, queue):
        error = ValueError("bad")
        assert queue.route.error(error) is None
        assert queue.errors == [error]

    def test_every_call_is_kept(self, queue):
        queue.route.error("first")
        queue.route.error("second")
        assert queue.route.errors == ("first", "second")


class TestErrorWrapper:
    def test_returns_tagged_wrapper(self, queue):
        wrapper = queue.route.error_wrapper(LookupError, "lookup failed", CAUSE)
        assert isinstance(wrapper, ErrorWrapper)
        assert wrapper.ctor is LookupError
        assert wrapper.template == ("lookup failed", CAUSE)


class TestSpawn:
    def test_without_factory(self, queue):
        with pytest.raises(ConfigError):
            queue.route.spawn()

    def test_passes_args_and_parent(self, stub_loop, settings):
        calls = []

        def spawn_chain(args, parent):
            calls.append((args, parent))
            return "chain"

        queue = TaskQueue(
            loop=stub_loop,
            context_factory=lambda q: RouteContext(q, spawn_chain),
            settings=settings,
        )

        assert queue.route.spawn(1, 2) == "chain"
        assert calls == [((1, 2), queue)]


def test_errors_empty_by_default(queue):
    assert queue.route.errors == ()
    assert repr(queue.route).startswith("RouteContext(TaskQueue(")
