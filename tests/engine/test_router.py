"""Tests for Router — registration, reserved names, compiled accessors."""

from __future__ import annotations

import asyncio

import pytest

from chainroute.core.errors import (
    DuplicateRouteError,
    InvalidRouteNameError,
    ReservedRouteNameError,
    SchedulerError,
)
from chainroute.engine.chain import Chain
from chainroute.engine.router import RESERVED_NAMES, Router


def _noop(route, *args):
    """Does nothing."""


class TestRegistration:
    def test_register_and_names(self, settings):
        router = Router(settings=settings)
        assert router.register("zeta", _noop) is _noop
        router.register("alpha", _noop)
        assert router.names == ["alpha", "zeta"]

    def test_constructor_mapping(self, settings):
        router = Router({"load": _noop, "save": _noop}, settings=settings)
        assert router.names == ["load", "save"]

    def test_decorator_uses_function_name(self, settings):
        router = Router(settings=settings)

        @router.route
        def session(route, event):
            pass

        assert router.names == ["session"]
        assert callable(session)

    def test_decorator_with_explicit_name(self, settings):
        router = Router(settings=settings)

        @router.route("require_xsrf")
        def check(route, event):
            pass

        assert router.names == ["require_xsrf"]

    @pytest.mark.parametrize(
        "name",
        [
            "then",
            "callback",
            "callback_error_first",
            "error",
            "error_wrapper",
            "spawn",
            "start_group",
            "end_group",
            "as_future",
            "queue",
            "errors",
            "routes",
        ],
    )
    def test_reserved_names_rejected(self, settings, name):
        router = Router(settings=settings)
        with pytest.raises(ReservedRouteNameError) as info:
            router.register(name, _noop)
        assert info.value.route_name == name
        assert name in RESERVED_NAMES

    @pytest.mark.parametrize("name", ["", "two words", "1st", "_private", "__init__", 7])
    def test_invalid_names_rejected(self, settings, name):
        router = Router(settings=settings)
        with pytest.raises(InvalidRouteNameError):
            router.register(name, _noop)

    def test_duplicate_rejected(self, settings):
        router = Router({"load": _noop}, settings=settings)
        with pytest.raises(DuplicateRouteError):
            router.register("load", _noop)

    def test_non_callable_rejected(self, settings):
        router = Router(settings=settings)
        with pytest.raises(TypeError):
            router.register("load", "not callable")


class TestChainClass:
    def test_accessor_table(self, settings):
        router = Router({"load": _noop}, settings=settings)
        chain_class = router.chain_class

        assert issubclass(chain_class, Chain)
        assert dict(chain_class.routes) == {"load": _noop}
        assert chain_class.load.__doc__ == "Does nothing."
        assert not hasattr(Chain, "load")

    def test_compiled_once(self, settings):
        router = Router({"load": _noop}, settings=settings)
        assert router.chain_class is router.chain_class

    def test_recompiled_after_registration(self, settings):
        router = Router({"load": _noop}, settings=settings)
        before = router.chain_class
        router.register("save", _noop)
        after = router.chain_class

        assert after is not before
        assert hasattr(after, "save")
        assert not hasattr(before, "save")

    def test_accessors_are_chainable(self, settings, stub_loop):
        router = Router({"load": _noop, "save": _noop}, settings=settings, loop=stub_loop)
        chain = router.run("event")
        assert chain.load().save() is chain
        assert [entry.name for entry in chain.queue.entries] == ["load", "save"]


class TestRun:
    def test_without_loop_raises(self, settings):
        router = Router({"load": _noop}, settings=settings)
        with pytest.raises(SchedulerError):
            router.run()

    def test_explicit_loop(self, settings):
        loop = asyncio.new_event_loop()
        try:
            seen = []
            router = Router({"load": lambda route, x: seen.append(x)}, settings=settings, loop=loop)
            future = router.run("x").load().as_future()
            assert seen == []
            assert loop.run_until_complete(future) == ("x",)
            assert seen == ["x"]
        finally:
            loop.close()

    @pytest.mark.asyncio
    async def test_uses_running_loop(self, settings):
        router = Router({"load": _noop}, settings=settings)
        chain = router.run()
        assert chain.queue.loop is asyncio.get_running_loop()
        await chain.load().as_future()
