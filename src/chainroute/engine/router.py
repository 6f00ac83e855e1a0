"""Router — registration of named task bodies and chain construction.

The router is the wiring layer in front of the engine. It validates task
names, compiles a fixed accessor table into a :class:`Chain` subclass, and
starts chains on the event loop.

Example::

    router = Router()

    @router.route
    def require_xsrf(route, event):
        if not event.get("xsrf"):
            raise PermissionError("No XSRF token found")

    @router.route
    def session(route, event):
        sessions.load(event["sessid"], route.callback(route.error(), attach))

    async def handler(event):
        router.run(event).require_xsrf().session().then(respond)

ARCHITECTURE
────────────
::

    register(name, fn)      → validates name, stores in the route table
    chain_class             → Chain subclass, one accessor per route
                              (compiled once, recompiled after changes)
    run(*args)              → root TaskQueue + chain, drained next tick
    RouteContext.spawn()    → child TaskQueue + chain (parent waits)
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping
from types import MappingProxyType
from typing import Any, overload

from chainroute.core.errors import (
    DuplicateRouteError,
    InvalidRouteNameError,
    ReservedRouteNameError,
    SchedulerError,
)
from chainroute.core.logging import get_logger
from chainroute.core.settings import RouterSettings, get_settings
from chainroute.engine.chain import Chain
from chainroute.engine.context import RouteContext
from chainroute.engine.queue import TaskQueue

logger = get_logger(__name__)

TaskBody = Callable[..., Any]


def _public_names(cls: type) -> set[str]:
    return {name for name in dir(cls) if not name.startswith("_")}


RESERVED_NAMES: frozenset[str] = frozenset(
    {
        "then",
        "callback",
        "callback_error_first",
        "error",
        "error_wrapper",
        "spawn",
        "start_group",
        "end_group",
        "as_future",
    }
    | _public_names(Chain)
    | _public_names(RouteContext)
)


def _accessor(name: str, fn: TaskBody) -> Callable[[Chain], Chain]:
    def accessor(self: Chain) -> Chain:
        return self._enqueue(name)

    accessor.__name__ = name
    accessor.__qualname__ = f"Chain.{name}"
    accessor.__doc__ = fn.__doc__
    return accessor


class Router:
    """
    Registry of task bodies that builds and starts chains.

    Args:
        routes: Initial mapping of task name to task body
        loop: Event loop for chains; defaults to the running loop at ``run()``
        settings: Router settings; defaults to :func:`get_settings`
    """

    def __init__(
        self,
        routes: Mapping[str, TaskBody] | None = None,
        *,
        loop: asyncio.AbstractEventLoop | None = None,
        settings: RouterSettings | None = None,
    ) -> None:
        self._routes: dict[str, TaskBody] = {}
        self._loop = loop
        self.settings = settings or get_settings()
        self._chain_class: type[Chain] | None = None
        for name, fn in (routes or {}).items():
            self.register(name, fn)

    # =========================================================================
    # Registration
    # =========================================================================

    def register(self, name: str, fn: TaskBody) -> TaskBody:
        """
        Register ``fn`` as the task body for ``name``.

        Raises:
            InvalidRouteNameError: ``name`` is not a public identifier
            ReservedRouteNameError: ``name`` collides with a primitive
            DuplicateRouteError: ``name`` is already registered
            TypeError: ``fn`` is not callable
        """
        if not isinstance(name, str) or not name.isidentifier() or name.startswith("_"):
            raise InvalidRouteNameError(name)
        if name in RESERVED_NAMES:
            raise ReservedRouteNameError(name)
        if name in self._routes:
            raise DuplicateRouteError(name)
        if not callable(fn):
            raise TypeError(f"Route '{name}' must be callable, got {type(fn).__name__}")

        self._routes[name] = fn
        self._chain_class = None
        logger.debug("route.registered", route=name)
        return fn

    @overload
    def route(self, name_or_fn: TaskBody) -> TaskBody: ...

    @overload
    def route(self, name_or_fn: str | None = None) -> Callable[[TaskBody], TaskBody]: ...

    def route(self, name_or_fn: str | TaskBody | None = None) -> Any:
        """
        Decorator form of :meth:`register`.

        ``@router.route`` uses the function name; ``@router.route("name")``
        registers under an explicit name.
        """
        if callable(name_or_fn):
            return self.register(name_or_fn.__name__, name_or_fn)

        def decorator(fn: TaskBody) -> TaskBody:
            return self.register(name_or_fn or fn.__name__, fn)

        return decorator

    @property
    def names(self) -> list[str]:
        """Registered task names, sorted."""
        return sorted(self._routes)

    @property
    def chain_class(self) -> type[Chain]:
        """The compiled ``Chain`` subclass for the current registrations."""
        if self._chain_class is None:
            namespace: dict[str, Any] = {
                name: _accessor(name, fn) for name, fn in self._routes.items()
            }
            namespace["routes"] = MappingProxyType(dict(self._routes))
            self._chain_class = type("RouterChain", (Chain,), namespace)
            logger.debug("router.compiled", routes=len(self._routes))
        return self._chain_class

    # =========================================================================
    # Running
    # =========================================================================

    def run(self, *args: Any) -> Chain:
        """Start a chain that passes ``args`` to every task."""
        return self._open(args)

    def _open(self, args: tuple[Any, ...], parent: TaskQueue | None = None) -> Chain:
        queue = TaskQueue(
            args,
            parent,
            loop=self._resolve_loop(parent),
            context_factory=self._make_context,
            settings=self.settings,
        )
        return self.chain_class(queue)

    def _make_context(self, queue: TaskQueue) -> RouteContext:
        return RouteContext(queue, self._open)

    def _resolve_loop(self, parent: TaskQueue | None) -> asyncio.AbstractEventLoop:
        if parent is not None and parent.loop is not None:
            return parent.loop
        if self._loop is not None:
            return self._loop
        try:
            return asyncio.get_running_loop()
        except RuntimeError as exc:
            raise SchedulerError(
                "No running event loop; call run() from a coroutine or pass loop=",
                cause=exc,
            ) from exc

    def __repr__(self) -> str:
        return f"Router(routes={self.names})"
