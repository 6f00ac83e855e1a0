"""Route Context — the capability surface handed to every task body.

A task body receives the route context as its first argument::

    def session(route, event):
        if not event.get("sessid"):
            raise LookupError("No session found!")
        store.load(event["sessid"], route.callback(route.error(), attach))

The context holds no state of its own; every primitive acts on the task
queue it is bound to.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from chainroute.core.errors import ConfigError
from chainroute.engine.resolver import ERR, ErrorFirstResolver, ErrorWrapper, Resolver

if TYPE_CHECKING:
    from chainroute.engine.chain import Chain
    from chainroute.engine.queue import TaskQueue

_UNSET: Any = object()


class RouteContext:
    """
    Primitives available inside a task body.

    Args:
        queue: The task queue this context is bound to
        spawn_chain: Builds a chain on a child queue, ``(args, parent)``
    """

    def __init__(
        self,
        queue: TaskQueue,
        spawn_chain: Callable[[tuple[Any, ...], TaskQueue], Chain] | None = None,
    ) -> None:
        self._queue = queue
        self._spawn_chain = spawn_chain

    @property
    def queue(self) -> TaskQueue:
        """The bound task queue."""
        return self._queue

    @property
    def errors(self) -> tuple[Any, ...]:
        """Errors recorded on the bound queue and not yet consumed."""
        return tuple(self._queue.errors or ())

    def callback(self, *handlers: Any) -> Resolver:
        """
        Suspend the queue until the returned resolver is called.

        Args:
            *handlers: ``ERR``, error wrappers or handler callables, aligned
                by position with the arguments the resolver will receive.
        """
        return Resolver(self, handlers)

    def callback_error_first(self, handler: Callable[..., Any] | None = None) -> ErrorFirstResolver:
        """Suspend the queue until an ``(err, *values)`` style callback fires."""
        return ErrorFirstResolver(self, handler)

    def error(self, err: Any = _UNSET) -> Any:
        """Record ``err`` on the queue; with no argument return the ``ERR`` sentinel."""
        if err is _UNSET:
            return ERR
        self._queue.record_error(err)
        return None

    def error_wrapper(self, ctor: Callable[..., Any], *template: Any) -> ErrorWrapper:
        """Build an error wrapper; use ``CAUSE`` in ``template`` for the raw error."""
        return ErrorWrapper(ctor, *template)

    def spawn(self, *args: Any) -> Chain:
        """Start a nested chain; this queue waits until it has finished."""
        if self._spawn_chain is None:
            raise ConfigError("Route context has no chain factory to spawn nested chains")
        return self._spawn_chain(args, self._queue)

    def __repr__(self) -> str:
        return f"RouteContext({self._queue!r})"
