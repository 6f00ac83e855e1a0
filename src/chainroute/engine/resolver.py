"""Resolvers — exactly-once callbacks that hold a task queue suspended.

A task body that starts asynchronous work asks its route context for a
resolver and hands it to whatever will eventually call back::

    def load(route, event):
        loop.call_later(0.1, route.callback(route.error(), store_result))

Registering a resolver adds one wait to the queue; firing it resolves that
wait. Each resolver moves through three states:

::

    ARMED ──fire──▶ FIRED ──fire again──▶ CallbackCalledTwiceError
      │
      └──owning task raised / queue already terminal──▶ SUPPRESSED (no-op)

Handler lists
─────────────
``callback(*handlers)`` takes entries aligned by position with the
arguments the resolver will later receive:

- ``ERR``: the argument at this position is an error indicator
- an :class:`ErrorWrapper`: same, but the truthy value is translated first
- any other callable: invoked as ``handler(route, *remaining_args)``

Error-indicator arguments are removed before plain handlers see the rest.
If any indicator was truthy the plain handlers are skipped.
"""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
from typing import TYPE_CHECKING, Any

from chainroute.core.errors import (
    CallbackCalledTwiceError,
    InvalidCallbackHandlerError,
    ProtocolError,
)
from chainroute.core.logging import get_logger

if TYPE_CHECKING:
    from chainroute.engine.queue import TaskQueue

logger = get_logger(__name__)


class _Marker:
    """Named singleton used as a sentinel value."""

    def __init__(self, name: str) -> None:
        self._name = name

    def __repr__(self) -> str:
        return self._name

    def __reduce__(self) -> str:
        return self._name


#: Handler entry meaning "this argument is an error indicator".
ERR = _Marker("ERR")

#: Placeholder in ``error_wrapper`` templates, replaced by the raw error.
CAUSE = _Marker("CAUSE")


class ErrorWrapper:
    """
    Translate a raw callback error into a domain error.

    Calling the wrapper with the raw error builds ``ctor(*template)`` with
    every :data:`CAUSE` in the template replaced by the raw error.

    Example:
        >>> wrap = ErrorWrapper(LookupError, "session store failed", CAUSE)
        >>> wrap(OSError("disk")).args
        ('session store failed', OSError('disk'))
    """

    def __init__(self, ctor: Callable[..., Any], *template: Any) -> None:
        self.ctor = ctor
        self.template = template

    def __call__(self, raw: Any) -> Any:
        args = [raw if arg is CAUSE else arg for arg in self.template]
        wrapped = self.ctor(*args)
        if isinstance(wrapped, BaseException) and isinstance(raw, BaseException):
            wrapped.__cause__ = raw
        return wrapped

    def __repr__(self) -> str:
        return f"ErrorWrapper({getattr(self.ctor, '__name__', self.ctor)!r})"


class ResolverState(str, Enum):
    """Lifecycle of one resolver."""

    ARMED = "armed"
    FIRED = "fired"
    SUPPRESSED = "suppressed"


class Resolver:
    """
    Invocable returned by ``RouteContext.callback``.

    Registering suspends the owning queue once; the first invocation runs
    the handlers and resumes it. Handlers run with the route context that
    created the resolver as their first argument.
    """

    def __init__(self, route: Any, handlers: tuple[Any, ...] = ()) -> None:
        for handler in handlers:
            if handler is not ERR and not callable(handler):
                raise InvalidCallbackHandlerError(handler)
        self.route = route
        self.handlers = handlers
        self.state = ResolverState.ARMED
        self._queue: TaskQueue = route.queue
        self._queue.suspend()
        self._queue.arm(self)

    def __call__(self, *args: Any) -> None:
        if self.state is ResolverState.SUPPRESSED:
            self._trace("resolver.ignored")
            return
        if self.state is ResolverState.FIRED:
            logger.warning("resolver.called_twice", queue_id=self._queue.queue_id)
            raise CallbackCalledTwiceError(self._queue.queue_id)
        if self._queue.is_terminal:
            # the owning queue moved on without us
            self.state = ResolverState.SUPPRESSED
            self._trace("resolver.too_late")
            return

        self.state = ResolverState.FIRED
        self._trace("resolver.fired", argc=len(args))
        try:
            self._dispatch(list(args))
        finally:
            self._queue.suspend(-1)

    def suppress(self) -> bool:
        """Disarm without running handlers. Returns True if it was armed."""
        if self.state is not ResolverState.ARMED:
            return False
        self.state = ResolverState.SUPPRESSED
        self._trace("resolver.suppressed")
        return True

    def _dispatch(self, args: list[Any]) -> None:
        handlers = list(self.handlers)
        errored = False

        i = 0
        while i < len(handlers):
            handler = handlers[i]
            if handler is ERR or isinstance(handler, ErrorWrapper):
                value = args[i] if i < len(args) else None
                if value:
                    errored = True
                    self._record(handler, value)
                if i < len(args):
                    del args[i]
                del handlers[i]
                continue
            i += 1

        if errored:
            return

        for handler in handlers:
            try:
                handler(self.route, *args)
            except ProtocolError:
                raise
            except Exception as exc:
                self._queue.record_error(exc)

    def _record(self, handler: Any, value: Any) -> None:
        if handler is ERR:
            self._queue.record_error(value)
            return
        try:
            self._queue.record_error(handler(value))
        except ProtocolError:
            raise
        except Exception as exc:
            self._queue.record_error(exc)

    def _trace(self, event: str, **fields: Any) -> None:
        if self._queue.settings.trace_tasks:
            logger.debug(event, queue_id=self._queue.queue_id, **fields)


class ErrorFirstResolver(Resolver):
    """
    Resolver for ``callback(err, *values)`` style APIs.

    A truthy first argument is recorded as the error and the handler is
    skipped; otherwise the handler receives the remaining arguments.
    """

    def __init__(self, route: Any, handler: Callable[..., Any] | None = None) -> None:
        if handler is not None and not callable(handler):
            raise InvalidCallbackHandlerError(handler)
        self.handler = handler
        super().__init__(route)

    def _dispatch(self, args: list[Any]) -> None:
        error = args[0] if args else None
        if error:
            self._queue.record_error(error)
            return
        if self.handler is None:
            return
        try:
            self.handler(self.route, *args[1:])
        except ProtocolError:
            raise
        except Exception as exc:
            self._queue.record_error(exc)
