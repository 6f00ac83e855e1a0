"""Chain Builder — the fluent surface used to enqueue tasks by name.

A :class:`~chainroute.engine.router.Router` compiles a ``Chain`` subclass
with one accessor per registered task. Each accessor call enqueues that
task and returns the chain::

    router.run(event).require_xsrf().session().then(respond)

Groups
──────
``start_group()`` / ``end_group()`` bracket tasks that are initiated
back-to-back without the outer chain advancing between them::

    router.run(job) \\
        .start_group().fetch_a().fetch_b().end_group() \\
        .merge() \\
        .then(done)

``fetch_a`` and ``fetch_b`` start in declared order; ``merge`` runs once
both have resolved every wait they registered.

Nothing runs while the chain is being built: the queue is drained on the
next tick of the event loop.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, ClassVar

from chainroute.core.errors import GroupNotOpenError, UnclosedGroupError, as_exception
from chainroute.core.logging import get_logger
from chainroute.engine.queue import TaskQueue

logger = get_logger(__name__)

_UNSET: Any = object()


@dataclass
class _GroupBracket:
    """An open ``start_group()``: the queue being built and where it goes back."""

    nested: TaskQueue
    outer: TaskQueue


class Chain:
    """
    Chainable task builder bound to one task queue.

    ``routes`` is the accessor table of the compiled subclass: task name to
    task body. The base class has none.
    """

    routes: ClassVar[Mapping[str, Callable[..., Any]]] = MappingProxyType({})

    def __init__(self, queue: TaskQueue) -> None:
        self._queue = queue
        self._groups: list[_GroupBracket] = []
        queue.start(self._start)

    @property
    def queue(self) -> TaskQueue:
        """The root queue of this chain."""
        return self._queue

    @property
    def _active(self) -> TaskQueue:
        return self._groups[-1].nested if self._groups else self._queue

    def _start(self) -> None:
        if self._groups:
            logger.error(
                "chain.unclosed_group",
                queue_id=self._queue.queue_id,
                open_groups=len(self._groups),
            )
            error = UnclosedGroupError(len(self._groups), self._queue.queue_id)
            self._queue.abandon(error)
            raise error
        self._queue.run()

    def _enqueue(self, name: str) -> Chain:
        self._active.enqueue(self.routes[name], name=name)
        return self

    # =========================================================================
    # Handlers
    # =========================================================================

    def then(self, handler: Callable[..., Any], receiver: Any = _UNSET) -> Chain:
        """
        Add a handler that always runs, error or not.

        It is called as ``handler(error, *args)`` (``error`` is None when
        nothing failed), or ``handler(receiver, error, *args)`` when a
        receiver is given. Reaching it consumes the outstanding error.
        """
        if receiver is _UNSET:

            def finalizer(route: Any, error: Any, *args: Any) -> None:
                handler(error, *args)

        else:

            def finalizer(route: Any, error: Any, *args: Any) -> None:
                handler(receiver, error, *args)

        name = getattr(handler, "__name__", "then")
        self._active.enqueue(finalizer, is_error_handler=True, name=name)
        return self

    def as_future(self) -> asyncio.Future[tuple[Any, ...]]:
        """
        Finish the chain with a future.

        The future resolves to the argument tuple the chain was run with,
        or fails with the outstanding error.
        """
        future: asyncio.Future[tuple[Any, ...]] = self._queue.loop.create_future()

        def settle(error: Any, *args: Any) -> None:
            if future.done():
                return
            if error is None:
                future.set_result(args)
            else:
                future.set_exception(as_exception(error))

        self.then(settle)
        return future

    # =========================================================================
    # Groups
    # =========================================================================

    def start_group(self) -> Chain:
        """Open a group; following tasks are initiated back-to-back."""
        outer = self._active
        nested = TaskQueue(
            loop=outer.loop,
            context_factory=outer.context_factory,
            settings=outer.settings,
            name=f"{outer.name or 'chain'}.group",
        )
        self._groups.append(_GroupBracket(nested, outer))
        return self

    def end_group(self) -> Chain:
        """Close the innermost group; the outer chain waits for all of it."""
        if not self._groups:
            raise GroupNotOpenError()
        bracket = self._groups.pop()

        def run_group(route: Any, error: Any, *args: Any) -> None:
            bracket.outer.run_group(bracket.nested, error, args)

        bracket.outer.enqueue(run_group, is_error_handler=True, name="group")
        return self

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._queue!r})"
