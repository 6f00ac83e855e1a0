"""Task Queue — ordered task entries, error record and suspend accounting.

The queue is the execution engine behind every chain. It owns:

- the pending entries (tasks and error-handler references, in order)
- the errors recorded so far (first error wins)
- the suspend count (outstanding resolvers and child queues)
- the loop that drains entries on the cooperative scheduler

ARCHITECTURE
────────────
::

    BUILDING ──start()──▶ DRAINING ◀──────────────┐
                           │   │                   │ suspend count back to 0
                           │   └─ suspend > 0 ──▶ SUSPENDED
                           ▼
           entries exhausted, nothing outstanding
              ├── parent set ─────▶ PROPAGATED   (parent resumed)
              ├── leftover error ─▶ FATAL        (UnhandledRouteError)
              └── otherwise ──────▶ CLEAN

Dispatch rules
──────────────
- An ordinary task is discarded while an error is outstanding.
- An error-handler entry always runs; dispatching it clears the error and
  passes ``(error, *original_args)``.
- Nothing ever runs synchronously from the call that created the queue or
  from the resolver that brought the suspend count back to zero; both are
  deferred with ``loop.call_soon``.

Tags:
    chainroute, engine, queue, cooperative-scheduling

Doc-Types:
    api-reference
"""

from __future__ import annotations

import asyncio
import uuid
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from chainroute.core.errors import ProtocolError, SuspendUnderflowError, UnhandledRouteError
from chainroute.core.logging import get_logger
from chainroute.core.settings import RouterSettings, get_settings

logger = get_logger(__name__)


class _Suspended:
    def __repr__(self) -> str:
        return "SUSPENDED"

    def __bool__(self) -> bool:
        return False


#: Returned by :meth:`TaskQueue.advance` while the queue must wait.
SUSPENDED: Any = _Suspended()


class QueueState(str, Enum):
    """Lifecycle of a task queue."""

    BUILDING = "building"
    DRAINING = "draining"
    SUSPENDED = "suspended"
    PROPAGATED = "propagated"
    FATAL = "fatal"
    CLEAN = "clean"


TERMINAL_STATES = frozenset({QueueState.PROPAGATED, QueueState.FATAL, QueueState.CLEAN})


@dataclass(frozen=True)
class TaskEntry:
    """An ordinary task; skipped while an error is outstanding."""

    fn: Callable[..., Any]
    name: str | None = None


@dataclass(frozen=True)
class ErrorHandlerEntry:
    """Reference to a registered error handler; runs only through dispatch."""

    index: int
    name: str | None = None


class TaskQueue:
    """
    Ordered queue of tasks run against one route context.

    Args:
        args: Arguments given to every task (``original_args``)
        parent: Owning queue; it is suspended until this queue finishes
        loop: Event loop used for deferred runs (defaults to the parent's)
        context_factory: Builds the route context passed to each task
        settings: Router settings (defaults to the parent's, then global)
        name: Optional label for log events
    """

    def __init__(
        self,
        args: tuple[Any, ...] = (),
        parent: TaskQueue | None = None,
        *,
        loop: asyncio.AbstractEventLoop | None = None,
        context_factory: Callable[[TaskQueue], Any] | None = None,
        settings: RouterSettings | None = None,
        name: str | None = None,
    ) -> None:
        self.queue_id = uuid.uuid4().hex[:8]
        self.name = name
        self.entries: deque[TaskEntry | ErrorHandlerEntry] = deque()
        self.error_handlers: list[Callable[..., Any]] = []
        self.errors: list[Any] | None = None
        self.suspend_count = 0
        self.original_args = tuple(args)
        self.args: tuple[Any, ...] = self.original_args
        self.state = QueueState.BUILDING

        self.parent: TaskQueue | None = None
        if parent is not None:
            loop = loop or parent.loop
            settings = settings or parent.settings
            context_factory = context_factory or parent.context_factory
            self.link(parent)

        self.loop = loop
        self.settings = settings or get_settings()
        self.context_factory = context_factory
        self.route = context_factory(self) if context_factory else None

        self._running = False
        self._scheduled: asyncio.Handle | None = None
        self._armed: list[Any] | None = None

    # =========================================================================
    # Bookkeeping
    # =========================================================================

    def link(self, parent: TaskQueue) -> None:
        """Make ``parent`` wait for this queue. Done exactly once."""
        parent.suspend()
        self.parent = parent

    def enqueue(
        self,
        task: Callable[..., Any],
        is_error_handler: bool = False,
        name: str | None = None,
    ) -> None:
        """Append a task, or an error handler when ``is_error_handler``."""
        if is_error_handler:
            self.error_handlers.append(task)
            self.entries.append(ErrorHandlerEntry(len(self.error_handlers) - 1, name))
        else:
            self.entries.append(TaskEntry(task, name))

    def record_error(self, err: Any) -> None:
        """Add an error. Dispatch is decided by :meth:`advance` only."""
        if err is None:
            return
        if self.errors is None:
            self.errors = [err]
        else:
            self.errors.append(err)

    @property
    def current_error(self) -> Any:
        """The error that drives dispatch, or None."""
        return self.errors[0] if self.errors else None

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def arm(self, resolver: Any) -> None:
        """Remember a resolver registered by the task currently running."""
        if self._armed is not None:
            self._armed.append(resolver)

    # =========================================================================
    # Dispatch
    # =========================================================================

    def advance(self) -> Any:
        """
        Pick the next callable and set :attr:`args` for it.

        Returns:
            ``SUSPENDED`` while waits are outstanding, ``None`` when the
            entries are exhausted, otherwise the callable to invoke.
        """
        if self.suspend_count:
            return SUSPENDED
        return self._next_entry()

    def _next_entry(self) -> Any:
        error = self.current_error
        while self.entries:
            entry = self.entries.popleft()
            if isinstance(entry, ErrorHandlerEntry):
                # the handler consumes the error; later errors are not replayed
                self.errors = None
                self.args = (error, *self.original_args)
                self._trace("queue.dispatch", task=entry.name, handler=True)
                return self.error_handlers[entry.index]
            if error is not None:
                self._trace("queue.skip", task=entry.name)
                continue
            self.args = self.original_args
            self._trace("queue.dispatch", task=entry.name)
            return entry.fn
        return None

    def _invoke(self, fn: Callable[..., Any], args: tuple[Any, ...]) -> None:
        self._armed = []
        try:
            fn(self.route, *args)
        except ProtocolError:
            raise
        except Exception as exc:
            self.record_error(exc)
            self._release(self._armed)
        finally:
            self._armed = None

    def _release(self, resolvers: list[Any]) -> None:
        # waits registered by a task that then raised will never be needed
        released = sum(1 for resolver in resolvers if resolver.suppress())
        if released:
            self.suspend_count -= released
            self._trace("queue.released", count=released)

    def run(self) -> None:
        """Drain ready entries; finish when exhausted with nothing outstanding."""
        self._scheduled = None
        if self.is_terminal or self._running:
            return

        self.state = QueueState.DRAINING
        self._running = True
        try:
            while True:
                fn = self.advance()
                if fn is None or fn is SUSPENDED:
                    break
                self._invoke(fn, self.args)
        finally:
            self._running = False

        if fn is None:
            self._finish()
        else:
            self.state = QueueState.SUSPENDED
            self._trace("queue.suspended", waiting=self.suspend_count)

    def start(self, entry: Callable[[], None] | None = None) -> None:
        """
        Schedule the first run on the next tick.

        ``entry`` replaces :meth:`run` for that first tick; it must end by
        calling :meth:`run` or :meth:`abandon`.
        """
        if self._running or self._scheduled is not None or self.is_terminal:
            return
        self._scheduled = self.loop.call_soon(entry or self.run)

    def abandon(self, error: Any) -> None:
        """
        End the queue before it ran, dropping every pending entry.

        A child queue hands ``error`` to its parent and resumes it; a root
        queue is left FATAL and the caller is expected to raise.
        """
        self._scheduled = None
        self.entries.clear()
        self.record_error(error)
        if self.parent is None:
            self.state = QueueState.FATAL
            return
        self._finish()

    def suspend(self, delta: int | None = None) -> int | None:
        """
        Adjust the suspend count.

        With no argument one new wait is registered and the previous count
        returned. A negative delta resolves waits; reaching zero schedules
        :meth:`run` on the next tick.
        """
        if delta is None:
            previous = self.suspend_count
            self.suspend_count += 1
            return previous

        self.suspend_count += delta
        if self.suspend_count < 0:
            raise SuspendUnderflowError(self.suspend_count, self.queue_id)
        if self.suspend_count == 0:
            self._trace("queue.resume")
            self.start()
        return None

    # =========================================================================
    # Groups
    # =========================================================================

    def run_group(self, group: TaskQueue, error: Any, args: tuple[Any, ...]) -> None:
        """
        Initiate every ready entry of ``group`` back-to-back.

        This queue stays suspended until the group has finished, at which
        point the group's first error is merged in if this queue has none.
        """
        group.original_args = tuple(args)
        group.link(self)
        group.record_error(error)
        group.state = QueueState.DRAINING

        group._running = True
        try:
            while True:
                fn = group._next_entry()
                if fn is None:
                    break
                group._invoke(fn, group.args)
        finally:
            group._running = False

        if group.suspend_count == 0:
            group._finish()
        else:
            group.state = QueueState.SUSPENDED
            group._trace("queue.suspended", waiting=group.suspend_count)

    # =========================================================================
    # Completion
    # =========================================================================

    def _finish(self) -> None:
        if self.parent is not None:
            self.state = QueueState.PROPAGATED
            parent = self.parent
            if self.errors and not parent.errors:
                parent.errors = list(self.errors)
            self._trace("queue.finish", parent_id=parent.queue_id, errors=len(self.errors or ()))
            parent.suspend(-1)
        elif self.errors:
            self.state = QueueState.FATAL
            self._surface(self.errors[0])
        else:
            self.state = QueueState.CLEAN
            self._trace("queue.finish")

    def _surface(self, error: Any) -> None:
        fault = UnhandledRouteError(error, self.queue_id)
        logger.error(
            "queue.fatal",
            queue_id=self.queue_id,
            name=self.name,
            error=repr(error),
            retained=len(self.errors or ()) - 1,
        )
        if self.settings.unhandled_error_policy == "report":
            self.loop.call_exception_handler(
                {
                    "message": "Unhandled route error",
                    "exception": fault,
                    "queue": self,
                }
            )
            return
        raise fault

    def _trace(self, event: str, **fields: Any) -> None:
        if self.settings.trace_tasks:
            logger.debug(event, queue_id=self.queue_id, name=self.name, **fields)

    def __repr__(self) -> str:
        return (
            f"TaskQueue(id={self.queue_id}, state={self.state.value}, "
            f"pending={len(self.entries)}, suspend={self.suspend_count})"
        )
