"""
chainroute.engine - task queue, route context and chain builder.

MODULE MAP (recommended reading order)
──────────────────────────────────────
1. queue.py      ─ TaskQueue: entries, errors, suspend count, run loop
2. resolver.py   ─ exactly-once resolvers, ERR / CAUSE, ErrorWrapper
3. context.py    ─ RouteContext handed to every task body
4. chain.py      ─ Chain builder, then(), groups, as_future()
5. router.py     ─ name registration and the compiled accessor table
"""

from chainroute.engine.chain import Chain
from chainroute.engine.context import RouteContext
from chainroute.engine.queue import (
    SUSPENDED,
    ErrorHandlerEntry,
    QueueState,
    TaskEntry,
    TaskQueue,
)
from chainroute.engine.resolver import (
    CAUSE,
    ERR,
    ErrorFirstResolver,
    ErrorWrapper,
    Resolver,
    ResolverState,
)
from chainroute.engine.router import RESERVED_NAMES, Router

__all__ = [
    "Chain",
    "RouteContext",
    "TaskQueue",
    "TaskEntry",
    "ErrorHandlerEntry",
    "QueueState",
    "SUSPENDED",
    "Resolver",
    "ErrorFirstResolver",
    "ResolverState",
    "ErrorWrapper",
    "ERR",
    "CAUSE",
    "Router",
    "RESERVED_NAMES",
]
