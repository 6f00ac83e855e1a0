"""
chainroute - sequential task chains on a cooperative scheduler.

Register named task bodies on a :class:`Router`, then run them in a
declared order. Tasks may suspend the chain with callbacks, record errors
that skip ordinary tasks until a handler is reached, spawn nested chains,
and start groups of tasks back-to-back.

Example:
    >>> from chainroute import Router
    >>> router = Router()
    >>> @router.route
    ... def greet(route, event):
    ...     event["greeting"] = f"hello {event['name']}"
    >>> async def main():
    ...     event = {"name": "world"}
    ...     await router.run(event).greet().as_future()
    ...     return event["greeting"]
"""

from chainroute.core.errors import (
    CallbackCalledTwiceError,
    ConfigError,
    DuplicateRouteError,
    GroupNotOpenError,
    InvalidCallbackHandlerError,
    InvalidRouteNameError,
    ProtocolError,
    ReservedRouteNameError,
    RouterError,
    SchedulerError,
    UnclosedGroupError,
    UnhandledRouteError,
)
from chainroute.core.logging import configure_logging, get_logger
from chainroute.core.settings import RouterSettings, get_settings
from chainroute.engine import (
    CAUSE,
    ERR,
    Chain,
    ErrorWrapper,
    QueueState,
    Resolver,
    ResolverState,
    RouteContext,
    Router,
    TaskQueue,
)

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Engine
    "Router",
    "Chain",
    "RouteContext",
    "TaskQueue",
    "QueueState",
    "Resolver",
    "ResolverState",
    "ErrorWrapper",
    "ERR",
    "CAUSE",
    # Errors
    "RouterError",
    "ConfigError",
    "SchedulerError",
    "InvalidRouteNameError",
    "ReservedRouteNameError",
    "DuplicateRouteError",
    "ProtocolError",
    "CallbackCalledTwiceError",
    "InvalidCallbackHandlerError",
    "GroupNotOpenError",
    "UnclosedGroupError",
    "UnhandledRouteError",
    # Ambient
    "RouterSettings",
    "get_settings",
    "configure_logging",
    "get_logger",
]
