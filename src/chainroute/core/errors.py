"""
Structured error types for chainroute.

Every exception the engine raises itself (as opposed to the errors task
bodies record) derives from :class:`RouterError`, so callers can catch the
whole family with a single ``except`` clause.

Manifesto:
    - **Typed Error Hierarchy:** configuration mistakes, protocol violations
      and unhandled route failures are different things and look different
    - **Fail loudly on protocol violations:** a resolver fired twice or a
      group left open is a broken chain definition, not a data condition
    - **Error Chaining:** an unhandled route error keeps the original
      failure as ``__cause__``

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────────┐
        │                        RouterError                            │
        │            (category, context, cause, to_dict)                │
        ├──────────────────────────────────────────────────────────────┤
        │                                                               │
        │  ConfigError              ProtocolError        UnhandledRoute │
        │  (CONFIG)                 (PROTOCOL)           Error (ROUTE)  │
        │     │                        │                                │
        │  RouteRegistrationError   CallbackCalledTwiceError            │
        │     InvalidRouteNameError InvalidCallbackHandlerError         │
        │     ReservedRouteNameError GroupNotOpenError                  │
        │     DuplicateRouteError   UnclosedGroupError                  │
        │  SchedulerError           SuspendUnderflowError               │
        └──────────────────────────────────────────────────────────────┘

Examples:
    >>> error = ReservedRouteNameError("then")
    >>> error.category
    <ErrorCategory.CONFIG: 'CONFIG'>
    >>> error.route_name
    'then'

Tags:
    error-handling, exception-hierarchy, chainroute, protocol

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """
    Error categories for classification and logging.

    - **CONFIG:** bad registrations or missing scheduler, raised at setup
    - **PROTOCOL:** misuse of the chain/resolver protocol, raised at once
    - **ROUTE:** a route failure nothing handled
    - **INTERNAL:** anything else
    """

    CONFIG = "CONFIG"
    PROTOCOL = "PROTOCOL"
    ROUTE = "ROUTE"
    INTERNAL = "INTERNAL"


@dataclass
class ErrorContext:
    """
    Structured metadata attached to a :class:`RouterError`.

    Attributes:
        route: Registered task name involved, if any
        queue_id: Id of the task queue involved, if any
        metadata: Additional key-value pairs
    """

    route: str | None = None
    queue_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result: dict[str, Any] = {}
        for key in ["route", "queue_id"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class RouterError(Exception):
    """
    Base exception for all chainroute errors.

    Subclasses set ``default_category`` to classify themselves; callers may
    override it per instance.

    Args:
        message: Human readable description
        category: Overrides ``default_category``
        context: Structured metadata for logging
        cause: Underlying exception, also stored as ``__cause__``
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.context = context or ErrorContext()
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> RouterError:
        """Add context fields, returning self for chaining."""
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Serialize for structured logging."""
        result: dict[str, Any] = {
            "error_type": type(self).__name__,
            "message": self.message,
            "category": self.category.value,
        }
        context = self.context.to_dict()
        if context:
            result["context"] = context
        if self.cause is not None:
            result["cause"] = repr(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigError(RouterError):
    """Router configuration error, raised while wiring routes."""

    default_category = ErrorCategory.CONFIG


class RouteRegistrationError(ConfigError):
    """A task body could not be registered under the requested name."""

    def __init__(self, message: str, route_name: str, **kwargs: Any):
        self.route_name = route_name
        super().__init__(message, **kwargs)
        self.context.route = route_name


class InvalidRouteNameError(RouteRegistrationError):
    """Route name is not a public Python identifier."""

    def __init__(self, route_name: str):
        super().__init__(
            f"Route name must be a public identifier, got {route_name!r}",
            route_name,
        )


class ReservedRouteNameError(RouteRegistrationError):
    """Route name collides with a chain or route-context primitive."""

    def __init__(self, route_name: str):
        super().__init__(
            f"Route using reserved keyword. Route name cannot be [{route_name}]",
            route_name,
        )


class DuplicateRouteError(RouteRegistrationError):
    """Route name is already registered on this router."""

    def __init__(self, route_name: str):
        super().__init__(f"Route '{route_name}' is already registered", route_name)


class SchedulerError(ConfigError):
    """No event loop is available to schedule a chain on."""


# =============================================================================
# PROTOCOL ERRORS
# =============================================================================


class ProtocolError(RouterError):
    """The chain or resolver protocol was violated by the caller."""

    default_category = ErrorCategory.PROTOCOL


class CallbackCalledTwiceError(ProtocolError):
    """A resolver was invoked after it had already fired."""

    def __init__(self, queue_id: str | None = None):
        super().__init__(
            "Callback called more than once!",
            context=ErrorContext(queue_id=queue_id),
        )


class InvalidCallbackHandlerError(ProtocolError):
    """A ``callback()`` handler is neither ERR, an error wrapper nor callable."""

    def __init__(self, handler: Any):
        self.handler = handler
        super().__init__(f"Unable to process callback argument: {handler!r}")


class GroupNotOpenError(ProtocolError):
    """``end_group()`` was called without a matching ``start_group()``."""

    def __init__(self) -> None:
        super().__init__("end_group() called without a matching start_group()")


class UnclosedGroupError(ProtocolError):
    """A chain started running while a group bracket was still open."""

    def __init__(self, open_groups: int = 1, queue_id: str | None = None):
        self.open_groups = open_groups
        super().__init__(
            "A start_group() call was not closed with an end_group()",
            context=ErrorContext(queue_id=queue_id, metadata={"open_groups": open_groups}),
        )


class SuspendUnderflowError(ProtocolError):
    """More waits were resolved than were registered."""

    def __init__(self, count: int, queue_id: str | None = None):
        self.count = count
        super().__init__(
            f"Suspend count dropped below zero ({count})",
            context=ErrorContext(queue_id=queue_id),
        )


# =============================================================================
# ROUTE ERRORS
# =============================================================================


class UnhandledRouteError(RouterError):
    """
    A parentless chain finished with an error no handler consumed.

    ``error`` holds the raw recorded value, which need not be an exception.
    """

    default_category = ErrorCategory.ROUTE

    def __init__(self, error: Any, queue_id: str | None = None):
        self.error = error
        cause = error if isinstance(error, BaseException) else None
        super().__init__(
            f"Unhandled route error: {error!r}",
            context=ErrorContext(queue_id=queue_id),
            cause=cause,
        )


def as_exception(error: Any) -> BaseException:
    """Return ``error`` itself if it is an exception, else wrap it."""
    if isinstance(error, BaseException):
        return error
    return UnhandledRouteError(error)


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "RouterError",
    "ConfigError",
    "RouteRegistrationError",
    "InvalidRouteNameError",
    "ReservedRouteNameError",
    "DuplicateRouteError",
    "SchedulerError",
    "ProtocolError",
    "CallbackCalledTwiceError",
    "InvalidCallbackHandlerError",
    "GroupNotOpenError",
    "UnclosedGroupError",
    "SuspendUnderflowError",
    "UnhandledRouteError",
    "as_exception",
]
