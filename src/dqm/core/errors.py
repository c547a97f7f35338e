"""
Error taxonomy for DQM.

Collaborator adapters translate SDK failures into these types. The workflow
runner only looks at ``category`` and ``retryable``: a retryable error on a
step with a retry policy is retried with backoff, anything else fails the
execution with the exception's class name as the error type.

    DqmError (INTERNAL)
    ├── TransientError (TRANSIENT, retryable)
    │   ├── NetworkError
    │   ├── ThrottlingError
    │   └── ServiceTimeoutError (TIMEOUT)
    ├── SourceError (SOURCE)
    │   ├── QueryExecutionError
    │   └── NotificationError
    ├── ConfigError (CONFIG)
    │   ├── MissingConfigError
    │   └── InvalidConfigError
    └── OrchestrationError (ORCHESTRATION)
        └── WorkflowError

Usage:
    from dqm.core.errors import NetworkError

    try:
        client.get_crawler(Name=name)
    except EndpointConnectionError as e:
        raise NetworkError("Glue endpoint unreachable", cause=e).with_context(service="glue")
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Failure classes used by step retry policies."""

    TRANSIENT = "TRANSIENT"
    TIMEOUT = "TIMEOUT"
    SOURCE = "SOURCE"
    CONFIG = "CONFIG"
    ORCHESTRATION = "ORCHESTRATION"
    INTERNAL = "INTERNAL"


RETRYABLE_CATEGORIES = frozenset({ErrorCategory.TRANSIENT, ErrorCategory.TIMEOUT})


@dataclass
class ErrorContext:
    """
    Where an error happened.

    ``to_dict`` drops unset fields; free-form keys land in ``metadata``.

    Attributes:
        workflow: Content provider path of the execution
        step: State name
        run_id: Execution identifier
        service: "glue", "athena" or "sns"
        operation: API operation, e.g. "StartCrawler"
        error_code: Service error code
        http_status: HTTP status of the failed call
        metadata: Anything else worth logging
    """

    workflow: str | None = None
    step: str | None = None
    run_id: str | None = None

    service: str | None = None
    operation: str | None = None
    error_code: str | None = None
    http_status: int | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        result = {}
        for key in ("workflow", "step", "run_id", "service", "operation", "error_code", "http_status"):
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        result.update(self.metadata)
        return result


class DqmError(Exception):
    """
    Base class for DQM errors.

    Subclasses pick ``default_category`` and ``default_retryable``; callers
    pass a message, optionally the underlying cause, and can override
    either default per instance.

    Examples:
        >>> DqmError("boom").category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> DqmError("boom").with_context(service="athena").context.service
        'athena'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> DqmError:
        """Set context fields (unknown keys go to metadata) and return self."""
        for key, value in kwargs.items():
            if hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context = self.context.to_dict()
        if context:
            result["context"] = context
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# Transient (retried by the query steps)
# =============================================================================


class TransientError(DqmError):
    """A failure that may go away on retry, e.g. a generic SDK error."""

    default_category = ErrorCategory.TRANSIENT
    default_retryable = True


class NetworkError(TransientError):
    """The service endpoint could not be reached."""


class ThrottlingError(TransientError):
    """Throttled request or a 5xx service exception."""


class ServiceTimeoutError(TransientError):
    """A call or a wait on a service ran out of time."""

    default_category = ErrorCategory.TIMEOUT


# =============================================================================
# Source (the service answered, and the answer is a failure)
# =============================================================================


class SourceError(DqmError):
    """A collaborator service rejected or failed the request."""

    default_category = ErrorCategory.SOURCE


class QueryExecutionError(SourceError):
    """The catalog query finished FAILED or CANCELLED."""

    def __init__(
        self,
        message: str,
        *,
        query_execution_id: str | None = None,
        state: str | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.query_execution_id = query_execution_id
        self.state = state

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.query_execution_id:
            result["query_execution_id"] = self.query_execution_id
        if self.state:
            result["state"] = self.state
        return result


class NotificationError(SourceError):
    """Publishing a notification failed."""


# =============================================================================
# Configuration
# =============================================================================


class ConfigError(DqmError):
    """Settings, credentials or provider resources are missing or wrong."""

    default_category = ErrorCategory.CONFIG


class MissingConfigError(ConfigError):
    """A required setting is unset."""

    def __init__(self, key: str, message: str | None = None):
        self.key = key
        super().__init__(message or f"Missing required configuration: {key}")


class InvalidConfigError(ConfigError):
    """A setting or resource file holds an unusable value."""

    def __init__(self, key: str, value: Any, message: str | None = None):
        self.key = key
        self.value = value
        super().__init__(message or f"Invalid configuration for {key}: {value!r}")


# =============================================================================
# Orchestration
# =============================================================================


class OrchestrationError(DqmError):
    """The workflow could not continue with the data it was given."""

    default_category = ErrorCategory.ORCHESTRATION


class WorkflowError(OrchestrationError):
    """A task step found its input unusable."""


def is_retryable(error: Exception) -> bool:
    """True for retryable DQM errors and builtin connection/timeout errors."""
    if isinstance(error, DqmError):
        return error.retryable
    return isinstance(error, (ConnectionError, TimeoutError))


__all__ = [
    "ErrorCategory",
    "RETRYABLE_CATEGORIES",
    "ErrorContext",
    "DqmError",
    "TransientError",
    "NetworkError",
    "ThrottlingError",
    "ServiceTimeoutError",
    "SourceError",
    "QueryExecutionError",
    "NotificationError",
    "ConfigError",
    "MissingConfigError",
    "InvalidConfigError",
    "OrchestrationError",
    "WorkflowError",
    "is_retryable",
]
