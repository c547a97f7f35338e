"""DQM Core -- logging, structured errors, and settings.

Architecture::

    errors.py      Structured error hierarchy (DqmError, TransientError, ...)
    logging.py     structlog configuration + LogContext
    settings.py    DqmSettings (pydantic-settings, DQM_ env prefix)
"""

from dqm.core.errors import (
    RETRYABLE_CATEGORIES,
    ConfigError,
    DqmError,
    ErrorCategory,
    ErrorContext,
    InvalidConfigError,
    MissingConfigError,
    NetworkError,
    NotificationError,
    OrchestrationError,
    QueryExecutionError,
    ServiceTimeoutError,
    SourceError,
    ThrottlingError,
    TransientError,
    WorkflowError,
    is_retryable,
)
from dqm.core.logging import (
    LogContext,
    configure_logging,
    get_logger,
)

__all__ = [
    # errors
    "ErrorCategory",
    "RETRYABLE_CATEGORIES",
    "ErrorContext",
    "DqmError",
    "TransientError",
    "NetworkError",
    "ServiceTimeoutError",
    "ThrottlingError",
    "SourceError",
    "QueryExecutionError",
    "NotificationError",
    "ConfigError",
    "MissingConfigError",
    "InvalidConfigError",
    "OrchestrationError",
    "WorkflowError",
    "is_retryable",
    # logging
    "configure_logging",
    "get_logger",
    "LogContext",
]
