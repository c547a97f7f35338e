"""Tests for dqm.core.errors module."""

import pytest

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


class TestErrorContext:
    """Test ErrorContext dataclass."""

    def test_create_empty_context(self):
        ctx = ErrorContext()
        assert ctx.service is None
        assert ctx.workflow is None
        assert ctx.metadata == {}

    def test_to_dict_includes_set_fields(self):
        """to_dict includes only non-None fields plus metadata."""
        ctx = ErrorContext(
            service="athena",
            operation="StartQueryExecution",
            http_status=400,
            metadata={"workgroup": "wg"},
        )
        d = ctx.to_dict()
        assert d["service"] == "athena"
        assert d["operation"] == "StartQueryExecution"
        assert d["http_status"] == 400
        assert d["workgroup"] == "wg"
        assert "workflow" not in d


class TestDqmError:
    """Test base DqmError class."""

    def test_defaults(self):
        error = DqmError("Something went wrong")
        assert str(error) == "Something went wrong"
        assert error.message == "Something went wrong"
        assert error.category == ErrorCategory.INTERNAL
        assert error.retryable is False

    def test_explicit_category_and_retryable(self):
        error = DqmError("x", category=ErrorCategory.TRANSIENT, retryable=True)
        assert error.category == ErrorCategory.TRANSIENT
        assert error.retryable is True

    def test_cause_is_chained(self):
        original = ValueError("bad value")
        error = DqmError("Wrapped", cause=original)
        assert error.cause is original
        assert error.__cause__ is original

    def test_with_context_sets_fields_and_metadata(self):
        error = DqmError("Failed").with_context(service="glue", crawler="c1")
        assert error.context.service == "glue"
        assert error.context.metadata["crawler"] == "c1"

    def test_with_context_returns_self(self):
        error = SourceError("Failed")
        assert error.with_context(operation="GetCrawler") is error

    def test_to_dict(self):
        error = SourceError("Rejected", cause=RuntimeError("boom")).with_context(service="sns")
        d = error.to_dict()
        assert d["error_type"] == "SourceError"
        assert d["message"] == "Rejected"
        assert d["category"] == "SOURCE"
        assert d["retryable"] is False
        assert d["context"] == {"service": "sns"}
        assert d["cause"] == "boom"

    def test_repr(self):
        assert repr(ConfigError("nope")) == "ConfigError('nope', category=CONFIG)"


# ---------------------------------------------------------------------------
# Hierarchy
# ---------------------------------------------------------------------------


class TestTransientErrors:
    """Transient errors are retryable by default."""

    @pytest.mark.parametrize(
        "cls,category",
        [
            (TransientError, ErrorCategory.TRANSIENT),
            (NetworkError, ErrorCategory.TRANSIENT),
            (ThrottlingError, ErrorCategory.TRANSIENT),
            (ServiceTimeoutError, ErrorCategory.TIMEOUT),
        ],
    )
    def test_retryable_with_category(self, cls, category):
        error = cls("temporary")
        assert isinstance(error, TransientError)
        assert error.retryable is True
        assert error.category == category
        assert is_retryable(error)
        assert error.category in RETRYABLE_CATEGORIES

    def test_retryable_can_be_overridden(self):
        assert ThrottlingError("x", retryable=False).retryable is False


class TestHardErrors:
    """Source, config and orchestration errors are not retryable."""

    def test_query_execution_error(self):
        error = QueryExecutionError("Query failed", query_execution_id="q-1", state="FAILED")
        assert isinstance(error, SourceError)
        assert not is_retryable(error)
        d = error.to_dict()
        assert d["query_execution_id"] == "q-1"
        assert d["state"] == "FAILED"

    def test_notification_error_is_source_error(self):
        assert isinstance(NotificationError("x"), SourceError)
        assert NotificationError("x").category == ErrorCategory.SOURCE

    def test_missing_config_error(self):
        error = MissingConfigError("account_id")
        assert error.key == "account_id"
        assert "account_id" in error.message
        assert error.category == ErrorCategory.CONFIG

    def test_invalid_config_error(self):
        error = InvalidConfigError("stage", 42)
        assert error.value == 42
        assert error.message == "Invalid configuration for stage: 42"

    def test_workflow_error(self):
        error = WorkflowError("No object key")
        assert isinstance(error, OrchestrationError)
        assert error.category == ErrorCategory.ORCHESTRATION
        assert not error.retryable


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestIsRetryable:
    def test_builtin_network_errors_are_retryable(self):
        assert is_retryable(ConnectionResetError())
        assert is_retryable(TimeoutError())

    def test_other_builtins_are_not(self):
        assert not is_retryable(ValueError("x"))
        assert not is_retryable(KeyError("x"))

    def test_hard_categories_are_not_retry_categories(self):
        for error in (SourceError("x"), ConfigError("x"), WorkflowError("x"), DqmError("x")):
            assert error.category not in RETRYABLE_CATEGORIES

