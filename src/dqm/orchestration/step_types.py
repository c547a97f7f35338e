"""Step Types — definitions for workflow step variants.

Manifesto:
A Workflow is a graph of Steps, and steps come in different flavours:
task (inline function), pass (computed value), choice (conditional
branch), wait (pause), and the two terminal states succeed and fail.
This module defines the ``Step`` dataclass and its factory methods so
that workflow authors never deal with raw internals.

ARCHITECTURE
────────────
::

    Step
      ├── .lambda_(name, handler)               ── task: handler(ctx, config)
      ├── .pass_(name, parameters)              ── store a computed value
      ├── .choice(name, condition, then/else)   ── conditional branch
      ├── .wait(name, seconds)                  ── pause execution
      ├── .succeed(name)                        ── terminal success
      └── .fail(name, error, cause_path)        ── terminal failure

    StepType      ── enum: LAMBDA, PASS, CHOICE, WAIT, SUCCEED, FAIL
    RetryPolicy   ── max_attempts + backoff configuration

Data threading: a task or pass step's output is written into the
results document at ``result_path`` (dotted, e.g. ``"query.get_query_results"``).
A ``result_path`` of ``None`` discards the output.

Example::

    from dqm.orchestration import Workflow, Step

    workflow = Workflow(
        name="crawl",
        steps=[
            Step.lambda_("GetStatus", get_status, result_path="crawl"),
            Step.choice("IsRunning",
                condition=lambda ctx: ctx.get_result("crawl.state") == "RUNNING",
                then_step="Wait",
                else_step="Done",
            ),
            Step.wait("Wait", 30, next_step="GetStatus"),
            Step.succeed("Done"),
        ],
    )
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from dqm.execution.retry import ExponentialBackoff

if TYPE_CHECKING:
    from dqm.orchestration.workflow_context import WorkflowContext


def _callable_ref(fn: Callable[..., Any] | None) -> str | None:
    """Return ``'module:qualname'`` for a named function, else ``None``."""
    if fn is None:
        return None
    module = getattr(fn, "__module__", None)
    qualname = getattr(fn, "__qualname__", None)
    if not module or not qualname:
        return None
    if "<lambda>" in qualname or "<locals>" in qualname:
        return None
    return f"{module}:{qualname}"


class StepType(str, Enum):
    """Type of workflow step."""

    LAMBDA = "lambda"  # Task: inline function
    PASS = "pass"  # Store a computed value
    CHOICE = "choice"  # Conditional branch
    WAIT = "wait"  # Pause execution
    SUCCEED = "succeed"  # Terminal success
    FAIL = "fail"  # Terminal failure


@dataclass(frozen=True)
class RetryPolicy:
    """
    Retry configuration for a step.

    ``max_attempts`` counts retries after the first attempt, so the
    default policy calls the handler at most seven times with waits of
    2, 4, 8, 16, 32 and 64 seconds.
    """

    max_attempts: int = 6
    initial_delay_seconds: float = 2.0
    backoff_multiplier: float = 2.0
    max_delay_seconds: float = 300.0
    retryable_categories: tuple[str, ...] = ("TRANSIENT", "TIMEOUT")

    def to_strategy(self) -> ExponentialBackoff:
        return ExponentialBackoff(
            max_retries=self.max_attempts,
            base_delay=self.initial_delay_seconds,
            max_delay=self.max_delay_seconds,
            multiplier=self.backoff_multiplier,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "max_attempts": self.max_attempts,
            "initial_delay_seconds": self.initial_delay_seconds,
            "backoff_multiplier": self.backoff_multiplier,
            "max_delay_seconds": self.max_delay_seconds,
            "retryable_categories": list(self.retryable_categories),
        }


# Type alias for step handlers
StepHandlerFn = Callable[["WorkflowContext", dict[str, Any]], Any]

# Type alias for choice conditions
ConditionFn = Callable[["WorkflowContext"], bool]

# Pass step parameters: a static value or a function of the context
ParametersFn = Callable[["WorkflowContext"], Any]


# =============================================================================
# Step
# =============================================================================


@dataclass
class Step:
    """
    A single state within a workflow.

    Use the factory methods to create specific step types rather than
    constructing directly.
    """

    name: str
    step_type: StepType
    config: dict[str, Any] = field(default_factory=dict)
    result_path: str | None = None
    next_step: str | None = None
    retry_policy: RetryPolicy | None = None
    comment: str = ""

    # Type-specific fields (only some apply per type)
    handler: StepHandlerFn | None = None  # Lambda
    parameters: Any = None  # Pass (value or ParametersFn)
    condition: ConditionFn | None = None  # Choice
    then_step: str | None = None  # Choice
    else_step: str | None = None  # Choice
    duration_seconds: float | None = None  # Wait
    error: str | None = None  # Fail
    error_path: str | None = None  # Fail
    cause_path: str | None = None  # Fail

    # =========================================================================
    # Factory Methods
    # =========================================================================

    @classmethod
    def lambda_(
        cls,
        name: str,
        handler: StepHandlerFn,
        config: dict[str, Any] | None = None,
        result_path: str | None = None,
        next_step: str | None = None,
        retry_policy: RetryPolicy | None = None,
        comment: str = "",
    ) -> Step:
        """
        Create a task step (inline function).

        Args:
            name: Unique step name within workflow
            handler: Function (ctx, config) -> StepResult (or plain value)
            config: Step-specific configuration
            result_path: Where the output lands in the results document
            next_step: Explicit transition (default: next in declaration order)
            retry_policy: Retry transient failures with backoff
        """
        return cls(
            name=name,
            step_type=StepType.LAMBDA,
            handler=handler,
            config=config or {},
            result_path=result_path,
            next_step=next_step,
            retry_policy=retry_policy,
            comment=comment,
        )

    @classmethod
    def pass_(
        cls,
        name: str,
        parameters: Any,
        result_path: str | None = None,
        next_step: str | None = None,
        comment: str = "",
    ) -> Step:
        """
        Create a pass step.

        ``parameters`` is either a static value or a function ``(ctx) -> value``.
        """
        return cls(
            name=name,
            step_type=StepType.PASS,
            parameters=parameters,
            result_path=result_path,
            next_step=next_step,
            comment=comment,
        )

    @classmethod
    def choice(
        cls,
        name: str,
        condition: ConditionFn,
        then_step: str,
        else_step: str | None = None,
        comment: str = "",
    ) -> Step:
        """
        Create a choice step (conditional branch).

        Args:
            name: Unique step name within workflow
            condition: Function (ctx) -> bool
            then_step: Step name to go to if condition is True
            else_step: Step name if False (default: next in declaration order)
        """
        return cls(
            name=name,
            step_type=StepType.CHOICE,
            condition=condition,
            then_step=then_step,
            else_step=else_step,
            comment=comment,
        )

    @classmethod
    def wait(
        cls,
        name: str,
        duration_seconds: float,
        next_step: str | None = None,
        comment: str = "",
    ) -> Step:
        """Create a wait step (pause execution)."""
        return cls(
            name=name,
            step_type=StepType.WAIT,
            duration_seconds=duration_seconds,
            next_step=next_step,
            comment=comment,
        )

    @classmethod
    def succeed(cls, name: str, comment: str = "") -> Step:
        """Create a terminal success step."""
        return cls(name=name, step_type=StepType.SUCCEED, comment=comment)

    @classmethod
    def fail(
        cls,
        name: str,
        error: str | None = None,
        error_path: str | None = None,
        cause_path: str | None = None,
        comment: str = "",
    ) -> Step:
        """
        Create a terminal failure step.

        Args:
            name: Unique step name within workflow
            error: Static error name
            error_path: Results path holding the error name (wins over ``error``)
            cause_path: Results path holding the cause; ``""`` means the
                whole results document
        """
        return cls(
            name=name,
            step_type=StepType.FAIL,
            error=error,
            error_path=error_path,
            cause_path=cause_path,
            comment=comment,
        )

    # =========================================================================
    # Utilities
    # =========================================================================

    @property
    def is_terminal(self) -> bool:
        return self.step_type in (StepType.SUCCEED, StepType.FAIL)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON output."""
        result: dict[str, Any] = {
            "name": self.name,
            "type": self.step_type.value,
        }

        if self.comment:
            result["comment"] = self.comment
        if self.config:
            result["config"] = self.config
        if self.result_path is not None:
            result["result_path"] = self.result_path
        if self.next_step:
            result["next_step"] = self.next_step
        if self.retry_policy:
            result["retry_policy"] = self.retry_policy.to_dict()

        if self.step_type == StepType.LAMBDA:
            ref = _callable_ref(self.handler)
            if ref:
                result["handler_ref"] = ref
        elif self.step_type == StepType.CHOICE:
            result["then_step"] = self.then_step
            result["else_step"] = self.else_step
            ref = _callable_ref(self.condition)
            if ref:
                result["condition_ref"] = ref
        elif self.step_type == StepType.WAIT:
            result["duration_seconds"] = self.duration_seconds
        elif self.step_type == StepType.FAIL:
            if self.error:
                result["error"] = self.error
            if self.error_path:
                result["error_path"] = self.error_path
            if self.cause_path is not None:
                result["cause_path"] = self.cause_path

        return result

    def __repr__(self) -> str:
        if self.step_type == StepType.LAMBDA:
            return f"Step.lambda_({self.name!r}, <handler>)"
        elif self.step_type == StepType.CHOICE:
            return f"Step.choice({self.name!r}, then={self.then_step!r})"
        else:
            return f"Step({self.name!r}, type={self.step_type.value})"
