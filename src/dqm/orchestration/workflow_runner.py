"""Workflow Runner — walks a workflow graph with context passing.

The WorkflowRunner takes a :class:`~dqm.orchestration.workflow.Workflow`
and executes one state at a time, threading the results document between
states. It handles:

- **Lambda** (task) steps with optional retry/backoff
- **Pass** steps (computed values)
- **Choice** steps (conditional branching)
- **Wait** steps (sleep capped to the remaining budget)
- **Succeed** / **Fail** terminal states
- The overall execution timeout

Sleep and clock are injectable so tests can drive waits and timeouts
without real time passing.

Example::

    from dqm.orchestration import WorkflowRunner

    runner = WorkflowRunner()
    result = runner.execute(workflow, params=upload_event)

    if result.status == WorkflowStatus.SUCCEEDED:
        print(f"Passed after {len(result.visited_states)} states")
    else:
        print(f"{result.status.value} at {result.error_step}: {result.error_type}")
"""

from __future__ import annotations

import copy
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from dqm.core.errors import (
    RETRYABLE_CATEGORIES,
    DqmError,
    ErrorCategory,
    ServiceTimeoutError,
    is_retryable,
)
from dqm.core.logging import LogContext, get_logger
from dqm.execution.retry import NoRetry, RetryContext
from dqm.execution.timeout import DeadlineContext, TimeoutExpired
from dqm.orchestration.exceptions import StepNotFoundError
from dqm.orchestration.step_result import StepResult
from dqm.orchestration.step_types import Step, StepType
from dqm.orchestration.workflow import Workflow
from dqm.orchestration.workflow_context import WorkflowContext

logger = get_logger(__name__)

WORKFLOW_TIMEOUT_ERROR = "WorkflowTimeoutError"
STEP_FAILED_ERROR = "StepFailedError"


def failure_category(error: Exception) -> ErrorCategory:
    """Category recorded for a step that raised ``error``.

    Retryable errors land in TRANSIENT or TIMEOUT, everything else in a
    category no retry policy matches.
    """
    category = error.category if isinstance(error, DqmError) else ErrorCategory.INTERNAL
    if not is_retryable(error):
        return ErrorCategory.INTERNAL if category in RETRYABLE_CATEGORIES else category
    if category in RETRYABLE_CATEGORIES:
        return category
    if isinstance(error, (ServiceTimeoutError, TimeoutError)):
        return ErrorCategory.TIMEOUT
    return ErrorCategory.TRANSIENT


class WorkflowStatus(str, Enum):
    """Overall status of workflow execution."""

    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


@dataclass
class StepExecution:
    """Result of executing a single state."""

    step_name: str
    step_type: str
    status: str  # "completed", "failed"
    started_at: datetime | None = None
    completed_at: datetime | None = None
    result: StepResult | None = None
    error: str | None = None
    attempts: int = 1
    retry_delays: list[float] = field(default_factory=list)

    @property
    def duration_seconds(self) -> float | None:
        """Calculate step duration."""
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def to_dict(self) -> dict[str, Any]:
        """Serialize for logging/storage."""
        return {
            "step_name": self.step_name,
            "step_type": self.step_type,
            "status": self.status,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_seconds": self.duration_seconds,
            "attempts": self.attempts,
            "retry_delays": self.retry_delays,
            "error": self.error,
            "output": self.result.output if self.result else None,
        }


@dataclass
class WorkflowResult:
    """Result of executing a workflow.

    ``error_type`` and ``cause`` are set for FAILED and TIMED_OUT runs.
    For a fail state the cause is whatever its ``cause_path`` selects
    (often the whole results document); for a hard step failure it is
    the error message.
    """

    workflow_name: str
    run_id: str
    status: WorkflowStatus
    context: WorkflowContext
    started_at: datetime
    completed_at: datetime | None = None
    step_executions: list[StepExecution] = field(default_factory=list)
    visited_states: list[str] = field(default_factory=list)
    error_step: str | None = None
    error: str | None = None
    error_type: str | None = None
    cause: Any = None

    @property
    def duration_seconds(self) -> float | None:
        """Total workflow duration."""
        if self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    @property
    def succeeded(self) -> bool:
        return self.status == WorkflowStatus.SUCCEEDED

    @property
    def completed_steps(self) -> list[str]:
        """List of successfully completed step names."""
        return [s.step_name for s in self.step_executions if s.status == "completed"]

    @property
    def failed_steps(self) -> list[str]:
        """List of failed step names."""
        return [s.step_name for s in self.step_executions if s.status == "failed"]

    def step_execution(self, name: str) -> StepExecution | None:
        """Most recent execution of the named step."""
        for execution in reversed(self.step_executions):
            if execution.step_name == name:
                return execution
        return None

    def to_dict(self) -> dict[str, Any]:
        """Serialize for logging/storage."""
        return {
            "workflow_name": self.workflow_name,
            "run_id": self.run_id,
            "status": self.status.value,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_seconds": self.duration_seconds,
            "visited_states": self.visited_states,
            "error_step": self.error_step,
            "error": self.error,
            "error_type": self.error_type,
            "cause": self.cause,
            "results": self.context.results,
            "step_executions": [s.to_dict() for s in self.step_executions],
        }


class WorkflowRunner:
    """Executes workflow graphs one state at a time.

    Transition order after a non-terminal state: the result's
    ``next_step`` (set by choice states), then the step's own
    ``next_step``, then the following step in declaration order. Running
    off the end of the step list ends the run as SUCCEEDED.
    """

    def __init__(
        self,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialise the workflow runner.

        Args:
            sleep: Blocking sleep used by wait states and retry backoff
            clock: Monotonic clock used for the execution deadline
        """
        self._sleep = sleep
        self._clock = clock

    def execute(
        self,
        workflow: Workflow,
        params: dict[str, Any] | None = None,
        context: WorkflowContext | None = None,
        run_id: str | None = None,
    ) -> WorkflowResult:
        """
        Execute a workflow.

        Args:
            workflow: The workflow to execute
            params: Execution input
            context: Start from an existing context instead of ``params``
            run_id: Explicit run id (generated if not provided)

        Returns:
            WorkflowResult with final status and context
        """
        if context is None:
            context = WorkflowContext.create(
                workflow_name=workflow.name,
                params=params,
                run_id=run_id,
            )

        with LogContext(run_id=context.run_id, workflow=workflow.name):
            return self._run(workflow, context)

    def _run(self, workflow: Workflow, context: WorkflowContext) -> WorkflowResult:
        started_at = datetime.now(UTC)
        timeout = workflow.execution_policy.timeout_seconds
        deadline = (
            DeadlineContext.start(timeout, operation=workflow.name, clock=self._clock)
            if timeout
            else None
        )

        result = WorkflowResult(
            workflow_name=workflow.name,
            run_id=context.run_id,
            status=WorkflowStatus.RUNNING,
            context=context,
            started_at=started_at,
        )

        logger.info(
            "workflow.start",
            workflow=workflow.name,
            run_id=context.run_id,
            start_at=workflow.start_at,
            timeout_seconds=timeout,
        )

        current: str | None = workflow.start_at
        while current is not None:
            if deadline is not None and deadline.is_expired():
                self._time_out(result, deadline)
                break

            step = workflow.get_step(current)
            if step is None:
                raise StepNotFoundError(current, workflow.name)
            result.visited_states.append(step.name)

            if step.step_type == StepType.SUCCEED:
                result.status = WorkflowStatus.SUCCEEDED
                break
            if step.step_type == StepType.FAIL:
                self._fail_state(result, step, context)
                break

            step_exec = self._execute_step(step, context, workflow, deadline)
            result.step_executions.append(step_exec)

            if deadline is not None and deadline.is_expired():
                self._time_out(result, deadline)
                break

            if step_exec.status == "failed":
                step_result = step_exec.result
                result.status = WorkflowStatus.FAILED
                result.error_step = step.name
                result.error = step_exec.error
                result.error_type = (step_result.error_type if step_result else None) or STEP_FAILED_ERROR
                result.cause = step_exec.error
                break

            step_result = step_exec.result
            if step.result_path and step.step_type in (StepType.LAMBDA, StepType.PASS):
                context = context.with_result(step.result_path, step_result.output)
                result.context = context

            current = (
                step_result.next_step
                or step.next_step
                or workflow.following_step(step.name)
            )
            if current is None:
                result.status = WorkflowStatus.SUCCEEDED

        result.context = context
        result.completed_at = datetime.now(UTC)

        log = logger.info if result.status == WorkflowStatus.SUCCEEDED else logger.warning
        log(
            "workflow.complete",
            workflow=workflow.name,
            run_id=context.run_id,
            status=result.status.value,
            duration_seconds=result.duration_seconds,
            states=len(result.visited_states),
            error_step=result.error_step,
            error_type=result.error_type,
        )

        return result

    # =========================================================================
    # Terminal handling
    # =========================================================================

    def _time_out(self, result: WorkflowResult, deadline: DeadlineContext) -> None:
        expired = TimeoutExpired(
            timeout=deadline.timeout_seconds,
            elapsed=deadline.elapsed,
            operation=deadline.operation,
        )
        result.status = WorkflowStatus.TIMED_OUT
        result.error_step = result.visited_states[-1] if result.visited_states else None
        result.error = str(expired)
        result.error_type = WORKFLOW_TIMEOUT_ERROR
        result.cause = str(expired)
        logger.error(
            "workflow.timeout",
            workflow=result.workflow_name,
            timeout_seconds=deadline.timeout_seconds,
            elapsed_seconds=deadline.elapsed,
            last_state=result.error_step,
        )

    def _fail_state(self, result: WorkflowResult, step: Step, context: WorkflowContext) -> None:
        error = step.error
        if step.error_path:
            error = context.get_result(step.error_path, error)
        cause = None
        if step.cause_path is not None:
            cause = copy.deepcopy(context.get_result(step.cause_path))

        result.status = WorkflowStatus.FAILED
        result.error_step = step.name
        result.error_type = error or STEP_FAILED_ERROR
        result.error = error
        result.cause = cause

    # =========================================================================
    # Step execution
    # =========================================================================

    def _execute_step(
        self,
        step: Step,
        context: WorkflowContext,
        workflow: Workflow,
        deadline: DeadlineContext | None,
    ) -> StepExecution:
        """Execute a single non-terminal step."""
        started_at = datetime.now(UTC)

        logger.debug(
            "step.start",
            workflow=workflow.name,
            step=step.name,
            step_type=step.step_type.value,
        )

        retry = RetryContext(step.retry_policy.to_strategy() if step.retry_policy else NoRetry())

        while True:
            retry.record_attempt()
            result = self._dispatch(step, context, deadline)

            if result.success or not self._is_retryable(step, result):
                break

            if not retry.should_retry():
                logger.error(
                    "step.retries_exhausted",
                    step=step.name,
                    attempts=retry.attempts,
                    error=result.error,
                )
                break

            delay = retry.next_delay()
            if deadline is not None:
                delay = deadline.cap(delay)
            retry.record_retry(delay)
            logger.warning(
                "step.retry",
                step=step.name,
                attempt=retry.attempts,
                delay_seconds=delay,
                error_type=result.error_type,
                error=result.error,
            )
            self._sleep(delay)
            if deadline is not None and deadline.is_expired():
                break

        completed_at = datetime.now(UTC)
        status = "completed" if result.success else "failed"

        if result.success:
            logger.debug(
                "step.complete",
                workflow=workflow.name,
                step=step.name,
                status=status,
                attempts=retry.attempts,
                duration_seconds=(completed_at - started_at).total_seconds(),
            )
        else:
            logger.error(
                "step.failed",
                workflow=workflow.name,
                step=step.name,
                error_type=result.error_type,
                error_category=result.error_category,
                error=result.error,
                attempts=retry.attempts,
            )

        return StepExecution(
            step_name=step.name,
            step_type=step.step_type.value,
            status=status,
            started_at=started_at,
            completed_at=completed_at,
            result=result,
            error=result.error if not result.success else None,
            attempts=retry.attempts,
            retry_delays=list(retry.delays),
        )

    @staticmethod
    def _is_retryable(step: Step, result: StepResult) -> bool:
        if step.retry_policy is None:
            return False
        return result.error_category in step.retry_policy.retryable_categories

    def _dispatch(
        self,
        step: Step,
        context: WorkflowContext,
        deadline: DeadlineContext | None,
    ) -> StepResult:
        """Run one attempt of a step, converting exceptions into failed results."""
        try:
            if step.step_type == StepType.LAMBDA:
                return self._execute_lambda(step, context)
            elif step.step_type == StepType.PASS:
                return self._execute_pass(step, context)
            elif step.step_type == StepType.CHOICE:
                return self._execute_choice(step, context)
            elif step.step_type == StepType.WAIT:
                return self._execute_wait(step, deadline)
            else:
                return StepResult.fail(
                    f"Unsupported step type: {step.step_type}",
                    category=ErrorCategory.CONFIG,
                )
        except Exception as e:
            logger.error(
                "step.error",
                step=step.name,
                error_type=type(e).__name__,
                error=str(e),
            )
            return StepResult.fail(
                error=str(e) or type(e).__name__,
                category=failure_category(e),
                error_type=type(e).__name__,
            )

    def _execute_lambda(self, step: Step, context: WorkflowContext) -> StepResult:
        """Execute a task step (inline function)."""
        raw = step.handler(context, step.config)
        return StepResult.from_value(raw)

    def _execute_pass(self, step: Step, context: WorkflowContext) -> StepResult:
        """Execute a pass step (static value or function of the context)."""
        if callable(step.parameters):
            value = step.parameters(context)
        else:
            value = copy.deepcopy(step.parameters)
        return StepResult.ok(output=value)

    def _execute_choice(self, step: Step, context: WorkflowContext) -> StepResult:
        """Execute a choice step (conditional branch)."""
        condition_result = bool(step.condition(context))

        if condition_result:
            next_step = step.then_step
            branch = "then"
        else:
            next_step = step.else_step
            branch = "else"

        logger.debug(
            "choice.evaluated",
            step=step.name,
            result=condition_result,
            branch=branch,
            next_step=next_step,
        )

        return StepResult.ok(
            output={"condition_result": condition_result, "branch": branch},
        ).with_next_step(next_step)

    def _execute_wait(self, step: Step, deadline: DeadlineContext | None) -> StepResult:
        """Execute a wait step, never sleeping past the deadline."""
        duration = step.duration_seconds or 0
        if deadline is not None:
            duration = deadline.cap(duration)

        if duration > 0:
            self._sleep(duration)

        return StepResult.ok(output={"waited_seconds": duration})
