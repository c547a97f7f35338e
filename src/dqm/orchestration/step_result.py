"""Outcome of one attempt at a workflow step.

Task handlers may return a ``StepResult`` directly or any plain value, which
``from_value`` wraps. The runner stores ``output`` at the step's result path,
retries failures whose ``error_category`` the step's retry policy lists, and
follows ``next_step`` when a choice step sets it.

Example::

    from dqm.orchestration import StepResult

    def start_query(ctx, config):
        execution = query_service.run(query, params, database)
        return StepResult.ok(output={"query_execution_id": execution.query_execution_id})
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from dqm.core.errors import ErrorCategory


@dataclass
class StepResult:
    """
    Result of a step attempt.

    Attributes:
        success: Whether the attempt succeeded
        output: Value written to the results document
        error: Failure message
        error_category: ``ErrorCategory`` value, matched against retry policies
        error_type: Error name reported on the workflow result
        next_step: Branch chosen by a choice step
    """

    success: bool
    output: Any = field(default_factory=dict)
    error: str | None = None
    error_category: ErrorCategory | str | None = None
    error_type: str | None = None
    next_step: str | None = None

    def __post_init__(self):
        if not self.success and not self.error:
            self.error = "Step failed without error message"
        if isinstance(self.error_category, ErrorCategory):
            self.error_category = self.error_category.value

    @classmethod
    def ok(cls, output: Any = None) -> StepResult:
        return cls(success=True, output=output if output is not None else {})

    @classmethod
    def fail(
        cls,
        error: str,
        category: ErrorCategory | str = ErrorCategory.INTERNAL,
        error_type: str | None = None,
    ) -> StepResult:
        return cls(success=False, error=error, error_category=category, error_type=error_type)

    @classmethod
    def from_value(cls, value: Any) -> StepResult:
        """Wrap a handler's return value.

        A ``StepResult`` passes through, ``None`` is an empty success,
        ``False`` is a failure, anything else becomes the output.
        """
        if isinstance(value, StepResult):
            return value
        if value is None:
            return cls.ok()
        if isinstance(value, bool):
            return cls.ok() if value else cls.fail("Step returned False")
        return cls.ok(output=value)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"success": self.success, "output": self.output}
        for key in ("error", "error_category", "error_type", "next_step"):
            value = getattr(self, key)
            if value:
                result[key] = value
        return result

    def with_next_step(self, next_step: str | None) -> StepResult:
        """Copy of this result routed to ``next_step``."""
        return StepResult(
            success=self.success,
            output=self.output,
            error=self.error,
            error_category=self.error_category,
            error_type=self.error_type,
            next_step=next_step,
        )

    def __repr__(self) -> str:
        status = "OK" if self.success else f"FAIL({self.error_category})"
        return f"StepResult({status}, next_step={self.next_step!r})"
