"""Orchestration exceptions — structured error hierarchy.

All orchestration exceptions inherit from ``dqm.core.errors.OrchestrationError``
so that callers can catch the entire family with a single ``except`` clause.

Hierarchy::

    OrchestrationError  (from dqm.core.errors)
      ├── InvalidWorkflowError   ── workflow graph is malformed
      └── StepNotFoundError      ── transition names an unknown step
"""

from dqm.core.errors import OrchestrationError


class InvalidWorkflowError(OrchestrationError, ValueError):
    """Raised when a workflow definition fails validation."""

    def __init__(self, message: str, step_name: str | None = None):
        self.step_name = step_name
        super().__init__(message)


class StepNotFoundError(OrchestrationError):
    """Raised when a transition references a step that does not exist."""

    def __init__(self, step_name: str, workflow_name: str | None = None):
        self.step_name = step_name
        self.workflow_name = workflow_name
        where = f" in workflow '{workflow_name}'" if workflow_name else ""
        super().__init__(f"Step not found{where}: {step_name}")
