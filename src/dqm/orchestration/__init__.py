"""DQM Orchestration — state-machine workflows with explicit transitions.

ARCHITECTURE
────────────
::

    Workflow (graph of Steps, start state, timeout)
      │
      ▼
    WorkflowRunner.execute(workflow, params) → WorkflowResult
      ├── lambda_ ─ task handler (ctx, config), optional RetryPolicy
      ├── pass_   ─ computed value written at result_path
      ├── choice  ─ condition(ctx) → then_step / else_step
      ├── wait    ─ sleep capped to the remaining budget
      ├── succeed ─ terminal SUCCEEDED
      └── fail    ─ terminal FAILED (error + cause from the results document)

    WorkflowContext ── immutable input + results document (copy-on-write)
    StepResult      ── ok / fail envelope with error category

MODULE MAP
──────────
  step_result.py      ─ StepResult
  step_types.py       ─ Step, StepType, RetryPolicy
  workflow.py         ─ Workflow, WorkflowExecutionPolicy
  workflow_context.py ─ WorkflowContext
  workflow_runner.py  ─ WorkflowRunner, WorkflowResult, WorkflowStatus
  visualizer.py       ─ Mermaid / ASCII rendering
  exceptions.py       ─ InvalidWorkflowError, StepNotFoundError
"""

from dqm.orchestration.exceptions import InvalidWorkflowError, StepNotFoundError
from dqm.core.errors import ErrorCategory
from dqm.orchestration.step_result import StepResult
from dqm.orchestration.step_types import RetryPolicy, Step, StepType
from dqm.orchestration.visualizer import visualize_ascii, visualize_mermaid
from dqm.orchestration.workflow import Workflow, WorkflowExecutionPolicy
from dqm.orchestration.workflow_context import WorkflowContext
from dqm.orchestration.workflow_runner import (
    StepExecution,
    WorkflowResult,
    WorkflowRunner,
    WorkflowStatus,
)

__all__ = [
    "ErrorCategory",
    "InvalidWorkflowError",
    "RetryPolicy",
    "Step",
    "StepExecution",
    "StepNotFoundError",
    "StepResult",
    "StepType",
    "Workflow",
    "WorkflowContext",
    "WorkflowExecutionPolicy",
    "WorkflowResult",
    "WorkflowRunner",
    "WorkflowStatus",
    "visualize_ascii",
    "visualize_mermaid",
]
