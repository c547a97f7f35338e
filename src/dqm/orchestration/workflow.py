"""Workflow — named graph of states with explicit transitions.

Manifesto:
    The Workflow dataclass is the blueprint: it declares **what** states
exist and how they connect, but never **how** to run them (that's
WorkflowRunner's job). It is validated on construction, so a runner never
meets a transition to a state that does not exist.

ARCHITECTURE
────────────
::

    Workflow           ── states, start state, execution policy
      ├── steps[]        ── Step objects in declaration order
      ├── start_at       ── initial state (default: first step)
      └── execution_policy ─ overall timeout

    Transitions
      task / pass / wait  → next_step, else the following step
      choice              → then_step | else_step (else: following step)
      succeed / fail      → terminal

    WorkflowRunner.execute(workflow, params)   → WorkflowResult

Example::

    from dqm.orchestration import Workflow, Step

    workflow = Workflow(
        name="beta-content-provider",
        steps=[
            Step.lambda_("StartCrawl", start_crawl, result_path="crawl"),
            Step.succeed("Succeeded"),
        ],
        execution_policy=WorkflowExecutionPolicy(timeout_seconds=300),
    )
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Any

from dqm.orchestration.exceptions import InvalidWorkflowError
from dqm.orchestration.step_types import Step, StepType


@dataclass(frozen=True)
class WorkflowExecutionPolicy:
    """
    Controls how a workflow is executed.

    Attributes:
        timeout_seconds: Overall wall-clock budget for one execution
            (``None`` = unlimited)
    """

    timeout_seconds: float | None = None


@dataclass
class Workflow:
    """
    A named workflow graph.

    Attributes:
        name: Workflow name (the content provider path for quality checks)
        steps: States in declaration order
        start_at: Name of the initial state (default: first step)
        description: Human-readable description
        execution_policy: Overall timeout
    """

    name: str
    steps: list[Step]
    start_at: str | None = None
    description: str = ""
    execution_policy: WorkflowExecutionPolicy = field(default_factory=WorkflowExecutionPolicy)

    def __post_init__(self):
        """Validate workflow structure."""
        if not self.steps:
            raise InvalidWorkflowError(f"Workflow '{self.name}' has no steps")
        if self.start_at is None:
            self.start_at = self.steps[0].name
        self._validate_steps()

    def _validate_steps(self) -> None:
        """Validate step names are unique and references are valid."""
        step_names: set[str] = set()

        for step in self.steps:
            if step.name in step_names:
                raise InvalidWorkflowError(f"Duplicate step name: {step.name}", step.name)
            step_names.add(step.name)

        if self.start_at not in step_names:
            raise InvalidWorkflowError(f"Unknown start step: {self.start_at}")

        for step in self.steps:
            if step.is_terminal and step.next_step:
                raise InvalidWorkflowError(
                    f"Terminal step '{step.name}' cannot declare next_step", step.name
                )
            if step.next_step and step.next_step not in step_names:
                raise InvalidWorkflowError(
                    f"Step '{step.name}' references unknown next_step: {step.next_step}", step.name
                )
            if step.step_type == StepType.LAMBDA and step.handler is None:
                raise InvalidWorkflowError(f"Lambda step '{step.name}' has no handler", step.name)
            if step.step_type == StepType.CHOICE:
                if step.condition is None or not step.then_step:
                    raise InvalidWorkflowError(
                        f"Choice step '{step.name}' needs a condition and then_step", step.name
                    )
                if step.then_step not in step_names:
                    raise InvalidWorkflowError(
                        f"Choice step '{step.name}' references unknown then_step: {step.then_step}",
                        step.name,
                    )
                if step.else_step and step.else_step not in step_names:
                    raise InvalidWorkflowError(
                        f"Choice step '{step.name}' references unknown else_step: {step.else_step}",
                        step.name,
                    )
            if step.step_type == StepType.WAIT and (step.duration_seconds or 0) < 0:
                raise InvalidWorkflowError(
                    f"Wait step '{step.name}' has a negative duration", step.name
                )

    # =========================================================================
    # Accessors
    # =========================================================================

    def get_step(self, name: str) -> Step | None:
        """Get step by name."""
        for step in self.steps:
            if step.name == name:
                return step
        return None

    def step_names(self) -> list[str]:
        """Get ordered list of step names."""
        return [s.name for s in self.steps]

    def step_index(self, name: str) -> int:
        """Get index of step by name, or -1 if not found."""
        for i, step in enumerate(self.steps):
            if step.name == name:
                return i
        return -1

    def following_step(self, name: str) -> str | None:
        """Name of the step declared after ``name``, if any."""
        index = self.step_index(name)
        if 0 <= index < len(self.steps) - 1:
            return self.steps[index + 1].name
        return None

    # =========================================================================
    # Graph
    # =========================================================================

    def transitions(self, step: Step) -> list[str]:
        """Possible successors of ``step``, in branch order."""
        if step.is_terminal:
            return []
        if step.step_type == StepType.CHOICE:
            targets = [step.then_step, step.else_step or self.following_step(step.name)]
        else:
            targets = [step.next_step or self.following_step(step.name)]
        return [t for t in targets if t]

    def reachable_steps(self) -> list[str]:
        """Step names reachable from ``start_at`` (breadth-first order)."""
        seen: list[str] = []
        queue: deque[str] = deque([self.start_at])
        while queue:
            name = queue.popleft()
            if name in seen:
                continue
            seen.append(name)
            step = self.get_step(name)
            if step is not None:
                queue.extend(self.transitions(step))
        return seen

    def terminal_steps(self) -> list[str]:
        """Names of the succeed and fail states."""
        return [s.name for s in self.steps if s.is_terminal]

    # =========================================================================
    # Serialization
    # =========================================================================

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON output."""
        result: dict[str, Any] = {
            "name": self.name,
            "start_at": self.start_at,
            "steps": [s.to_dict() for s in self.steps],
        }

        if self.description:
            result["description"] = self.description
        if self.execution_policy.timeout_seconds:
            result["execution_policy"] = {
                "timeout_seconds": self.execution_policy.timeout_seconds,
            }

        return result

    def __repr__(self) -> str:
        return f"Workflow({self.name!r}, steps={len(self.steps)}, start_at={self.start_at!r})"
