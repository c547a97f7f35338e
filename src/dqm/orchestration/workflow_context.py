"""
Workflow Context - Immutable context passed step-to-step.

Every step receives a WorkflowContext; the runner writes the step's
output into a NEW context (copy-on-write) before moving on. The original
context is never mutated, so a choice predicate or a failed retry always
sees a consistent snapshot.

Layout:
- ``params``: the execution input (the triggering upload event), never
  modified after creation
- ``results``: the results document, a nested dict that steps write into
  by dotted path (``"query.start_query_execution"``)
- ``metadata``: caller info (provider path, stage)

Example:
    from dqm.orchestration import WorkflowContext, StepResult

    def get_results(ctx: WorkflowContext, config: dict) -> StepResult:
        execution_id = ctx.get_result("query.start_query_execution.query_execution_id")
        return StepResult.ok(output={"result_set": service.fetch_results(execution_id)})
"""

from __future__ import annotations

import copy
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

_MISSING = object()


def _lookup(document: Any, path: str) -> Any:
    """Walk a dotted path through nested mappings, ``_MISSING`` if absent."""
    if not path:
        return document
    node = document
    for part in path.split("."):
        if not isinstance(node, Mapping) or part not in node:
            return _MISSING
        node = node[part]
    return node


@dataclass
class WorkflowContext:
    """
    Immutable context that flows through workflow steps.

    Attributes:
        run_id: Unique identifier for this workflow run
        workflow_name: Name of the workflow being executed
        params: Execution input
        results: Results document accumulated by the steps
        started_at: When this workflow run began
        metadata: Additional metadata
    """

    run_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    workflow_name: str = ""
    params: dict[str, Any] = field(default_factory=dict)
    results: dict[str, Any] = field(default_factory=dict)
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    metadata: dict[str, Any] = field(default_factory=dict)

    # =========================================================================
    # Factories
    # =========================================================================

    @classmethod
    def create(
        cls,
        workflow_name: str,
        params: dict[str, Any] | None = None,
        run_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> WorkflowContext:
        """Create a new workflow context for one execution."""
        return cls(
            run_id=run_id or str(uuid.uuid4()),
            workflow_name=workflow_name,
            params=copy.deepcopy(params or {}),
            metadata=dict(metadata or {}),
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WorkflowContext:
        """Deserialize from dictionary."""
        started_at = data.get("started_at")
        if isinstance(started_at, str):
            started_at = datetime.fromisoformat(started_at)

        return cls(
            run_id=data.get("run_id", str(uuid.uuid4())),
            workflow_name=data.get("workflow_name", ""),
            params=data.get("params", {}),
            results=data.get("results", {}),
            started_at=started_at or datetime.now(UTC),
            metadata=data.get("metadata", {}),
        )

    # =========================================================================
    # Accessors (read-only)
    # =========================================================================

    def get_param(self, key: str, default: Any = None) -> Any:
        """Get a top-level input value."""
        return self.params.get(key, default)

    def get_input(self, path: str, default: Any = None) -> Any:
        """Get a value from the execution input by dotted path."""
        value = _lookup(self.params, path)
        return default if value is _MISSING else value

    def get_result(self, path: str, default: Any = None) -> Any:
        """
        Get a value from the results document by dotted path.

        An empty path returns the whole document.
        """
        value = _lookup(self.results, path)
        return default if value is _MISSING else value

    def has_result(self, path: str) -> bool:
        """Check if the results document holds a value at ``path``."""
        return _lookup(self.results, path) is not _MISSING

    # =========================================================================
    # Mutation (returns new context)
    # =========================================================================

    def with_result(self, path: str, value: Any) -> WorkflowContext:
        """
        Create new context with ``value`` written at ``path``.

        Intermediate mappings are created as needed; an existing value at
        ``path`` is replaced.
        """
        if not path:
            raise ValueError("Result path must not be empty")
        new_results = copy.deepcopy(self.results)
        node = new_results
        *parents, leaf = path.split(".")
        for part in parents:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        node[leaf] = copy.deepcopy(value)
        return self._copy_with(results=new_results)

    def with_metadata(self, updates: dict[str, Any]) -> WorkflowContext:
        """Create new context with metadata merged."""
        new_metadata = {**self.metadata, **updates}
        return self._copy_with(metadata=new_metadata)

    def _copy_with(self, **overrides: Any) -> WorkflowContext:
        """Create a copy with specific fields overridden."""
        return WorkflowContext(
            run_id=overrides.get("run_id", self.run_id),
            workflow_name=overrides.get("workflow_name", self.workflow_name),
            params=overrides.get("params", copy.deepcopy(self.params)),
            results=overrides.get("results", copy.deepcopy(self.results)),
            started_at=overrides.get("started_at", self.started_at),
            metadata=overrides.get("metadata", copy.deepcopy(self.metadata)),
        )

    # =========================================================================
    # Serialization
    # =========================================================================

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "run_id": self.run_id,
            "workflow_name": self.workflow_name,
            "params": self.params,
            "results": self.results,
            "started_at": self.started_at.isoformat(),
            "metadata": self.metadata,
        }

    def __repr__(self) -> str:
        return (
            f"WorkflowContext(run_id={self.run_id!r}, "
            f"workflow={self.workflow_name!r}, "
            f"results={list(self.results.keys())})"
        )
