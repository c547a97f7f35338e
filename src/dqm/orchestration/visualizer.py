"""Workflow Visualizer — render workflow graphs as Mermaid diagrams or ASCII.

Generates visual representations of workflow graphs for documentation,
debugging, and the ``dqm show`` command. Edges come from
``Workflow.transitions()``, so the picture always matches what the runner
will actually do.

Architecture::

    Workflow
    ├── .steps
    ├── .start_at
    └── .transitions(step)
        │
        ▼
    visualize_mermaid(workflow)  → str (Mermaid graph TD)
    visualize_ascii(workflow)    → str (indented state list)

    Mermaid step shapes:
    - LAMBDA    → (name)        (rounded)
    - PASS      → [name]        (rectangle)
    - CHOICE    → {name}        (diamond)
    - WAIT      → [[name]]      (subroutine)
    - SUCCEED   → ([name])      (stadium)
    - FAIL      → ([name])      (stadium)
"""

from __future__ import annotations

from dqm.orchestration.step_types import Step, StepType
from dqm.orchestration.workflow import Workflow


# ---------------------------------------------------------------------------
# Mermaid rendering
# ---------------------------------------------------------------------------

def _mermaid_node(step: Step) -> str:
    """Return a Mermaid node definition for a step."""
    name = step.name

    if step.step_type == StepType.LAMBDA:
        return f'    {name}("{name}")'
    elif step.step_type == StepType.CHOICE:
        return f"    {name}{{{name}}}"
    elif step.step_type == StepType.WAIT:
        return f'    {name}[["{name}<br/>{step.duration_seconds:g}s"]]'
    elif step.step_type in (StepType.SUCCEED, StepType.FAIL):
        return f'    {name}(["{name}"])'
    else:
        return f'    {name}["{name}"]'


def _mermaid_style(step: Step) -> str | None:
    """Return optional Mermaid style for a step type."""
    styles = {
        StepType.LAMBDA: "fill:#f3e5f5,stroke:#7b1fa2",
        StepType.PASS: "fill:#e3f2fd,stroke:#1565c0",
        StepType.CHOICE: "fill:#fff3e0,stroke:#e65100",
        StepType.WAIT: "fill:#e8f5e9,stroke:#2e7d32",
        StepType.SUCCEED: "fill:#c8e6c9,stroke:#1b5e20",
        StepType.FAIL: "fill:#ffcdd2,stroke:#b71c1c",
    }
    style = styles.get(step.step_type)
    if style:
        return f"    style {step.name} {style}"
    return None


def visualize_mermaid(workflow: Workflow, *, direction: str = "TD",
                      include_styles: bool = True,
                      title: str | None = None) -> str:
    """Render a workflow as a Mermaid graph.

    Parameters
    ----------
    workflow
        The workflow to visualize.
    direction
        Graph direction: ``"TD"`` (top-down), ``"LR"`` (left-right).
    include_styles
        If True, include color styles for step types.
    title
        Optional title displayed above the graph.

    Returns
    -------
    str
        Complete Mermaid graph definition.
    """
    lines: list[str] = []

    if title:
        lines.append("---")
        lines.append(f"title: {title}")
        lines.append("---")

    lines.append(f"graph {direction}")
    lines.append(f"    __start__((start)) --> {workflow.start_at}")

    for step in workflow.steps:
        lines.append(_mermaid_node(step))

    lines.append("")

    for step in workflow.steps:
        targets = workflow.transitions(step)
        if step.step_type == StepType.CHOICE:
            labels = ["true", "false"]
            for label, target in zip(labels, targets):
                lines.append(f"    {step.name} -->|{label}| {target}")
        else:
            for target in targets:
                lines.append(f"    {step.name} --> {target}")

    if include_styles:
        styles = [s for s in (_mermaid_style(step) for step in workflow.steps) if s]
        if styles:
            lines.append("")
            lines.extend(styles)

    return "\n".join(lines)


# ---------------------------------------------------------------------------
# ASCII rendering
# ---------------------------------------------------------------------------

_TYPE_INDICATORS = {
    StepType.LAMBDA: "λ",
    StepType.PASS: "=",
    StepType.CHOICE: "?",
    StepType.WAIT: "⏳",
    StepType.SUCCEED: "✓",
    StepType.FAIL: "✗",
}


def visualize_ascii(workflow: Workflow) -> str:
    """Render a workflow as a list of states with their transitions.

    Example output::

        Workflow: beta-content-provider (start: StartCrawl)

          [λ] StartCrawl ───▶ GetCrawlStatus
          [?] CheckCrawlStatus ───▶ true: WaitForCrawl | false: GetExecutionParameters
          [✓] Succeeded
    """
    lines: list[str] = [f"Workflow: {workflow.name} (start: {workflow.start_at})", ""]

    for step in workflow.steps:
        ind = _TYPE_INDICATORS.get(step.step_type, "·")
        targets = workflow.transitions(step)
        detail = ""
        if step.step_type == StepType.CHOICE:
            parts = [f"{label}: {target}" for label, target in zip(["true", "false"], targets)]
            detail = " ───▶ " + " | ".join(parts)
        elif targets:
            detail = f" ───▶ {targets[0]}"
        if step.step_type == StepType.WAIT:
            detail = f" ({step.duration_seconds:g}s)" + detail
        if step.retry_policy:
            detail += f" [retry x{step.retry_policy.max_attempts}]"
        lines.append(f"  [{ind}] {step.name}{detail}")

    return "\n".join(lines)

