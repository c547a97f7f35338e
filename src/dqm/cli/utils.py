"""
CLI utility helpers — input loading and output formatting.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, NoReturn

import typer
from rich.console import Console
from rich.table import Table

from dqm.core.errors import DqmError
from dqm.orchestration import WorkflowResult, WorkflowStatus

console = Console()
err_console = Console(stderr=True)

STATUS_STYLES = {
    WorkflowStatus.SUCCEEDED: "bold green",
    WorkflowStatus.FAILED: "bold red",
    WorkflowStatus.TIMED_OUT: "bold yellow",
    WorkflowStatus.RUNNING: "cyan",
}


# ── Input helpers ────────────────────────────────────────────────────────


def load_json(path: Path) -> Any:
    """Read a JSON file, turning I/O and syntax problems into usage errors."""
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise typer.BadParameter(f"Cannot read {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise typer.BadParameter(f"{path} is not valid JSON: {e}") from e


def fail(error: DqmError | str) -> NoReturn:
    """Print an error and exit with status 1."""
    if isinstance(error, DqmError):
        err_console.print(f"[bold red]Error[/bold red] ({error.category.value}): {error.message}")
    else:
        err_console.print(f"[bold red]Error[/bold red]: {error}")
    raise typer.Exit(code=1)


# ── Output helpers ───────────────────────────────────────────────────────


def print_json(payload: Any) -> None:
    console.print_json(json.dumps(payload, default=str))


def print_dict(data: dict[str, Any], *, title: str = "") -> None:
    """Render a single dict as key-value pairs."""
    if title:
        console.print(f"[bold]{title}[/bold]")
    if not data:
        console.print("  [dim]No fields.[/dim]")
        return
    for k, v in data.items():
        console.print(f"  [cyan]{k}[/cyan]: {v}")


def print_workflow_result(result: WorkflowResult) -> None:
    """Render an execution as a status line plus a table of visited states."""
    style = STATUS_STYLES.get(result.status, "")
    console.print(
        f"[bold]{result.workflow_name}[/bold] run [dim]{result.run_id}[/dim]: "
        f"[{style}]{result.status.value.upper()}[/{style}]"
    )

    table = Table(title="States", show_lines=False, pad_edge=False)
    table.add_column("#", justify="right")
    table.add_column("state")
    table.add_column("status")
    table.add_column("attempts", justify="right")

    executions = iter(result.step_executions)
    pending = next(executions, None)
    for index, name in enumerate(result.visited_states, start=1):
        if pending is not None and pending.step_name == name:
            table.add_row(str(index), name, pending.status, str(pending.attempts))
            pending = next(executions, None)
        else:
            table.add_row(str(index), name, "terminal", "")
    console.print(table)

    results = result.context.get_result("normalized.results")
    if results:
        print_dict(results, title="Normalized results")

    if result.error_type:
        console.print(f"[bold red]{result.error_type}[/bold red] at {result.error_step}: {result.error}")
