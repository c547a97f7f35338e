"""
Root Typer application for the dqm CLI.

Commands::

    dqm normalize EVENT_FILE              ResultSet event → typed record
    dqm show PROVIDER [--format ...]      Render a provider's state graph
    dqm run EVENT_FILE [--json]           Run executions against AWS
    dqm simulate PROVIDER KEY             Run one execution with in-memory services
"""

from __future__ import annotations

import sys
from enum import Enum
from pathlib import Path
from typing import Any

import typer
from typer import Typer

from dqm import __version__
from dqm.core.errors import DqmError
from dqm.core.logging import configure_logging
from dqm.core.settings import DqmSettings
from dqm.monitoring.events import UploadEvent
from dqm.monitoring.memory import (
    InMemoryCrawler,
    InMemoryNotifier,
    InMemoryQueryService,
    result_set_from_record,
)
from dqm.monitoring.monitor import DataQualityMonitor
from dqm.monitoring.normalizer import process_query_results
from dqm.monitoring.protocols import CrawlState, ProviderServices
from dqm.monitoring.providers import ContentProvider, load_provider
from dqm.monitoring.state_machine import build_quality_workflow
from dqm.orchestration import WorkflowRunner, visualize_ascii, visualize_mermaid
from dqm.cli.utils import console, fail, load_json, print_dict, print_json, print_workflow_result

app = Typer(
    name="dqm",
    help="dqm — data quality monitoring for content provider uploads.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


class GraphFormat(str, Enum):
    MERMAID = "mermaid"
    ASCII = "ascii"
    JSON = "json"


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"dqm-core {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    log_level: str | None = typer.Option(None, "--log-level", help="Override DQM_LOG_LEVEL."),
) -> None:
    """dqm CLI — normalize results, inspect and run quality-check workflows."""
    settings = DqmSettings()
    configure_logging(
        level=log_level or settings.log_level,
        json_format=settings.json_logs,
        stream=sys.stderr,
    )


# ── Helpers ──────────────────────────────────────────────────────────────


def _settings(resources_dir: Path | None, stage: str | None) -> DqmSettings:
    overrides: dict[str, Any] = {}
    if resources_dir is not None:
        overrides["resources_dir"] = resources_dir
    if stage is not None:
        overrides["stage"] = stage
    return DqmSettings().model_copy(update=overrides)


def _load_provider(path: str, settings: DqmSettings) -> ContentProvider:
    try:
        return load_provider(path, settings)
    except DqmError as e:
        fail(e)


def _simulated_services(
    provider: ContentProvider,
    settings: DqmSettings,
    result_set: dict[str, Any],
    crawl_polls: int,
) -> ProviderServices:
    states = [CrawlState.RUNNING] * crawl_polls + [CrawlState.READY]
    return ProviderServices(
        crawler=InMemoryCrawler(
            provider.crawler_name,
            states=states,
            database_name=provider.database_name,
            target_path=provider.crawl_target(settings.input_bucket),
        ),
        query=InMemoryQueryService(
            result_set=result_set,
            output_location=provider.query_output_location(settings.output_bucket),
        ),
        notifier=InMemoryNotifier(),
    )


# ── Commands ─────────────────────────────────────────────────────────────


@app.command("normalize")
def normalize(
    event_file: Path = typer.Argument(..., help="JSON file with ResultSet and ObjectKey"),
) -> None:
    """Normalize a raw two-row query result into a typed record."""
    print_json(process_query_results(load_json(event_file)))


@app.command("show")
def show(
    provider_path: str = typer.Argument(..., help="Content provider path"),
    fmt: GraphFormat = typer.Option(GraphFormat.ASCII, "--format", "-f"),
    resources_dir: Path | None = typer.Option(None, "--resources-dir", "-r"),
    stage: str | None = typer.Option(None, "--stage"),
) -> None:
    """Show a provider's quality-check state graph and resource names."""
    settings = _settings(resources_dir, stage)
    provider = _load_provider(provider_path, settings)
    services = _simulated_services(provider, settings, {}, crawl_polls=0)
    workflow = build_quality_workflow(provider, services, settings)

    if fmt == GraphFormat.MERMAID:
        console.print(visualize_mermaid(workflow, title=provider.path), markup=False)
    elif fmt == GraphFormat.JSON:
        print_json(workflow.to_dict())
    else:
        console.print(visualize_ascii(workflow), markup=False)
        print_dict(
            {
                "crawler": provider.crawler_name,
                "classifier": provider.classifier_name,
                "workgroup": provider.workgroup_name,
                "table": f"{provider.database_name}.{provider.table_name}",
                "success_topic": provider.success_topic,
                "fail_topic": provider.fail_topic,
            },
            title="Resources",
        )


@app.command("run")
def run(
    event_file: Path = typer.Argument(..., help="JSON upload event, or a list of events"),
    resources_dir: Path | None = typer.Option(None, "--resources-dir", "-r"),
    stage: str | None = typer.Option(None, "--stage"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Run quality-check executions for upload events against AWS."""
    settings = _settings(resources_dir, stage)
    payload = load_json(event_file)
    events = payload if isinstance(payload, list) else [payload]

    try:
        monitor = DataQualityMonitor.from_settings(settings)
    except DqmError as e:
        fail(e)

    results = monitor.handle_many(events)
    _report(results, json_out)


@app.command("simulate")
def simulate(
    provider_path: str = typer.Argument(..., help="Content provider path"),
    object_key: str = typer.Argument(..., help="Key of the uploaded object"),
    result_file: Path | None = typer.Option(
        None,
        "--result-file",
        help="Flat JSON record (or raw ResultSet) the query should return",
    ),
    crawl_polls: int = typer.Option(1, "--crawl-polls", min=0, help="RUNNING statuses before READY"),
    resources_dir: Path | None = typer.Option(None, "--resources-dir", "-r"),
    stage: str | None = typer.Option(None, "--stage"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Run one execution end to end with in-memory services and no waiting."""
    settings = _settings(resources_dir, stage)
    provider = _load_provider(provider_path, settings)

    record = load_json(result_file) if result_file is not None else {}
    if not isinstance(record, dict):
        raise typer.BadParameter("Result file must contain a JSON object")
    result_set = record if "Rows" in record else result_set_from_record(record)
    services = _simulated_services(provider, settings, result_set, crawl_polls)

    monitor = DataQualityMonitor(
        settings,
        [provider],
        lambda _: services,
        runner=WorkflowRunner(sleep=lambda seconds: None),
    )
    event = UploadEvent.for_object(settings.input_bucket, object_key)
    result = monitor.handle(event)
    if result is None:
        fail(f"Key '{object_key}' does not match provider '{provider.path}'")

    if not json_out:
        for message in services.notifier.messages:
            console.print(f"[bold]{message.channel}[/bold] {message.subject}")
            console.print(f"  {message.message}", markup=False)
    _report([result], json_out)


def _report(results: list[Any], json_out: bool) -> None:
    if json_out:
        print_json([r.to_dict() if r is not None else None for r in results])
    else:
        for result in results:
            if result is None:
                console.print("[dim]Event matched no provider; skipped.[/dim]")
            else:
                print_workflow_result(result)

    if any(r is not None and not r.succeeded for r in results):
        raise typer.Exit(code=1)
