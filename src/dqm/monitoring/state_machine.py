"""Quality-check state machine for one content provider.

Manifesto:
    An upload is only "good" once the catalog knows about it, the quality
query has run against it, and the outcome has been published. This module
wires those steps into a ``Workflow`` graph; the generic
``WorkflowRunner`` does the walking.

ARCHITECTURE
────────────
::

    StartCrawl
      │
      ▼
    GetCrawlStatus ◀──────────── WaitForCrawl (crawl_poll_seconds)
      │                               ▲
      ▼                               │ RUNNING
    CheckCrawlStatus ─────────────────┘
      │ otherwise
      ▼
    GetExecutionParameters   key.split("/")[1] → [segment]
      │
      ▼
    StartQuery        ┐ retried on transient errors
    GetQueryResults   ┘ (2s, 4s, 8s, ...)
      │
      ▼
    ProcessResults    normalizer → normalized.results
      │
      ▼
    CheckQueryResults ── success is True ──▶ PublishSuccess ──▶ Succeeded
      │ otherwise
      ▼
    PublishFail ──▶ HandleFail ──▶ Failed (InvalidContentProviderFileError)

RESULTS DOCUMENT
────────────────
    crawl                        {state, name, database_name, target_path}
    query.execution_parameters   [segment]
    query.start_query_execution  {query_execution_id, output_location}
    query.get_query_results      {result_set}
    normalized                   {results: {column: value}}
    notify                       {status_code, subject}
    error                        {error_type, error_message}

Example::

    workflow = build_quality_workflow(provider, services, settings)
    result = WorkflowRunner().execute(workflow, params=event.to_dict())
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from dqm.core.errors import WorkflowError
from dqm.core.logging import get_logger
from dqm.core.settings import DqmSettings
from dqm.monitoring.normalizer import process_query_results
from dqm.monitoring.protocols import CrawlState, ProviderServices
from dqm.monitoring.providers import FAILED, SUCCEEDED, ContentProvider
from dqm.orchestration import (
    RetryPolicy,
    Step,
    StepResult,
    Workflow,
    WorkflowContext,
    WorkflowExecutionPolicy,
)

logger = get_logger(__name__)

INVALID_CONTENT_PROVIDER_FILE_ERROR = "InvalidContentProviderFileError"
INVALID_CONTENT_PROVIDER_FILE_MESSAGE = "Ingested content provider file failed query validation."

OBJECT_KEY_PATH = "detail.object.key"


class State(str, Enum):
    """State names of the quality-check workflow."""

    START_CRAWL = "StartCrawl"
    GET_CRAWL_STATUS = "GetCrawlStatus"
    CHECK_CRAWL_STATUS = "CheckCrawlStatus"
    WAIT_FOR_CRAWL = "WaitForCrawl"
    GET_EXECUTION_PARAMETERS = "GetExecutionParameters"
    START_QUERY = "StartQuery"
    GET_QUERY_RESULTS = "GetQueryResults"
    PROCESS_RESULTS = "ProcessResults"
    CHECK_QUERY_RESULTS = "CheckQueryResults"
    PUBLISH_SUCCESS = "PublishSuccess"
    SUCCEEDED = "Succeeded"
    PUBLISH_FAIL = "PublishFail"
    HANDLE_FAIL = "HandleFail"
    FAILED = "Failed"


class ResultPath:
    """Where each state writes into the results document."""

    CRAWL = "crawl"
    EXECUTION_PARAMETERS = "query.execution_parameters"
    START_QUERY_EXECUTION = "query.start_query_execution"
    GET_QUERY_RESULTS = "query.get_query_results"
    NORMALIZED = "normalized"
    NOTIFY = "notify"
    ERROR = "error"


# =============================================================================
# Choice predicates
# =============================================================================


def is_crawl_running(ctx: WorkflowContext) -> bool:
    """True while the last crawl status reported RUNNING."""
    return ctx.get_result(f"{ResultPath.CRAWL}.state") == CrawlState.RUNNING.value


def query_passed(ctx: WorkflowContext) -> bool:
    """True iff the normalized ``success`` column is exactly boolean true."""
    return ctx.get_result(f"{ResultPath.NORMALIZED}.results.success") is True


# =============================================================================
# Pass state parameters
# =============================================================================


def object_key(ctx: WorkflowContext) -> str:
    key = ctx.get_input(OBJECT_KEY_PATH)
    if not isinstance(key, str) or not key:
        raise WorkflowError(f"Execution input has no object key at {OBJECT_KEY_PATH}")
    return key


def execution_parameters(ctx: WorkflowContext) -> list[str]:
    """The second path segment of the uploaded key, as the query's only parameter."""
    key = object_key(ctx)
    segments = key.split("/")
    if len(segments) < 2:
        raise WorkflowError(
            f"Object key {key!r} has no second path segment to use as the query parameter"
        )
    return [segments[1]]


def invalid_file_error(ctx: WorkflowContext) -> dict[str, str]:
    return {
        "error_type": INVALID_CONTENT_PROVIDER_FILE_ERROR,
        "error_message": INVALID_CONTENT_PROVIDER_FILE_MESSAGE,
    }


# =============================================================================
# Task handlers
# =============================================================================


class QualityCheckSteps:
    """Task handlers bound to one provider and its collaborators."""

    def __init__(self, provider: ContentProvider, services: ProviderServices):
        self.provider = provider
        self.services = services

    def start_crawl(self, ctx: WorkflowContext, config: dict[str, Any]) -> StepResult:
        status = self.services.crawler.start()
        return StepResult.ok(output=status.to_dict())

    def get_crawl_status(self, ctx: WorkflowContext, config: dict[str, Any]) -> StepResult:
        status = self.services.crawler.get_status()
        logger.debug("crawl.status", provider=self.provider.path, state=status.state.value)
        return StepResult.ok(output=status.to_dict())

    def start_query(self, ctx: WorkflowContext, config: dict[str, Any]) -> StepResult:
        params = ctx.get_result(ResultPath.EXECUTION_PARAMETERS, [])
        execution = self.services.query.run(
            self.provider.query_string,
            params,
            self.provider.database_name,
        )
        return StepResult.ok(output=execution.to_dict())

    def get_query_results(self, ctx: WorkflowContext, config: dict[str, Any]) -> StepResult:
        query_execution_id = ctx.get_result(f"{ResultPath.START_QUERY_EXECUTION}.query_execution_id")
        result_set = self.services.query.fetch_results(query_execution_id)
        return StepResult.ok(output={"result_set": result_set})

    def process_results(self, ctx: WorkflowContext, config: dict[str, Any]) -> StepResult:
        event = {
            "ResultSet": ctx.get_result(f"{ResultPath.GET_QUERY_RESULTS}.result_set"),
            "ObjectKey": ctx.get_input(OBJECT_KEY_PATH),
        }
        return StepResult.ok(output=process_query_results(event))

    def publish_success(self, ctx: WorkflowContext, config: dict[str, Any]) -> StepResult:
        return self._publish(ctx, self.provider.success_topic, SUCCEEDED)

    def publish_fail(self, ctx: WorkflowContext, config: dict[str, Any]) -> StepResult:
        return self._publish(ctx, self.provider.fail_topic, FAILED)

    def _publish(self, ctx: WorkflowContext, topic: str, outcome: str) -> StepResult:
        subject = self.provider.subject(outcome)
        message = self.provider.notification.render(
            ctx.get_result(f"{ResultPath.NORMALIZED}.results", {})
        )
        published = self.services.notifier.publish(topic, subject, message)
        return StepResult.ok(output={"status_code": published.status_code, "subject": subject})


# =============================================================================
# Graph
# =============================================================================


def query_retry_policy(settings: DqmSettings) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=settings.query_retry_max_attempts,
        initial_delay_seconds=settings.query_retry_interval_seconds,
        backoff_multiplier=settings.query_retry_backoff_rate,
    )


def build_quality_workflow(
    provider: ContentProvider,
    services: ProviderServices,
    settings: DqmSettings,
) -> Workflow:
    """Build the quality-check workflow graph for ``provider``."""
    steps = QualityCheckSteps(provider, services)
    retry = query_retry_policy(settings)

    return Workflow(
        name=provider.path,
        description=f"Data quality monitoring for {provider.path} ({provider.stage})",
        start_at=State.START_CRAWL.value,
        execution_policy=WorkflowExecutionPolicy(
            timeout_seconds=settings.execution_timeout_seconds,
        ),
        steps=[
            Step.lambda_(
                State.START_CRAWL.value,
                steps.start_crawl,
                result_path=ResultPath.CRAWL,
            ),
            Step.lambda_(
                State.GET_CRAWL_STATUS.value,
                steps.get_crawl_status,
                result_path=ResultPath.CRAWL,
            ),
            Step.choice(
                State.CHECK_CRAWL_STATUS.value,
                condition=is_crawl_running,
                then_step=State.WAIT_FOR_CRAWL.value,
                else_step=State.GET_EXECUTION_PARAMETERS.value,
            ),
            Step.wait(
                State.WAIT_FOR_CRAWL.value,
                settings.crawl_poll_seconds,
                next_step=State.GET_CRAWL_STATUS.value,
            ),
            Step.pass_(
                State.GET_EXECUTION_PARAMETERS.value,
                parameters=execution_parameters,
                result_path=ResultPath.EXECUTION_PARAMETERS,
            ),
            Step.lambda_(
                State.START_QUERY.value,
                steps.start_query,
                result_path=ResultPath.START_QUERY_EXECUTION,
                retry_policy=retry,
            ),
            Step.lambda_(
                State.GET_QUERY_RESULTS.value,
                steps.get_query_results,
                result_path=ResultPath.GET_QUERY_RESULTS,
                retry_policy=retry,
            ),
            Step.lambda_(
                State.PROCESS_RESULTS.value,
                steps.process_results,
                result_path=ResultPath.NORMALIZED,
            ),
            Step.choice(
                State.CHECK_QUERY_RESULTS.value,
                condition=query_passed,
                then_step=State.PUBLISH_SUCCESS.value,
                else_step=State.PUBLISH_FAIL.value,
            ),
            Step.lambda_(
                State.PUBLISH_SUCCESS.value,
                steps.publish_success,
                result_path=ResultPath.NOTIFY,
                next_step=State.SUCCEEDED.value,
            ),
            Step.succeed(State.SUCCEEDED.value),
            Step.lambda_(
                State.PUBLISH_FAIL.value,
                steps.publish_fail,
                result_path=ResultPath.NOTIFY,
                next_step=State.HANDLE_FAIL.value,
            ),
            Step.pass_(
                State.HANDLE_FAIL.value,
                parameters=invalid_file_error,
                result_path=ResultPath.ERROR,
                next_step=State.FAILED.value,
            ),
            Step.fail(
                State.FAILED.value,
                error_path=f"{ResultPath.ERROR}.error_type",
                cause_path="",
            ),
        ],
    )
