"""AWS implementations of the collaborator protocols (boto3).

    GlueCrawlerService      ─ start_crawler / get_crawler
    AthenaQueryService      ─ start_query_execution, polls get_query_execution
                              until terminal or max_wait_seconds, get_query_results
    SnsNotificationService  ─ publish to a topic (name or ARN)

botocore failures are translated into the DQM error taxonomy so the
workflow runner can tell "retry with backoff" from "fail the execution":

    throttling codes, 5xx service exceptions   → ThrottlingError   (transient)
    request / connect / read timeouts          → ServiceTimeoutError (transient)
    endpoint connection failures               → NetworkError      (transient)
    other BotoCoreError (generic SDK error)    → TransientError
    missing credentials / region               → ConfigError
    any other ClientError                      → SourceError (or NotificationError)
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any

import boto3
from botocore.config import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectTimeoutError,
    EndpointConnectionError,
    NoCredentialsError,
    NoRegionError,
    ReadTimeoutError,
)

from dqm.core.errors import (
    ConfigError,
    DqmError,
    MissingConfigError,
    NetworkError,
    NotificationError,
    QueryExecutionError,
    ServiceTimeoutError,
    SourceError,
    ThrottlingError,
    TransientError,
)
from dqm.core.logging import get_logger
from dqm.core.settings import DqmSettings
from dqm.monitoring.protocols import (
    CrawlState,
    CrawlStatus,
    ProviderServices,
    PublishResult,
    QueryExecution,
)
from dqm.monitoring.providers import ContentProvider

logger = get_logger(__name__)

THROTTLING_CODES = frozenset({
    "Throttling",
    "ThrottlingException",
    "ThrottledException",
    "TooManyRequestsException",
    "RequestLimitExceeded",
    "ProvisionedThroughputExceededException",
})
SERVICE_ERROR_CODES = frozenset({
    "InternalFailure",
    "InternalServerException",
    "InternalServiceException",
    "InternalServerError",
    "ServiceUnavailable",
    "ServiceUnavailableException",
    "ServiceException",
})
TIMEOUT_CODES = frozenset({
    "RequestTimeout",
    "RequestTimeoutException",
    "OperationTimeoutException",
})

CRAWLER_RUNNING = "CrawlerRunningException"

QUERY_SUCCEEDED = "SUCCEEDED"
QUERY_FAILED_STATES = frozenset({"FAILED", "CANCELLED"})

# SDK retries are off; step retry policies own backoff.
DEFAULT_CLIENT_CONFIG = Config(
    connect_timeout=10,
    read_timeout=60,
    retries={"total_max_attempts": 1, "mode": "standard"},
)


# =============================================================================
# Error translation
# =============================================================================


def translate_client_error(
    error: ClientError,
    service: str,
    operation: str,
    hard_error: type[DqmError] = SourceError,
) -> DqmError:
    """Map a botocore ``ClientError`` onto the DQM error taxonomy."""
    details = error.response.get("Error", {})
    code = details.get("Code", "")
    message = details.get("Message") or str(error)
    status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")

    if code in THROTTLING_CODES:
        translated: DqmError = ThrottlingError(f"{service} {operation} throttled: {message}", cause=error)
    elif code in TIMEOUT_CODES:
        translated = ServiceTimeoutError(f"{service} {operation} timed out: {message}", cause=error)
    elif code in SERVICE_ERROR_CODES or (status is not None and status >= 500):
        translated = ThrottlingError(f"{service} {operation} service error: {message}", cause=error)
    else:
        translated = hard_error(f"{service} {operation} failed: {message}", cause=error)

    return translated.with_context(
        service=service,
        operation=operation,
        error_code=code or None,
        http_status=status,
    )


def translate_botocore_error(error: BotoCoreError, service: str, operation: str) -> DqmError:
    """Map a client-side botocore failure onto the DQM error taxonomy."""
    if isinstance(error, (ConnectTimeoutError, ReadTimeoutError)):
        translated: DqmError = ServiceTimeoutError(f"{service} {operation} timed out: {error}", cause=error)
    elif isinstance(error, EndpointConnectionError):
        translated = NetworkError(f"{service} {operation} unreachable: {error}", cause=error)
    elif isinstance(error, (NoCredentialsError, NoRegionError)):
        translated = ConfigError(f"{service} {operation} is not configured: {error}", cause=error)
    else:
        translated = TransientError(f"{service} {operation} SDK error: {error}", cause=error)
    return translated.with_context(service=service, operation=operation)


@contextmanager
def aws_errors(
    service: str,
    operation: str,
    hard_error: type[DqmError] = SourceError,
) -> Iterator[None]:
    """Translate botocore exceptions raised inside the block."""
    try:
        yield
    except ClientError as e:
        raise translate_client_error(e, service, operation, hard_error) from e
    except BotoCoreError as e:
        raise translate_botocore_error(e, service, operation) from e


# =============================================================================
# Glue
# =============================================================================


class GlueCrawlerService:
    """Catalog crawler backed by AWS Glue."""

    def __init__(self, crawler_name: str, client: Any = None, region: str = "us-east-1"):
        self.crawler_name = crawler_name
        self.client = client or boto3.client("glue", region_name=region, config=DEFAULT_CLIENT_CONFIG)

    def start(self) -> CrawlStatus:
        try:
            with aws_errors("glue", "StartCrawler"):
                self.client.start_crawler(Name=self.crawler_name)
        except SourceError as e:
            if e.context.error_code != CRAWLER_RUNNING:
                raise
            logger.info("glue.crawler_already_running", crawler=self.crawler_name)
        else:
            logger.info("glue.crawler_started", crawler=self.crawler_name)
        return CrawlStatus(state=CrawlState.RUNNING, name=self.crawler_name)

    def get_status(self) -> CrawlStatus:
        with aws_errors("glue", "GetCrawler"):
            crawler = self.client.get_crawler(Name=self.crawler_name)["Crawler"]

        targets = crawler.get("Targets", {}).get("S3Targets") or [{}]
        status = CrawlStatus(
            state=CrawlState(crawler["State"]),
            name=crawler.get("Name", self.crawler_name),
            database_name=crawler.get("DatabaseName"),
            target_path=targets[0].get("Path"),
        )
        logger.debug("glue.crawler_status", crawler=self.crawler_name, state=status.state.value)
        return status


# =============================================================================
# Athena
# =============================================================================


class AthenaQueryService:
    """Query engine backed by Athena, bound to one workgroup.

    ``run`` blocks until the query reaches a terminal state, polling every
    ``poll_seconds``. With ``max_wait_seconds`` set, a query still QUEUED or
    RUNNING after that long raises ``ServiceTimeoutError``.
    """

    def __init__(
        self,
        workgroup: str,
        client: Any = None,
        region: str = "us-east-1",
        poll_seconds: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        max_wait_seconds: float | None = None,
    ):
        self.workgroup = workgroup
        self.poll_seconds = poll_seconds
        self.max_wait_seconds = max_wait_seconds
        self._sleep = sleep
        self._clock = clock
        self.client = client or boto3.client("athena", region_name=region, config=DEFAULT_CLIENT_CONFIG)

    def run(self, query_string: str, params: list[str], database_name: str) -> QueryExecution:
        request: dict[str, Any] = {
            "QueryString": query_string,
            "QueryExecutionContext": {"Database": database_name},
            "WorkGroup": self.workgroup,
        }
        if params:
            request["ExecutionParameters"] = list(params)

        with aws_errors("athena", "StartQueryExecution"):
            query_execution_id = self.client.start_query_execution(**request)["QueryExecutionId"]

        logger.info(
            "athena.query_started",
            workgroup=self.workgroup,
            query_execution_id=query_execution_id,
            params=list(params),
        )

        started = self._clock()
        while True:
            with aws_errors("athena", "GetQueryExecution"):
                execution = self.client.get_query_execution(
                    QueryExecutionId=query_execution_id
                )["QueryExecution"]

            status = execution.get("Status", {})
            state = status.get("State")
            if state == QUERY_SUCCEEDED:
                output_location = execution.get("ResultConfiguration", {}).get("OutputLocation")
                logger.info(
                    "athena.query_succeeded",
                    query_execution_id=query_execution_id,
                    output_location=output_location,
                )
                return QueryExecution(
                    query_execution_id=query_execution_id,
                    output_location=output_location,
                )
            if state in QUERY_FAILED_STATES:
                reason = status.get("StateChangeReason", "no reason given")
                raise QueryExecutionError(
                    f"Query {query_execution_id} {state}: {reason}",
                    query_execution_id=query_execution_id,
                    state=state,
                ).with_context(service="athena", operation="GetQueryExecution")

            delay = self.poll_seconds
            if self.max_wait_seconds is not None:
                waited = self._clock() - started
                if waited >= self.max_wait_seconds:
                    logger.error(
                        "athena.query_wait_exceeded",
                        query_execution_id=query_execution_id,
                        state=state,
                        waited_seconds=waited,
                    )
                    raise ServiceTimeoutError(
                        f"Query {query_execution_id} still {state} after {waited:.0f}s",
                    ).with_context(
                        service="athena",
                        operation="GetQueryExecution",
                        query_execution_id=query_execution_id,
                        state=state,
                    )
                delay = min(delay, self.max_wait_seconds - waited)
            self._sleep(delay)

    def fetch_results(self, query_execution_id: str) -> dict[str, Any]:
        with aws_errors("athena", "GetQueryResults"):
            response = self.client.get_query_results(QueryExecutionId=query_execution_id)
        return response["ResultSet"]


# =============================================================================
# SNS
# =============================================================================


class SnsNotificationService:
    """Publishes to SNS topics, addressed by ARN or by topic name."""

    def __init__(
        self,
        region: str = "us-east-1",
        account_id: str | None = None,
        client: Any = None,
    ):
        self.region = region
        self.account_id = account_id
        self.client = client or boto3.client("sns", region_name=region, config=DEFAULT_CLIENT_CONFIG)

    def topic_arn(self, channel: str) -> str:
        if channel.startswith("arn:"):
            return channel
        if not self.account_id:
            raise MissingConfigError(
                "account_id",
                f"Cannot build an ARN for topic '{channel}' without DQM_ACCOUNT_ID",
            )
        return f"arn:aws:sns:{self.region}:{self.account_id}:{channel}"

    def publish(self, channel: str, subject: str, message: str) -> PublishResult:
        topic_arn = self.topic_arn(channel)
        with aws_errors("sns", "Publish", hard_error=NotificationError):
            response = self.client.publish(TopicArn=topic_arn, Subject=subject, Message=message)

        result = PublishResult(
            status_code=response.get("ResponseMetadata", {}).get("HTTPStatusCode", 200),
            message_id=response.get("MessageId"),
        )
        logger.info(
            "sns.published",
            topic_arn=topic_arn,
            subject=subject,
            status_code=result.status_code,
            message_id=result.message_id,
        )
        return result


# =============================================================================
# Factory
# =============================================================================


def aws_services(settings: DqmSettings) -> Callable[[ContentProvider], ProviderServices]:
    """Return a factory that wires boto3-backed services for a provider.

    Clients are created once and shared across providers.
    """
    session = boto3.Session(region_name=settings.region)
    glue = session.client("glue", config=DEFAULT_CLIENT_CONFIG)
    athena = session.client("athena", config=DEFAULT_CLIENT_CONFIG)
    sns = session.client("sns", config=DEFAULT_CLIENT_CONFIG)
    notifier = SnsNotificationService(
        region=settings.region,
        account_id=settings.account_id,
        client=sns,
    )

    def build(provider: ContentProvider) -> ProviderServices:
        return ProviderServices(
            crawler=GlueCrawlerService(provider.crawler_name, client=glue),
            query=AthenaQueryService(
                provider.workgroup_name,
                client=athena,
                poll_seconds=settings.query_poll_seconds,
                max_wait_seconds=settings.execution_timeout_seconds,
            ),
            notifier=notifier,
        )

    return build
