"""Collaborator protocols for the quality-check workflow.

The state machine only talks to external services through these three
narrow interfaces. ``dqm.monitoring.aws`` implements them with boto3;
``dqm.monitoring.memory`` implements them in-process for tests and the
``simulate`` command.

Errors: implementations raise ``TransientError`` subclasses for
conditions worth retrying (throttling, timeouts, service exceptions) and
other ``DqmError`` subclasses for everything else.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Protocol, runtime_checkable


class CrawlState(str, Enum):
    """Crawler lifecycle as reported by the catalog service."""

    READY = "READY"
    RUNNING = "RUNNING"
    STOPPING = "STOPPING"


@dataclass(frozen=True)
class CrawlStatus:
    state: CrawlState
    name: str
    database_name: str | None = None
    target_path: str | None = None

    @property
    def is_running(self) -> bool:
        return self.state == CrawlState.RUNNING

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["state"] = self.state.value
        return data


@dataclass(frozen=True)
class QueryExecution:
    query_execution_id: str
    output_location: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class PublishResult:
    status_code: int
    message_id: str | None = None


@runtime_checkable
class CrawlerService(Protocol):
    """Catalog crawler for one content provider."""

    def start(self) -> CrawlStatus:
        """Trigger a crawl. Starting an already running crawl is not an error."""
        ...

    def get_status(self) -> CrawlStatus:
        ...


@runtime_checkable
class QueryService(Protocol):
    """Query engine bound to one content provider's workgroup."""

    def run(self, query_string: str, params: list[str], database_name: str) -> QueryExecution:
        """Run a parameterized query to completion.

        Raises:
            QueryExecutionError: The query ended FAILED or CANCELLED.
        """
        ...

    def fetch_results(self, query_execution_id: str) -> dict[str, Any]:
        """Return the raw ResultSet (``ResultSetMetadata`` + ``Rows``)."""
        ...


@runtime_checkable
class NotificationService(Protocol):
    """Publishes messages to named channels (topics)."""

    def publish(self, channel: str, subject: str, message: str) -> PublishResult:
        ...


@dataclass(frozen=True)
class ProviderServices:
    """The collaborators one content provider's executions use."""

    crawler: CrawlerService
    query: QueryService
    notifier: NotificationService
