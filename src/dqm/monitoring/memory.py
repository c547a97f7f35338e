"""In-memory collaborators for tests and local simulation.

Each fake is scripted up front and records every call, so a test can
drive a full execution and then assert on exactly what the workflow
asked of its services.

Example:
    >>> crawler = InMemoryCrawler("beta-content-provider-devGlueCrawler",
    ...                           states=["RUNNING", "RUNNING", "READY"])
    >>> query = InMemoryQueryService(result_set=two_row_result_set)
    >>> notifier = InMemoryNotifier()
"""

from __future__ import annotations

import copy
import itertools
import uuid
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from threading import Lock
from typing import Any

from dqm.core.errors import QueryExecutionError
from dqm.monitoring.protocols import CrawlState, CrawlStatus, PublishResult, QueryExecution


def result_set_from_record(record: Mapping[str, Any], types: Mapping[str, str] | None = None) -> dict[str, Any]:
    """Build a two-row raw ResultSet from a flat record.

    Column types default from the Python value: bool → boolean,
    int → bigint, float → double, everything else → varchar.
    """
    types = dict(types or {})

    def infer(value: Any) -> str:
        if isinstance(value, bool):
            return "boolean"
        if isinstance(value, int):
            return "bigint"
        if isinstance(value, float):
            return "double"
        return "varchar"

    def raw(value: Any) -> str:
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)

    names = list(record)
    return {
        "ResultSetMetadata": {
            "ColumnInfo": [
                {"Name": name, "Type": types.get(name, infer(record[name]))} for name in names
            ]
        },
        "Rows": [
            {"Data": [{"VarCharValue": name} for name in names]},
            {"Data": [{"VarCharValue": raw(record[name])} for name in names]},
        ],
    }


class InMemoryCrawler:
    """Crawler whose successive ``get_status`` calls walk a scripted state list.

    The last state repeats once the script is exhausted.
    """

    def __init__(
        self,
        name: str,
        states: Sequence[str | CrawlState] = (CrawlState.READY,),
        database_name: str | None = None,
        target_path: str | None = None,
    ):
        if not states:
            raise ValueError("InMemoryCrawler needs at least one state")
        self.name = name
        self.database_name = database_name
        self.target_path = target_path
        self._states = [CrawlState(s) for s in states]
        self._index = 0
        self.start_calls = 0
        self.status_calls = 0

    def _status(self, state: CrawlState) -> CrawlStatus:
        return CrawlStatus(
            state=state,
            name=self.name,
            database_name=self.database_name,
            target_path=self.target_path,
        )

    def start(self) -> CrawlStatus:
        self.start_calls += 1
        return self._status(CrawlState.RUNNING)

    def get_status(self) -> CrawlStatus:
        self.status_calls += 1
        state = self._states[min(self._index, len(self._states) - 1)]
        self._index += 1
        return self._status(state)


@dataclass
class RecordedQuery:
    query_string: str
    params: list[str]
    database_name: str
    query_execution_id: str


class InMemoryQueryService:
    """Query service returning a fixed ResultSet.

    ``run_failures`` / ``fetch_failures`` are exceptions raised, in order,
    by the first calls to ``run`` / ``fetch_results``.
    """

    def __init__(
        self,
        result_set: Mapping[str, Any] | None = None,
        output_location: str = "s3://dqmadevstack-output-bucket/beta-content-provider/",
        run_failures: Iterable[Exception] = (),
        fetch_failures: Iterable[Exception] = (),
        final_state: str = "SUCCEEDED",
    ):
        self.result_set = copy.deepcopy(dict(result_set or {"ResultSetMetadata": {"ColumnInfo": []}, "Rows": []}))
        self.output_location = output_location
        self.final_state = final_state
        self._run_failures = list(run_failures)
        self._fetch_failures = list(fetch_failures)
        self._counter = itertools.count(1)
        self.queries: list[RecordedQuery] = []
        self.fetches: list[str] = []

    def run(self, query_string: str, params: list[str], database_name: str) -> QueryExecution:
        if self._run_failures:
            raise self._run_failures.pop(0)
        execution_id = f"query-{next(self._counter)}"
        self.queries.append(RecordedQuery(query_string, list(params), database_name, execution_id))
        if self.final_state != "SUCCEEDED":
            raise QueryExecutionError(
                f"Query {execution_id} finished in state {self.final_state}",
                query_execution_id=execution_id,
                state=self.final_state,
            )
        return QueryExecution(
            query_execution_id=execution_id,
            output_location=f"{self.output_location}{execution_id}.csv",
        )

    def fetch_results(self, query_execution_id: str) -> dict[str, Any]:
        if self._fetch_failures:
            raise self._fetch_failures.pop(0)
        self.fetches.append(query_execution_id)
        return copy.deepcopy(self.result_set)


@dataclass
class PublishedMessage:
    channel: str
    subject: str
    message: str
    message_id: str


class InMemoryNotifier:
    """Notifier that records messages instead of sending them. Thread-safe."""

    def __init__(self, status_code: int = 200):
        self.status_code = status_code
        self.messages: list[PublishedMessage] = []
        self._lock = Lock()

    def publish(self, channel: str, subject: str, message: str) -> PublishResult:
        message_id = str(uuid.uuid4())
        with self._lock:
            self.messages.append(PublishedMessage(channel, subject, message, message_id))
        return PublishResult(status_code=self.status_code, message_id=message_id)

    def for_channel(self, channel: str) -> list[PublishedMessage]:
        return [m for m in self.messages if m.channel == channel]
