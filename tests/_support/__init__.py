"""
Test support utilities for dqm tests.

Helpers that are not fixtures but are shared across test modules: a fake
clock, provider resource writers, in-memory service builders and raw
ResultSet builders.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from dqm.monitoring.memory import (
    InMemoryCrawler,
    InMemoryNotifier,
    InMemoryQueryService,
    result_set_from_record,
)
from dqm.monitoring.protocols import CrawlState, ProviderServices
from dqm.monitoring.providers import ContentProvider

PROVIDER_PATH = "beta-content-provider"
INPUT_BUCKET = "dqmadevstack-input-bucket"
SUCCESS_KEY = "beta-content-provider/success-path/valid-file.csv"
FAIL_KEY = "beta-content-provider/fail-path/invalid-file.csv"

QUERY_TEMPLATE = 'SELECT * FROM "${DATABASE}"."${TABLE}" WHERE partition_0 = ?'

NOTIFICATION_CONFIG = {
    "Message": "Total keywords: {}. Valid: {}. Invalid: {}. Pass percentage: {}. Success: {}.",
    "Fields": [
        "total_keywords",
        "keywords_with_valid_qa_pairs",
        "keywords_with_invalid_qa_pairs",
        "pass_percentage",
        "success",
    ],
    "SuccessTopicSubscriptions": ["team@example.com"],
    "FailTopicSubscriptions": ["team@example.com"],
}

PASSING_RECORD = {
    "total_keywords": 5,
    "keywords_with_valid_qa_pairs": 5,
    "keywords_with_invalid_qa_pairs": 0,
    "pass_percentage": 100.0,
    "success": True,
}

FAILING_RECORD = {
    "total_keywords": 5,
    "keywords_with_valid_qa_pairs": 4,
    "keywords_with_invalid_qa_pairs": 1,
    "pass_percentage": 80.0,
    "success": False,
}


class FakeClock:
    """Monotonic clock for tests; ``sleep`` advances it instead of blocking."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    def advance(self, seconds: float) -> None:
        self.now += seconds


def write_provider(
    root: Path,
    path: str = PROVIDER_PATH,
    query: str = QUERY_TEMPLATE,
    notification: dict[str, Any] | None = None,
) -> Path:
    """Write ``athena-query.sql`` + ``sns-config.json`` for a provider."""
    provider_dir = root / path
    provider_dir.mkdir(parents=True, exist_ok=True)
    (provider_dir / "athena-query.sql").write_text(query, encoding="utf-8")
    (provider_dir / "sns-config.json").write_text(
        json.dumps(notification if notification is not None else NOTIFICATION_CONFIG),
        encoding="utf-8",
    )
    return provider_dir


def make_services(
    provider: ContentProvider,
    record: dict[str, Any] | None = None,
    crawl_states: list[str | CrawlState] | None = None,
    **query_kwargs: Any,
) -> ProviderServices:
    """In-memory services whose query returns ``record`` (passing by default)."""
    if "result_set" not in query_kwargs:
        query_kwargs["result_set"] = result_set_from_record(
            record if record is not None else PASSING_RECORD
        )
    return ProviderServices(
        crawler=InMemoryCrawler(
            provider.crawler_name,
            states=crawl_states or [CrawlState.RUNNING, CrawlState.READY],
            database_name=provider.database_name,
        ),
        query=InMemoryQueryService(**query_kwargs),
        notifier=InMemoryNotifier(),
    )


def raw_result_set(columns: list[tuple[str, str]], *value_rows: list[str]) -> dict[str, Any]:
    """ResultSet with a header row plus the given value rows."""
    return {
        "ResultSetMetadata": {"ColumnInfo": [{"Name": n, "Type": t} for n, t in columns]},
        "Rows": [{"Data": [{"VarCharValue": n} for n, _ in columns]}]
        + [{"Data": [{"VarCharValue": v} for v in row]} for row in value_rows],
    }
