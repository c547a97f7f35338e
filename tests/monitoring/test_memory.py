"""Tests for the in-memory collaborators."""

import pytest

from dqm.core.errors import QueryExecutionError, ThrottlingError
from dqm.monitoring.memory import (
    InMemoryCrawler,
    InMemoryNotifier,
    InMemoryQueryService,
    result_set_from_record,
)
from dqm.monitoring.normalizer import process_query_results
from dqm.monitoring.protocols import CrawlerService, CrawlState, NotificationService, QueryService

from tests._support import PASSING_RECORD


class TestResultSetFromRecord:
    def test_infers_types(self):
        rs = result_set_from_record(PASSING_RECORD)
        types = {c["Name"]: c["Type"] for c in rs["ResultSetMetadata"]["ColumnInfo"]}
        assert types == {
            "total_keywords": "bigint",
            "keywords_with_valid_qa_pairs": "bigint",
            "keywords_with_invalid_qa_pairs": "bigint",
            "pass_percentage": "double",
            "success": "boolean",
        }
        assert rs["Rows"][1]["Data"][-1] == {"VarCharValue": "true"}

    def test_normalizes_back_to_record(self):
        rs = result_set_from_record(PASSING_RECORD)
        assert process_query_results({"ResultSet": rs, "ObjectKey": "k"})["results"] == PASSING_RECORD


class TestInMemoryCrawler:
    def test_walks_states_and_repeats_last(self):
        crawler = InMemoryCrawler("c", states=["RUNNING", "READY"])
        assert crawler.start().state == CrawlState.RUNNING
        assert [crawler.get_status().state for _ in range(3)] == [
            CrawlState.RUNNING,
            CrawlState.READY,
            CrawlState.READY,
        ]
        assert crawler.start_calls == 1
        assert crawler.status_calls == 3

    def test_needs_states(self):
        with pytest.raises(ValueError):
            InMemoryCrawler("c", states=[])

    def test_satisfies_protocol(self):
        assert isinstance(InMemoryCrawler("c"), CrawlerService)


class TestInMemoryQueryService:
    def test_records_queries(self):
        query = InMemoryQueryService(result_set_from_record({"success": True}))
        execution = query.run("SELECT 1", ["success-path"], "db")
        assert execution.query_execution_id == "query-1"
        assert query.queries[0].params == ["success-path"]
        assert query.fetch_results("query-1")["Rows"][1]["Data"][0]["VarCharValue"] == "true"
        assert query.fetches == ["query-1"]
        assert isinstance(query, QueryService)

    def test_scripted_failures(self):
        query = InMemoryQueryService(run_failures=[ThrottlingError("slow")])
        with pytest.raises(ThrottlingError):
            query.run("q", [], "db")
        assert query.run("q", [], "db").query_execution_id == "query-1"

    def test_failed_final_state(self):
        query = InMemoryQueryService(final_state="FAILED")
        with pytest.raises(QueryExecutionError) as exc_info:
            query.run("q", [], "db")
        assert exc_info.value.state == "FAILED"


class TestInMemoryNotifier:
    def test_records_messages(self):
        notifier = InMemoryNotifier(status_code=200)
        result = notifier.publish("topic", "subject", "body")
        assert result.status_code == 200
        assert result.message_id
        assert [m.subject for m in notifier.for_channel("topic")] == ["subject"]
        assert notifier.for_channel("other") == []
        assert isinstance(notifier, NotificationService)
