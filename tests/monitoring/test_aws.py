"""Tests for the boto3-backed collaborators (clients are mocked)."""

from unittest.mock import MagicMock, call, patch

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError, NoCredentialsError, ReadTimeoutError

from dqm.core.errors import (
    ConfigError,
    MissingConfigError,
    NetworkError,
    NotificationError,
    QueryExecutionError,
    ServiceTimeoutError,
    SourceError,
    ThrottlingError,
    is_retryable,
)
from dqm.monitoring.aws import (
    DEFAULT_CLIENT_CONFIG,
    AthenaQueryService,
    GlueCrawlerService,
    SnsNotificationService,
    aws_services,
    translate_botocore_error,
    translate_client_error,
)
from dqm.monitoring.protocols import CrawlState


def client_error(code, operation="Op", status=400, message="boom"):
    return ClientError(
        {
            "Error": {"Code": code, "Message": message},
            "ResponseMetadata": {"HTTPStatusCode": status},
        },
        operation,
    )


# ---------------------------------------------------------------------------
# Error translation
# ---------------------------------------------------------------------------


class TestTranslateClientError:
    @pytest.mark.parametrize(
        "code,status,expected",
        [
            ("ThrottlingException", 400, ThrottlingError),
            ("TooManyRequestsException", 429, ThrottlingError),
            ("InternalServerException", 500, ThrottlingError),
            ("SomethingOdd", 503, ThrottlingError),
            ("RequestTimeout", 408, ServiceTimeoutError),
            ("InvalidRequestException", 400, SourceError),
        ],
    )
    def test_mapping(self, code, status, expected):
        error = translate_client_error(client_error(code, status=status), "athena", "StartQueryExecution")
        assert type(error) is expected
        assert error.context.service == "athena"
        assert error.context.operation == "StartQueryExecution"
        assert error.context.error_code == code
        assert error.context.http_status == status

    def test_transient_codes_are_retryable(self):
        assert is_retryable(translate_client_error(client_error("Throttling"), "glue", "GetCrawler"))
        assert not is_retryable(translate_client_error(client_error("AccessDenied"), "glue", "GetCrawler"))

    def test_hard_error_class(self):
        error = translate_client_error(
            client_error("InvalidParameter"), "sns", "Publish", hard_error=NotificationError
        )
        assert isinstance(error, NotificationError)
        assert error.message == "sns Publish failed: boom"


class TestTranslateBotocoreError:
    def test_read_timeout(self):
        error = translate_botocore_error(ReadTimeoutError(endpoint_url="https://x"), "athena", "GetQueryResults")
        assert isinstance(error, ServiceTimeoutError)
        assert is_retryable(error)

    def test_endpoint_unreachable(self):
        error = translate_botocore_error(EndpointConnectionError(endpoint_url="https://x"), "glue", "GetCrawler")
        assert isinstance(error, NetworkError)

    def test_missing_credentials(self):
        error = translate_botocore_error(NoCredentialsError(), "sns", "Publish")
        assert isinstance(error, ConfigError)
        assert not is_retryable(error)


# ---------------------------------------------------------------------------
# Glue
# ---------------------------------------------------------------------------


class TestGlueCrawlerService:
    def test_start(self):
        client = MagicMock()
        status = GlueCrawlerService("c", client=client).start()
        client.start_crawler.assert_called_once_with(Name="c")
        assert status.state == CrawlState.RUNNING

    def test_start_while_running_is_success(self):
        client = MagicMock()
        client.start_crawler.side_effect = client_error("CrawlerRunningException")
        assert GlueCrawlerService("c", client=client).start().is_running

    def test_start_other_error_propagates(self):
        client = MagicMock()
        client.start_crawler.side_effect = client_error("EntityNotFoundException")
        with pytest.raises(SourceError) as exc_info:
            GlueCrawlerService("c", client=client).start()
        assert exc_info.value.context.error_code == "EntityNotFoundException"

    def test_start_throttled(self):
        client = MagicMock()
        client.start_crawler.side_effect = client_error("ThrottlingException")
        with pytest.raises(ThrottlingError):
            GlueCrawlerService("c", client=client).start()

    def test_get_status(self):
        client = MagicMock()
        client.get_crawler.return_value = {
            "Crawler": {
                "Name": "c",
                "State": "READY",
                "DatabaseName": "db",
                "Targets": {"S3Targets": [{"Path": "s3://in/beta-content-provider/"}]},
            }
        }
        status = GlueCrawlerService("c", client=client).get_status()
        assert status.state == CrawlState.READY
        assert status.database_name == "db"
        assert status.target_path == "s3://in/beta-content-provider/"

    def test_get_status_without_targets(self):
        client = MagicMock()
        client.get_crawler.return_value = {"Crawler": {"State": "STOPPING"}}
        status = GlueCrawlerService("c", client=client).get_status()
        assert status.state == CrawlState.STOPPING
        assert status.name == "c"
        assert status.target_path is None


# ---------------------------------------------------------------------------
# Athena
# ---------------------------------------------------------------------------


class TestAthenaQueryService:
    def make(self, *states, reason="syntax error"):
        client = MagicMock()
        client.start_query_execution.return_value = {"QueryExecutionId": "q-1"}
        client.get_query_execution.side_effect = [
            {
                "QueryExecution": {
                    "Status": {"State": state, "StateChangeReason": reason},
                    "ResultConfiguration": {"OutputLocation": "s3://out/q-1.csv"},
                }
            }
            for state in states
        ]
        sleeps = []
        service = AthenaQueryService("wg", client=client, poll_seconds=0.5, sleep=sleeps.append)
        return service, client, sleeps

    def test_run_polls_until_succeeded(self):
        service, client, sleeps = self.make("QUEUED", "RUNNING", "SUCCEEDED")
        execution = service.run("SELECT ?", ["success-path"], "db")

        assert execution.query_execution_id == "q-1"
        assert execution.output_location == "s3://out/q-1.csv"
        client.start_query_execution.assert_called_once_with(
            QueryString="SELECT ?",
            QueryExecutionContext={"Database": "db"},
            WorkGroup="wg",
            ExecutionParameters=["success-path"],
        )
        assert client.get_query_execution.call_args_list == [call(QueryExecutionId="q-1")] * 3
        assert sleeps == [0.5, 0.5]

    def test_no_execution_parameters_when_empty(self):
        service, client, _ = self.make("SUCCEEDED")
        service.run("SELECT 1", [], "db")
        assert "ExecutionParameters" not in client.start_query_execution.call_args.kwargs

    @pytest.mark.parametrize("state", ["FAILED", "CANCELLED"])
    def test_terminal_failure(self, state):
        service, _, _ = self.make("RUNNING", state)
        with pytest.raises(QueryExecutionError) as exc_info:
            service.run("SELECT 1", [], "db")
        assert exc_info.value.state == state
        assert exc_info.value.query_execution_id == "q-1"
        assert "syntax error" in exc_info.value.message
        assert not is_retryable(exc_info.value)

    def test_stops_polling_after_max_wait(self, clock):
        client = MagicMock()
        client.start_query_execution.return_value = {"QueryExecutionId": "q-1"}
        client.get_query_execution.return_value = {"QueryExecution": {"Status": {"State": "QUEUED"}}}
        service = AthenaQueryService(
            "wg", client=client, poll_seconds=2.0, sleep=clock.sleep, clock=clock, max_wait_seconds=5.0
        )

        with pytest.raises(ServiceTimeoutError) as exc_info:
            service.run("SELECT 1", [], "db")

        assert clock.sleeps == [2.0, 2.0, 1.0]
        assert client.get_query_execution.call_count == 4
        error = exc_info.value
        assert is_retryable(error)
        assert error.context.operation == "GetQueryExecution"
        assert error.context.metadata == {"query_execution_id": "q-1", "state": "QUEUED"}

    def test_no_max_wait_keeps_polling(self):
        service, client, sleeps = self.make(*["RUNNING"] * 50, "SUCCEEDED")
        assert service.max_wait_seconds is None
        assert service.run("SELECT 1", [], "db").query_execution_id == "q-1"
        assert len(sleeps) == 50

    def test_start_throttled(self):
        service, client, _ = self.make()
        client.start_query_execution.side_effect = client_error("ThrottlingException")
        with pytest.raises(ThrottlingError):
            service.run("SELECT 1", [], "db")

    def test_fetch_results(self):
        client = MagicMock()
        client.get_query_results.return_value = {"ResultSet": {"Rows": []}, "UpdateCount": 0}
        assert AthenaQueryService("wg", client=client).fetch_results("q-1") == {"Rows": []}
        client.get_query_results.assert_called_once_with(QueryExecutionId="q-1")


# ---------------------------------------------------------------------------
# SNS
# ---------------------------------------------------------------------------


class TestSnsNotificationService:
    def test_topic_arn_from_name(self):
        sns = SnsNotificationService(region="eu-west-1", account_id="123456789012", client=MagicMock())
        assert sns.topic_arn("t") == "arn:aws:sns:eu-west-1:123456789012:t"
        assert sns.topic_arn("arn:aws:sns:us-east-1:1:t") == "arn:aws:sns:us-east-1:1:t"

    def test_topic_arn_needs_account(self):
        sns = SnsNotificationService(client=MagicMock())
        with pytest.raises(MissingConfigError):
            sns.topic_arn("t")

    def test_publish(self):
        client = MagicMock()
        client.publish.return_value = {"MessageId": "m-1", "ResponseMetadata": {"HTTPStatusCode": 200}}
        sns = SnsNotificationService(account_id="123456789012", client=client)

        result = sns.publish("t", "subject", "body")

        client.publish.assert_called_once_with(
            TopicArn="arn:aws:sns:us-east-1:123456789012:t",
            Subject="subject",
            Message="body",
        )
        assert result.status_code == 200
        assert result.message_id == "m-1"

    def test_publish_rejected(self):
        client = MagicMock()
        client.publish.side_effect = client_error("InvalidParameter")
        sns = SnsNotificationService(account_id="123456789012", client=client)
        with pytest.raises(NotificationError):
            sns.publish("t", "subject", "body")


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


class TestAwsServices:
    def test_shares_session_clients(self, settings, provider):
        with patch("dqm.monitoring.aws.boto3.Session") as session_cls:
            build = aws_services(settings)
            services = build(provider)
            again = build(provider)

        session_cls.assert_called_once_with(region_name="us-east-1")
        session = session_cls.return_value
        assert [c.args[0] for c in session.client.call_args_list] == ["glue", "athena", "sns"]

        assert services.crawler.crawler_name == "beta-content-provider-devGlueCrawler"
        assert services.query.workgroup == "beta-content-provider-devAthenaWorkgroup"
        assert services.query.poll_seconds == settings.query_poll_seconds
        assert services.query.max_wait_seconds == settings.execution_timeout_seconds
        assert services.notifier.account_id == "123456789012"
        assert services.notifier is again.notifier
        assert services.crawler.client is again.crawler.client
        for c in session.client.call_args_list:
            assert c.kwargs["config"] is DEFAULT_CLIENT_CONFIG


class TestClientConfig:
    def test_sdk_retries_disabled(self):
        assert DEFAULT_CLIENT_CONFIG.retries == {"total_max_attempts": 1, "mode": "standard"}

    def test_adapters_default_to_shared_config(self):
        with patch("dqm.monitoring.aws.boto3.client") as client:
            GlueCrawlerService("c")
            AthenaQueryService("wg")
            SnsNotificationService()
        assert [c.kwargs["config"] for c in client.call_args_list] == [DEFAULT_CLIENT_CONFIG] * 3
