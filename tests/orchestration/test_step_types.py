"""Tests for Step factories, RetryPolicy and StepResult."""

import pytest

from dqm.execution.retry import ExponentialBackoff
from dqm.orchestration import ErrorCategory, RetryPolicy, Step, StepResult, StepType


def handler(ctx, config):
    return {"done": True}


def always(ctx):
    return True


class TestStepFactories:
    def test_lambda(self):
        step = Step.lambda_("StartCrawl", handler, result_path="crawl", next_step="Next")
        assert step.step_type == StepType.LAMBDA
        assert step.handler is handler
        assert step.result_path == "crawl"
        assert step.next_step == "Next"
        assert step.config == {}
        assert not step.is_terminal

    def test_pass(self):
        step = Step.pass_("Params", parameters=["x"], result_path="query.execution_parameters")
        assert step.step_type == StepType.PASS
        assert step.parameters == ["x"]

    def test_choice(self):
        step = Step.choice("Check", condition=always, then_step="A", else_step="B")
        assert step.step_type == StepType.CHOICE
        assert (step.then_step, step.else_step) == ("A", "B")

    def test_wait(self):
        step = Step.wait("WaitForCrawl", 30, next_step="GetCrawlStatus")
        assert step.step_type == StepType.WAIT
        assert step.duration_seconds == 30

    def test_terminal_steps(self):
        assert Step.succeed("Succeeded").is_terminal
        failed = Step.fail("Failed", error_path="error.error_type", cause_path="")
        assert failed.is_terminal
        assert failed.cause_path == ""

    def test_to_dict_lambda_with_retry(self):
        step = Step.lambda_("StartQuery", handler, result_path="q", retry_policy=RetryPolicy())
        d = step.to_dict()
        assert d["type"] == "lambda"
        assert d["handler_ref"].endswith(":handler")
        assert d["retry_policy"]["max_attempts"] == 6

    def test_to_dict_lambda_omits_anonymous_handler(self):
        d = Step.lambda_("Anon", lambda ctx, config: None).to_dict()
        assert "handler_ref" not in d

    def test_to_dict_fail(self):
        d = Step.fail("Failed", error_path="error.error_type", cause_path="").to_dict()
        assert d == {
            "name": "Failed",
            "type": "fail",
            "error_path": "error.error_type",
            "cause_path": "",
        }


class TestRetryPolicy:
    def test_defaults(self):
        policy = RetryPolicy()
        assert policy.max_attempts == 6
        assert policy.initial_delay_seconds == 2.0
        assert policy.backoff_multiplier == 2.0

    def test_to_strategy(self):
        strategy = RetryPolicy(max_attempts=3).to_strategy()
        assert isinstance(strategy, ExponentialBackoff)
        assert strategy.max_retries == 3
        assert [strategy.next_delay(i) for i in range(3)] == [2.0, 4.0, 8.0]


# ---------------------------------------------------------------------------
# StepResult
# ---------------------------------------------------------------------------


class TestStepResult:
    def test_ok(self):
        result = StepResult.ok(output={"a": 1})
        assert result.success
        assert result.output == {"a": 1}
        assert result.error is None

    def test_fail_stores_category_value(self):
        result = StepResult.fail("boom", category=ErrorCategory.TRANSIENT, error_type="ThrottlingError")
        assert not result.success
        assert result.error_category == "TRANSIENT"
        assert result.error_type == "ThrottlingError"

    def test_fail_without_message_gets_default(self):
        assert StepResult(success=False).error == "Step failed without error message"

    def test_to_dict_omits_unset_fields(self):
        assert StepResult.ok(output=1).to_dict() == {"success": True, "output": 1}
        d = StepResult.fail("boom", error_type="WorkflowError").to_dict()
        assert d == {
            "success": False,
            "output": {},
            "error": "boom",
            "error_category": "INTERNAL",
            "error_type": "WorkflowError",
        }

    @pytest.mark.parametrize(
        "value,success,output",
        [
            (None, True, {}),
            (True, True, {}),
            (False, False, {}),
            ({"k": "v"}, True, {"k": "v"}),
            (["segment"], True, ["segment"]),
        ],
    )
    def test_from_value(self, value, success, output):
        result = StepResult.from_value(value)
        assert result.success is success
        assert result.output == output

    def test_from_value_passes_step_result_through(self):
        original = StepResult.ok(output=1)
        assert StepResult.from_value(original) is original

    def test_with_next_step_does_not_mutate(self):
        original = StepResult.ok(output={"branch": "then"})
        routed = original.with_next_step("WaitForCrawl")
        assert routed.next_step == "WaitForCrawl"
        assert original.next_step is None
        assert routed.to_dict()["next_step"] == "WaitForCrawl"
