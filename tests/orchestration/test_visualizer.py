"""Tests for workflow visualization."""

from dqm.orchestration import (
    RetryPolicy,
    Step,
    Workflow,
    WorkflowExecutionPolicy,
    visualize_ascii,
    visualize_mermaid,
)


def noop(ctx, config):
    return None


def workflow():
    return Workflow(
        name="poll",
        execution_policy=WorkflowExecutionPolicy(timeout_seconds=300),
        steps=[
            Step.lambda_("Status", noop, retry_policy=RetryPolicy()),
            Step.choice("Check", condition=lambda ctx: False, then_step="Wait", else_step="Done"),
            Step.wait("Wait", 30, next_step="Status"),
            Step.succeed("Done"),
            Step.fail("Unused", error="Never"),
        ],
    )


class TestMermaid:
    def test_nodes_and_edges(self):
        out = visualize_mermaid(workflow())
        assert out.startswith("graph TD")
        assert "__start__((start)) --> Status" in out
        assert "Check -->|true| Wait" in out
        assert "Check -->|false| Done" in out
        assert "Wait --> Status" in out
        assert 'Wait[["Wait<br/>30s"]]' in out

    def test_title_and_no_styles(self):
        out = visualize_mermaid(workflow(), direction="LR", include_styles=False, title="beta")
        assert out.splitlines()[:4] == ["---", "title: beta", "---", "graph LR"]
        assert "style " not in out


class TestAscii:
    def test_lines(self):
        out = visualize_ascii(workflow())
        assert out.splitlines()[0] == "Workflow: poll (start: Status)"
        assert "[λ] Status ───▶ Check [retry x6]" in out
        assert "[?] Check ───▶ true: Wait | false: Done" in out
        assert "[⏳] Wait (30s) ───▶ Status" in out
        assert "[✓] Done" in out

