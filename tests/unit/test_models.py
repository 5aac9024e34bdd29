"""Tests for Pydantic models."""

from datetime import timedelta
from decimal import Decimal

import pydantic
import pytest

from threadagent.models.base import generate_ulid, utc_now
from threadagent.models.thread import ThreadData, ThreadMessage
from threadagent.models.workflow_run import (
    MAX_ERROR_MESSAGE_LENGTH,
    RunStatus,
    StepEntry,
    WorkflowRun,
    WorkflowTemplate,
)
from threadagent.utils.exceptions import InvalidTransitionError


class TestBaseModel:
    """Tests for BaseModel."""

    def test_generate_ulid(self):
        """Test ULID generation."""
        ulid1 = generate_ulid()
        ulid2 = generate_ulid()

        assert len(ulid1) == 26
        assert ulid1 != ulid2

    def test_model_timestamps(self):
        run = WorkflowRun(workflow_name="capture")

        assert run.created_at is not None
        assert run.updated_at is not None
        assert run.created_at.tzinfo is not None

    def test_increment_version(self):
        run = WorkflowRun(workflow_name="capture")
        assert run.version == 1

        run.increment_version()
        assert run.version == 2

    def test_to_dynamodb_values(self):
        """Test timestamps become strings, floats become Decimal and None is dropped."""
        run = WorkflowRun(workflow_name="capture", input_payload={"score": 0.5, "note": None})

        item = run.to_dynamodb()

        assert isinstance(item["created_at"], str)
        assert isinstance(item["updated_at"], str)
        assert item["input_payload"] == {"score": Decimal("0.5")}
        assert "error_message" not in item
        assert WorkflowRun.from_dynamodb(item).created_at == run.created_at


class TestWorkflowRun:
    """Tests for WorkflowRun."""

    def test_new_run_is_pending(self):
        run = WorkflowRun.create_for_workflow("capture")

        assert run.status == RunStatus.PENDING
        assert run.steps == ()
        assert run.is_active is True
        assert run.is_finished is False
        assert run.duration is None
        assert run.current_step is None

    def test_workflow_name_required(self):
        with pytest.raises(pydantic.ValidationError):
            WorkflowRun(workflow_name="")

    def test_keys(self):
        run = WorkflowRun(workflow_name="capture")

        assert run.get_pk() == f"RUN#{run.id}"
        assert run.get_sk() == f"RUN#{run.id}"

        gsi = run.get_gsi1_keys()
        assert gsi["GSI1PK"] == "WORKFLOW#capture"
        assert gsi["GSI1SK"].startswith("pending#")

    def test_gsi_key_follows_status(self):
        run = WorkflowRun(workflow_name="capture")
        run.mark_started()

        assert run.get_gsi1_keys()["GSI1SK"].startswith("running#")

    def test_complete_lifecycle(self):
        """Test pending -> running -> completed."""
        run = WorkflowRun(workflow_name="capture")

        run.mark_started()
        assert run.status == RunStatus.RUNNING
        assert run.started_at is not None

        run.mark_completed({"model": "gpt-4o-mini"})
        assert run.status == RunStatus.COMPLETED
        assert run.output_payload == {"model": "gpt-4o-mini"}
        assert run.finished_at > run.started_at
        assert run.duration >= 0
        assert run.is_finished is True
        assert run.validation_errors() == []

    def test_failed_lifecycle(self):
        run = WorkflowRun(workflow_name="capture")
        run.mark_started()
        run.mark_failed("transform failed: boom")

        assert run.status == RunStatus.FAILED
        assert run.error_message == "transform failed: boom"
        assert run.finished_at > run.started_at
        assert run.validation_errors() == []

    def test_failed_requires_message(self):
        run = WorkflowRun(workflow_name="capture")
        run.mark_started()

        with pytest.raises(ValueError):
            run.mark_failed("   ")
        assert run.status == RunStatus.RUNNING

    def test_failed_message_truncated(self):
        run = WorkflowRun(workflow_name="capture")
        run.mark_started()
        run.mark_failed("x" * 5000)

        assert len(run.error_message) == MAX_ERROR_MESSAGE_LENGTH
        assert run.error_message.endswith("...")

    def test_cancel_pending_run(self):
        run = WorkflowRun(workflow_name="capture")
        run.mark_cancelled()

        assert run.status == RunStatus.CANCELLED
        assert run.finished_at is not None

    @pytest.mark.parametrize("finish", ["mark_completed", "mark_cancelled"])
    def test_finished_runs_are_final(self, finish):
        """Test no transition leaves a finished status."""
        run = WorkflowRun(workflow_name="capture")
        run.mark_started()
        getattr(run, finish)()

        with pytest.raises(InvalidTransitionError):
            run.mark_started()
        with pytest.raises(InvalidTransitionError):
            run.mark_failed("late failure")

    def test_cannot_complete_pending_run(self):
        run = WorkflowRun(workflow_name="capture")

        with pytest.raises(InvalidTransitionError) as exc_info:
            run.mark_completed({})

        assert exc_info.value.current == "pending"
        assert exc_info.value.target == "completed"

    def test_finish_time_after_start_on_coarse_clock(self):
        run = WorkflowRun(workflow_name="capture")
        run.mark_started()
        run.started_at = utc_now() + timedelta(seconds=5)

        run.mark_completed()

        assert run.finished_at == run.started_at + timedelta(microseconds=1)


class TestStepLog:
    """Tests for the append-only step log."""

    def test_add_step_appends_in_order(self):
        run = WorkflowRun(workflow_name="capture")
        run.add_step("workflow_started")
        run.add_step("source_fetch_completed", {"message_count": 3})

        assert [step.name for step in run.steps] == ["workflow_started", "source_fetch_completed"]
        assert run.steps[1].data == {"message_count": 3}
        assert run.steps[1].completed_at is not None
        assert run.current_step.name == "source_fetch_completed"

    def test_fail_step(self):
        run = WorkflowRun(workflow_name="capture")
        entry = run.fail_step("transform_failed", {"kind": "timeout"})

        assert entry.failed is True
        assert entry.timestamp == entry.failed_at
        assert entry.error == {"kind": "timeout"}

    def test_steps_are_immutable(self):
        run = WorkflowRun(workflow_name="capture")
        entry = run.add_step("workflow_started")
        before = run.steps

        run.add_step("transform_completed")

        assert before == (entry,)
        with pytest.raises(pydantic.ValidationError):
            entry.name = "renamed"

    def test_step_name_required(self):
        with pytest.raises(pydantic.ValidationError):
            StepEntry(name="")


class TestValidationErrors:
    """Tests for cross-field invariants."""

    def test_failed_without_message(self):
        run = WorkflowRun(workflow_name="capture", status=RunStatus.FAILED)
        assert "error_message is required when status is failed" in run.validation_errors()

    def test_message_without_failure(self):
        run = WorkflowRun(workflow_name="capture", error_message="boom")
        assert "error_message is only allowed when status is failed" in run.validation_errors()

    def test_finish_before_start(self):
        now = utc_now()
        run = WorkflowRun(
            workflow_name="capture",
            status=RunStatus.COMPLETED,
            started_at=now,
            finished_at=now,
        )
        assert "finished_at must be later than started_at" in run.validation_errors()

    def test_output_before_completion(self):
        run = WorkflowRun(workflow_name="capture", output_payload={"x": 1})
        assert "output_payload is only allowed when status is completed" in run.validation_errors()


class TestDynamoDBSerialization:
    """Tests for DynamoDB round trips."""

    def test_round_trip(self, sample_template, thread_payload):
        run = WorkflowRun.create_for_workflow(
            "capture",
            input_payload={"thread_data": thread_payload},
            template=sample_template,
        )
        run.mark_started()
        run.add_step("transform_completed", {"model": "gpt-4o-mini", "content_length": 120})
        run.mark_completed({"model": "gpt-4o-mini", "score": 0.5})

        item = run.to_dynamodb()
        restored = WorkflowRun.from_dynamodb({**item, **run.get_keys(), **run.get_gsi1_keys()})

        assert restored.id == run.id
        assert restored.status == RunStatus.COMPLETED
        assert restored.template == sample_template
        assert restored.steps == run.steps
        assert restored.started_at == run.started_at
        assert restored.output_payload == {"model": "gpt-4o-mini", "score": 0.5}
        assert restored.input_payload == run.input_payload

    def test_none_values_dropped(self):
        item = WorkflowRun(workflow_name="capture").to_dynamodb()

        assert "error_message" not in item
        assert "template" not in item
        assert item["status"] == "pending"


class TestWorkflowTemplate:
    def test_name_length(self):
        with pytest.raises(pydantic.ValidationError):
            WorkflowTemplate(name="x" * 101)


class TestThreadData:
    """Tests for thread models."""

    def test_from_slack_falls_back_to_bot_id(self):
        message = ThreadMessage.from_slack({"bot_id": "B01", "ts": "1.0", "text": None})

        assert message.user == "B01"
        assert message.text == ""

    def test_counts_and_participants(self, sample_thread):
        assert sample_thread.message_count == 3
        assert sample_thread.participants == ["U001", "U002"]

    def test_summary(self, sample_thread):
        assert sample_thread.summary() == {
            "channel_id": "C0123456",
            "thread_ts": "1718900000.000100",
            "message_count": 3,
            "reply_count": 2,
            "participants": ["U001", "U002"],
        }

    def test_parent_message_required(self):
        with pytest.raises(pydantic.ValidationError):
            ThreadData.model_validate({"replies": []})
