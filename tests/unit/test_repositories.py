"""Tests for the workflow run repository."""

import pytest

from threadagent.models.workflow_run import RunStatus, WorkflowRun
from threadagent.repositories.workflow_run import WorkflowRunRepository
from threadagent.utils.exceptions import ConflictError, NotFoundError, ValidationError


class TestWorkflowRunRepository:
    """Tests for WorkflowRunRepository."""

    def test_create_and_find(self, run_repo, pending_run):
        run_repo.create_run(pending_run)

        found = run_repo.find(pending_run.id)

        assert found.id == pending_run.id
        assert found.status == RunStatus.PENDING
        assert found.template.destination_id == "db-123"
        assert found.input_payload == pending_run.input_payload

    def test_get_by_id_missing(self, run_repo):
        assert run_repo.get_by_id("01MISSING") is None

    def test_find_missing_raises(self, run_repo):
        with pytest.raises(NotFoundError) as exc_info:
            run_repo.find("01MISSING")

        assert exc_info.value.resource_type == "WorkflowRun"
        assert exc_info.value.resource_id == "01MISSING"

    def test_create_duplicate(self, run_repo, pending_run):
        run_repo.create_run(pending_run)

        with pytest.raises(ConflictError):
            run_repo.create_run(pending_run)

    def test_save_increments_version(self, run_repo, pending_run):
        run_repo.create_run(pending_run)

        pending_run.mark_started()
        pending_run.add_step("workflow_started")
        run_repo.save_run(pending_run)

        stored = run_repo.find(pending_run.id)
        assert stored.version == 2
        assert stored.status == RunStatus.RUNNING
        assert [step.name for step in stored.steps] == ["workflow_started"]

    def test_save_stale_version_conflicts(self, run_repo, pending_run):
        """Test optimistic locking rejects a concurrent writer."""
        run_repo.create_run(pending_run)
        other = run_repo.find(pending_run.id)

        pending_run.mark_started()
        run_repo.save_run(pending_run)

        other.mark_cancelled()
        with pytest.raises(ConflictError) as exc_info:
            run_repo.save_run(other)

        assert exc_info.value.details == {"conflict_type": "version"}
        assert other.version == 1

    def test_save_rejects_invalid_run(self, run_repo, pending_run):
        run_repo.create_run(pending_run)
        pending_run.error_message = "not failed"

        with pytest.raises(ValidationError) as exc_info:
            run_repo.save_run(pending_run)

        assert "error_message is only allowed when status is failed" in exc_info.value.errors

    def test_create_rejects_invalid_run(self, run_repo):
        run = WorkflowRun(workflow_name="capture", status=RunStatus.FAILED)

        with pytest.raises(ValidationError):
            run_repo.create_run(run)

    def test_list_by_workflow(self, run_repo):
        first = WorkflowRun.create_for_workflow("capture")
        second = WorkflowRun.create_for_workflow("capture")
        other = WorkflowRun.create_for_workflow("other")
        for run in (first, second, other):
            run_repo.create_run(run)

        second.mark_started()
        run_repo.save_run(second)

        runs, _ = run_repo.list_by_workflow("capture")
        assert {run.id for run in runs} == {first.id, second.id}

        running, _ = run_repo.list_by_workflow("capture", status=RunStatus.RUNNING)
        assert [run.id for run in running] == [second.id]

    def test_default_table_name(self, monkeypatch):
        monkeypatch.setenv("TABLE_NAME", "threadagent-prod")
        assert WorkflowRunRepository().table_name == "threadagent-prod"
