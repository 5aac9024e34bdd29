"""Workflow run repository for DynamoDB operations."""

import structlog

from threadagent.models.workflow_run import RunStatus, WorkflowRun
from threadagent.repositories.base import BaseRepository
from threadagent.utils.exceptions import ValidationError

logger = structlog.get_logger()


class WorkflowRunRepository(BaseRepository[WorkflowRun]):
    """Repository for WorkflowRun records.

    Cross-field invariants (failed status requires an error message, finish
    after start, output only on completion) are enforced here, at the storage
    boundary, so a run may pass through intermediate states in memory.
    """

    def __init__(self, table_name: str | None = None):
        """Initialize workflow run repository."""
        super().__init__(WorkflowRun, table_name)

    def get_by_id(self, run_id: str) -> WorkflowRun | None:
        """Get a run by ID.

        Args:
            run_id: The run ID.

        Returns:
            WorkflowRun or None if not found.
        """
        return self.get(pk=f"RUN#{run_id}", sk=f"RUN#{run_id}")

    def find(self, run_id: str) -> WorkflowRun:
        """Get a run by ID or raise NotFoundError."""
        return self.get_or_raise(pk=f"RUN#{run_id}", sk=f"RUN#{run_id}", resource_type="WorkflowRun")

    def create_run(self, run: WorkflowRun) -> WorkflowRun:
        """Persist a new run.

        Raises:
            ValidationError: If the run violates a record invariant.
            ConflictError: If a run with the same ID exists.
        """
        self._check_invariants(run)
        return self.create(run, gsi_keys=run.get_gsi1_keys())

    def save_run(self, run: WorkflowRun) -> WorkflowRun:
        """Persist changes to an existing run with a version check.

        Raises:
            ValidationError: If the run violates a record invariant.
            ConflictError: If the stored version changed since it was read.
        """
        self._check_invariants(run)
        return self.update(run, gsi_keys=run.get_gsi1_keys())

    def list_by_workflow(
        self,
        workflow_name: str,
        status: RunStatus | None = None,
        limit: int = 50,
        last_key: dict | None = None,
    ) -> tuple[list[WorkflowRun], dict | None]:
        """List runs of a workflow, newest first.

        Args:
            workflow_name: The workflow name.
            status: Optional status filter.
            limit: Maximum runs to return.
            last_key: Pagination cursor.

        Returns:
            Tuple of (runs, next_page_key).
        """
        return self.query(
            pk=f"WORKFLOW#{workflow_name}",
            sk_begins_with=f"{RunStatus(status).value}#" if status else None,
            index_name="GSI1",
            limit=limit,
            scan_forward=False,
            last_key=last_key,
        )

    def _check_invariants(self, run: WorkflowRun) -> None:
        errors = run.validation_errors()
        if errors:
            logger.warning("Workflow run failed validation", run_id=run.id, errors=errors)
            raise ValidationError(f"Invalid workflow run {run.id}", errors=errors)
