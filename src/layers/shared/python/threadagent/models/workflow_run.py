"""Workflow run record and step log models."""

from datetime import datetime, timedelta
from enum import Enum
from typing import Any, ClassVar

from pydantic import BaseModel as PydanticBaseModel, ConfigDict, Field

from threadagent.models.base import BaseModel, utc_now
from threadagent.utils.exceptions import InvalidTransitionError

MAX_ERROR_MESSAGE_LENGTH = 2000


class RunStatus(str, Enum):
    """Workflow run status enum."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


ALLOWED_TRANSITIONS: dict[RunStatus, frozenset[RunStatus]] = {
    RunStatus.PENDING: frozenset({RunStatus.RUNNING, RunStatus.CANCELLED}),
    RunStatus.RUNNING: frozenset({RunStatus.COMPLETED, RunStatus.FAILED, RunStatus.CANCELLED}),
    RunStatus.COMPLETED: frozenset(),
    RunStatus.FAILED: frozenset(),
    RunStatus.CANCELLED: frozenset(),
}

ACTIVE_STATUSES = frozenset({RunStatus.PENDING, RunStatus.RUNNING})
FINISHED_STATUSES = frozenset({RunStatus.COMPLETED, RunStatus.FAILED, RunStatus.CANCELLED})


class StepEntry(PydanticBaseModel):
    """One immutable entry in a run's step log.

    Successful steps carry ``completed_at`` and optional ``data``; failed
    steps carry ``failed_at`` and ``error``.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    completed_at: datetime | None = None
    failed_at: datetime | None = None
    data: dict[str, Any] | None = None
    error: dict[str, Any] | str | None = None

    @property
    def failed(self) -> bool:
        return self.failed_at is not None

    @property
    def timestamp(self) -> datetime | None:
        return self.failed_at or self.completed_at


class WorkflowTemplate(PydanticBaseModel):
    """Snapshot of the template a run was started with.

    ``content`` is the system prompt for the LLM step. ``destination_id`` is
    the document-store database the result is published to; without it the
    publish step is skipped.
    """

    name: str = Field(..., min_length=1, max_length=100)
    content: str | None = None
    description: str | None = Field(None, max_length=500)
    destination_id: str | None = None
    destination_name: str | None = None


class WorkflowRun(BaseModel):
    """Workflow run entity - one execution of the thread capture pipeline.

    Key Pattern:
        PK: RUN#{id}
        SK: RUN#{id}
        GSI1PK: WORKFLOW#{workflow_name}
        GSI1SK: {status}#{created_at}
    """

    _pk_prefix: ClassVar[str] = "RUN#"
    _sk_prefix: ClassVar[str] = "RUN#"

    workflow_name: str = Field(..., min_length=1, max_length=255, description="Workflow name")
    status: RunStatus = Field(default=RunStatus.PENDING, description="Current run status")

    # Input / output
    input_payload: dict[str, Any] | str | None = Field(
        None, description="Inline thread data or a thread reference, optionally as JSON text"
    )
    output_payload: dict[str, Any] | None = Field(None, description="Set on completion")
    error_message: str | None = Field(
        None, max_length=MAX_ERROR_MESSAGE_LENGTH, description="Error message if failed"
    )

    # Timing
    started_at: datetime | None = Field(None, description="When execution started")
    finished_at: datetime | None = Field(None, description="When execution reached a terminal state")

    # Append-only step log
    steps: tuple[StepEntry, ...] = Field(default=(), description="Ordered step log")

    # Thread reference used when the input payload is empty
    source_channel_id: str | None = Field(None, max_length=255)
    source_thread_ts: str | None = Field(None, max_length=255)
    source_message_id: str | None = Field(None, max_length=255)

    template: WorkflowTemplate | None = Field(None, description="Template snapshot")

    def get_pk(self) -> str:
        """Get partition key: RUN#{id}."""
        return f"{self._pk_prefix}{self.id}"

    def get_sk(self) -> str:
        """Get sort key: RUN#{id}."""
        return f"{self._sk_prefix}{self.id}"

    def get_gsi1_keys(self) -> dict[str, str]:
        """Get GSI1 keys for listing runs by workflow and status."""
        return {
            "GSI1PK": f"WORKFLOW#{self.workflow_name}",
            "GSI1SK": f"{RunStatus(self.status).value}#{self.created_at.isoformat()}",
        }

    @classmethod
    def create_for_workflow(
        cls,
        workflow_name: str,
        input_payload: dict[str, Any] | str | None = None,
        source_channel_id: str | None = None,
        source_thread_ts: str | None = None,
        source_message_id: str | None = None,
        template: WorkflowTemplate | None = None,
    ) -> "WorkflowRun":
        """Build a new pending run with an empty step log."""
        return cls(
            workflow_name=workflow_name,
            input_payload=input_payload,
            source_channel_id=source_channel_id,
            source_thread_ts=source_thread_ts,
            source_message_id=source_message_id,
            template=template,
        )

    # Derived state

    @property
    def duration(self) -> float | None:
        """Seconds between start and finish, if both are set."""
        if not self.started_at or not self.finished_at:
            return None
        return (self.finished_at - self.started_at).total_seconds()

    @property
    def is_active(self) -> bool:
        return RunStatus(self.status) in ACTIVE_STATUSES

    @property
    def is_finished(self) -> bool:
        return RunStatus(self.status) in FINISHED_STATUSES

    @property
    def current_step(self) -> StepEntry | None:
        return self.steps[-1] if self.steps else None

    # Lifecycle

    def _transition(self, target: RunStatus) -> None:
        current = RunStatus(self.status)
        if target not in ALLOWED_TRANSITIONS[current]:
            raise InvalidTransitionError(current.value, target.value)
        self.status = target
        self.update_timestamp()

    def _finish_time(self) -> datetime:
        """Now, nudged past ``started_at`` on clocks too coarse to advance."""
        now = utc_now()
        if self.started_at and now <= self.started_at:
            now = self.started_at + timedelta(microseconds=1)
        return now

    def mark_started(self) -> None:
        """Mark the run as started."""
        self._transition(RunStatus.RUNNING)
        self.started_at = utc_now()

    def mark_completed(self, output: dict[str, Any] | None = None) -> None:
        """Mark the run as completed with its output payload."""
        self._transition(RunStatus.COMPLETED)
        self.finished_at = self._finish_time()
        self.output_payload = output

    def mark_failed(self, message: str) -> None:
        """Mark the run as failed.

        Args:
            message: Error description. Truncated to fit the stored limit.

        Raises:
            ValueError: If message is empty.
            InvalidTransitionError: If the run is not running.
        """
        if not message or not message.strip():
            raise ValueError("A failed run requires an error message")
        if len(message) > MAX_ERROR_MESSAGE_LENGTH:
            message = message[: MAX_ERROR_MESSAGE_LENGTH - 3] + "..."

        self._transition(RunStatus.FAILED)
        self.finished_at = self._finish_time()
        self.error_message = message

    def mark_cancelled(self) -> None:
        """Cancel the run."""
        self._transition(RunStatus.CANCELLED)
        self.finished_at = self._finish_time()

    def add_step(self, name: str, data: dict[str, Any] | None = None) -> StepEntry:
        """Append a completed step to the log."""
        entry = StepEntry(name=name, completed_at=utc_now(), data=data)
        self.steps = (*self.steps, entry)
        return entry

    def fail_step(self, name: str, error: dict[str, Any] | str) -> StepEntry:
        """Append a failed step to the log."""
        entry = StepEntry(name=name, failed_at=utc_now(), error=error)
        self.steps = (*self.steps, entry)
        return entry

    def validation_errors(self) -> list[str]:
        """Check record invariants that span several fields.

        Returns:
            List of violations, empty when the record may be stored.
        """
        errors = []
        failed = self.status == RunStatus.FAILED

        if failed and not self.error_message:
            errors.append("error_message is required when status is failed")
        if self.error_message and not failed:
            errors.append("error_message is only allowed when status is failed")
        if self.started_at and self.finished_at and self.finished_at <= self.started_at:
            errors.append("finished_at must be later than started_at")
        if self.output_payload is not None and self.status != RunStatus.COMPLETED:
            errors.append("output_payload is only allowed when status is completed")

        return errors
