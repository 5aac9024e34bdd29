"""Pydantic models for ThreadAgent entities."""

from threadagent.models.base import BaseModel, generate_ulid, utc_now
from threadagent.models.thread import (
    PublishedResource,
    ThreadData,
    ThreadMessage,
    TransformOutput,
)
from threadagent.models.workflow_run import (
    ALLOWED_TRANSITIONS,
    MAX_ERROR_MESSAGE_LENGTH,
    RunStatus,
    StepEntry,
    WorkflowRun,
    WorkflowTemplate,
)

__all__ = [
    # Base
    "BaseModel",
    "generate_ulid",
    "utc_now",
    # Thread
    "PublishedResource",
    "ThreadData",
    "ThreadMessage",
    "TransformOutput",
    # Workflow run
    "ALLOWED_TRANSITIONS",
    "MAX_ERROR_MESSAGE_LENGTH",
    "RunStatus",
    "StepEntry",
    "WorkflowRun",
    "WorkflowTemplate",
]
