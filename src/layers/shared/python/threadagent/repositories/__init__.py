"""Repository classes for DynamoDB data access."""

from threadagent.repositories.base import BaseRepository
from threadagent.repositories.workflow_run import WorkflowRunRepository

__all__ = [
    "BaseRepository",
    "WorkflowRunRepository",
]
