"""Utility functions and helpers."""

from threadagent.utils.exceptions import (
    ChatSourceError,
    ClassifiedError,
    ConflictError,
    DocumentStoreError,
    ErrorKind,
    InvalidTransitionError,
    LLMError,
    NotFoundError,
    ServiceScope,
    ThreadAgentError,
    ValidationError,
    WorkflowError,
)

__all__ = [
    "ChatSourceError",
    "ClassifiedError",
    "ConflictError",
    "DocumentStoreError",
    "ErrorKind",
    "InvalidTransitionError",
    "LLMError",
    "NotFoundError",
    "ServiceScope",
    "ThreadAgentError",
    "ValidationError",
    "WorkflowError",
]
