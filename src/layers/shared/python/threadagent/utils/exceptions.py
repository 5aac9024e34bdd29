"""Custom exception classes for ThreadAgent.

Two families live here:

- ``ThreadAgentError`` and its direct subclasses describe failures of
  ThreadAgent itself (missing records, invalid records, write conflicts).
- ``ClassifiedError`` describes a failure of an external integration after it
  has been mapped onto the error taxonomy. It carries a ``kind`` tag and a
  ``service`` scope tag so callers can branch on the tags instead of on deep
  class hierarchies. One shallow subclass exists per service so adapters can
  raise a distinct terminal error type.
"""

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Error taxonomy for integration failures."""

    VALIDATION = "validation"
    AUTH = "auth"
    NOT_FOUND = "not_found"
    CONFIGURATION = "configuration"
    RATE_LIMIT = "rate_limit"
    TIMEOUT = "timeout"
    CONNECTION = "connection"
    UPSTREAM_ERROR = "upstream_error"
    UNKNOWN = "unknown"


# Default retryability per kind. UNKNOWN fails open toward retrying.
RETRYABLE_BY_KIND: dict[ErrorKind, bool] = {
    ErrorKind.VALIDATION: False,
    ErrorKind.AUTH: False,
    ErrorKind.NOT_FOUND: False,
    ErrorKind.CONFIGURATION: False,
    ErrorKind.RATE_LIMIT: True,
    ErrorKind.TIMEOUT: True,
    ErrorKind.CONNECTION: True,
    ErrorKind.UPSTREAM_ERROR: True,
    ErrorKind.UNKNOWN: True,
}


class ServiceScope(str, Enum):
    """Which integration (or the workflow itself) an error belongs to."""

    CHAT_SOURCE = "chat_source"
    LLM = "llm"
    DOCUMENT_STORE = "document_store"
    WORKFLOW = "workflow"


class ThreadAgentError(Exception):
    """Base exception for all ThreadAgent errors."""

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        status_code: int = 500,
        details: dict | None = None,
    ):
        """Initialize ThreadAgentError.

        Args:
            message: Human-readable error message.
            error_code: Machine-readable error code.
            status_code: HTTP-style status code for callers that surface it.
            details: Additional error details.
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or "INTERNAL_ERROR"
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> dict:
        """Convert exception to a dictionary."""
        result = {
            "error": True,
            "error_code": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


class NotFoundError(ThreadAgentError):
    """Raised when a requested record is not found."""

    def __init__(
        self,
        resource_type: str,
        resource_id: str,
        message: str | None = None,
    ):
        """Initialize NotFoundError.

        Args:
            resource_type: Type of resource (e.g., "WorkflowRun").
            resource_id: ID of the resource that was not found.
            message: Optional custom message.
        """
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(
            message=message or f"{resource_type} with ID '{resource_id}' not found",
            error_code="NOT_FOUND",
            status_code=404,
            details={"resource_type": resource_type, "resource_id": resource_id},
        )


class ValidationError(ThreadAgentError):
    """Raised when a record fails validation at the storage boundary."""

    def __init__(
        self,
        message: str = "Validation failed",
        errors: list[str] | None = None,
    ):
        """Initialize ValidationError.

        Args:
            message: Error message.
            errors: List of individual validation failures.
        """
        self.errors = errors or []
        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR",
            status_code=400,
            details={"errors": self.errors},
        )


class ConflictError(ThreadAgentError):
    """Raised on a write conflict (duplicate or optimistic lock failure)."""

    def __init__(
        self,
        message: str = "Resource conflict",
        conflict_type: str | None = None,
    ):
        """Initialize ConflictError."""
        super().__init__(
            message=message,
            error_code="CONFLICT",
            status_code=409,
            details={"conflict_type": conflict_type} if conflict_type else None,
        )


class InvalidTransitionError(ThreadAgentError):
    """Raised when a run is moved to a status its current status forbids."""

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(
            message=f"Cannot transition workflow run from '{current}' to '{target}'",
            error_code="INVALID_TRANSITION",
            status_code=409,
            details={"current": current, "target": target},
        )


class ClassifiedError(ThreadAgentError):
    """An integration failure annotated with taxonomy kind and retryability.

    The original exception is kept as ``cause`` (and as ``__cause__`` so
    tracebacks show the chain).
    """

    service: ServiceScope = ServiceScope.WORKFLOW

    def __init__(
        self,
        message: str,
        kind: ErrorKind = ErrorKind.UNKNOWN,
        retryable: bool | None = None,
        context: dict[str, Any] | None = None,
        cause: BaseException | None = None,
        service: ServiceScope | None = None,
        code: str | None = None,
        retry_after: float | None = None,
        attempts_made: int = 0,
    ):
        """Initialize ClassifiedError.

        Args:
            message: Human-readable error message.
            kind: Taxonomy kind.
            retryable: Whether a retry may succeed. Defaults per kind.
            context: Key-value diagnostics.
            cause: The original failure.
            service: Service scope. Defaults to the class scope.
            code: Dotted machine code. Defaults to ``<service>.<kind>``.
            retry_after: Server-suggested wait before retrying, in seconds.
            attempts_made: Retries made before this error was surfaced.
        """
        self.kind = ErrorKind(kind)
        self.retryable = RETRYABLE_BY_KIND[self.kind] if retryable is None else retryable
        self.context = dict(context or {})
        self.cause = cause
        if service is not None:
            self.service = ServiceScope(service)
        self.code = code or f"{self.service.value}.{self.kind.value}"
        self.retry_after = retry_after
        self.attempts_made = attempts_made
        super().__init__(
            message=message,
            error_code=self.code,
            status_code=502,
            details=self.context,
        )
        if cause is not None:
            self.__cause__ = cause

    def to_dict(self) -> dict:
        """Convert to a JSON-safe dictionary for step logs and responses."""
        result = {
            "kind": self.kind.value,
            "code": self.code,
            "message": self.message,
            "service": self.service.value,
            "retryable": self.retryable,
            "attempts_made": self.attempts_made,
        }
        if self.context:
            result["context"] = {k: _json_safe(v) for k, v in self.context.items()}
        if self.retry_after is not None:
            result["retry_after"] = self.retry_after
        if self.cause is not None:
            result["cause"] = f"{type(self.cause).__name__}: {self.cause}"
        return result

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(kind={self.kind.value!r}, "
            f"service={self.service.value!r}, message={self.message!r})"
        )


class ChatSourceError(ClassifiedError):
    """Terminal error from the chat-source (Slack) integration."""

    service = ServiceScope.CHAT_SOURCE


class LLMError(ClassifiedError):
    """Terminal error from the LLM (OpenAI) integration."""

    service = ServiceScope.LLM


class DocumentStoreError(ClassifiedError):
    """Terminal error from the document-store (Notion) integration."""

    service = ServiceScope.DOCUMENT_STORE


class WorkflowError(ClassifiedError):
    """Workflow-level failure not owned by any single integration."""

    service = ServiceScope.WORKFLOW


TERMINAL_ERRORS: dict[ServiceScope, type[ClassifiedError]] = {
    ServiceScope.CHAT_SOURCE: ChatSourceError,
    ServiceScope.LLM: LLMError,
    ServiceScope.DOCUMENT_STORE: DocumentStoreError,
    ServiceScope.WORKFLOW: WorkflowError,
}


def _json_safe(value: Any) -> Any:
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_json_safe(v) for v in value]
    return str(value)
