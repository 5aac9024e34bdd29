"""Error classifier for integration failures.

Maps a raw failure raised by an HTTP client or SDK onto the error taxonomy
(``ErrorKind``) and decides whether a retry may succeed. Errors already
classified by ThreadAgent pass through unchanged. For raw failures, signals
are evaluated in this order:

1. Explicit non-retryable markers: authentication/permission failures,
   malformed requests and validation failures, resources that do not exist.
2. Retryable markers: rate limiting, upstream 5xx responses, timeouts,
   connection resets/refusals and DNS failures.
3. Message patterns, for exceptions that carry no structural signal.
4. Anything else is ``unknown`` and retryable.

Retries of ``unknown`` failures are still bounded by the adapter policy.

Usage:
    classifier = ErrorClassifier(ServiceScope.CHAT_SOURCE)
    classified = classifier.classify(exc)

    if classified.retryable:
        ...
"""

import json
import re
import socket
from typing import Any

import httpx
import openai
import pydantic
import structlog

from threadagent.utils.exceptions import (
    RETRYABLE_BY_KIND,
    ClassifiedError,
    ErrorKind,
    ServiceScope,
    TERMINAL_ERRORS,
)

logger = structlog.get_logger()


# HTTP status code signals
NON_RETRYABLE_STATUS: dict[int, ErrorKind] = {
    400: ErrorKind.VALIDATION,
    401: ErrorKind.AUTH,
    403: ErrorKind.AUTH,
    404: ErrorKind.NOT_FOUND,
    422: ErrorKind.VALIDATION,
}

# Provider-specific error codes (Slack ``error`` field, Notion ``code`` field)
PROVIDER_ERROR_CODES: dict[str, dict[str, ErrorKind]] = {
    "slack": {
        "invalid_auth": ErrorKind.AUTH,
        "not_authed": ErrorKind.AUTH,
        "account_inactive": ErrorKind.AUTH,
        "token_revoked": ErrorKind.AUTH,
        "token_expired": ErrorKind.AUTH,
        "missing_scope": ErrorKind.AUTH,
        "no_permission": ErrorKind.AUTH,
        "not_in_channel": ErrorKind.AUTH,
        "channel_not_found": ErrorKind.NOT_FOUND,
        "thread_not_found": ErrorKind.NOT_FOUND,
        "message_not_found": ErrorKind.NOT_FOUND,
        "invalid_arguments": ErrorKind.VALIDATION,
        "invalid_arg_name": ErrorKind.VALIDATION,
        "invalid_ts_latest": ErrorKind.VALIDATION,
        "invalid_ts_oldest": ErrorKind.VALIDATION,
        "invalid_cursor": ErrorKind.VALIDATION,
        "ratelimited": ErrorKind.RATE_LIMIT,
        "rate_limited": ErrorKind.RATE_LIMIT,
        "internal_error": ErrorKind.UPSTREAM_ERROR,
        "fatal_error": ErrorKind.UPSTREAM_ERROR,
        "service_unavailable": ErrorKind.UPSTREAM_ERROR,
        "request_timeout": ErrorKind.TIMEOUT,
    },
    "notion": {
        "unauthorized": ErrorKind.AUTH,
        "restricted_resource": ErrorKind.AUTH,
        "object_not_found": ErrorKind.NOT_FOUND,
        "validation_error": ErrorKind.VALIDATION,
        "invalid_json": ErrorKind.VALIDATION,
        "invalid_request": ErrorKind.VALIDATION,
        "invalid_request_url": ErrorKind.VALIDATION,
        "missing_version": ErrorKind.VALIDATION,
        "rate_limited": ErrorKind.RATE_LIMIT,
        "conflict_error": ErrorKind.UPSTREAM_ERROR,
        "internal_server_error": ErrorKind.UPSTREAM_ERROR,
        "service_unavailable": ErrorKind.UPSTREAM_ERROR,
        "database_connection_unavailable": ErrorKind.UPSTREAM_ERROR,
        "gateway_timeout": ErrorKind.TIMEOUT,
    },
}

# Fallback message patterns: (pattern, kind)
ERROR_PATTERNS: list[tuple[str, ErrorKind]] = [
    (r"invalid credentials|authentication failed|unauthorized|forbidden|api key.*invalid|invalid.*api.*key",
     ErrorKind.AUTH),
    (r"not found|does not exist|no such", ErrorKind.NOT_FOUND),
    (r"validation (error|failed)|invalid (request|input)|bad request|malformed", ErrorKind.VALIDATION),
    (r"rate limit|too many requests|throttl|quota exceeded", ErrorKind.RATE_LIMIT),
    (r"timeout|timed out|deadline exceeded", ErrorKind.TIMEOUT),
    (r"connection (refused|reset|closed|aborted)|name or service not known|temporary failure in name resolution",
     ErrorKind.CONNECTION),
    (r"service unavailable|temporarily unavailable|internal server error|bad gateway|gateway timeout",
     ErrorKind.UPSTREAM_ERROR),
]


class ErrorClassifier:
    """Classifies raw integration failures into ``ClassifiedError`` values.

    Example:
        classifier = ErrorClassifier(ServiceScope.DOCUMENT_STORE)
        error = classifier.classify(httpx.ReadTimeout("read timed out"))

        error.kind       # ErrorKind.TIMEOUT
        error.retryable  # True
        error.cause      # the original httpx.ReadTimeout
    """

    def __init__(self, service: ServiceScope = ServiceScope.WORKFLOW):
        """Initialize the error classifier.

        Args:
            service: Service scope stamped on every classified error.
        """
        self.service = ServiceScope(service)
        self.error_class = TERMINAL_ERRORS[self.service]
        self.logger = logger.bind(service="error_classifier", scope=self.service.value)
        self._compiled_patterns = [
            (re.compile(pattern, re.IGNORECASE), kind) for pattern, kind in ERROR_PATTERNS
        ]

    def classify(self, error: BaseException) -> ClassifiedError:
        """Classify a raw failure.

        Args:
            error: The exception raised by the integration call.

        Returns:
            ClassifiedError retaining ``error`` as its cause.
        """
        if isinstance(error, ClassifiedError):
            return error

        status_code = _status_code(error)
        provider, provider_code = _provider_code(error)
        context: dict[str, Any] = {"error_class": type(error).__name__}
        if status_code is not None:
            context["status_code"] = status_code
        if provider_code:
            context["provider_code"] = provider_code

        kind = self._non_retryable_kind(error, status_code, provider, provider_code)
        if kind is None:
            kind = self._retryable_kind(error, status_code, provider, provider_code)
        if kind is None:
            kind = self._kind_from_message(error)

        if kind is None:
            self.logger.warning(
                "Unknown error type, treating as retryable",
                error_class=type(error).__name__,
                error=str(error)[:200],
            )
            kind = ErrorKind.UNKNOWN

        retry_after = _retry_after(error) if kind == ErrorKind.RATE_LIMIT else None

        return self.error_class(
            _message(error),
            kind=kind,
            retryable=RETRYABLE_BY_KIND[kind],
            context=context,
            cause=error,
            retry_after=retry_after,
        )

    def _non_retryable_kind(
        self,
        error: BaseException,
        status_code: int | None,
        provider: str | None,
        provider_code: str | None,
    ) -> ErrorKind | None:
        """Check explicit non-retryable markers."""
        provider_kind = _lookup_provider_code(provider, provider_code)
        if provider_kind is not None and not RETRYABLE_BY_KIND[provider_kind]:
            return provider_kind

        if status_code in NON_RETRYABLE_STATUS:
            return NON_RETRYABLE_STATUS[status_code]

        if isinstance(error, (openai.AuthenticationError, openai.PermissionDeniedError)):
            return ErrorKind.AUTH
        if isinstance(error, openai.NotFoundError):
            return ErrorKind.NOT_FOUND
        if isinstance(error, (openai.BadRequestError, openai.UnprocessableEntityError)):
            return ErrorKind.VALIDATION
        if isinstance(error, (json.JSONDecodeError, pydantic.ValidationError)):
            return ErrorKind.VALIDATION

        return None

    def _retryable_kind(
        self,
        error: BaseException,
        status_code: int | None,
        provider: str | None,
        provider_code: str | None,
    ) -> ErrorKind | None:
        """Check retryable markers."""
        provider_kind = _lookup_provider_code(provider, provider_code)
        if provider_kind is not None:
            return provider_kind

        if status_code == 429 or isinstance(error, openai.RateLimitError):
            return ErrorKind.RATE_LIMIT
        if status_code is not None and 500 <= status_code < 600:
            return ErrorKind.UPSTREAM_ERROR
        if isinstance(error, openai.InternalServerError):
            return ErrorKind.UPSTREAM_ERROR

        # Timeouts are checked first: several timeout types subclass connection errors.
        if isinstance(error, (openai.APITimeoutError, httpx.TimeoutException, TimeoutError)):
            return ErrorKind.TIMEOUT
        if isinstance(
            error,
            (openai.APIConnectionError, httpx.TransportError, ConnectionError, socket.gaierror),
        ):
            return ErrorKind.CONNECTION

        return None

    def _kind_from_message(self, error: BaseException) -> ErrorKind | None:
        """Match the error message against known patterns."""
        message = f"{type(error).__name__} {error}".lower()
        for compiled, kind in self._compiled_patterns:
            if compiled.search(message):
                return kind
        return None


def _message(error: BaseException) -> str:
    message = str(error).strip()
    return message or type(error).__name__


def _status_code(error: BaseException) -> int | None:
    """Extract an HTTP status code from the error or its response."""
    status = getattr(error, "status_code", None)
    if isinstance(status, int):
        return status

    response = getattr(error, "response", None)
    status = getattr(response, "status_code", None)
    if isinstance(status, int):
        return status
    return None


def _provider_code(error: BaseException) -> tuple[str | None, str | None]:
    provider = getattr(error, "provider", None)
    code = getattr(error, "code", None)
    if not isinstance(provider, str) or not isinstance(code, str):
        return None, None
    return provider.lower(), code


def _lookup_provider_code(provider: str | None, code: str | None) -> ErrorKind | None:
    if not provider or not code:
        return None
    return PROVIDER_ERROR_CODES.get(provider, {}).get(code)


def _retry_after(error: BaseException) -> float | None:
    """Extract a server-suggested wait from the error or its response headers."""
    value = getattr(error, "retry_after", None)
    if value is None:
        response = getattr(error, "response", None)
        headers = getattr(response, "headers", None)
        if headers is not None:
            value = headers.get("retry-after")

    if value is None:
        return None
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return None
    return seconds if seconds >= 0 else None


# Singleton instances per service
_classifiers: dict[ServiceScope, ErrorClassifier] = {}


def get_error_classifier(service: ServiceScope = ServiceScope.WORKFLOW) -> ErrorClassifier:
    """Get the shared ErrorClassifier for a service.

    Args:
        service: Service scope.

    Returns:
        ErrorClassifier instance.
    """
    service = ServiceScope(service)
    if service not in _classifiers:
        _classifiers[service] = ErrorClassifier(service)
    return _classifiers[service]


def classify_error(
    error: BaseException,
    service: ServiceScope = ServiceScope.WORKFLOW,
) -> ClassifiedError:
    """Convenience function to classify an error.

    Args:
        error: The raw failure.
        service: Service scope.

    Returns:
        ClassifiedError.
    """
    return get_error_classifier(service).classify(error)
