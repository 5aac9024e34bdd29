"""Execution infrastructure for fault-tolerant integration calls.

This module provides the components shared by every integration adapter:
- RetryPolicy / RetryExecutor: Exponential backoff with jitter for transient errors
- ErrorClassifier: Maps raw failures onto the error taxonomy
- Result: Success/failure value returned across adapter boundaries
"""

from threadagent.execution.error_classifier import (
    ERROR_PATTERNS,
    PROVIDER_ERROR_CODES,
    ErrorClassifier,
    classify_error,
    get_error_classifier,
)
from threadagent.execution.result import Result
from threadagent.execution.retry_policy import (
    MIN_BACKOFF_SECONDS,
    RETRY_POLICIES,
    RetryExecutor,
    RetryMetrics,
    RetryPolicy,
    compute_backoff,
    get_retry_policy,
    with_retry,
)

__all__ = [
    # Error classification
    "ERROR_PATTERNS",
    "PROVIDER_ERROR_CODES",
    "ErrorClassifier",
    "classify_error",
    "get_error_classifier",
    # Result
    "Result",
    # Retry
    "MIN_BACKOFF_SECONDS",
    "RETRY_POLICIES",
    "RetryExecutor",
    "RetryMetrics",
    "RetryPolicy",
    "compute_backoff",
    "get_retry_policy",
    "with_retry",
]
