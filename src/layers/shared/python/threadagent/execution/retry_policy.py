"""Retry policy with exponential backoff and jitter.

Provides the retry machinery shared by every integration adapter:
- ``compute_backoff``: pure exponential backoff with optional ±25% jitter
- ``RetryPolicy``: value object describing bounds and which error kinds retry
- ``RetryExecutor``: runs an operation, classifies failures, sleeps and
  retries, and raises a service-scoped terminal error when it gives up

Usage:
    executor = RetryExecutor(
        RETRY_POLICIES["llm"],
        service=ServiceScope.LLM,
    )

    async def call_model():
        return await client.chat.completions.create(...)

    response = await executor.execute(call_model, "llm.transform")
"""

import asyncio
import inspect
import random
from dataclasses import dataclass, field, replace
from typing import Any, Awaitable, Callable, TypeVar

import structlog

from threadagent.execution.error_classifier import ErrorClassifier
from threadagent.utils.exceptions import (
    ClassifiedError,
    ErrorKind,
    ServiceScope,
    TERMINAL_ERRORS,
)

logger = structlog.get_logger()

T = TypeVar("T")

# Floor for jittered delays
MIN_BACKOFF_SECONDS = 0.1
JITTER_RATIO = 0.25

DEFAULT_RETRYABLE_KINDS = frozenset({
    ErrorKind.RATE_LIMIT,
    ErrorKind.TIMEOUT,
    ErrorKind.CONNECTION,
    ErrorKind.UPSTREAM_ERROR,
    ErrorKind.UNKNOWN,
})

DEFAULT_NON_RETRYABLE_KINDS = frozenset({
    ErrorKind.VALIDATION,
    ErrorKind.AUTH,
    ErrorKind.NOT_FOUND,
    ErrorKind.CONFIGURATION,
})


def compute_backoff(
    attempt: int,
    base: float,
    factor: float,
    cap: float,
    jitter: bool,
    rng: random.Random | None = None,
) -> float:
    """Compute the sleep before a retry.

    Args:
        attempt: Retry number, 1-based (the first retry is attempt 1).
        base: Base interval in seconds.
        factor: Exponential multiplier.
        cap: Maximum interval in seconds.
        jitter: Apply a uniform ±25% perturbation.
        rng: Random source for jitter. Defaults to the ``random`` module.

    Returns:
        Delay in seconds. Never below ``MIN_BACKOFF_SECONDS`` when jittered.
    """
    if attempt < 1:
        raise ValueError(f"attempt must be >= 1, got {attempt}")

    delay = min(base * (factor ** (attempt - 1)), cap)

    if jitter:
        jitter_range = delay * JITTER_RATIO
        delay += (rng or random).uniform(-jitter_range, jitter_range)
        delay = max(delay, MIN_BACKOFF_SECONDS)

    return delay


@dataclass(frozen=True)
class RetryPolicy:
    """Bounds and error-kind rules for retrying one integration."""

    max_attempts: int = 3  # Retries after the initial try
    base_interval: float = 1.0
    backoff_factor: float = 2.0
    max_interval: float = 30.0
    jitter: bool = True

    retryable_error_kinds: frozenset[ErrorKind] = DEFAULT_RETRYABLE_KINDS
    non_retryable_error_kinds: frozenset[ErrorKind] = DEFAULT_NON_RETRYABLE_KINDS  # Takes precedence

    # Use a server-suggested wait (Retry-After) instead of the computed backoff
    honor_retry_after: bool = False

    def __post_init__(self) -> None:
        if self.max_attempts < 0:
            raise ValueError("max_attempts must be >= 0")
        if self.base_interval <= 0:
            raise ValueError("base_interval must be > 0")
        if self.backoff_factor < 1:
            raise ValueError("backoff_factor must be >= 1")
        if self.max_interval < self.base_interval:
            raise ValueError("max_interval must be >= base_interval")
        object.__setattr__(
            self, "retryable_error_kinds", frozenset(ErrorKind(k) for k in self.retryable_error_kinds)
        )
        object.__setattr__(
            self,
            "non_retryable_error_kinds",
            frozenset(ErrorKind(k) for k in self.non_retryable_error_kinds),
        )

    def backoff(self, attempt: int, rng: random.Random | None = None) -> float:
        """Compute the delay before retry ``attempt`` under this policy."""
        return compute_backoff(
            attempt,
            self.base_interval,
            self.backoff_factor,
            self.max_interval,
            self.jitter,
            rng,
        )

    def with_overrides(self, **changes: Any) -> "RetryPolicy":
        """Return a copy with some fields replaced."""
        return replace(self, **changes)


@dataclass
class RetryMetrics:
    """Metrics for retry operations."""

    total_attempts: int = 0
    successful_operations: int = 0
    failed_operations: int = 0
    total_delay_seconds: float = 0.0
    retries_by_kind: dict[ErrorKind, int] = field(default_factory=dict)


class RetryExecutor:
    """Runs operations under a ``RetryPolicy``.

    The initial try is unconditional. Each failure is classified; kinds in
    ``non_retryable_error_kinds`` or failures that are not retryable raise at
    once, otherwise the executor sleeps and retries until ``max_attempts``
    retries are spent. Whatever is raised is an instance of the configured
    terminal error class, chained to the original failure.

    Example:
        executor = RetryExecutor(
            RetryPolicy(max_attempts=2, jitter=False),
            service=ServiceScope.DOCUMENT_STORE,
        )

        try:
            page = await executor.execute(lambda: client.create_page(...), "notion.create_page")
        except DocumentStoreError as e:
            print(e.kind, e.attempts_made)
    """

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        service: ServiceScope = ServiceScope.WORKFLOW,
        classifier: ErrorClassifier | None = None,
        terminal_error_class: type[ClassifiedError] | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rng: random.Random | None = None,
    ):
        """Initialize the retry executor.

        Args:
            policy: Retry policy. Defaults to ``RetryPolicy()``.
            service: Service scope for classification and terminal errors.
            classifier: Error classifier. Defaults to one for ``service``.
            terminal_error_class: Error type raised when giving up.
            sleep: Awaitable sleep, suspends only the calling task.
            rng: Random source for jitter.
        """
        self.policy = policy or RetryPolicy()
        self.service = ServiceScope(service)
        self.classifier = classifier or ErrorClassifier(self.service)
        self.terminal_error_class = terminal_error_class or TERMINAL_ERRORS[self.service]
        self._sleep = sleep
        self._rng = rng
        self.metrics = RetryMetrics()
        self.logger = logger.bind(service="retry_executor", scope=self.service.value)

    async def execute(
        self,
        operation: Callable[[], T | Awaitable[T]],
        context_label: str | None = None,
    ) -> T:
        """Execute an operation with retry logic.

        Args:
            operation: Sync or async callable taking no arguments.
            context_label: Label included in logs and the terminal message.

        Returns:
            The operation's result.

        Raises:
            ClassifiedError: Instance of ``terminal_error_class`` when the
                failure is not retryable or retries are exhausted.
        """
        label = context_label or self.service.value
        retries = 0

        while True:
            self.metrics.total_attempts += 1
            try:
                result = operation()
                if inspect.isawaitable(result):
                    result = await result
            except Exception as e:
                classified = self.classifier.classify(e)

                if not self._should_retry(classified, retries):
                    self.metrics.failed_operations += 1
                    raise self._terminal_error(classified, retries, label) from (
                        classified.cause or classified
                    )

                retries += 1
                delay = self._next_delay(classified, retries)
                self.metrics.total_delay_seconds += delay
                self.metrics.retries_by_kind[classified.kind] = (
                    self.metrics.retries_by_kind.get(classified.kind, 0) + 1
                )

                self.logger.warning(
                    "Retrying operation",
                    context=label,
                    attempt=retries,
                    max_attempts=self.policy.max_attempts,
                    sleep_seconds=round(delay, 2),
                    error_kind=classified.kind.value,
                    error_class=classified.context.get("error_class"),
                    error=classified.message,
                )

                await self._sleep(delay)
                continue

            self.metrics.successful_operations += 1
            if retries:
                self.logger.info("Operation succeeded after retries", context=label, retries=retries)
            return result

    def _should_retry(self, error: ClassifiedError, retries: int) -> bool:
        """Determine if a classified failure should be retried.

        Args:
            error: Classified failure.
            retries: Retries made so far.

        Returns:
            True if should retry.
        """
        if error.kind in self.policy.non_retryable_error_kinds:
            return False

        if not error.retryable or error.kind not in self.policy.retryable_error_kinds:
            return False

        return retries < self.policy.max_attempts

    def _next_delay(self, error: ClassifiedError, attempt: int) -> float:
        """Delay before retry ``attempt`` (1-based, post-increment)."""
        if self.policy.honor_retry_after and error.retry_after is not None:
            return float(error.retry_after)
        return self.policy.backoff(attempt, self._rng)

    def _terminal_error(self, error: ClassifiedError, retries: int, label: str) -> ClassifiedError:
        message = f"[{label}] Operation failed after {retries} retries: {error.message}"

        self.logger.error(
            "Operation failed",
            context=label,
            retries=retries,
            error_kind=error.kind.value,
            error=error.message,
        )

        return self.terminal_error_class(
            message,
            kind=error.kind,
            retryable=error.retryable,
            context={**error.context, "context_label": label},
            cause=error.cause or error,
            retry_after=error.retry_after,
            attempts_made=retries,
        )

    def get_metrics(self) -> dict[str, Any]:
        """Get retry metrics.

        Returns:
            Dict of metrics.
        """
        finished = self.metrics.successful_operations + self.metrics.failed_operations
        return {
            "total_attempts": self.metrics.total_attempts,
            "successful_operations": self.metrics.successful_operations,
            "failed_operations": self.metrics.failed_operations,
            "total_delay_seconds": self.metrics.total_delay_seconds,
            "success_rate": (
                self.metrics.successful_operations / finished if finished > 0 else 0.0
            ),
            "retries_by_kind": {k.value: v for k, v in self.metrics.retries_by_kind.items()},
        }


# Preset policies per integration
RETRY_POLICIES: dict[str, RetryPolicy] = {
    "default": RetryPolicy(),
    "chat_source": RetryPolicy(
        max_attempts=3,
        base_interval=1.0,
        max_interval=30.0,
        honor_retry_after=True,
    ),
    "llm": RetryPolicy(
        max_attempts=3,
        base_interval=1.0,
        max_interval=30.0,
        jitter=False,
    ),
    "document_store": RetryPolicy(
        max_attempts=3,
        base_interval=1.0,
        max_interval=30.0,
        honor_retry_after=True,
    ),
}


def get_retry_policy(preset: str = "default", max_attempts: int | None = None) -> RetryPolicy:
    """Get a preset retry policy.

    Args:
        preset: Name of the preset (default, chat_source, llm, document_store).
        max_attempts: Optional override for the retry bound.

    Returns:
        RetryPolicy instance.
    """
    policy = RETRY_POLICIES.get(preset, RETRY_POLICIES["default"])
    if max_attempts is not None:
        policy = policy.with_overrides(max_attempts=max_attempts)
    return policy


async def with_retry(
    operation: Callable[[], T | Awaitable[T]],
    policy: RetryPolicy | None = None,
    service: ServiceScope = ServiceScope.WORKFLOW,
    context_label: str | None = None,
) -> T:
    """Execute an operation with retry logic.

    Convenience function for one-off retries.

    Args:
        operation: Callable to execute.
        policy: Optional retry policy.
        service: Service scope for classification.
        context_label: Optional label for logs.

    Returns:
        Operation result.

    Raises:
        ClassifiedError: The service's terminal error if all retries fail.
    """
    executor = RetryExecutor(policy, service=service)
    return await executor.execute(operation, context_label)
