"""Base class for integration adapters."""

import asyncio
import random
from abc import ABC
from typing import Any, Awaitable, Callable, ClassVar, TypeVar

import structlog

from threadagent.execution.result import Result
from threadagent.execution.retry_policy import RETRY_POLICIES, RetryExecutor, RetryPolicy
from threadagent.utils.exceptions import TERMINAL_ERRORS, ClassifiedError, ErrorKind, ServiceScope

logger = structlog.get_logger()

T = TypeVar("T")


class BaseAdapter(ABC):
    """Wraps one external integration behind a retrying, non-raising surface.

    Subclasses set ``service`` and ``policy_preset`` and implement public
    operations returning ``Result``. Every network call goes through
    ``self.executor``; ``_guard`` turns anything raised into a failed result
    so no exception crosses the adapter boundary.
    """

    service: ClassVar[ServiceScope] = ServiceScope.WORKFLOW
    policy_preset: ClassVar[str] = "default"

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rng: random.Random | None = None,
    ):
        """Initialize the adapter.

        Args:
            policy: Retry policy. Defaults to the adapter's preset.
            sleep: Awaitable sleep used between retries.
            rng: Random source for backoff jitter.
        """
        self.policy = policy or RETRY_POLICIES[self.policy_preset]
        self.executor = RetryExecutor(self.policy, service=self.service, sleep=sleep, rng=rng)
        self.error_class = TERMINAL_ERRORS[self.service]
        self.logger = logger.bind(service=f"{self.service.value}_adapter")

    def _error(self, message: str, kind: ErrorKind, **context: Any) -> ClassifiedError:
        return self.error_class(message, kind=kind, context=context)

    def _invalid(self, message: str, **context: Any) -> Result[Any]:
        """Fail before any network attempt."""
        self.logger.warning("Invalid adapter input", error=message, **context)
        return Result.fail(self._error(message, ErrorKind.VALIDATION, **context))

    async def _guard(self, operation: Callable[[], Awaitable[T]], label: str) -> Result[T]:
        """Run an operation and capture its outcome as a Result.

        Args:
            operation: Async callable doing the adapter's work.
            label: Operation label for logs.

        Returns:
            Result with the value, or the classified error.
        """
        try:
            value = await operation()
        except ClassifiedError as e:
            self.logger.error(
                "Adapter operation failed",
                operation=label,
                error_kind=e.kind.value,
                attempts_made=e.attempts_made,
                error=e.message,
            )
            return Result.fail(e)
        except Exception as e:
            classified = self.executor.classifier.classify(e)
            self.logger.exception("Unexpected adapter error", operation=label, error=str(e))
            return Result.fail(classified)

        return Result.ok(value)
