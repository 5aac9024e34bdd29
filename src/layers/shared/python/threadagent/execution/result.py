"""Discriminated success/failure value returned across adapter boundaries."""

from dataclasses import dataclass
from typing import Generic, TypeVar

from threadagent.utils.exceptions import ClassifiedError

T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    """Either a value (success) or a classified error (failure).

    Example:
        result = await adapter.fetch_thread(channel_id, thread_ts)
        if result.success:
            thread = result.value
        else:
            print(result.error.kind)
    """

    success: bool
    value: T | None = None
    error: ClassifiedError | None = None

    @classmethod
    def ok(cls, value: T) -> "Result[T]":
        """Create a successful result."""
        return cls(success=True, value=value)

    @classmethod
    def fail(cls, error: ClassifiedError) -> "Result[T]":
        """Create a failed result."""
        return cls(success=False, error=error)

    @property
    def failure(self) -> bool:
        return not self.success
