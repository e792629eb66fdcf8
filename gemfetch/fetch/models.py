"""Data models for the HTTP fetch layer."""

import random
from collections.abc import Callable
from typing import Annotated, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from gemfetch.fetch.errors import AUTH_ERRORS, FetchFailure


T = TypeVar("T")


class RetryPolicy(BaseModel):
    """Configuration for retry behavior.

    Controls how many attempts an operation gets and the delay between them.
    Uses exponential backoff: delay = base_delay_ms * (exponential_base ^ attempt)
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_attempts: Annotated[int, Field(ge=1, le=10)] = 3
    base_delay_ms: Annotated[int, Field(ge=0, le=60000)] = 200
    max_delay_ms: Annotated[int, Field(ge=0, le=300000)] = 5000
    exponential_base: Annotated[float, Field(ge=1.0, le=5.0)] = 2.0
    jitter_factor: Annotated[float, Field(ge=0.0, le=1.0)] = 0.1

    def should_retry(
        self,
        error: BaseException,
        attempt: int,
        abort_on: tuple[type[BaseException], ...] = AUTH_ERRORS,
    ) -> bool:
        """Determine if an operation should be attempted again.

        Args:
            error: The error that occurred.
            attempt: Current attempt number (0-indexed).
            abort_on: Error types that are never retried.

        Returns:
            True if the operation should be retried.
        """
        if isinstance(error, abort_on):
            return False

        if attempt + 1 >= self.max_attempts:
            return False

        # Only classified fetch failures are retried, and only the transient ones
        return isinstance(error, FetchFailure) and error.retryable

    def get_delay_ms(self, attempt: int) -> int:
        """Calculate delay before the next attempt.

        Args:
            attempt: Attempt number that just failed (0-indexed).

        Returns:
            Delay in milliseconds.
        """
        delay = self.base_delay_ms * (self.exponential_base**attempt)
        delay = min(delay, self.max_delay_ms)

        # Add jitter to prevent thundering herd
        jitter = delay * self.jitter_factor * random.random()  # noqa: S311
        return int(delay + jitter)

    def attempt(
        self,
        operation: Callable[[], T],
        abort_on: tuple[type[BaseException], ...] = AUTH_ERRORS,
        name: str = "operation",
    ) -> T:
        """Run an operation under this policy.

        Args:
            operation: Zero-argument callable to run.
            abort_on: Error types re-raised without retrying.
            name: Label used in log events.

        Returns:
            The operation's result.
        """
        from gemfetch.fetch.retry import Retry

        return Retry(name, policy=self, abort_on=abort_on).attempt(operation)
