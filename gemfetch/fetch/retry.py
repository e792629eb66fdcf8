"""Bounded retry runner with an abort class."""

import time
from collections.abc import Callable
from typing import TypeVar

import structlog

from gemfetch.fetch.errors import AUTH_ERRORS
from gemfetch.fetch.metrics import FetchMetrics
from gemfetch.fetch.models import RetryPolicy


logger = structlog.get_logger()

T = TypeVar("T")


class Retry:
    """Run an operation with a bounded number of attempts.

    Failures in ``abort_on`` are re-raised immediately without consuming an
    attempt. Transient fetch failures are retried until the policy's
    ``max_attempts`` is used up, then the last failure propagates. Any other
    exception propagates untouched.
    """

    def __init__(
        self,
        name: str,
        policy: RetryPolicy | None = None,
        abort_on: tuple[type[BaseException], ...] = AUTH_ERRORS,
        metrics: FetchMetrics | None = None,
    ) -> None:
        """Initialize the runner.

        Args:
            name: Label used in log events (e.g., "dependency api").
            policy: Retry policy; defaults to RetryPolicy().
            abort_on: Error types that bypass retrying.
            metrics: Optional metrics sink for retry counts.
        """
        self._name = name
        self._policy = policy or RetryPolicy()
        self._abort_on = abort_on
        self._metrics = metrics
        self._log = logger.bind(component="retry", operation=name)

    @property
    def policy(self) -> RetryPolicy:
        """Get the retry policy."""
        return self._policy

    def attempt(self, operation: Callable[[], T]) -> T:
        """Invoke the operation until it succeeds or retries run out.

        Args:
            operation: Zero-argument callable to run.

        Returns:
            The operation's result.
        """
        attempt = 0
        while True:
            try:
                return operation()
            except self._abort_on:
                self._log.debug("retry_aborted", attempt=attempt)
                raise
            except Exception as exc:
                if not self._policy.should_retry(exc, attempt, self._abort_on):
                    raise
                delay_ms = self._policy.get_delay_ms(attempt)
                attempt += 1
                if self._metrics is not None:
                    self._metrics.record_retry()
                self._log.debug(
                    "retry_attempt",
                    attempt=attempt,
                    max_attempts=self._policy.max_attempts,
                    delay_ms=delay_ms,
                    error=str(exc),
                )
                time.sleep(delay_ms / 1000.0)
