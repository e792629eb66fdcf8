"""Metrics collection for a fetch session."""

from dataclasses import dataclass, field

from gemfetch.fetch.errors import FailureKind


@dataclass
class FetchMetrics:
    """Metrics for HTTP fetch operations.

    One instance per fetch session; sessions never share counters.
    """

    http_requests_total: dict[int, int] = field(default_factory=dict)
    http_redirects_total: int = 0
    http_retry_total: int = 0
    http_failures_total: dict[str, int] = field(default_factory=dict)
    http_bytes_total: int = 0
    http_duration_ms_total: float = 0.0
    http_request_count: int = 0
    api_fallback_total: int = 0
    closure_rounds_total: int = 0

    def record_request(self, status_code: int, bytes_received: int) -> None:
        """Record a completed HTTP request.

        Args:
            status_code: HTTP status code.
            bytes_received: Number of bytes received.
        """
        self.http_requests_total[status_code] = (
            self.http_requests_total.get(status_code, 0) + 1
        )
        self.http_bytes_total += bytes_received
        self.http_request_count += 1

    def record_redirect(self) -> None:
        """Record a followed redirect."""
        self.http_redirects_total += 1

    def record_retry(self) -> None:
        """Record a retry attempt."""
        self.http_retry_total += 1

    def record_failure(self, kind: FailureKind) -> None:
        """Record a fetch failure.

        Args:
            kind: Classification of the failure.
        """
        key = kind.value
        self.http_failures_total[key] = self.http_failures_total.get(key, 0) + 1

    def record_duration(self, duration_ms: float) -> None:
        """Record request duration.

        Args:
            duration_ms: Duration in milliseconds.
        """
        self.http_duration_ms_total += duration_ms

    def record_fallback(self) -> None:
        """Record a switch from the dependency API to the full index."""
        self.api_fallback_total += 1

    def record_closure_round(self) -> None:
        """Record one round of dependency closure resolution."""
        self.closure_rounds_total += 1

    def to_dict(self) -> dict[str, int | float | dict[str, int] | dict[int, int]]:
        """Convert metrics to dictionary.

        Returns:
            Dictionary of metric name to value.
        """
        return {
            "http_requests_total": dict(self.http_requests_total),
            "http_redirects_total": self.http_redirects_total,
            "http_retry_total": self.http_retry_total,
            "http_failures_total": dict(self.http_failures_total),
            "http_bytes_total": self.http_bytes_total,
            "http_duration_ms_total": self.http_duration_ms_total,
            "http_request_count": self.http_request_count,
            "api_fallback_total": self.api_fallback_total,
            "closure_rounds_total": self.closure_rounds_total,
        }

    @property
    def avg_duration_ms(self) -> float:
        """Calculate average request duration.

        Returns:
            Average duration in milliseconds.
        """
        if self.http_request_count == 0:
            return 0.0
        return self.http_duration_ms_total / self.http_request_count
