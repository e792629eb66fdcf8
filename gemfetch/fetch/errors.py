"""Failure taxonomy for the fetch layer.

Transport exceptions and HTTP statuses are mapped onto a small closed set of
failure kinds. Each kind has its own exception class so callers can catch
exactly the failures they can handle; the propagation rules (which kinds are
retried, which abort retries and fallback) live in :mod:`gemfetch.fetch.retry`
and :mod:`gemfetch.rubygems.fetcher`.
"""

import socket
import ssl
from dataclasses import dataclass
from enum import Enum
from typing import Annotated, ClassVar

import httpx
from pydantic import BaseModel, ConfigDict, Field

from gemfetch.fetch.redact import strip_url_credentials


class FailureKind(str, Enum):
    """Classification of fetch failures.

    - NETWORK_DOWN: Host could not be resolved or reached
    - CERTIFICATE_FAILURE: TLS verification failed
    - TLS_UNAVAILABLE: TLS required but the runtime lacks ssl support
    - AUTHENTICATION_REQUIRED: 401, or credentials missing for a 403
    - BAD_AUTHENTICATION: Credentials were supplied but rejected
    - FALLBACK_REQUIRED: 413 from the dependency API
    - TOO_MANY_REDIRECTS: Redirect limit exceeded
    - MALFORMED_SPEC: Specification payload could not be decoded
    - HTTP_ERROR: Any other non-2xx status
    - TRANSPORT_ERROR: Unrecognized transport fault
    """

    NETWORK_DOWN = "NETWORK_DOWN"
    CERTIFICATE_FAILURE = "CERTIFICATE_FAILURE"
    TLS_UNAVAILABLE = "TLS_UNAVAILABLE"
    AUTHENTICATION_REQUIRED = "AUTHENTICATION_REQUIRED"
    BAD_AUTHENTICATION = "BAD_AUTHENTICATION"
    FALLBACK_REQUIRED = "FALLBACK_REQUIRED"
    TOO_MANY_REDIRECTS = "TOO_MANY_REDIRECTS"
    MALFORMED_SPEC = "MALFORMED_SPEC"
    HTTP_ERROR = "HTTP_ERROR"
    TRANSPORT_ERROR = "TRANSPORT_ERROR"


class FetchFailure(Exception):
    """Base exception for fetch failures.

    Provides structured error information for logging and for the
    single human-readable message shown to users.
    """

    kind: ClassVar[FailureKind] = FailureKind.HTTP_ERROR
    retryable: ClassVar[bool] = True

    def __init__(self, message: str, location: str | httpx.URL | None = None) -> None:
        """Initialize the failure.

        Args:
            message: Human-readable error message.
            location: Remote location involved; credentials are stripped.
        """
        self.location = strip_url_credentials(location) if location else None
        self.message = strip_url_credentials(message)
        super().__init__(self.message)

    @property
    def hint(self) -> str:
        """Remediation hint for this failure."""
        from gemfetch.fetch.hints import get_remediation_hint

        return get_remediation_hint(self.kind, self.location)

    def to_dict(self) -> dict[str, str | bool | None]:
        """Convert failure to dictionary for logging/serialization.

        Returns:
            Dictionary representation of the failure.
        """
        return {
            "kind": self.kind.value,
            "location": self.location,
            "message": self.message,
            "retryable": self.retryable,
        }


class HTTPError(FetchFailure):
    """Generic non-2xx response or unrecognized failure."""

    def __init__(
        self,
        message: str,
        location: str | httpx.URL | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message, location)
        self.status_code = status_code


class TransportError(FetchFailure):
    """Transport fault that is not a DNS or TLS problem."""

    kind = FailureKind.TRANSPORT_ERROR


class NetworkDownError(FetchFailure):
    """Raised when it looks like the network is down."""

    kind = FailureKind.NETWORK_DOWN

    def __init__(self, host: str, location: str | httpx.URL | None = None) -> None:
        super().__init__(
            f"Could not reach host {host}. Check your network connection and try again.",
            location or host,
        )
        self.host = host


class CertificateFailureError(FetchFailure):
    """Raised when TLS certificate verification fails."""

    kind = FailureKind.CERTIFICATE_FAILURE
    retryable = False

    def __init__(self, location: str | httpx.URL) -> None:
        super().__init__(
            f"Could not verify the SSL certificate for {strip_url_credentials(location)}.",
            location,
        )


class TLSUnavailableError(FetchFailure):
    """Raised when a source needs TLS but the ssl module cannot be loaded."""

    kind = FailureKind.TLS_UNAVAILABLE
    retryable = False

    def __init__(self, location: str | httpx.URL | None = None) -> None:
        super().__init__("Could not load OpenSSL support (the ssl module).", location)


class AuthenticationRequiredError(FetchFailure):
    """Raised when HTTP authentication is required but not provided."""

    kind = FailureKind.AUTHENTICATION_REQUIRED
    retryable = False

    def __init__(self, location: str | httpx.URL) -> None:
        super().__init__(
            f"Authentication is required for {strip_url_credentials(location)}.",
            location,
        )


class BadAuthenticationError(FetchFailure):
    """Raised when HTTP authentication is provided but incorrect."""

    kind = FailureKind.BAD_AUTHENTICATION
    retryable = False

    def __init__(self, location: str | httpx.URL) -> None:
        super().__init__(
            f"Bad username or password for {strip_url_credentials(location)}.",
            location,
        )


class FallbackRequiredError(FetchFailure):
    """Raised when the dependency API answers 413; only shown in verbose output."""

    kind = FailureKind.FALLBACK_REQUIRED
    retryable = False

    def __init__(self, body: str, location: str | httpx.URL | None = None) -> None:
        super().__init__(body or "Request entity too large", location)
        self.body = body


class TooManyRedirectsError(FetchFailure):
    """Raised when the redirect limit is reached."""

    kind = FailureKind.TOO_MANY_REDIRECTS
    retryable = False

    def __init__(self, location: str | httpx.URL, limit: int) -> None:
        super().__init__(
            f"Too many redirects (limit {limit}) while fetching "
            f"{strip_url_credentials(location)}",
            location,
        )
        self.limit = limit


class MalformedSpecError(FetchFailure):
    """Raised when a specification entry cannot be decoded."""

    kind = FailureKind.MALFORMED_SPEC
    retryable = False

    def __init__(
        self,
        message: str,
        location: str | httpx.URL | None = None,
        package: str | None = None,
    ) -> None:
        super().__init__(message, location)
        self.package = package


# Exception classes that bypass retry attempts and API fallback. If the
# password didn't work the first time, it won't work the third time.
AUTH_ERRORS: tuple[type[FetchFailure], ...] = (
    AuthenticationRequiredError,
    BadAuthenticationError,
)


class TransportFaultKind(str, Enum):
    """Structured kind of a transport-level fault."""

    DNS = "DNS"
    TLS = "TLS"
    TIMEOUT = "TIMEOUT"
    CONNECTION = "CONNECTION"
    PROTOCOL = "PROTOCOL"
    UNKNOWN = "UNKNOWN"


@dataclass(frozen=True)
class TransportFault:
    """A transport exception reduced to its kind and raw detail.

    The detail is raw exception text; it belongs in debug traces only.
    """

    kind: TransportFaultKind
    detail: str


def _exception_chain(exc: BaseException) -> list[BaseException]:
    """Collect an exception and its causes, guarding against cycles."""
    chain: list[BaseException] = []
    current: BaseException | None = exc
    while current is not None and current not in chain:
        chain.append(current)
        current = current.__cause__ or current.__context__
    return chain


def describe_transport_fault(exc: BaseException) -> TransportFault:
    """Reduce a transport exception to a structured fault.

    The kind is derived from exception types found in the cause chain,
    never from message text.

    Args:
        exc: Exception raised by the transport.

    Returns:
        TransportFault with kind and raw detail.
    """
    chain = _exception_chain(exc)
    if any(isinstance(e, ssl.SSLError) for e in chain):
        kind = TransportFaultKind.TLS
    elif any(isinstance(e, socket.gaierror) for e in chain):
        kind = TransportFaultKind.DNS
    elif isinstance(exc, httpx.TimeoutException):
        kind = TransportFaultKind.TIMEOUT
    elif isinstance(exc, (httpx.ProtocolError, httpx.DecodingError)):
        kind = TransportFaultKind.PROTOCOL
    elif isinstance(exc, (httpx.NetworkError, OSError)):
        kind = TransportFaultKind.CONNECTION
    else:
        kind = TransportFaultKind.UNKNOWN
    return TransportFault(kind=kind, detail=f"{type(exc).__name__}: {exc}")


def classify_transport_fault(fault: TransportFault, url: httpx.URL) -> FetchFailure:
    """Map a structured transport fault to a typed failure.

    Args:
        fault: The structured fault.
        url: URL that was being requested.

    Returns:
        The failure to raise.
    """
    if fault.kind == TransportFaultKind.TLS:
        return CertificateFailureError(url)
    if fault.kind == TransportFaultKind.DNS:
        return NetworkDownError(url.host, url)
    return TransportError(f"Network error while fetching {url}", url)


class FailureRecord(BaseModel):
    """Serializable failure record for reporting.

    Used to hand a failure to the resolver or render it in the CLI.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: FailureKind = Field(description="Failure classification")
    message: Annotated[str, Field(min_length=1, description="Error message")]
    location: str | None = Field(default=None, description="Remote location")
    hint: str = Field(default="", description="Remediation hint")

    @classmethod
    def from_exception(cls, error: FetchFailure) -> "FailureRecord":
        """Create a FailureRecord from a FetchFailure exception.

        Args:
            error: The exception to convert.

        Returns:
            FailureRecord instance.
        """
        return cls(
            kind=error.kind,
            message=error.message,
            location=error.location,
            hint=error.hint,
        )
