"""HTTP fetch layer for gem registries.

This module provides blocking registry fetches with:
- Persistent per-host connections with configurable TLS
- Basic auth from URL credentials, never forwarded across hosts
- Bounded redirect following
- Typed failures with remediation hints
- Bounded retries that abort on authentication failures
- Header and credential redaction for logging
- Per-session metrics
"""

from gemfetch.fetch.client import HttpFetcher
from gemfetch.fetch.config import SessionConfig
from gemfetch.fetch.connection import ConnectionManager, build_ssl_context
from gemfetch.fetch.credentials import CredentialResolver, RegistryLocation
from gemfetch.fetch.errors import (
    AUTH_ERRORS,
    AuthenticationRequiredError,
    BadAuthenticationError,
    CertificateFailureError,
    FailureKind,
    FailureRecord,
    FallbackRequiredError,
    FetchFailure,
    HTTPError,
    MalformedSpecError,
    NetworkDownError,
    TLSUnavailableError,
    TooManyRedirectsError,
    TransportError,
)
from gemfetch.fetch.hints import format_failure, get_remediation_hint
from gemfetch.fetch.metrics import FetchMetrics
from gemfetch.fetch.models import RetryPolicy
from gemfetch.fetch.redact import redact_headers, redact_url_credentials, strip_url_credentials
from gemfetch.fetch.retry import Retry
from gemfetch.fetch.user_agent import build_user_agent


__all__ = [
    # Client
    "HttpFetcher",
    "ConnectionManager",
    "build_ssl_context",
    "build_user_agent",
    # Config
    "SessionConfig",
    "RetryPolicy",
    "Retry",
    # Locations
    "CredentialResolver",
    "RegistryLocation",
    # Errors
    "AUTH_ERRORS",
    "AuthenticationRequiredError",
    "BadAuthenticationError",
    "CertificateFailureError",
    "FailureKind",
    "FailureRecord",
    "FallbackRequiredError",
    "FetchFailure",
    "HTTPError",
    "MalformedSpecError",
    "NetworkDownError",
    "TLSUnavailableError",
    "TooManyRedirectsError",
    "TransportError",
    "format_failure",
    "get_remediation_hint",
    # Metrics
    "FetchMetrics",
    # Redaction
    "redact_headers",
    "redact_url_credentials",
    "strip_url_credentials",
]
