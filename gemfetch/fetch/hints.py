"""Remediation hints for fetch failures.

Every failure surfaced to a user is one message naming the offending
location plus one of the hints below.
"""

from typing import TYPE_CHECKING, Final

from gemfetch.fetch.errors import FailureKind


if TYPE_CHECKING:
    from gemfetch.fetch.errors import FetchFailure


REMEDIATION_HINTS: Final[dict[FailureKind, str]] = {
    FailureKind.NETWORK_DOWN: (
        "Check your network connection and try again."
    ),
    FailureKind.CERTIFICATE_FAILURE: (
        "There is a chance you are experiencing a man-in-the-middle attack, "
        "but most likely your system doesn't have the CA certificates needed "
        "for verification. Point ssl_ca_cert at a CA bundle, or change the "
        "source from 'https' to 'http'."
    ),
    FailureKind.TLS_UNAVAILABLE: (
        "Rebuild Python with OpenSSL support or change the source "
        "from 'https' to 'http'."
    ),
    FailureKind.AUTHENTICATION_REQUIRED: (
        "Please supply credentials for this source, for example: "
        "GEMFETCH_CREDENTIALS='{{\"{location}\": \"username:password\"}}'"
    ),
    FailureKind.BAD_AUTHENTICATION: (
        "Please double-check your credentials for {location} and correct them."
    ),
    FailureKind.FALLBACK_REQUIRED: (
        "The dependency API refused the request; the full index will be used."
    ),
    FailureKind.TOO_MANY_REDIRECTS: (
        "The registry is redirecting in a loop. Check the source URL or mirror "
        "configuration."
    ),
    FailureKind.MALFORMED_SPEC: (
        "Your network or your gem server is probably having issues right now. "
        "If the problem persists, ask the gem author to yank the bad version."
    ),
    FailureKind.HTTP_ERROR: (
        "The registry returned an unexpected response. Try again later."
    ),
    FailureKind.TRANSPORT_ERROR: (
        "A network error occurred. Try again later."
    ),
}


def get_remediation_hint(kind: FailureKind, location: str | None = None) -> str:
    """Get the remediation hint for a failure kind.

    Args:
        kind: The failure kind.
        location: Credential-free location named in the hint, if any.

    Returns:
        A user-friendly hint string.
    """
    hint = REMEDIATION_HINTS.get(kind, "Try again later.")
    return hint.format(location=location or "<source>")


def format_failure(error: "FetchFailure") -> str:
    """Render a failure as one message followed by its hint.

    Args:
        error: The failure to render.

    Returns:
        Message and hint separated by a newline.
    """
    return f"{error.message}\n  Hint: {error.hint}"
