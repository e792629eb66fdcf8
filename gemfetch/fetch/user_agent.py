"""Identifying client string sent with every request."""

import platform
import secrets
import sys

from gemfetch import __version__


def build_user_agent(
    command: str | None = None,
    options: list[str] | None = None,
    extra: str | None = None,
) -> str:
    """Compose the User-Agent header value.

    Includes tool and runtime versions, the invoking command, the names of
    enabled options and a random token so one run's requests can be
    correlated server side.

    Args:
        command: Invoking command name; defaults to the first CLI argument.
        options: Names of enabled options.
        extra: Extra token from configuration.

    Returns:
        The User-Agent string.
    """
    if command is None:
        command = sys.argv[1] if len(sys.argv) > 1 else ""

    parts = [
        f"gemfetch/{__version__}",
        f"python/{platform.python_version()}",
        f"({platform.machine()}-{sys.platform})",
        f"command/{command}",
    ]

    implementation = platform.python_implementation()
    if implementation != "CPython":
        parts.append(f"{implementation.lower()}/{platform.python_version()}")

    parts.append(f"options/{','.join(options or [])}")
    parts.append(secrets.token_hex(8))

    if extra:
        parts.append(extra)

    return " ".join(parts)
