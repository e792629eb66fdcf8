"""Process-wide list of active registry sources."""

import threading
from collections.abc import Iterator
from contextlib import contextmanager


_lock = threading.Lock()
_active_sources: list[str] = []


def active_sources() -> list[str]:
    """Get a copy of the process-wide active registry list."""
    with _lock:
        return list(_active_sources)


def set_active_sources(sources: list[str]) -> None:
    """Replace the process-wide active registry list."""
    with _lock:
        _active_sources[:] = sources


@contextmanager
def override_sources(sources: list[str]) -> Iterator[list[str]]:
    """Temporarily replace the active registry list.

    The previous list is restored on every exit path, including failures.

    Args:
        sources: Registry URLs (credential-free) to install.

    Yields:
        The installed list.
    """
    previous = active_sources()
    set_active_sources(sources)
    try:
        yield list(sources)
    finally:
        set_active_sources(previous)
