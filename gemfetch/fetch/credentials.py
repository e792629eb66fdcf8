"""Registry locations and credential resolution."""

from dataclasses import dataclass, field
from urllib.parse import urlsplit

import httpx
import structlog

from gemfetch.fetch.redact import strip_url_credentials
from gemfetch.settings import FetcherSettings


logger = structlog.get_logger()


def raw_host(uri: str) -> str | None:
    """Extract the host of an absolute URL exactly as written.

    Returns None for relative references and host-less URLs. Case is
    preserved (httpx lowercases hosts on parse) so that host comparison
    stays an exact string comparison.
    """
    netloc = urlsplit(uri).netloc
    if not netloc:
        return None
    hostport = netloc.rpartition("@")[2]
    if hostport.startswith("["):
        return hostport[: hostport.find("]") + 1]
    return hostport.partition(":")[0]


@dataclass(frozen=True)
class RegistryLocation:
    """A registry URI that may carry basic-auth credentials.

    ``str()`` and ``repr()`` only ever show the credential-free form.
    """

    original_uri: httpx.URL
    configured_host: str | None = field(default=None, compare=False)

    @property
    def exact_host(self) -> str:
        """The registry host as configured, case preserved."""
        return self.configured_host or self.original_uri.host

    @property
    def without_credentials(self) -> httpx.URL:
        """The URI with userinfo removed; the only form shown to users."""
        return httpx.URL(strip_url_credentials(self.original_uri))

    @property
    def has_credentials(self) -> bool:
        """Whether the URI carries a username or password."""
        return bool(self.original_uri.username or self.original_uri.password)

    @property
    def host(self) -> str:
        """The registry host."""
        return self.original_uri.host

    @property
    def scheme(self) -> str:
        """The registry URI scheme."""
        return self.original_uri.scheme

    def __str__(self) -> str:
        return str(self.without_credentials)

    def __repr__(self) -> str:
        return f"RegistryLocation({str(self.without_credentials)!r})"


def with_credentials(uri: httpx.URL, username: str, password: str | None) -> httpx.URL:
    """Return a copy of ``uri`` carrying the given credentials."""
    return uri.copy_with(username=username, password=password or "")


def parse_credentials(auth: str) -> tuple[str, str | None]:
    """Split a configured 'username:password' value.

    Args:
        auth: Configured credentials.

    Returns:
        (username, password or None)
    """
    username, sep, password = auth.partition(":")
    return username, (password if sep else None)


class CredentialResolver:
    """Turn a configured source into a credential-scoped registry location.

    Applies mirror substitution first, then looks up credentials for the
    resulting URL or its host. Credentials embedded in the source URI take
    precedence over configured ones.
    """

    def __init__(self, settings: FetcherSettings) -> None:
        """Initialize the resolver.

        Args:
            settings: Configuration source for mirrors and credentials.
        """
        self._settings = settings

    def resolve(self, remote_uri: str | httpx.URL) -> RegistryLocation:
        """Resolve a registry location for a configured source.

        Args:
            remote_uri: Source URI as configured.

        Returns:
            RegistryLocation for the (possibly mirrored) registry.
        """
        source = str(remote_uri)
        if not source.endswith("/"):
            source = f"{source}/"

        mirrored = self._settings.mirror_for(source)
        if mirrored != source:
            logger.debug(
                "mirror_applied",
                component="credentials",
                source=strip_url_credentials(source),
                mirror=strip_url_credentials(mirrored),
            )
        if not mirrored.endswith("/"):
            mirrored = f"{mirrored}/"
        uri = httpx.URL(mirrored)
        host = raw_host(mirrored)

        if uri.username or uri.password:
            return RegistryLocation(uri, host)

        configured = self._settings.credentials_for(
            httpx.URL(strip_url_credentials(uri))
        )
        if configured:
            username, password = parse_credentials(configured)
            uri = with_credentials(uri, username, password)
        return RegistryLocation(uri, host)
