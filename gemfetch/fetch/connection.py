"""Persistent HTTP connections and TLS configuration."""

import importlib.util
import ssl

import certifi
import httpx
import structlog

from gemfetch.fetch.errors import TLSUnavailableError
from gemfetch.fetch.redact import strip_url_credentials
from gemfetch.settings import FetcherSettings, VerifyMode


logger = structlog.get_logger()


def tls_available() -> bool:
    """Check whether the runtime was built with TLS support."""
    return importlib.util.find_spec("_ssl") is not None


def build_ssl_context(settings: FetcherSettings) -> ssl.SSLContext:
    """Build the TLS context used for registry connections.

    Trusted roots come from ``ssl_ca_cert`` (file or directory) when set,
    otherwise from the system store plus the certifi bundle. A client
    certificate (PEM holding certificate and key) is attached when
    ``ssl_client_cert`` is set.

    Args:
        settings: Fetcher settings.

    Returns:
        Configured SSL context.
    """
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)

    if settings.ssl_verify_mode == VerifyMode.NONE:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    else:
        context.verify_mode = ssl.CERT_REQUIRED
        context.check_hostname = True

    ca_cert = settings.ssl_ca_cert
    if ca_cert is not None:
        if ca_cert.is_dir():
            context.load_verify_locations(capath=str(ca_cert))
        else:
            context.load_verify_locations(cafile=str(ca_cert))
    else:
        context.load_default_certs()
        context.load_verify_locations(cafile=certifi.where())

    if settings.ssl_client_cert is not None:
        context.load_cert_chain(certfile=str(settings.ssl_client_cert))

    return context


class ConnectionManager:
    """Owns one keep-alive HTTP client per registry host.

    ``connect`` is idempotent per (scheme, host, port): repeated calls within
    a session return the same live client.
    """

    def __init__(
        self,
        settings: FetcherSettings,
        timeout_seconds: float,
        user_agent: str,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the manager.

        Args:
            settings: Fetcher settings (TLS options).
            timeout_seconds: Per-request timeout.
            user_agent: Identifying User-Agent header value.
            transport: Optional transport override (e.g. httpx.MockTransport).
        """
        self._settings = settings
        self._timeout = timeout_seconds
        self._user_agent = user_agent
        self._transport = transport
        self._ssl_context: ssl.SSLContext | None = None
        self._clients: dict[tuple[str, str, int | None], httpx.Client] = {}

    @property
    def user_agent(self) -> str:
        """Get the User-Agent sent with every request."""
        return self._user_agent

    def needs_tls(self, url: httpx.URL) -> bool:
        """Check whether a connection to ``url`` requires TLS support."""
        return (
            url.scheme == "https"
            or self._settings.ssl_verify_mode is not None
            or self._settings.ssl_client_cert is not None
        )

    def connect(self, url: httpx.URL) -> httpx.Client:
        """Get the persistent client for the host of ``url``.

        Args:
            url: Any URL on the target host.

        Returns:
            The host's httpx client.

        Raises:
            TLSUnavailableError: If TLS is required but unsupported.
        """
        key = (url.scheme, url.host, url.port)
        client = self._clients.get(key)
        if client is not None:
            return client

        tls = self.needs_tls(url)
        if tls and not tls_available():
            raise TLSUnavailableError(url)

        verify: ssl.SSLContext | bool = True
        if tls:
            if self._ssl_context is None:
                self._ssl_context = build_ssl_context(self._settings)
            verify = self._ssl_context

        client = httpx.Client(
            timeout=httpx.Timeout(self._timeout),
            verify=verify,
            headers={"User-Agent": self._user_agent},
            follow_redirects=False,
            transport=self._transport,
        )
        self._clients[key] = client
        logger.debug(
            "connection_opened",
            component="connection",
            host=url.host,
            scheme=url.scheme,
            target=strip_url_credentials(url),
        )
        return client

    def close(self) -> None:
        """Close every open client."""
        for client in self._clients.values():
            client.close()
        self._clients.clear()

    def __enter__(self) -> "ConnectionManager":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
