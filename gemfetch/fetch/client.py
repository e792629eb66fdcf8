"""HTTP GET with credential handling, redirect following and failure mapping."""

import time

import httpx
import structlog

from gemfetch.fetch.config import SessionConfig
from gemfetch.fetch.connection import ConnectionManager
from gemfetch.fetch.constants import (
    ERROR_BODY_SNIPPET_LENGTH,
    HTTP_STATUS_OK_MAX,
    HTTP_STATUS_OK_MIN,
    HTTP_STATUS_REDIRECT_MAX,
    HTTP_STATUS_REDIRECT_MIN,
    HTTP_STATUS_REQUEST_ENTITY_TOO_LARGE,
    HTTP_STATUS_UNAUTHORIZED,
)
from gemfetch.fetch.credentials import raw_host, with_credentials
from gemfetch.fetch.errors import (
    AuthenticationRequiredError,
    FallbackRequiredError,
    FetchFailure,
    HTTPError,
    TooManyRedirectsError,
    classify_transport_fault,
    describe_transport_fault,
)
from gemfetch.fetch.metrics import FetchMetrics
from gemfetch.fetch.redact import redact_headers, redact_url_credentials, strip_url_credentials


logger = structlog.get_logger()


class HttpFetcher:
    """Single-request executor wrapped with bounded redirect following.

    Provides blocking HTTP GET operations with:
    - Basic auth taken from URL userinfo (never sent in the request line)
    - Typed failures for transport faults and HTTP statuses
    - Redirects that only carry credentials to the same host
    - Redacted logging and per-session metrics
    """

    def __init__(
        self,
        connections: ConnectionManager,
        config: SessionConfig,
        metrics: FetchMetrics | None = None,
    ) -> None:
        """Initialize the HTTP fetcher.

        Args:
            connections: Connection manager owning the persistent clients.
            config: Session configuration (redirect limit).
            metrics: Metrics sink; a private one is created when omitted.
        """
        self._connections = connections
        self._config = config
        self._metrics = metrics or FetchMetrics()
        self._log = logger.bind(component="fetch")

    @property
    def metrics(self) -> FetchMetrics:
        """Get the metrics for this fetcher."""
        return self._metrics

    def request(self, url: httpx.URL) -> httpx.Response:
        """Issue a single GET request.

        Args:
            url: Target URL, possibly carrying credentials.

        Returns:
            The HTTP response, whatever its status.

        Raises:
            FetchFailure: On any transport-level fault.
        """
        request_url = httpx.URL(strip_url_credentials(url))
        auth: httpx.BasicAuth | None = None
        if url.username:
            auth = httpx.BasicAuth(url.username, url.password or "")

        client = self._connections.connect(url)
        log = self._log.bind(url=redact_url_credentials(url))
        log.debug(
            "http_get",
            headers=redact_headers(dict(client.headers)),
            authenticated=auth is not None,
        )

        start_time_ns = time.perf_counter_ns()
        try:
            response = client.get(request_url, auth=auth)
        except httpx.RequestError as exc:
            fault = describe_transport_fault(exc)
            # Raw transport text is only ever written to the debug trace
            log.debug("transport_fault", fault_kind=fault.kind.value, detail=fault.detail)
            failure = classify_transport_fault(fault, url)
            self._metrics.record_failure(failure.kind)
            raise failure from exc
        finally:
            duration_ms = (time.perf_counter_ns() - start_time_ns) / 1_000_000
            self._metrics.record_duration(duration_ms)

        self._metrics.record_request(response.status_code, len(response.content))
        log.debug(
            "http_response",
            status_code=response.status_code,
            reason=response.reason_phrase,
            bytes=len(response.content),
        )
        return response

    def fetch(
        self,
        url: httpx.URL | str,
        depth: int = 0,
        origin_host: str | None = None,
    ) -> bytes:
        """Fetch a URL, following redirects up to the configured limit.

        Args:
            url: Target URL, possibly carrying credentials.
            depth: Number of redirects already followed.
            origin_host: Host of the first request as configured, case
                preserved. Redirects carry credentials only to this exact
                host. Taken from ``url`` when omitted.

        Returns:
            Body of the final 2xx response.

        Raises:
            TooManyRedirectsError: Once ``depth`` reaches the redirect limit.
            FallbackRequiredError: On 413.
            AuthenticationRequiredError: On 401.
            HTTPError: On any other non-2xx status.
        """
        if origin_host is None:
            origin_host = raw_host(url) if isinstance(url, str) else url.host
        url = httpx.URL(url)

        limit = self._config.redirect_limit
        if depth >= limit:
            self._metrics.record_failure(TooManyRedirectsError.kind)
            raise TooManyRedirectsError(url, limit)

        response = self.request(url)
        status = response.status_code

        if HTTP_STATUS_REDIRECT_MIN <= status < HTTP_STATUS_REDIRECT_MAX:
            return self.fetch(
                self._redirect_target(url, response, origin_host), depth + 1, origin_host
            )

        if HTTP_STATUS_OK_MIN <= status < HTTP_STATUS_OK_MAX:
            return response.content

        failure: FetchFailure
        if status == HTTP_STATUS_REQUEST_ENTITY_TOO_LARGE:
            failure = FallbackRequiredError(response.text, url)
        elif status == HTTP_STATUS_UNAUTHORIZED:
            failure = AuthenticationRequiredError(url.host)
        else:
            snippet = response.text[:ERROR_BODY_SNIPPET_LENGTH]
            failure = HTTPError(
                f"HTTP {status} {response.reason_phrase} from {url}: {snippet}",
                url,
                status_code=status,
            )
        self._metrics.record_failure(failure.kind)
        raise failure

    def _redirect_target(
        self, url: httpx.URL, response: httpx.Response, origin_host: str | None
    ) -> httpx.URL:
        """Resolve the next URL of a redirect.

        Credentials are copied only when the target host equals the
        original host exactly; cross-host redirects never carry them.

        Args:
            url: URL that answered with a redirect.
            response: The 3xx response.
            origin_host: Host of the first request, case preserved.

        Returns:
            URL to fetch next.
        """
        location = response.headers.get("location")
        if not location:
            self._metrics.record_failure(HTTPError.kind)
            raise HTTPError(
                f"HTTP {response.status_code} redirect from {url} without a Location header",
                url,
                status_code=response.status_code,
            )

        target = httpx.URL(strip_url_credentials(url)).join(location)
        target_host = raw_host(location)
        same_host = target_host is None or target_host == origin_host
        if same_host and url.username:
            target = with_credentials(
                httpx.URL(strip_url_credentials(target)), url.username, url.password
            )
        else:
            target = httpx.URL(strip_url_credentials(target))

        self._metrics.record_redirect()
        self._log.debug(
            "redirect",
            status_code=response.status_code,
            source=redact_url_credentials(url),
            target=redact_url_credentials(target),
            credentials_forwarded=same_host and bool(url.username),
        )
        return target
