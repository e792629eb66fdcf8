"""Fetch session for one registry.

A session prefers the dependency API and falls back to the full index when
the API is unavailable or fails for any reason other than authentication.
Once the API has failed, the session never tries it again.
"""

from collections.abc import Sequence
from enum import Enum
from pathlib import Path
from urllib.request import url2pathname

import httpx
import structlog

from gemfetch.fetch.client import HttpFetcher
from gemfetch.fetch.config import SessionConfig
from gemfetch.fetch.connection import ConnectionManager
from gemfetch.fetch.credentials import CredentialResolver, RegistryLocation
from gemfetch.fetch.errors import (
    AUTH_ERRORS,
    FetchFailure,
    HTTPError,
    MalformedSpecError,
    NetworkDownError,
)
from gemfetch.fetch.metrics import FetchMetrics
from gemfetch.fetch.retry import Retry
from gemfetch.fetch.user_agent import build_user_agent
from gemfetch.rubygems.dependency_api import DependencyApiFetcher
from gemfetch.rubygems.full_index import FullIndexFallback
from gemfetch.rubygems.index import Index, SpecIndexBuilder
from gemfetch.rubygems.marshal import MarshalDecodeError, decode_gemspec
from gemfetch.rubygems.requirement import Dependency, InvalidRequirementError, Requirement
from gemfetch.rubygems.specification import EndpointSpecification, RawSpec, full_name
from gemfetch.rubygems.version import GemVersion, InvalidVersionError
from gemfetch.settings import FetcherSettings, get_settings


logger = structlog.get_logger()


class ApiAvailability(Enum):
    """Whether the dependency API may be used by a session.

    State transitions:
        UNKNOWN -> AVAILABLE: Availability check succeeded
        UNKNOWN -> UNAVAILABLE: Availability check failed, file source, or endpoint disabled
        AVAILABLE -> UNAVAILABLE: A closure resolution failed
    """

    UNKNOWN = "unknown"
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"


class Fetcher:
    """Fetches package specifications from one registry.

    Owns its connections, metrics and API availability flag; nothing is
    shared with other sessions.
    """

    def __init__(
        self,
        remote_uri: str | httpx.URL,
        settings: FetcherSettings | None = None,
        config: SessionConfig | None = None,
        transport: httpx.BaseTransport | None = None,
        user_agent: str | None = None,
    ) -> None:
        """Initialize the session.

        Args:
            remote_uri: Registry URI as configured.
            settings: Key-value configuration; read from the environment if omitted.
            config: Session tunables.
            transport: Optional httpx transport override.
            user_agent: User-Agent override; built from settings if omitted.
        """
        self._settings = settings or get_settings()
        self._config = config or SessionConfig()
        self._location = CredentialResolver(self._settings).resolve(remote_uri)
        self._metrics = FetchMetrics()
        self._api = ApiAvailability.UNKNOWN
        self._log = logger.bind(component="fetcher", remote=str(self._location))

        if user_agent is None:
            user_agent = build_user_agent(
                options=self._settings.enabled_option_names(),
                extra=self._settings.user_agent,
            )
        self._connections = ConnectionManager(
            self._settings,
            self._config.api_timeout_seconds,
            user_agent,
            transport=transport,
        )
        self._http = HttpFetcher(self._connections, self._config, self._metrics)
        self._dependency_api = DependencyApiFetcher(
            self._http,
            self.fetch_uri,
            self._config,
            self._metrics,
            origin_host=self.fetch_host,
        )
        self._full_index = FullIndexFallback(self._http, self._config)

        if self._location.scheme != "file":
            # create the persistent connection up front
            self._connections.connect(self._location.original_uri)

    @property
    def uri(self) -> httpx.URL:
        """The registry URI without credentials."""
        return self._location.without_credentials

    @property
    def location(self) -> RegistryLocation:
        """The credential-scoped registry location."""
        return self._location

    @property
    def metrics(self) -> FetchMetrics:
        """Metrics for this session."""
        return self._metrics

    @property
    def api_availability(self) -> ApiAvailability:
        """Current state of the API availability flag."""
        return self._api

    @property
    def dependency_api(self) -> DependencyApiFetcher:
        """The dependency API fetcher of this session."""
        return self._dependency_api

    @property
    def fetch_uri(self) -> httpx.URL:
        """Base URI for API calls, after host aliasing."""
        original = self._location.original_uri
        api_host = self._config.api_host_for(original.host)
        if api_host == original.host:
            return original
        return original.copy_with(host=api_host)

    @property
    def fetch_host(self) -> str:
        """Host of :attr:`fetch_uri` as configured, case preserved."""
        original = self._location.original_uri
        api_host = self._config.api_host_for(original.host)
        if api_host == original.host:
            return self._location.exact_host
        return api_host

    @property
    def use_api(self) -> bool:
        """Whether the dependency API may be used; checked once per session.

        Raises:
            AuthenticationRequiredError: The availability check got a 401.
            HTTPError: The network looks down.
        """
        if self._api != ApiAvailability.UNKNOWN:
            return self._api == ApiAvailability.AVAILABLE

        if self._location.scheme == "file" or self._settings.disable_endpoint:
            self._api = ApiAvailability.UNAVAILABLE
            return False

        try:
            self._http.fetch(
                self._dependency_api.dependency_api_uri(),
                origin_host=self._dependency_api.origin_host,
            )
        except NetworkDownError as e:
            raise HTTPError(e.message, e.location) from e
        except AUTH_ERRORS:
            # Don't fall back to the full index on a 401, just fail
            raise
        except FetchFailure as e:
            self._log.debug("api_check_failed", kind=e.kind.value, error=e.message)
            self._api = ApiAvailability.UNAVAILABLE
            return False

        self._api = ApiAvailability.AVAILABLE
        return True

    def specs(self, names: Sequence[str] | None, source: object | None = None) -> Index:
        """Fetch specifications and return them as an index.

        With names and a usable API, only the dependency closure of the
        names is fetched. Otherwise, or after an API failure, the full
        index is downloaded.

        Args:
            names: Requested package names, or None for everything.
            source: Owning source recorded on every specification.

        Returns:
            The populated index.
        """
        raw: list[RawSpec] | None = None
        if names is not None and self.use_api:
            raw = self.fetch_remote_specs(names)

        if raw is None:
            # API errors mean we should treat this as a non-API source
            self._api = ApiAvailability.UNAVAILABLE
            retry = Retry(
                "source fetch",
                policy=self._config.retry_policy,
                abort_on=AUTH_ERRORS,
                metrics=self._metrics,
            )
            raw = retry.attempt(lambda: self._full_index.fetch_full_index(self._location))

        builder = SpecIndexBuilder(self, self._location, self._config.self_name)
        return builder.build(raw, source)

    def fetch_remote_specs(self, names: Sequence[str]) -> list[RawSpec] | None:
        """Resolve the dependency closure of ``names`` through the API.

        Args:
            names: Requested package names.

        Returns:
            Raw specifications, or None when the API failed and the full
            index should be used instead.
        """
        try:
            return self._dependency_api.resolve_closure(names)
        except AUTH_ERRORS:
            raise
        except FetchFailure as e:
            self._log.debug(
                "api_fallback",
                kind=e.kind.value,
                error=e.message,
                detail="could not fetch from the dependency API, trying the full index",
            )
            self._api = ApiAvailability.UNAVAILABLE
            self._metrics.record_fallback()
            return None

    def fetch_spec(
        self, spec: tuple[str, GemVersion | str, str | None]
    ) -> EndpointSpecification:
        """Fetch a single specification from the per-file endpoint.

        ``file`` registries are read from disk; configured cache
        directories are searched before the network.

        Args:
            spec: ``(name, version, platform)``.

        Returns:
            The specification with its runtime dependencies.

        Raises:
            MalformedSpecError: The payload could not be decoded.
        """
        name, version, platform = spec
        spec_file_name = f"{full_name(name, version, platform)}.gemspec.rz"
        uri = self._location.original_uri.join(f"{self._config.marshal_spec_dir}{spec_file_name}")

        cached = self.gemspec_cached_path(spec_file_name)
        if self._location.scheme == "file":
            data = self._read_local(Path(url2pathname(uri.path)))
        elif cached is not None:
            self._log.debug("spec_cache_hit", path=str(cached))
            data = self._read_local(cached)
        else:
            data = self._http.fetch(uri, origin_host=self._location.exact_host)

        try:
            decoded = decode_gemspec(data)
            dependencies = tuple(
                Dependency(dep_name, Requirement.parse(requirements))
                for dep_name, requirements in decoded.dependencies
            )
            decoded_version = GemVersion(decoded.version)
        except (MarshalDecodeError, InvalidRequirementError, InvalidVersionError) as e:
            msg = (
                f"Gemspec {spec_file_name} contained invalid data. "
                "Your network or your gem server is probably having issues right now."
            )
            raise MalformedSpecError(msg, uri, package=name) from e

        return EndpointSpecification(
            name=decoded.name,
            version=decoded_version,
            platform=decoded.platform,
            dependencies=dependencies,
            source_uri=self._location,
        )

    def gemspec_cached_path(self, spec_file_name: str) -> Path | None:
        """First cache directory entry for a specification file, if any."""
        for directory in self._settings.spec_cache_dirs:
            path = directory / spec_file_name
            if path.is_file():
                return path
        return None

    def _read_local(self, path: Path) -> bytes:
        try:
            return path.read_bytes()
        except OSError as e:
            msg = f"Could not read specification file {path}"
            raise HTTPError(msg, str(self._location)) from e

    def close(self) -> None:
        """Close the session's connections."""
        self._connections.close()

    def __enter__(self) -> "Fetcher":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"<Fetcher uri={self.uri}>"
