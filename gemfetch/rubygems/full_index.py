"""Full package index download, used when the dependency API is unavailable."""

import httpx
import structlog

from gemfetch.fetch.client import HttpFetcher
from gemfetch.fetch.config import SessionConfig
from gemfetch.fetch.constants import HTTP_STATUS_FORBIDDEN
from gemfetch.fetch.credentials import RegistryLocation
from gemfetch.fetch.errors import (
    AuthenticationRequiredError,
    BadAuthenticationError,
    CertificateFailureError,
    FetchFailure,
    HTTPError,
    MalformedSpecError,
    TLSUnavailableError,
)
from gemfetch.rubygems.marshal import MarshalDecodeError, decode_full_index
from gemfetch.rubygems.sources import override_sources
from gemfetch.rubygems.specification import RawSpec
from gemfetch.rubygems.version import GemVersion, InvalidVersionError


logger = structlog.get_logger()


class FullIndexFallback:
    """Downloads and decodes a registry's complete specification index."""

    def __init__(self, http: HttpFetcher, config: SessionConfig) -> None:
        """Initialize the fallback.

        Args:
            http: Redirect-following HTTP fetcher.
            config: Session configuration (index path).
        """
        self._http = http
        self._config = config

    def full_index_uri(self, location: RegistryLocation) -> httpx.URL:
        """URL of the bulk index artifact for a registry."""
        return location.original_uri.join(self._config.full_index_path)

    def fetch_full_index(self, location: RegistryLocation) -> list[RawSpec]:
        """Download the full index of a registry.

        The active registry list is narrowed to ``location`` while the
        download runs and restored afterwards, whatever the outcome.

        Args:
            location: Registry to download from.

        Returns:
            Raw specifications without dependencies.

        Raises:
            CertificateFailureError: TLS verification failed.
            AuthenticationRequiredError: 401, or 403 without credentials.
            BadAuthenticationError: 403 with credentials.
            HTTPError: Any other failure.
        """
        log = logger.bind(component="full_index", remote=str(location))
        url = self.full_index_uri(location)
        log.debug("full_index_fetch", path=self._config.full_index_path)

        with override_sources([str(location)]):
            body = self._download(url, location, log)

        try:
            entries = decode_full_index(body)
            specs = [
                RawSpec(name, GemVersion(version), platform, None)
                for name, version, platform in entries
            ]
        except (MarshalDecodeError, InvalidVersionError) as e:
            msg = f"Full index from {location} contained invalid data: {e}"
            raise MalformedSpecError(msg, location.without_credentials) from e

        log.debug("full_index_loaded", specs=len(specs))
        return specs

    def _download(
        self,
        url: httpx.URL,
        location: RegistryLocation,
        log: structlog.stdlib.BoundLogger,
    ) -> bytes:
        try:
            return self._http.fetch(url, origin_host=location.exact_host)
        except (CertificateFailureError, TLSUnavailableError):
            raise
        except AuthenticationRequiredError as e:
            raise AuthenticationRequiredError(location.without_credentials) from e
        except HTTPError as e:
            if e.status_code == HTTP_STATUS_FORBIDDEN:
                if location.has_credentials:
                    raise BadAuthenticationError(location.without_credentials) from e
                raise AuthenticationRequiredError(location.without_credentials) from e
            log.debug("full_index_failed", error=e.message)
            msg = f"Could not fetch specs from {location}"
            raise HTTPError(msg, location.without_credentials, status_code=e.status_code) from e
        except FetchFailure as e:
            log.debug("full_index_failed", error=e.message)
            msg = f"Could not fetch specs from {location}"
            raise HTTPError(msg, location.without_credentials) from e
