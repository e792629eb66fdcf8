"""Dependency-closure resolution over the registry's dependency API."""

from collections.abc import Iterable
from dataclasses import dataclass, field
from urllib.parse import quote

import httpx
import structlog

from gemfetch.fetch.client import HttpFetcher
from gemfetch.fetch.config import SessionConfig
from gemfetch.fetch.constants import DEPENDENCY_API_PATH
from gemfetch.fetch.errors import AUTH_ERRORS, MalformedSpecError
from gemfetch.fetch.metrics import FetchMetrics
from gemfetch.fetch.redact import redact_url_credentials
from gemfetch.fetch.retry import Retry
from gemfetch.rubygems.marshal import DependencyRecord, MarshalDecodeError, decode_dependency_payload
from gemfetch.rubygems.requirement import Dependency, InvalidRequirementError, Requirement
from gemfetch.rubygems.specification import RawSpec
from gemfetch.rubygems.version import GemVersion, InvalidVersionError


logger = structlog.get_logger()


@dataclass
class ClosureState:
    """Worklist state of one closure resolution.

    ``frontier`` is always ``requested - fully_queried``; the loop ends
    exactly when it is empty.
    """

    requested: set[str]
    fully_queried: set[str] = field(default_factory=set)
    collected: list[RawSpec] = field(default_factory=list)
    rounds: int = 0
    requests: int = 0

    @property
    def frontier(self) -> set[str]:
        """Names requested but not yet queried."""
        return self.requested - self.fully_queried


def partition(names: Iterable[str], limit: int) -> list[list[str]]:
    """Split names into sorted batches of at most ``limit`` names."""
    ordered = sorted(names)
    return [ordered[i : i + limit] for i in range(0, len(ordered), limit)]


class DependencyApiFetcher:
    """Resolves the transitive dependency set of a name list.

    Each round queries the dependency API for every name not yet queried,
    then continues with the dependency names the answers mention. Any
    failure aborts the whole resolution; the caller decides whether to
    fall back to the full index.
    """

    def __init__(
        self,
        http: HttpFetcher,
        api_base: httpx.URL,
        config: SessionConfig,
        metrics: FetchMetrics | None = None,
        origin_host: str | None = None,
    ) -> None:
        """Initialize the fetcher.

        Args:
            http: Redirect-following HTTP fetcher.
            api_base: Registry base URL serving the API (may carry credentials).
            config: Session configuration (batch size, retry policy).
            metrics: Metrics sink.
            origin_host: Host of ``api_base`` as configured, case preserved.
        """
        self._http = http
        self._api_base = api_base
        self._origin_host = origin_host or api_base.host
        self._config = config
        self._metrics = metrics or http.metrics
        self._log = logger.bind(
            component="dependency_api", remote=redact_url_credentials(api_base)
        )

    @property
    def origin_host(self) -> str:
        """Host of the API base as configured, case preserved."""
        return self._origin_host

    def dependency_api_uri(self, names: Iterable[str] = ()) -> httpx.URL:
        """URL of the dependency API, optionally querying some names.

        Args:
            names: Package names to query.

        Returns:
            ``<base>api/v1/dependencies[?gems=a,b,c]``
        """
        url = self._api_base.join(DEPENDENCY_API_PATH)
        names = list(names)
        if not names:
            return url
        return httpx.URL(f"{url}?gems={quote(','.join(names), safe=',')}")

    def resolve_closure(self, names: Iterable[str]) -> list[RawSpec]:
        """Fetch specifications for ``names`` and everything they depend on.

        Args:
            names: Requested package names.

        Returns:
            Raw specifications collected across all rounds.
        """
        return self.run_closure(names).collected

    def run_closure(self, names: Iterable[str]) -> ClosureState:
        """Run the closure loop and return its final state.

        Args:
            names: Requested package names.

        Returns:
            The final ClosureState (empty frontier).
        """
        state = ClosureState(requested=set(names))

        while state.frontier:
            frontier = state.frontier
            state.rounds += 1
            self._metrics.record_closure_round()
            self._log.debug("closure_round", round=state.rounds, query_list=sorted(frontier))

            new_names: set[str] = set()
            for batch in partition(frontier, self._config.api_request_limit):
                specs, dependency_names = self.fetch_batch(batch)
                state.requests += 1
                state.collected.extend(specs)
                new_names.update(dependency_names)

            state.fully_queried |= frontier
            state.requested = new_names

        self._log.debug(
            "closure_resolved",
            rounds=state.rounds,
            requests=state.requests,
            specs=len(state.collected),
            names=len(state.fully_queried),
        )
        return state

    def fetch_batch(self, names: list[str]) -> tuple[list[RawSpec], set[str]]:
        """Query the API for one batch of names.

        Args:
            names: At most ``api_request_limit`` names.

        Returns:
            (raw specifications, names of their dependencies)

        Raises:
            MalformedSpecError: If the response or an entry cannot be decoded.
        """
        url = self.dependency_api_uri(names)
        retry = Retry(
            "dependency api",
            policy=self._config.retry_policy,
            abort_on=AUTH_ERRORS,
            metrics=self._metrics,
        )
        body = retry.attempt(lambda: self._http.fetch(url, origin_host=self._origin_host))

        try:
            records = decode_dependency_payload(body)
        except MarshalDecodeError as e:
            msg = (
                f"Dependency API response from {url} contained invalid data. "
                "Your network or your gem server is probably having issues right now."
            )
            raise MalformedSpecError(msg, url) from e

        specs: list[RawSpec] = []
        dependency_names: set[str] = set()
        for record in records:
            spec = self._to_raw_spec(record, url)
            specs.append(spec)
            dependency_names.update(d.name for d in spec.dependencies or ())
        return specs, dependency_names

    def _to_raw_spec(self, record: DependencyRecord, url: httpx.URL) -> RawSpec:
        try:
            version = GemVersion(record.number)
            dependencies = tuple(
                Dependency(name, Requirement.parse(requirement.split(", ")))
                for name, requirement in record.dependencies
            )
        except (InvalidRequirementError, InvalidVersionError) as e:
            msg = (
                f"Unfortunately, the gem {record.name} ({record.number}) has an "
                f"invalid gemspec: {e}. Please ask the gem author to yank the bad "
                "version to fix this issue."
            )
            raise MalformedSpecError(msg, url, package=record.name) from e
        return RawSpec(record.name, version, record.platform, dependencies)
