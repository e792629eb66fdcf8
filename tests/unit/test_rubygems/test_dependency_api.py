"""Unit tests for dependency closure resolution."""

import httpx
import pytest

from gemfetch.fetch.client import HttpFetcher
from gemfetch.fetch.config import SessionConfig
from gemfetch.fetch.connection import ConnectionManager
from gemfetch.fetch.errors import (
    AuthenticationRequiredError,
    FallbackRequiredError,
    HTTPError,
    MalformedSpecError,
)
from gemfetch.fetch.models import RetryPolicy
from gemfetch.rubygems.dependency_api import DependencyApiFetcher, partition
from gemfetch.rubygems.requirement import Requirement
from gemfetch.rubygems.version import GemVersion
from gemfetch.settings import FetcherSettings
from tests.helpers.registry import FakeRegistry, dependency_entry, dependency_payload


BASE = httpx.URL("http://gems.example.com/")


def make_api(registry: FakeRegistry, **config: object) -> DependencyApiFetcher:
    """Create a DependencyApiFetcher against a fake registry."""
    session_config = SessionConfig(
        retry_policy=RetryPolicy(base_delay_ms=0, jitter_factor=0.0), **config
    )
    connections = ConnectionManager(
        FetcherSettings(), 10.0, "gemfetch-test", transport=registry.transport
    )
    http = HttpFetcher(connections, session_config)
    return DependencyApiFetcher(http, BASE, session_config)


class TestPartition:
    """Tests for batch partitioning."""

    def test_batches_respect_limit(self) -> None:
        """Test that 250 names at limit 100 give 100/100/50."""
        names = [f"gem{i:03d}" for i in range(250)]

        batches = partition(names, 100)

        assert [len(b) for b in batches] == [100, 100, 50]
        assert sorted(n for b in batches for n in b) == sorted(names)

    def test_empty(self) -> None:
        """Test that no names give no batches."""
        assert partition([], 100) == []


class TestDependencyApiUri:
    """Tests for dependency API URLs."""

    def test_without_names(self) -> None:
        """Test the bare availability check URL."""
        api = make_api(FakeRegistry())

        assert str(api.dependency_api_uri()) == "http://gems.example.com/api/v1/dependencies"

    def test_with_names(self) -> None:
        """Test that names are comma-joined into the gems parameter."""
        api = make_api(FakeRegistry())

        url = api.dependency_api_uri(["rack", "rails"])

        assert url.params["gems"] == "rack,rails"


class TestClosure:
    """Tests for the closure loop."""

    def test_empty_names_make_no_requests(self) -> None:
        """Test that an empty name list resolves without any request."""
        registry = FakeRegistry()

        state = make_api(registry).run_closure([])

        assert state.collected == []
        assert state.rounds == 0
        assert registry.requests == []

    def test_single_entry_round_trip(self) -> None:
        """Test that one entry comes back as a typed raw spec."""
        registry = FakeRegistry()
        registry.add_gem("foo", "1.2.0", [("bar", ">= 1.0")])
        registry.add_gem("bar", "1.0")

        specs = make_api(registry).resolve_closure(["foo"])

        foo = next(s for s in specs if s.name == "foo")
        assert foo.version == GemVersion("1.2.0")
        assert foo.platform == "ruby"
        assert [(d.name, d.requirement) for d in foo.dependencies] == [
            ("bar", Requirement.parse(">= 1.0"))
        ]

    def test_transitive_dependency_takes_two_rounds(self) -> None:
        """Test A -> B resolves in two rounds querying each name once."""
        registry = FakeRegistry()
        registry.add_gem("a", "1.0", [("b", ">= 0")])
        registry.add_gem("b", "1.0")

        state = make_api(registry).run_closure(["a"])

        assert state.rounds == 2
        assert state.fully_queried == {"a", "b"}
        assert registry.api_queries() == [["a"], ["b"]]
        assert {s.name for s in state.collected} == {"a", "b"}

    def test_cycle_terminates(self) -> None:
        """Test that mutually dependent packages are queried once each."""
        registry = FakeRegistry()
        registry.add_gem("a", "1.0", [("b", ">= 0")])
        registry.add_gem("b", "1.0", [("a", ">= 0")])

        state = make_api(registry).run_closure(["a"])

        assert state.rounds == 2
        assert registry.api_queries() == [["a"], ["b"]]

    def test_large_frontier_is_batched(self) -> None:
        """Test that 250 names at limit 100 take exactly three requests."""
        registry = FakeRegistry()
        names = [f"gem{i:03d}" for i in range(250)]

        state = make_api(registry, api_request_limit=100).run_closure(names)

        assert state.requests == 3
        assert [len(q) for q in registry.api_queries()] == [100, 100, 50]

    def test_unknown_names_are_not_requeried(self) -> None:
        """Test that names without versions still count as queried."""
        registry = FakeRegistry()

        state = make_api(registry).run_closure(["ghost"])

        assert state.fully_queried == {"ghost"}
        assert len(registry.api_queries()) == 1


class TestClosureFailures:
    """Tests for failures during closure resolution."""

    def test_auth_failure_propagates_once(self) -> None:
        """Test that a 401 is raised without retrying."""
        registry = FakeRegistry()
        registry.api_status = 401

        with pytest.raises(AuthenticationRequiredError):
            make_api(registry).resolve_closure(["foo"])

        assert len(registry.requests) == 1

    def test_transient_failure_is_retried(self) -> None:
        """Test that 5xx responses are retried before giving up."""
        registry = FakeRegistry()
        registry.api_status = 502

        with pytest.raises(HTTPError) as exc_info:
            make_api(registry).resolve_closure(["foo"])

        assert exc_info.value.status_code == 502
        assert len(registry.requests) == 3

    def test_413_is_not_retried(self) -> None:
        """Test that a fallback signal aborts immediately."""
        registry = FakeRegistry()
        registry.api_status = 413

        with pytest.raises(FallbackRequiredError):
            make_api(registry).resolve_closure(["foo"])

        assert len(registry.requests) == 1

    def test_garbage_body_is_malformed(self) -> None:
        """Test that an undecodable body raises MalformedSpecError."""
        registry = FakeRegistry()
        registry.routes["/api/v1/dependencies"] = lambda r: httpx.Response(200, content=b"oops")

        with pytest.raises(MalformedSpecError, match="invalid data"):
            make_api(registry).resolve_closure(["foo"])

    def test_ill_formed_requirement_names_gem(self) -> None:
        """Test that a bad requirement raises MalformedSpecError for that gem."""
        registry = FakeRegistry()
        body = dependency_payload([dependency_entry("foo", "1.0", [("bar", "=> 1.0")])])
        registry.routes["/api/v1/dependencies"] = lambda r: httpx.Response(200, content=body)

        with pytest.raises(MalformedSpecError) as exc_info:
            make_api(registry).resolve_closure(["foo"])

        assert exc_info.value.package == "foo"
        assert "foo (1.0)" in exc_info.value.message
