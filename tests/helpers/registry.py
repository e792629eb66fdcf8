"""In-memory gem registry served through httpx.MockTransport."""

import gzip
from collections.abc import Callable, Iterable

import httpx
from rubymarshal.writer import writes


def dependency_entry(
    name: str,
    number: str,
    dependencies: Iterable[tuple[str, str]] = (),
    platform: str = "ruby",
) -> dict[str, object]:
    """Build one dependency API entry as the registry serves it."""
    return {
        "name": name,
        "number": number,
        "platform": platform,
        "dependencies": [[dep_name, requirement] for dep_name, requirement in dependencies],
    }


def dependency_payload(entries: Iterable[dict[str, object]]) -> bytes:
    """Marshal a dependency API response body."""
    return writes(list(entries))


def full_index_payload(triples: Iterable[tuple[str, str, str]]) -> bytes:
    """Marshal and gzip a full index artifact."""
    return gzip.compress(writes([list(t) for t in triples]))


class FakeRegistry:
    """Routes requests by path and records every request seen."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.gems: dict[str, list[dict[str, object]]] = {}
        self.full_index: list[tuple[str, str, str]] = []
        self.api_status = 200
        self.index_status = 200
        self.routes: dict[str, Callable[[httpx.Request], httpx.Response]] = {}

    def add_gem(
        self,
        name: str,
        number: str,
        dependencies: Iterable[tuple[str, str]] = (),
        platform: str = "ruby",
    ) -> None:
        """Publish a gem version on both the API and the full index."""
        self.gems.setdefault(name, []).append(
            dependency_entry(name, number, dependencies, platform)
        )
        self.full_index.append((name, number, platform))

    def handler(self, request: httpx.Request) -> httpx.Response:
        """MockTransport handler."""
        self.requests.append(request)
        path = request.url.path

        if path in self.routes:
            return self.routes[path](request)

        if path.endswith("/api/v1/dependencies"):
            if self.api_status != 200:
                return httpx.Response(self.api_status, text="dependency api unavailable")
            names = [n for n in request.url.params.get("gems", "").split(",") if n]
            entries = [entry for n in names for entry in self.gems.get(n, [])]
            return httpx.Response(200, content=dependency_payload(entries))

        if path.endswith("/specs.4.8.gz"):
            if self.index_status != 200:
                return httpx.Response(self.index_status, text="index unavailable")
            return httpx.Response(200, content=full_index_payload(self.full_index))

        return httpx.Response(404, text="not found")

    @property
    def transport(self) -> httpx.MockTransport:
        """A transport bound to this registry."""
        return httpx.MockTransport(self.handler)

    def api_queries(self) -> list[list[str]]:
        """Names queried per dependency API request (availability checks excluded)."""
        return [
            r.url.params["gems"].split(",")
            for r in self.requests
            if r.url.path.endswith("/api/v1/dependencies") and "gems" in r.url.params
        ]

    def paths(self) -> list[str]:
        """Paths of all requests, in order."""
        return [r.url.path for r in self.requests]
