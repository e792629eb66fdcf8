"""Resolver-facing specification index."""

from collections.abc import Iterable, Iterator

import structlog

from gemfetch.fetch.credentials import RegistryLocation
from gemfetch.rubygems.specification import (
    EndpointSpecification,
    PackageSpec,
    RawSpec,
    RemoteSpecification,
    SpecFetcher,
)


logger = structlog.get_logger()


class Index:
    """Mapping from package name to the specification variants for it.

    Order within a name is irrelevant; adding an equal variant twice keeps
    one copy.
    """

    def __init__(self) -> None:
        # dicts keep insertion order and de-duplicate by hash
        self._specs: dict[str, dict[PackageSpec, None]] = {}

    def add(self, spec: PackageSpec) -> None:
        """Add a specification variant."""
        self._specs.setdefault(spec.name, {}).setdefault(spec, None)

    def merge(self, other: "Index") -> None:
        """Add every specification of another index."""
        for spec in other:
            self.add(spec)

    def search(self, name: str) -> list[PackageSpec]:
        """All variants for a package name (empty when unknown)."""
        return list(self._specs.get(name, {}))

    @property
    def names(self) -> list[str]:
        """Indexed package names, sorted."""
        return sorted(self._specs)

    def __contains__(self, name: object) -> bool:
        return name in self._specs

    def __iter__(self) -> Iterator[PackageSpec]:
        for variants in self._specs.values():
            yield from variants

    def __len__(self) -> int:
        return sum(len(variants) for variants in self._specs.values())

    def __repr__(self) -> str:
        return f"Index(names={len(self._specs)}, specs={len(self)})"


class SpecIndexBuilder:
    """Turns raw registry tuples into typed specifications."""

    def __init__(
        self,
        fetcher: SpecFetcher,
        source_uri: RegistryLocation,
        self_name: str = "bundler",
    ) -> None:
        """Initialize the builder.

        Args:
            fetcher: Session that resolves lazy specifications.
            source_uri: Registry the raw entries came from.
            self_name: Package named like the package manager; skipped.
        """
        self._fetcher = fetcher
        self._source_uri = source_uri
        self._self_name = self_name

    def build(self, raw_specs: Iterable[RawSpec], source: object | None = None) -> Index:
        """Build an index from raw tuples.

        Entries with dependencies become EndpointSpecification; entries
        without become RemoteSpecification, resolved on demand.

        Args:
            raw_specs: Raw ``(name, version, platform, dependencies)`` tuples.
            source: Owning source recorded on every specification.

        Returns:
            The populated index.
        """
        index = Index()
        skipped = 0
        for name, version, platform, dependencies in raw_specs:
            if name == self._self_name:
                skipped += 1
                continue
            spec: PackageSpec
            if dependencies is not None:
                spec = EndpointSpecification(
                    name=name,
                    version=version,
                    platform=platform,
                    dependencies=dependencies,
                    source=source,
                    source_uri=self._source_uri,
                )
            else:
                spec = RemoteSpecification(
                    name,
                    version,
                    platform,
                    self._fetcher,
                    source=source,
                    source_uri=self._source_uri,
                )
            index.add(spec)

        logger.debug(
            "index_built",
            component="index",
            remote=str(self._source_uri),
            names=len(index.names),
            specs=len(index),
            skipped_self=skipped,
        )
        return index
