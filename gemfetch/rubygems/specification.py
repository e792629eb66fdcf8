"""Package specification variants handed to the resolver."""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, NamedTuple, Protocol

from gemfetch.rubygems.requirement import Dependency
from gemfetch.rubygems.version import GemVersion


if TYPE_CHECKING:
    from gemfetch.fetch.credentials import RegistryLocation


DEFAULT_PLATFORM = "ruby"


class RawSpec(NamedTuple):
    """A ``(name, version, platform, dependencies)`` tuple from a registry.

    ``dependencies`` is None for full-index entries, whose dependencies are
    only known after fetching the per-file specification.
    """

    name: str
    version: GemVersion
    platform: str
    dependencies: tuple[Dependency, ...] | None


class SpecFetcher(Protocol):
    """Anything that can fetch a single specification by name/version/platform."""

    def fetch_spec(
        self, spec: tuple[str, GemVersion | str, str | None]
    ) -> "EndpointSpecification": ...


def full_name(name: str, version: GemVersion | str, platform: str | None) -> str:
    """``name-version`` or ``name-version-platform`` for non-default platforms."""
    if platform in (None, "", DEFAULT_PLATFORM):
        return f"{name}-{version}"
    return f"{name}-{version}-{platform}"


@dataclass(frozen=True)
class EndpointSpecification:
    """A specification whose dependencies are already known."""

    name: str
    version: GemVersion
    platform: str = DEFAULT_PLATFORM
    dependencies: tuple[Dependency, ...] = ()
    source: object | None = field(default=None, compare=False)
    source_uri: "RegistryLocation | None" = field(default=None, compare=False)

    @property
    def full_name(self) -> str:
        """Name, version and (non-default) platform joined by dashes."""
        return full_name(self.name, self.version, self.platform)

    def __str__(self) -> str:
        return self.full_name


class RemoteSpecification:
    """A full-index entry whose dependencies are fetched on first access.

    Dependencies come from the registry's per-file specification endpoint
    through the owning session and are memoized afterwards.
    """

    __slots__ = ("_dependencies", "_fetcher", "_name", "_platform", "_source", "_source_uri", "_version")

    def __init__(
        self,
        name: str,
        version: GemVersion,
        platform: str,
        fetcher: SpecFetcher,
        source: object | None = None,
        source_uri: "RegistryLocation | None" = None,
    ) -> None:
        """Initialize the lazy specification.

        Args:
            name: Package name.
            version: Package version.
            platform: Package platform.
            fetcher: Session used to resolve dependencies on demand.
            source: Owning source, for the resolver.
            source_uri: Registry the entry came from.
        """
        self._name = name
        self._version = version
        self._platform = platform or DEFAULT_PLATFORM
        self._fetcher = fetcher
        self._source = source
        self._source_uri = source_uri
        self._dependencies: tuple[Dependency, ...] | None = None

    @property
    def name(self) -> str:
        """Package name."""
        return self._name

    @property
    def version(self) -> GemVersion:
        """Package version."""
        return self._version

    @property
    def platform(self) -> str:
        """Package platform."""
        return self._platform

    @property
    def source(self) -> object | None:
        """Owning source."""
        return self._source

    @property
    def source_uri(self) -> "RegistryLocation | None":
        """Registry the entry came from."""
        return self._source_uri

    @property
    def full_name(self) -> str:
        """Name, version and (non-default) platform joined by dashes."""
        return full_name(self._name, self._version, self._platform)

    @property
    def is_loaded(self) -> bool:
        """Whether dependencies have been fetched already."""
        return self._dependencies is not None

    @property
    def dependencies(self) -> tuple[Dependency, ...]:
        """Runtime dependencies, fetched from the registry on first access."""
        if self._dependencies is None:
            remote = self._fetcher.fetch_spec((self._name, self._version, self._platform))
            self._dependencies = remote.dependencies
        return self._dependencies

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RemoteSpecification):
            return NotImplemented
        return (self._name, self._version, self._platform) == (
            other._name,
            other._version,
            other._platform,
        )

    def __hash__(self) -> int:
        return hash((self._name, self._version, self._platform))

    def __str__(self) -> str:
        return self.full_name

    def __repr__(self) -> str:
        return f"RemoteSpecification({self.full_name!r})"


PackageSpec = EndpointSpecification | RemoteSpecification
