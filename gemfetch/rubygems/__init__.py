"""Gem registry specification fetching.

A :class:`Fetcher` session answers "which versions of these packages exist,
and what do they depend on?" for one registry, through the dependency API
when possible and the full index otherwise.
"""

from gemfetch.rubygems.dependency_api import ClosureState, DependencyApiFetcher
from gemfetch.rubygems.fetcher import ApiAvailability, Fetcher
from gemfetch.rubygems.full_index import FullIndexFallback
from gemfetch.rubygems.index import Index, SpecIndexBuilder
from gemfetch.rubygems.requirement import Dependency, Requirement
from gemfetch.rubygems.sources import active_sources, override_sources
from gemfetch.rubygems.specification import (
    EndpointSpecification,
    RawSpec,
    RemoteSpecification,
)
from gemfetch.rubygems.version import GemVersion


__all__ = [
    "ApiAvailability",
    "ClosureState",
    "Dependency",
    "DependencyApiFetcher",
    "EndpointSpecification",
    "Fetcher",
    "FullIndexFallback",
    "GemVersion",
    "Index",
    "RawSpec",
    "RemoteSpecification",
    "Requirement",
    "SpecIndexBuilder",
    "active_sources",
    "override_sources",
]
