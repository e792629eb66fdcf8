"""Decoding of Ruby Marshal payloads served by gem registries.

Three payloads are understood:

- dependency API responses: an array of hashes with ``:name``, ``:number``,
  ``:platform`` and ``:dependencies`` keys;
- the full index (``specs.4.8``): an array of ``[name, version, platform]``;
- per-file specifications (``*.gemspec.rz``): a ``Gem::Specification``
  dumped through ``_dump``, whose payload is itself a Marshal array.

Everything returned here is plain Python text so that the rest of the
package never sees rubymarshal's wrapper types.
"""

import gzip
import zlib
from collections.abc import Iterable, Mapping
from typing import Any, NamedTuple

from rubymarshal.reader import loads

# Positions inside the array produced by Gem::Specification._dump
SPEC_FIELD_NAME = 2
SPEC_FIELD_VERSION = 3
SPEC_FIELD_ORIGINAL_PLATFORM = 8
SPEC_FIELD_DEPENDENCIES = 9
SPEC_FIELD_NEW_PLATFORM = 16

RUNTIME_DEPENDENCY = "runtime"


class MarshalDecodeError(ValueError):
    """Raised when a payload is not the expected Marshal structure."""


class DependencyRecord(NamedTuple):
    """One entry of a dependency API response."""

    name: str
    number: str
    platform: str
    dependencies: list[tuple[str, str]]


class DecodedSpec(NamedTuple):
    """The parts of a single gem specification the resolver needs."""

    name: str
    version: str
    platform: str
    dependencies: list[tuple[str, list[str]]]


def ruby_text(value: Any) -> str:
    """Convert a decoded Ruby string-like value to ``str``.

    Handles symbols, binary strings and strings carrying extra ivars.
    """
    if isinstance(value, str):
        return value
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    name = getattr(value, "name", None)
    if isinstance(name, str):
        return name
    text = getattr(value, "text", None)
    if isinstance(text, str):
        return text
    return str(value)


def version_text(value: Any) -> str:
    """Convert a decoded ``Gem::Version`` (or plain string) to ``str``."""
    private = getattr(value, "_private_data", None)
    if private is not None:
        value = private
    if isinstance(value, (list, tuple)):
        value = value[0] if value else "0"
    return ruby_text(value)


def platform_text(value: Any) -> str:
    """Convert a decoded platform (string or ``Gem::Platform``) to ``str``."""
    if value is None:
        return "ruby"
    attributes = _attributes(value)
    if attributes:
        parts = [attributes.get(key) for key in ("@cpu", "@os", "@version")]
        return "-".join(ruby_text(p) for p in parts if p is not None) or "ruby"
    return ruby_text(value) or "ruby"


def _attributes(value: Any) -> dict[str, Any]:
    raw = getattr(value, "attributes", None)
    if not isinstance(raw, Mapping):
        return {}
    return {ruby_text(k): v for k, v in raw.items()}


def load_marshal(data: bytes) -> Any:
    """Decode a Marshal byte string.

    Raises:
        MarshalDecodeError: If the bytes are not valid Marshal data.
    """
    try:
        return loads(data)
    except Exception as e:  # noqa: BLE001
        msg = f"Invalid Marshal data: {type(e).__name__}"
        raise MarshalDecodeError(msg) from e


def _dependency_pairs(value: Any) -> Iterable[tuple[Any, Any]]:
    if isinstance(value, Mapping):
        return value.items()
    if isinstance(value, (list, tuple)):
        return [(pair[0], pair[1]) for pair in value]
    msg = f"Unexpected dependencies structure: {type(value).__name__}"
    raise MarshalDecodeError(msg)


def decode_dependency_payload(data: bytes) -> list[DependencyRecord]:
    """Decode a dependency API response body.

    Args:
        data: Raw response body.

    Returns:
        One record per returned package version.

    Raises:
        MarshalDecodeError: If the payload has an unexpected shape.
    """
    payload = load_marshal(data)
    if not isinstance(payload, (list, tuple)):
        msg = f"Dependency response is a {type(payload).__name__}, expected an array"
        raise MarshalDecodeError(msg)

    records: list[DependencyRecord] = []
    for entry in payload:
        if not isinstance(entry, Mapping):
            msg = f"Dependency entry is a {type(entry).__name__}, expected a hash"
            raise MarshalDecodeError(msg)
        fields = {ruby_text(k): v for k, v in entry.items()}
        try:
            name = ruby_text(fields["name"])
            number = version_text(fields["number"])
        except KeyError as e:
            msg = f"Dependency entry is missing {e.args[0]!r}"
            raise MarshalDecodeError(msg) from e
        dependencies = [
            (ruby_text(dep_name), ruby_text(requirement))
            for dep_name, requirement in _dependency_pairs(fields.get("dependencies") or [])
        ]
        records.append(
            DependencyRecord(
                name=name,
                number=number,
                platform=platform_text(fields.get("platform")),
                dependencies=dependencies,
            )
        )
    return records


def decode_full_index(data: bytes) -> list[tuple[str, str, str]]:
    """Decode a gzipped full index (``specs.4.8.gz``).

    Args:
        data: Raw (compressed) artifact.

    Returns:
        ``(name, version, platform)`` tuples.

    Raises:
        MarshalDecodeError: If the artifact cannot be decompressed or decoded.
    """
    try:
        raw = gzip.decompress(data)
    except (OSError, EOFError, zlib.error) as e:
        msg = f"Full index is not valid gzip data: {e}"
        raise MarshalDecodeError(msg) from e

    payload = load_marshal(raw)
    if not isinstance(payload, (list, tuple)):
        msg = f"Full index is a {type(payload).__name__}, expected an array"
        raise MarshalDecodeError(msg)

    entries: list[tuple[str, str, str]] = []
    for entry in payload:
        try:
            name, version, platform = entry[0], entry[1], entry[2]
        except (TypeError, IndexError) as e:
            msg = f"Full index entry {entry!r} is not a [name, version, platform] triple"
            raise MarshalDecodeError(msg) from e
        entries.append((ruby_text(name), version_text(version), platform_text(platform)))
    return entries


def _requirement_strings(requirement: Any) -> list[str]:
    pairs = _attributes(requirement).get("@requirements")
    if pairs is None:
        private = getattr(requirement, "_private_data", None)
        if isinstance(private, (list, tuple)) and private:
            pairs = private[0]
    if pairs is None:
        return []
    return [f"{ruby_text(op)} {version_text(version)}" for op, version in pairs]


def spec_from_fields(fields: Any) -> DecodedSpec:
    """Build a DecodedSpec from the array produced by ``Gem::Specification._dump``.

    Only runtime dependencies are kept.

    Raises:
        MarshalDecodeError: If the array does not have the expected layout.
    """
    try:
        name = ruby_text(fields[SPEC_FIELD_NAME])
        version = version_text(fields[SPEC_FIELD_VERSION])
        platform = fields[SPEC_FIELD_ORIGINAL_PLATFORM]
        if len(fields) > SPEC_FIELD_NEW_PLATFORM and fields[SPEC_FIELD_NEW_PLATFORM]:
            platform = fields[SPEC_FIELD_NEW_PLATFORM]
        raw_dependencies = fields[SPEC_FIELD_DEPENDENCIES] or []
    except (TypeError, IndexError, KeyError) as e:
        msg = "Specification array does not have the Gem::Specification layout"
        raise MarshalDecodeError(msg) from e

    dependencies: list[tuple[str, list[str]]] = []
    for dependency in raw_dependencies:
        attributes = _attributes(dependency)
        if "@name" not in attributes:
            msg = f"Dependency of {name} has no name"
            raise MarshalDecodeError(msg)
        dep_type = ruby_text(attributes.get("@type") or RUNTIME_DEPENDENCY)
        if dep_type != RUNTIME_DEPENDENCY:
            continue
        dependencies.append(
            (
                ruby_text(attributes["@name"]),
                _requirement_strings(attributes.get("@requirement")),
            )
        )

    return DecodedSpec(
        name=name,
        version=version,
        platform=platform_text(platform),
        dependencies=dependencies,
    )


def decode_gemspec(data: bytes, *, compressed: bool = True) -> DecodedSpec:
    """Decode a per-file specification (``*.gemspec.rz``).

    Args:
        data: Raw file contents.
        compressed: Whether the data is still zlib-deflated.

    Returns:
        The decoded specification.

    Raises:
        MarshalDecodeError: If the payload cannot be decoded.
    """
    if compressed:
        try:
            data = zlib.decompress(data)
        except zlib.error as e:
            msg = f"Specification is not valid deflate data: {e}"
            raise MarshalDecodeError(msg) from e

    obj = load_marshal(data)
    private = getattr(obj, "_private_data", None)
    if isinstance(private, str):
        private = private.encode("latin-1")
    if isinstance(private, bytes):
        obj = load_marshal(private)
    if not isinstance(obj, (list, tuple)):
        msg = f"Specification is a {type(obj).__name__}, expected Gem::Specification"
        raise MarshalDecodeError(msg)
    return spec_from_fields(obj)
