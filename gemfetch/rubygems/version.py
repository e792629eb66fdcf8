"""Ordered gem version values."""

import re
from functools import total_ordering


VERSION_PATTERN = r"[0-9]+(?:\.[0-9a-zA-Z]+)*(?:-[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*)?"
_ANCHORED_VERSION = re.compile(rf"^\s*({VERSION_PATTERN})?\s*$")
_SEGMENT = re.compile(r"[0-9]+|[a-zA-Z]+")


class InvalidVersionError(ValueError):
    """Raised when a string is not a well-formed gem version."""


Segment = int | str


@total_ordering
class GemVersion:
    """A gem version with RubyGems ordering semantics.

    Versions are split into numeric and alphabetic segments. Missing
    segments compare as zero, and an alphabetic segment sorts before a
    numeric one, so ``1.0.a < 1.0 == 1 < 1.0.1``.
    """

    __slots__ = ("_segments", "_version")

    def __init__(self, version: str | int | float | None) -> None:
        """Parse a version string.

        Args:
            version: Version text; empty or None means "0".

        Raises:
            InvalidVersionError: If the text is not a valid version.
        """
        text = "" if version is None else str(version).strip()
        match = _ANCHORED_VERSION.match(text)
        if match is None:
            msg = f"Malformed version number string {text!r}"
            raise InvalidVersionError(msg)
        text = match.group(1) or "0"
        self._version = text.replace("-", ".pre.")
        self._segments: tuple[Segment, ...] = tuple(
            int(s) if s.isdigit() else s for s in _SEGMENT.findall(self._version)
        )

    @property
    def segments(self) -> tuple[Segment, ...]:
        """Numeric and alphabetic segments in order."""
        return self._segments

    @property
    def is_prerelease(self) -> bool:
        """Whether any segment is alphabetic."""
        return any(isinstance(s, str) for s in self._segments)

    def release(self) -> "GemVersion":
        """The release form: this version without its prerelease part."""
        if not self.is_prerelease:
            return self
        numeric: list[int] = []
        for segment in self._segments:
            if isinstance(segment, str):
                break
            numeric.append(segment)
        return GemVersion(".".join(str(s) for s in numeric))

    def bump(self) -> "GemVersion":
        """The next significant release, as used by the ``~>`` operator.

        ``2.3.1`` bumps to ``2.4`` and ``2`` bumps to ``3``.
        """
        numeric: list[int] = []
        for segment in self._segments:
            if isinstance(segment, str):
                break
            numeric.append(segment)
        if len(numeric) > 1:
            numeric.pop()
        numeric[-1] += 1
        return GemVersion(".".join(str(s) for s in numeric))

    def _canonical(self) -> tuple[Segment, ...]:
        segments = list(self._segments)
        while len(segments) > 1 and segments[-1] == 0:
            segments.pop()
        return tuple(segments)

    def _compare(self, other: "GemVersion") -> int:
        lhs, rhs = self._segments, other._segments
        for i in range(max(len(lhs), len(rhs))):
            left: Segment = lhs[i] if i < len(lhs) else 0
            right: Segment = rhs[i] if i < len(rhs) else 0
            if left == right:
                continue
            if isinstance(left, str) and isinstance(right, int):
                return -1
            if isinstance(left, int) and isinstance(right, str):
                return 1
            return -1 if left < right else 1  # type: ignore[operator]
        return 0

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GemVersion):
            return NotImplemented
        return self._compare(other) == 0

    def __lt__(self, other: "GemVersion") -> bool:
        if not isinstance(other, GemVersion):
            return NotImplemented
        return self._compare(other) < 0

    def __hash__(self) -> int:
        return hash(self._canonical())

    def __str__(self) -> str:
        return self._version

    def __repr__(self) -> str:
        return f"GemVersion({self._version!r})"
