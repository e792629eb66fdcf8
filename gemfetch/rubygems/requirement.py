"""Version requirements and dependencies."""

import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from gemfetch.rubygems.version import VERSION_PATTERN, GemVersion


class InvalidRequirementError(ValueError):
    """Raised when a requirement string cannot be parsed."""


OPERATORS: dict[str, Callable[[GemVersion, GemVersion], bool]] = {
    "=": lambda v, r: v == r,
    "!=": lambda v, r: v != r,
    ">": lambda v, r: v > r,
    "<": lambda v, r: v < r,
    ">=": lambda v, r: v >= r,
    "<=": lambda v, r: v <= r,
    "~>": lambda v, r: v >= r and v.release() < r.bump(),
}

_OPERATOR_PATTERN = "|".join(re.escape(op) for op in sorted(OPERATORS, key=len, reverse=True))
_REQUIREMENT = re.compile(rf"^\s*({_OPERATOR_PATTERN})?\s*({VERSION_PATTERN})\s*$")


@dataclass(frozen=True)
class Constraint:
    """One ``operator version`` pair."""

    operator: str
    version: GemVersion

    def is_satisfied_by(self, version: GemVersion) -> bool:
        """Check a version against this constraint."""
        return OPERATORS[self.operator](version, self.version)

    def __str__(self) -> str:
        return f"{self.operator} {self.version}"


def parse_constraint(text: str) -> Constraint:
    """Parse a single requirement such as ``>= 1.0`` or ``~> 2.3``.

    A bare version means ``=``.

    Args:
        text: Requirement text.

    Returns:
        Parsed constraint.

    Raises:
        InvalidRequirementError: If the text is not a valid requirement.
    """
    match = _REQUIREMENT.match(text)
    if match is None:
        msg = f"Ill-formed requirement {text!r}"
        raise InvalidRequirementError(msg)
    return Constraint(match.group(1) or "=", GemVersion(match.group(2)))


@dataclass(frozen=True)
class Requirement:
    """A conjunction of constraints; empty means ``>= 0``."""

    constraints: tuple[Constraint, ...]

    @classmethod
    def parse(cls, requirements: str | Iterable[str]) -> "Requirement":
        """Parse one comma-joined string or an iterable of requirement strings.

        Args:
            requirements: e.g. ``">= 1.0, < 2"`` or ``[">= 1.0", "< 2"]``.

        Returns:
            Parsed requirement.

        Raises:
            InvalidRequirementError: If any part cannot be parsed.
        """
        if isinstance(requirements, str):
            parts = [p for p in requirements.split(",") if p.strip()]
        else:
            parts = [p for p in requirements if p.strip()]
        if not parts:
            return cls.default()
        return cls(tuple(parse_constraint(p) for p in parts))

    @classmethod
    def default(cls) -> "Requirement":
        """The requirement every version satisfies."""
        return cls((Constraint(">=", GemVersion("0")),))

    def is_satisfied_by(self, version: GemVersion) -> bool:
        """Check whether a version satisfies every constraint."""
        return all(c.is_satisfied_by(version) for c in self.constraints)

    def __str__(self) -> str:
        return ", ".join(str(c) for c in self.constraints)


@dataclass(frozen=True)
class Dependency:
    """A runtime dependency on another package."""

    name: str
    requirement: Requirement

    def __str__(self) -> str:
        return f"{self.name} ({self.requirement})"
