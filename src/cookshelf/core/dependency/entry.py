"""Dependency entries: one named, constrained, located requirement."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from cookshelf.core.dependency.constraints import VersionConstraint

if TYPE_CHECKING:
    from cookshelf.locations.base import Location

DEFAULT_GROUP = "default"


@dataclass(frozen=True)
class DependencyEntry:
    """A single requirement on a cookbook.

    Explicit entries come from the Shelffile; discovered entries are read
    from the manifest of an installed artifact and are never group-filtered.

    Attributes:
        name: Cookbook name, unique within one declaration set.
        constraint: Version range the resolved version must satisfy.
        groups: Group tags used by ``only``/``except`` filtering.
        location: The location that must serve this cookbook, or None to
            use the default locations.
        origin: None for explicit entries, "parent@version" for entries
            discovered in a manifest.
    """

    name: str
    constraint: VersionConstraint = field(default_factory=VersionConstraint.any)
    groups: frozenset[str] = frozenset({DEFAULT_GROUP})
    location: Location | None = None
    origin: str | None = None

    @property
    def explicit(self) -> bool:
        """True when the entry was declared rather than discovered."""
        return self.origin is None

    def with_constraint(self, constraint: VersionConstraint) -> DependencyEntry:
        """Return a copy of this entry with a different constraint."""
        return DependencyEntry(
            name=self.name,
            constraint=constraint,
            groups=self.groups,
            location=self.location,
            origin=self.origin,
        )

    def describe(self) -> str:
        """Human-readable form naming the constraint and where it came from."""
        where = "declared in Shelffile" if self.explicit else f"required by {self.origin}"
        return f"{self.name} ({self.constraint.raw}, {where})"
