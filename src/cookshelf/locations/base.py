"""Base classes and data models for cookbook locations.

Defines the ``Location`` abstract base class that the four concrete
locations (path, git, Chef API, community site) implement, along with the
``Candidate`` data model for the versions a location offers.

Every location provides two primitives:

- ``fetch(name, constraint)``: list the versions it can serve, newest
  first, raising ``NotFound`` / ``NoSatisfyingVersion`` when it cannot.
- ``download(candidate, destination)``: copy the raw artifact into an
  empty directory, raising ``DownloadFailure`` on transport errors.

``install`` is shared: it routes through the artifact cache so that
installing the same (name, version, location) twice never downloads twice.
"""

from __future__ import annotations

import hashlib
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, ClassVar

from cookshelf.core.dependency.constraints import Version, VersionConstraint, sort_versions
from cookshelf.exceptions import NoSatisfyingVersion

if TYPE_CHECKING:
    from cookshelf.config import ShelfConfig
    from cookshelf.core.cache.store import ArtifactCache, CachedArtifact

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data models
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Candidate:
    """One version of a cookbook offered by a location.

    Attributes:
        name: Cookbook name.
        version: Concrete version string.
        metadata: Location-specific details needed to download it (URLs,
            commit ids, declared dependencies when the index provides them).
    """

    name: str
    version: str
    metadata: dict[str, Any] = field(default_factory=dict, compare=False)


# ---------------------------------------------------------------------------
# Abstract base location
# ---------------------------------------------------------------------------


class Location(ABC):
    """Abstract base class for cookbook locations.

    Subclasses must set ``kind`` and implement ``descriptor``, ``fetch`` and
    ``download``. Two locations with the same descriptor are the same
    location: they share a fingerprint and therefore cache entries.
    """

    kind: ClassVar[str] = ""

    @abstractmethod
    def descriptor(self) -> dict[str, Any]:
        """JSON-serializable description, stored in the lockfile.

        Never contains credentials.
        """

    @classmethod
    @abstractmethod
    def from_descriptor(cls, descriptor: dict[str, Any], config: ShelfConfig | None = None) -> Location:
        """Rebuild a location from its ``descriptor()``.

        Credentials are never part of a descriptor; they come from *config*.

        Raises:
            KeyError: If a required descriptor field is missing.
        """

    @abstractmethod
    def fetch(self, name: str, constraint: VersionConstraint) -> list[Candidate]:
        """Return the candidates for *name* satisfying *constraint*, newest first.

        Raises:
            NotFound: The location does not know *name*.
            NoSatisfyingVersion: It knows *name* but no version matches.
            DownloadFailure: On transport errors.
        """

    @abstractmethod
    def download(self, candidate: Candidate, destination: Path) -> None:
        """Write the artifact for *candidate* into the empty *destination*.

        Raises:
            DownloadFailure: On transport or I/O errors.
        """

    @property
    def revision(self) -> str | None:
        """Source revision behind the served cookbook, for locations that have one."""
        return None

    def at_revision(self, revision: str) -> Location:
        """This location fixed at *revision*. Locations without revisions return self."""
        return self

    @property
    def fingerprint(self) -> str:
        """Stable hex digest identifying this location."""
        payload = json.dumps(self.descriptor(), sort_keys=True)
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()

    def install(self, candidate: Candidate, cache: ArtifactCache) -> CachedArtifact:
        """Install *candidate* into *cache*, downloading only on a cache miss."""
        return cache.get_or_install(self, candidate.name, candidate.version, candidate)

    def candidate_for(self, name: str, version: str) -> Candidate:
        """Rebuild the candidate for an already pinned version.

        Used when re-deriving a solution from a lockfile. The default looks
        the version up through ``fetch``; locations that can download a
        pinned version directly override it.
        """
        wanted = Version.parse(version)
        for candidate in self.fetch(name, VersionConstraint(f"= {version}")):
            if Version.parse(candidate.version) == wanted:
                return candidate
        raise NoSatisfyingVersion(name, f"= {version}", str(self))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Location):
            return NotImplemented
        return self.descriptor() == other.descriptor()

    def __hash__(self) -> int:
        return hash(self.fingerprint)

    def __str__(self) -> str:
        return f"{self.kind} location"


def select_candidates(
    name: str,
    constraint: VersionConstraint,
    offered: dict[str, dict[str, Any]],
    location: str,
) -> list[Candidate]:
    """Filter and order the versions a location offers for *name*.

    Shared by the index-backed locations. Unparseable version strings in a
    remote index are skipped with a warning.

    Args:
        name: Cookbook name.
        constraint: Constraint to apply.
        offered: version -> metadata mapping from the index.
        location: Location label for error messages.

    Returns:
        Matching candidates, newest first, with versions normalised to
        three components (``1.0`` becomes ``1.0.0``).

    Raises:
        NoSatisfyingVersion: If nothing matches.
    """
    valid: list[str] = []
    for version in offered:
        try:
            constraint.satisfies(version)
        except ValueError:
            logger.warning("Skipping invalid version %r of %s at %s", version, name, location)
            continue
        valid.append(version)

    matching = [v for v in sort_versions(valid) if constraint.satisfies(v)]
    if not matching:
        raise NoSatisfyingVersion(name, constraint.raw, location, sort_versions(valid))
    # Candidates carry the normalised version; the index spelling stays in
    # the metadata for locations that build URLs from it.
    return [
        Candidate(
            name=name,
            version=str(Version.parse(v)),
            metadata={**offered[v], "index_version": v},
        )
        for v in matching
    ]
