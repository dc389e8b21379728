"""Greedy dependency resolution over cookbook locations.

The resolver turns a list of dependency entries into a ``Solution``: one
installed artifact per cookbook name such that every constraint anywhere in
the graph (declared or read from a manifest) is satisfied.

Algorithm (iterative fixpoint over a FIFO work queue):

1. Seed the queue with the explicit entries.
2. Pop an entry. If its name is already pinned, check the pin against the
   entry's constraint and fail with ``UnresolvableConflict`` if it does not
   hold. Committed pins are never revisited.
3. Otherwise ask the entry's location (or each default location in turn)
   for candidates and pick the highest version satisfying the constraint,
   or the preferred (previously locked) version when it still qualifies.
4. Install the pick through the cache and enqueue every dependency from its
   manifest as a discovered entry.
5. Commit the pin and repeat until the queue is empty.

Fetch and install for names waiting in the queue run ahead on a thread
pool. Workers never touch the solution; commits happen on the loop thread
in queue order, so the result does not depend on worker timing.

Greedy resolution is a known limitation: a conflict that could be avoided
by picking a lower version of an already committed cookbook is reported
rather than backtracked.
"""

from __future__ import annotations

import logging
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Sequence

from cookshelf.core.dependency.constraints import Version, VersionConstraint
from cookshelf.core.dependency.entry import DependencyEntry
from cookshelf.exceptions import NoSatisfyingVersion, NotFound, UnresolvableConflict

if TYPE_CHECKING:
    from cookshelf.core.cache.store import ArtifactCache, CachedArtifact
    from cookshelf.locations.base import Candidate, Location

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 4


# ---------------------------------------------------------------------------
# Solution: the output of dependency resolution
# ---------------------------------------------------------------------------


@dataclass
class Solution:
    """A mutually consistent set of installed cookbooks.

    Attributes:
        artifacts: Cookbook name -> installed artifact, one per name.
        entries: Every entry (explicit and discovered) that contributed, in
            the order the resolver processed them.
        locations: Cookbook name -> location that served it.
    """

    artifacts: dict[str, CachedArtifact] = field(default_factory=dict)
    entries: list[DependencyEntry] = field(default_factory=list)
    locations: dict[str, Location] = field(default_factory=dict)

    def pins(self) -> dict[str, str]:
        """Cookbook name -> resolved version."""
        return {name: art.version for name, art in sorted(self.artifacts.items())}

    def __len__(self) -> int:
        return len(self.artifacts)

    def __contains__(self, name: object) -> bool:
        return name in self.artifacts

    def violations(self) -> list[str]:
        """Describe every constraint in the graph the solution fails.

        Checks the recorded entries and the dependencies of every artifact.
        A solution returned by ``Resolver.resolve`` has none.
        """
        problems: list[str] = []
        for entry in self.entries:
            art = self.artifacts.get(entry.name)
            if art is None:
                problems.append(f"{entry.describe()} is not in the solution")
            elif not entry.constraint.satisfies(art.version):
                problems.append(f"{entry.describe()} is violated by {art.version}")
        for art in self.artifacts.values():
            for dep_name, raw in art.dependencies.items():
                dep = self.artifacts.get(dep_name)
                if dep is None:
                    problems.append(f"{art.name}@{art.version} requires missing {dep_name!r}")
                elif not VersionConstraint.parse(raw).satisfies(dep.version):
                    problems.append(
                        f"{art.name}@{art.version} requires {dep_name} {raw!r}, "
                        f"got {dep.version}"
                    )
        return problems


@dataclass
class _Pick:
    """A candidate chosen and installed by a worker, awaiting commit."""

    entry: DependencyEntry
    location: Location
    artifact: CachedArtifact


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


class Resolver:
    """Greedy resolver for cookbook dependency entries.

    Args:
        cache: Artifact cache used for every install.
        default_locations: Locations consulted, in order, for entries that
            do not name their own location.
        max_workers: Size of the fetch/install thread pool. 1 disables
            concurrency.
    """

    def __init__(
        self,
        cache: ArtifactCache,
        default_locations: Sequence[Location] = (),
        max_workers: int = DEFAULT_MAX_WORKERS,
    ) -> None:
        self._cache = cache
        self._default_locations = list(default_locations)
        self._max_workers = max(1, max_workers)

    def resolve(
        self,
        entries: Sequence[DependencyEntry],
        preferred: dict[str, str] | None = None,
    ) -> Solution:
        """Resolve *entries* into a ``Solution``.

        Args:
            entries: Explicit dependency entries (unique names).
            preferred: Cookbook name -> version to pick when it still
                satisfies the constraint (previous lockfile pins).

        Raises:
            UnresolvableConflict: Two constraints on a name cannot both hold,
                or no location can serve an entry.
            DownloadFailure: Propagated unchanged from a location.
        """
        preferred = preferred or {}
        solution = Solution()
        committed_by: dict[str, DependencyEntry] = {}
        queue: deque[DependencyEntry] = deque(entries)
        pending: dict[str, Future[_Pick]] = {}

        executor = ThreadPoolExecutor(
            max_workers=self._max_workers, thread_name_prefix="cookshelf-fetch"
        )
        try:
            while queue:
                # Prefetch: the first queued entry for each unresolved name
                # is the one that will be committed.
                for waiting in queue:
                    if waiting.name not in solution and waiting.name not in pending:
                        pending[waiting.name] = executor.submit(
                            self._pick, waiting, preferred.get(waiting.name)
                        )

                entry = queue.popleft()
                solution.entries.append(entry)

                if entry.name in solution:
                    self._check_pin(entry, committed_by[entry.name], solution)
                    continue

                pick = pending.pop(entry.name).result()

                solution.artifacts[entry.name] = pick.artifact
                solution.locations[entry.name] = pick.location
                committed_by[entry.name] = entry
                logger.debug("Pinned %s at %s", entry.name, pick.artifact.version)

                origin = f"{entry.name}@{pick.artifact.version}"
                for dep_name in sorted(pick.artifact.dependencies):
                    queue.append(
                        DependencyEntry(
                            name=dep_name,
                            constraint=VersionConstraint.parse(pick.artifact.dependencies[dep_name]),
                            groups=frozenset(),
                            origin=origin,
                        )
                    )
        finally:
            executor.shutdown(wait=True, cancel_futures=True)

        logger.info("Resolved %d cookbooks", len(solution))
        return solution

    def _check_pin(
        self,
        entry: DependencyEntry,
        committed: DependencyEntry,
        solution: Solution,
    ) -> None:
        pinned = solution.artifacts[entry.name].version
        if entry.constraint.satisfies(pinned):
            return
        raise UnresolvableConflict(
            f"Conflicting constraints on {entry.name!r}: "
            f"{committed.describe()} resolved to {pinned}, "
            f"which does not satisfy {entry.describe()}",
            entries=[committed, entry],
        )

    def _pick(self, entry: DependencyEntry, preferred: str | None) -> _Pick:
        """Select and install the version for *entry*. Runs on a worker."""
        location, candidates = self._candidates(entry)
        chosen: Candidate = candidates[0]
        if preferred is not None:
            wanted = Version.parse(preferred)
            for candidate in candidates:
                if Version.parse(candidate.version) == wanted:
                    chosen = candidate
                    break
        logger.debug(
            "Selected %s %s from %s (%d candidates)",
            entry.name, chosen.version, location, len(candidates),
        )
        return _Pick(entry=entry, location=location, artifact=location.install(chosen, self._cache))

    def _candidates(self, entry: DependencyEntry) -> tuple[Location, list[Candidate]]:
        """Ask the entry's location, else each default location, for candidates.

        The first location that knows the name decides: a
        ``NoSatisfyingVersion`` there is final, a ``NotFound`` moves on to
        the next default location.
        """
        locations = [entry.location] if entry.location is not None else self._default_locations
        failure: NotFound | NoSatisfyingVersion | None = None
        for location in locations:
            try:
                return location, location.fetch(entry.name, entry.constraint)
            except NotFound as exc:
                failure = exc
            except NoSatisfyingVersion as exc:
                failure = exc
                break

        if failure is None:
            message = f"No location configured to serve {entry.describe()}"
        else:
            message = f"Cannot resolve {entry.describe()}: {failure}"
        raise UnresolvableConflict(message, entries=[entry]) from failure
