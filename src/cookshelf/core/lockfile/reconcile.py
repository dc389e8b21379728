"""Lockfile reconciliation --- deciding how much of a previous lock to keep.

Given the raw Shelffile text, the entries it currently declares and the
lockfile from the previous run (if any), ``reconcile`` decides between:

- **Reuse:** the fingerprint matches, so the declaration did not change. The
  locked set is rebuilt through the cache with ``restore_solution`` and no
  location is ever asked for candidates.
- **Re-resolve:** the declaration changed (or there is no lockfile). Locked
  pins are carried forward where they still satisfy the declaration: an
  explicit entry gets its pin merged into its constraint, and a transitive
  pin becomes a preference the resolver honours when it can. Pins that
  turn out to conflict with the new declaration are released with
  ``Reconciliation.release`` and resolution runs again.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Iterable, Sequence

from cookshelf.core.dependency.constraints import VersionConstraint
from cookshelf.core.dependency.entry import DependencyEntry
from cookshelf.core.dependency.resolver import Solution
from cookshelf.core.lockfile.lockfile import Lockfile
from cookshelf.core.lockfile.models import LockedEntry
from cookshelf.exceptions import LockfileError
from cookshelf.locations import location_from_descriptor

if TYPE_CHECKING:
    from cookshelf.config import ShelfConfig
    from cookshelf.core.cache.store import ArtifactCache

logger = logging.getLogger(__name__)


@dataclass
class Reconciliation:
    """The outcome of comparing a declaration against its lockfile.

    Attributes:
        reuse: True when the lockfile can be used as-is.
        fingerprint: Fingerprint of the current Shelffile text.
        entries: Entries to hand to the resolver (ignored when reusing).
        preferred: Cookbook name -> version the resolver should keep when it
            still satisfies every constraint.
        locked: The lockfile entries to rebuild from when reusing.
        declared: The explicit entries as declared, before any pin.
        pinned: Names in *entries* whose constraint carries a lock pin.
    """

    reuse: bool
    fingerprint: str
    entries: list[DependencyEntry] = field(default_factory=list)
    preferred: dict[str, str] = field(default_factory=dict)
    locked: list[LockedEntry] = field(default_factory=list)
    declared: list[DependencyEntry] = field(default_factory=list)
    pinned: set[str] = field(default_factory=set)

    @property
    def has_pins(self) -> bool:
        return bool(self.pinned or self.preferred)

    def release(self, names: Iterable[str] | None = None) -> bool:
        """Drop the lock pins on *names* (every pin when None).

        Returns:
            True if at least one pin was dropped.
        """
        held = self.pinned | set(self.preferred)
        released = held if names is None else held & set(names)
        if not released:
            return False
        unpinned = released & self.pinned
        originals = {entry.name: entry for entry in self.declared}
        self.entries = [
            originals[entry.name] if entry.name in unpinned else entry
            for entry in self.entries
        ]
        self.pinned -= unpinned
        for name in released:
            self.preferred.pop(name, None)
        logger.debug("Released lock pins on %s", ", ".join(sorted(released)))
        return True


def reconcile(
    raw_text: str,
    current_entries: Sequence[DependencyEntry],
    lockfile: Any | None,
) -> Reconciliation:
    """Compare the current declaration with the previous lockfile.

    Args:
        raw_text: The Shelffile exactly as read from disk.
        current_entries: Explicit entries the Shelffile declares now.
        lockfile: The previous ``Lockfile``, or None if there is none.

    Returns:
        A ``Reconciliation`` describing what to resolve or reuse.
    """
    fingerprint = Lockfile.compute_fingerprint(raw_text)
    entries = list(current_entries)

    if lockfile is None:
        logger.debug("No lockfile; resolving %d entries from scratch", len(entries))
        return Reconciliation(reuse=False, fingerprint=fingerprint, entries=entries)

    if lockfile.fingerprint == fingerprint:
        problems = lockfile.validate()
        missing = [e.name for e in entries if not lockfile.has_entry(e.name)]
        if not problems and not missing:
            logger.debug("Lockfile fingerprint matches; reusing %d pins", lockfile.entry_count)
            return Reconciliation(
                reuse=True,
                fingerprint=fingerprint,
                entries=entries,
                locked=lockfile.entries,
            )
        logger.warning(
            "Lockfile matches the Shelffile but is inconsistent (%s); re-resolving",
            "; ".join(problems) or f"missing {', '.join(missing)}",
        )

    declared = {e.name for e in entries}
    pinned: set[str] = set()
    reconciled: list[DependencyEntry] = []
    for entry in entries:
        locked = lockfile.get_entry(entry.name)
        if locked is not None and _pin_still_valid(entry, locked):
            pinned_constraint = entry.constraint.merge(VersionConstraint.parse(f"= {locked.version}"))
            logger.debug("Keeping %s at locked %s", entry.name, locked.version)
            reconciled.append(entry.with_constraint(pinned_constraint))
            pinned.add(entry.name)
        else:
            reconciled.append(entry)

    preferred = {
        locked.name: locked.version
        for locked in lockfile.entries
        if locked.name not in declared
    }
    return Reconciliation(
        reuse=False,
        fingerprint=fingerprint,
        entries=reconciled,
        preferred=preferred,
        declared=entries,
        pinned=pinned,
    )


def _pin_still_valid(entry: DependencyEntry, locked: LockedEntry) -> bool:
    """True when the locked version may be kept for a declared entry."""
    if not entry.constraint.satisfies(locked.version):
        return False
    # A pin from another location says nothing about the new one.
    if entry.location is not None and entry.location.descriptor() != locked.location:
        return False
    return True


def restore_solution(
    locked: Iterable[LockedEntry],
    explicit: Sequence[DependencyEntry],
    cache: ArtifactCache,
    config: ShelfConfig | None = None,
) -> Solution:
    """Rebuild a ``Solution`` from lockfile entries without resolving.

    Only the locked cookbooks reachable from *explicit* are restored, so
    group filtering applies to a reused lock too. Locations that record a
    revision are rebuilt at that revision. Each artifact comes from
    ``cache.get_or_install``, which downloads only on a cold cache.

    Raises:
        LockfileError: If a required cookbook is not locked or carries no
            location.
        DownloadFailure: Propagated from a location on a cold cache.
    """
    by_name = {entry.name: entry for entry in locked}
    solution = Solution()
    queue = list(explicit)
    while queue:
        entry = queue.pop(0)
        solution.entries.append(entry)
        if entry.name in solution:
            continue
        pin = by_name.get(entry.name)
        if pin is None:
            raise LockfileError(f"{entry.describe()} is not in the lockfile")
        if not pin.location:
            raise LockfileError(f"Lockfile entry {pin.name!r} records no location")

        location = location_from_descriptor(pin.location, config)
        if pin.revision:
            location = location.at_revision(pin.revision)
        artifact = cache.get_or_install(location, pin.name, pin.version)
        solution.artifacts[pin.name] = artifact
        solution.locations[pin.name] = location

        origin = f"{pin.name}@{pin.version}"
        for dep_name in sorted(artifact.dependencies):
            queue.append(
                DependencyEntry(
                    name=dep_name,
                    constraint=VersionConstraint.parse(artifact.dependencies[dep_name]),
                    groups=frozenset(),
                    origin=origin,
                )
            )

    logger.info("Restored %d cookbooks from the lockfile", len(solution))
    return solution
