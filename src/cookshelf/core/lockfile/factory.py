"""Lockfile factory --- constructing lockfiles from resolution results.

The ``from_solution`` function constructs a ``Lockfile`` directly from a
``Solution`` produced by the resolver. This is the primary entry point in
the normal workflow::

    solution = Resolver(cache, default_locations).resolve(entries)
    lockfile = Lockfile.from_solution(solution, Lockfile.compute_fingerprint(text))
    lockfile.write(Path("Shelffile.lock"))
"""

from __future__ import annotations

from typing import Any

from cookshelf.core.lockfile.models import LockedEntry


def _from_solution(cls: type, solution: Any, fingerprint: str = "") -> Any:
    """Create a lockfile from a resolver ``Solution``.

    Each artifact becomes one entry carrying its version, the descriptor of
    the location that served it, its manifest dependencies, its content
    checksum and, for git locations, the commit it came from. An entry is explicit when any explicit dependency entry of
    the solution names it.

    Args:
        solution: Result of ``Resolver.resolve``.
        fingerprint: Fingerprint of the Shelffile text that was resolved.

    Returns:
        A new ``Lockfile`` populated from the solution.
    """
    explicit = {entry.name for entry in solution.entries if entry.explicit}
    lf = cls(fingerprint=fingerprint)

    for name, artifact in sorted(solution.artifacts.items()):
        location = solution.locations.get(name)
        lf.add_entry(
            LockedEntry(
                name=name,
                version=artifact.version,
                location=location.descriptor() if location is not None else {},
                dependencies=dict(artifact.dependencies),
                checksum=artifact.checksum,
                explicit=name in explicit,
                revision=(location.revision or "") if location is not None else "",
            )
        )

    return lf
