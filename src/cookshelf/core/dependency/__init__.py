"""Dependency entries, version constraints, and greedy resolution.

All public names are re-exported here so callers can write
``from cookshelf.core.dependency import Resolver, VersionConstraint``.

- ``constraints``: ``Version`` ordering and ``VersionConstraint`` matching.
- ``entry``: the ``DependencyEntry`` value produced by a Shelffile or read
  from a manifest.
- ``resolver``: ``Resolver`` and the ``Solution`` it produces.
"""

from cookshelf.core.dependency.constraints import (
    Version,
    VersionConstraint,
    _version_key,
    sort_versions,
)
from cookshelf.core.dependency.entry import DEFAULT_GROUP, DependencyEntry
from cookshelf.core.dependency.resolver import Resolver, Solution

__all__ = [
    "DEFAULT_GROUP",
    "DependencyEntry",
    "Resolver",
    "Solution",
    "Version",
    "VersionConstraint",
    "_version_key",
    "sort_versions",
]
