"""Cookbook Lockfile --- Reproducible, Network-Free Installs.

This package implements the ``Shelffile.lock`` lockfile format. The lockfile
captures the exact resolved state of a Shelffile: every cookbook at its
resolved version, the location that served it, its dependencies and a
content checksum, together with a fingerprint of the Shelffile text it was
produced from.

The package is split into focused submodules:

- ``models``: The ``LockedEntry`` data class.
- ``lockfile``: The ``Lockfile`` class with entry management, fingerprinting
  and atomic serialization.
- ``operations``: Deserialization (``from_dict``, ``from_json``, ``read``),
  validation, and diffing.
- ``factory``: The ``from_solution`` factory method for constructing
  lockfiles from resolver results.
- ``reconcile``: Deciding between lockfile reuse and re-resolution, and
  restoring a solution from locked entries.

All public names are re-exported here so callers can write
``from cookshelf.core.lockfile import Lockfile``.
"""

# Re-export data models
from cookshelf.core.lockfile.models import LockedEntry, _DIGEST_RE

# Re-export the Lockfile class
from cookshelf.core.lockfile.lockfile import Lockfile

# Attach operations to Lockfile as methods/classmethods
from cookshelf.core.lockfile import operations as _ops
from cookshelf.core.lockfile import factory as _factory

Lockfile.from_dict = classmethod(_ops._from_dict)
Lockfile.from_json = classmethod(_ops._from_json)
Lockfile.read = classmethod(_ops._read)
Lockfile.validate = _ops._validate
Lockfile.diff = _ops._diff
Lockfile.from_solution = classmethod(_factory._from_solution)

from cookshelf.core.lockfile.reconcile import (  # noqa: E402
    Reconciliation,
    reconcile,
    restore_solution,
)

__all__ = [
    "LockedEntry",
    "Lockfile",
    "Reconciliation",
    "_DIGEST_RE",
    "reconcile",
    "restore_solution",
]
