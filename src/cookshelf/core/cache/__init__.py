"""Artifact cache: installed cookbooks keyed by (name, version, location).

The package is split into focused submodules:

- ``store``: ``ArtifactCache`` and the ``CachedArtifact`` model.
- ``export``: vendoring cached cookbooks into a directory while honouring
  ``chefignore`` files.
"""

from cookshelf.core.cache.export import DEFAULT_IGNORE_FILENAME, vendor
from cookshelf.core.cache.store import ArtifactCache, CachedArtifact, compute_checksum

__all__ = [
    "ArtifactCache",
    "CachedArtifact",
    "DEFAULT_IGNORE_FILENAME",
    "compute_checksum",
    "vendor",
]
