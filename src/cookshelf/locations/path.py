"""Path location: a cookbook that lives in a local directory.

A path location serves exactly one cookbook, the one described by the
manifest at its root. It is what ``metadata()`` and ``path:`` entries in a
Shelffile produce.
"""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import TYPE_CHECKING, Any

from cookshelf.core.dependency.constraints import VersionConstraint
from cookshelf.core.manifest import find_manifest, read_manifest
from cookshelf.exceptions import DownloadFailure, NoSatisfyingVersion, NotFound
from cookshelf.locations.base import Candidate, Location

if TYPE_CHECKING:
    from cookshelf.config import ShelfConfig

# Directories never copied out of a working tree.
_SKIP_DIRS = (".git", ".svn", ".hg")


class PathLocation(Location):
    """A cookbook on the local filesystem."""

    kind = "path"

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path).expanduser().resolve()

    def descriptor(self) -> dict[str, Any]:
        return {"type": self.kind, "path": str(self.path)}

    @classmethod
    def from_descriptor(cls, descriptor: dict[str, Any], config: ShelfConfig | None = None) -> PathLocation:
        return cls(descriptor["path"])

    def fetch(self, name: str, constraint: VersionConstraint) -> list[Candidate]:
        if not self.path.is_dir() or find_manifest(self.path) is None:
            raise NotFound(name, str(self))
        manifest = read_manifest(self.path)
        if manifest.name != name:
            raise NotFound(name, str(self))
        if not constraint.satisfies(manifest.version):
            raise NoSatisfyingVersion(name, constraint.raw, str(self), [manifest.version])
        return [Candidate(name=name, version=manifest.version)]

    def download(self, candidate: Candidate, destination: Path) -> None:
        try:
            shutil.copytree(
                self.path,
                destination,
                ignore=shutil.ignore_patterns(*_SKIP_DIRS),
                dirs_exist_ok=True,
            )
        except OSError as exc:
            raise DownloadFailure(f"Cannot copy {self.path}: {exc}") from exc

    def __str__(self) -> str:
        return f"path '{self.path}'"
