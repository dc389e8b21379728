"""Git location: a cookbook checked out from a git repository.

The repository is cloned once per location instance into a scratch
directory, ``ref`` (or a pinned commit) is checked out, and the manifest found at ``rel`` (or the
repository root) defines the single version this location offers.
Downloads copy the checkout without its ``.git`` directory.

Git failures raise ``DownloadFailure``; clones are not retried.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import tempfile
import threading
import weakref
from pathlib import Path
from typing import TYPE_CHECKING, Any

from cookshelf.core.dependency.constraints import VersionConstraint
from cookshelf.core.manifest import find_manifest, read_manifest
from cookshelf.exceptions import DownloadFailure, NoSatisfyingVersion, NotFound
from cookshelf.locations.base import Candidate, Location

if TYPE_CHECKING:
    from cookshelf.config import ShelfConfig

logger = logging.getLogger(__name__)

DEFAULT_REF = "HEAD"


class GitLocation(Location):
    """A cookbook in a git repository."""

    kind = "git"

    def __init__(
        self,
        uri: str,
        ref: str | None = None,
        rel: str | None = None,
        pinned_revision: str | None = None,
    ) -> None:
        self.uri = uri
        self.ref = ref or DEFAULT_REF
        self.rel = rel
        self.pinned_revision = pinned_revision
        self._lock = threading.Lock()
        self._checkout: Path | None = None
        self._revision: str | None = None

    def descriptor(self) -> dict[str, Any]:
        desc: dict[str, Any] = {"type": self.kind, "uri": self.uri, "ref": self.ref}
        if self.rel:
            desc["rel"] = self.rel
        return desc

    @classmethod
    def from_descriptor(cls, descriptor: dict[str, Any], config: ShelfConfig | None = None) -> GitLocation:
        return cls(descriptor["uri"], descriptor.get("ref"), descriptor.get("rel"))

    def at_revision(self, revision: str) -> GitLocation:
        """The same location, checked out at commit *revision* instead of ``ref``."""
        return GitLocation(self.uri, self.ref, self.rel, pinned_revision=revision)

    @property
    def revision(self) -> str | None:
        """Commit id of the checkout, once cloned."""
        return self._revision

    def fetch(self, name: str, constraint: VersionConstraint) -> list[Candidate]:
        root = self._cookbook_root()
        if find_manifest(root) is None:
            raise NotFound(name, str(self))
        manifest = read_manifest(root)
        if manifest.name != name:
            raise NotFound(name, str(self))
        if not constraint.satisfies(manifest.version):
            raise NoSatisfyingVersion(name, constraint.raw, str(self), [manifest.version])
        return [
            Candidate(
                name=name,
                version=manifest.version,
                metadata={"revision": self._revision},
            )
        ]

    def download(self, candidate: Candidate, destination: Path) -> None:
        root = self._cookbook_root()
        try:
            shutil.copytree(
                root,
                destination,
                ignore=shutil.ignore_patterns(".git"),
                dirs_exist_ok=True,
            )
        except OSError as exc:
            raise DownloadFailure(f"Cannot copy checkout of {self.uri}: {exc}") from exc

    def _cookbook_root(self) -> Path:
        checkout = self._clone()
        return checkout / self.rel if self.rel else checkout

    def _clone(self) -> Path:
        with self._lock:
            if self._checkout is not None:
                return self._checkout
            scratch = Path(tempfile.mkdtemp(prefix="cookshelf-git-"))
            weakref.finalize(self, shutil.rmtree, str(scratch), True)
            target = scratch / "checkout"
            wanted = self.pinned_revision or self.ref
            logger.debug("Cloning %s (%s)", self.uri, wanted)
            _run_git(["clone", "--quiet", self.uri, str(target)])
            if wanted != DEFAULT_REF:
                _run_git(["checkout", "--quiet", wanted], cwd=target)
            self._revision = _run_git(["rev-parse", "HEAD"], cwd=target)
            self._checkout = target
            return target

    def __str__(self) -> str:
        return f"git '{self.uri}' at '{self.ref}'"


def _run_git(argv: list[str], cwd: Path | None = None) -> str:
    command = ["git", *argv]
    try:
        completed = subprocess.run(
            command,
            cwd=cwd,
            check=False,
            text=True,
            capture_output=True,
        )
    except OSError as exc:
        raise DownloadFailure(f"Cannot run git: {exc}") from exc
    if completed.returncode != 0:
        raise DownloadFailure(
            f"Git command failed: {' '.join(command)}: {completed.stderr.strip()}"
        )
    return completed.stdout.strip()
