"""Content-addressed artifact cache.

Every installed cookbook lives under ``<root>/cookbooks/`` in a directory
named after its cache key ``(name, version, location fingerprint)``::

    ~/.cookshelf/cookbooks/nginx-0.101.0-3fa4c1d2e9b0/

Entries are written to a temporary directory and renamed into place, so a
directory that exists is complete, and an existing entry is never
overwritten. ``get_or_install`` performs at most one download per key for
the lifetime of the cache instance, also under concurrency: the first caller
downloads, concurrent callers for the same key wait for its result, and
callers for distinct keys proceed in parallel.
"""

from __future__ import annotations

import hashlib
import logging
import os
import shutil
import tempfile
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Iterable

from cookshelf.core.cache.export import DEFAULT_IGNORE_FILENAME, vendor
from cookshelf.core.dependency.constraints import Version
from cookshelf.core.manifest import read_manifest
from cookshelf.exceptions import ManifestError

if TYPE_CHECKING:
    from cookshelf.locations.base import Candidate, Location

logger = logging.getLogger(__name__)

CacheKey = tuple[str, str, str]


# ---------------------------------------------------------------------------
# CachedArtifact: an installed cookbook
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CachedArtifact:
    """A cookbook installed in the cache. Immutable once created.

    Attributes:
        name: Cookbook name.
        version: Resolved, concrete version.
        path: Directory holding the cookbook. Owned by the cache.
        dependencies: Dependency name -> constraint string, read from the
            cookbook's own manifest.
        checksum: "sha256:<hex>" digest over the cookbook's files.
        location: Fingerprint of the location it was installed from.
    """

    name: str
    version: str
    path: Path
    dependencies: dict[str, str] = field(default_factory=dict, compare=False)
    checksum: str = ""
    location: str = ""


def compute_checksum(root: Path) -> str:
    """Digest every file under *root* (relative path and content, sorted)."""
    digest = hashlib.sha256()
    for path in sorted(p for p in root.rglob("*") if p.is_file()):
        digest.update(path.relative_to(root).as_posix().encode("utf-8"))
        digest.update(b"\0")
        digest.update(path.read_bytes())
        digest.update(b"\0")
    return f"sha256:{digest.hexdigest()}"


class _InFlight:
    """Result slot shared by callers waiting on the same key."""

    def __init__(self) -> None:
        self.done = threading.Event()
        self.artifact: CachedArtifact | None = None
        self.error: BaseException | None = None

    def wait(self) -> CachedArtifact:
        self.done.wait()
        if self.error is not None:
            raise self.error
        if self.artifact is None:
            raise RuntimeError("in-flight install finished without a result")
        return self.artifact


# ---------------------------------------------------------------------------
# ArtifactCache
# ---------------------------------------------------------------------------


class ArtifactCache:
    """Local store of installed cookbooks keyed by (name, version, location).

    Args:
        root: Cache root (typically the cookshelf home directory).
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root).expanduser()
        self.cookbooks_dir = self.root / "cookbooks"
        self.cookbooks_dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._artifacts: dict[CacheKey, CachedArtifact] = {}
        self._inflight: dict[CacheKey, _InFlight] = {}

    @staticmethod
    def key_for(location: Location, name: str, version: str) -> CacheKey:
        return (name, version, location.fingerprint)

    def entry_path(self, location: Location, name: str, version: str) -> Path:
        """Directory for a cache key, whether or not it is installed."""
        return self.cookbooks_dir / f"{name}-{version}-{location.fingerprint[:12]}"

    def get(self, location: Location, name: str, version: str) -> CachedArtifact | None:
        """Return the cached artifact without ever downloading."""
        key = self.key_for(location, name, version)
        with self._lock:
            if key in self._artifacts:
                return self._artifacts[key]
        path = self.entry_path(location, name, version)
        if not path.is_dir():
            return None
        artifact = self._load(path, name, version, key[2])
        with self._lock:
            return self._artifacts.setdefault(key, artifact)

    def get_or_install(
        self,
        location: Location,
        name: str,
        version: str,
        candidate: Candidate | None = None,
    ) -> CachedArtifact:
        """Return the cached artifact, downloading it on the first request.

        Args:
            location: Location that serves the cookbook.
            name: Cookbook name.
            version: Concrete version.
            candidate: The candidate from ``location.fetch``. When omitted
                (re-deriving from a lockfile) and the artifact is not cached,
                ``location.candidate_for`` supplies it.

        Raises:
            DownloadFailure: Propagated from the location.
            ManifestError: If the downloaded cookbook's manifest is missing
                or names a different cookbook or version.
        """
        key = self.key_for(location, name, version)
        with self._lock:
            cached = self._artifacts.get(key)
            if cached is not None:
                return cached
            slot = self._inflight.get(key)
            owner = slot is None
            if slot is None:
                slot = self._inflight[key] = _InFlight()
        if not owner:
            logger.debug("Waiting for in-flight install of %s %s", name, version)
            return slot.wait()

        try:
            artifact = self.get(location, name, version)
            if artifact is None:
                artifact = self._install(location, name, version, candidate)
        except BaseException as exc:
            with self._lock:
                del self._inflight[key]
            slot.error = exc
            slot.done.set()
            raise

        with self._lock:
            self._artifacts[key] = artifact
            del self._inflight[key]
        slot.artifact = artifact
        slot.done.set()
        return artifact

    def _install(
        self,
        location: Location,
        name: str,
        version: str,
        candidate: Candidate | None,
    ) -> CachedArtifact:
        if candidate is None:
            candidate = location.candidate_for(name, version)
        final = self.entry_path(location, name, version)
        scratch = Path(tempfile.mkdtemp(prefix=".tmp-", dir=self.cookbooks_dir))
        try:
            staged = scratch / "cookbook"
            staged.mkdir()
            logger.info("Installing %s (%s) from %s", name, version, location)
            location.download(candidate, staged)
            self._load(staged, name, version, location.fingerprint)
            try:
                os.rename(staged, final)
            except OSError:
                if not final.is_dir():
                    raise
                logger.debug("%s appeared concurrently; keeping existing entry", final)
        finally:
            shutil.rmtree(scratch, ignore_errors=True)
        return self._load(final, name, version, location.fingerprint)

    @staticmethod
    def _load(path: Path, name: str, version: str, fingerprint: str) -> CachedArtifact:
        manifest = read_manifest(path)
        if manifest.name != name or Version.parse(manifest.version) != Version.parse(version):
            raise ManifestError(
                f"{path} contains {manifest.name} {manifest.version}, "
                f"expected {name} {version}"
            )
        return CachedArtifact(
            name=name,
            version=version,
            path=path,
            dependencies=dict(manifest.dependencies),
            checksum=compute_checksum(path),
            location=fingerprint,
        )

    def artifacts(self) -> list[CachedArtifact]:
        """Artifacts known to this cache instance, sorted by name and version."""
        with self._lock:
            return sorted(self._artifacts.values(), key=lambda a: (a.name, a.version))

    def export(
        self,
        artifacts: Iterable[CachedArtifact],
        destination: str | Path,
        ignore_filename: str | None = None,
    ) -> Path:
        """Copy *artifacts* into *destination*. See ``cookshelf.core.cache.export``."""
        return vendor(artifacts, destination, ignore_filename or DEFAULT_IGNORE_FILENAME)
