"""Site location: a community cookbook site exposing a universe index.

The index is a single JSON document at ``{index_url}/universe``::

    {
      "nginx": {
        "0.101.0": {
          "download_url": "https://.../nginx-0.101.0.tar.gz",
          "dependencies": {"ohai": ">= 0.1.0"}
        }
      }
    }

It is fetched once per location instance. Downloads fetch the tarball and
unpack it, stripping the single top-level directory cookbook archives use.
Requests are not retried.
"""

from __future__ import annotations

import logging
import shutil
import tarfile
import tempfile
import threading
from pathlib import Path
from typing import TYPE_CHECKING, Any

from cookshelf.core.dependency.constraints import VersionConstraint
from cookshelf.exceptions import DownloadFailure, NotFound
from cookshelf.locations import http_client
from cookshelf.locations.base import Candidate, Location, select_candidates

if TYPE_CHECKING:
    from cookshelf.config import ShelfConfig

logger = logging.getLogger(__name__)

DEFAULT_SITE_URL = "https://supermarket.chef.io"


class SiteLocation(Location):
    """A community site serving many cookbooks."""

    kind = "site"

    def __init__(self, index_url: str = DEFAULT_SITE_URL, *, verify: bool = True) -> None:
        self.index_url = index_url.rstrip("/")
        self.verify = verify
        self._lock = threading.Lock()
        self._universe: dict[str, Any] | None = None

    @classmethod
    def default(cls, *, verify: bool = True) -> SiteLocation:
        """The public community site."""
        return cls(DEFAULT_SITE_URL, verify=verify)

    def descriptor(self) -> dict[str, Any]:
        return {"type": self.kind, "index_url": self.index_url}

    @classmethod
    def from_descriptor(cls, descriptor: dict[str, Any], config: ShelfConfig | None = None) -> SiteLocation:
        verify = config.ssl.verify if config is not None else True
        return cls(descriptor["index_url"], verify=verify)

    def universe(self) -> dict[str, Any]:
        """The site's full index, fetched on first use."""
        with self._lock:
            if self._universe is None:
                data = http_client.get_json(f"{self.index_url}/universe", verify=self.verify)
                if not isinstance(data, dict):
                    raise DownloadFailure(f"Malformed universe from {self.index_url}")
                self._universe = data
            return self._universe

    def fetch(self, name: str, constraint: VersionConstraint) -> list[Candidate]:
        offered = self.universe().get(name)
        if not offered:
            raise NotFound(name, str(self))
        return select_candidates(name, constraint, offered, str(self))

    def download(self, candidate: Candidate, destination: Path) -> None:
        url = candidate.metadata.get("download_url")
        if not url:
            raise DownloadFailure(
                f"No download_url for {candidate.name} {candidate.version} at {self}"
            )
        with tempfile.TemporaryDirectory(prefix="cookshelf-site-") as tmp:
            archive = http_client.download(url, Path(tmp) / "cookbook.tar.gz", verify=self.verify)
            unpack_archive(archive, destination)

    def __str__(self) -> str:
        return f"site '{self.index_url}'"


def unpack_archive(archive: Path, destination: Path) -> None:
    """Extract a cookbook tarball into *destination*.

    When the archive holds a single top-level directory its contents are
    moved up one level.

    Raises:
        DownloadFailure: If the archive is corrupt.
    """
    with tempfile.TemporaryDirectory(prefix="cookshelf-unpack-") as tmp:
        staging = Path(tmp)
        try:
            with tarfile.open(archive, "r:*") as tar:
                if hasattr(tarfile, "data_filter"):
                    tar.extractall(staging, filter="data")
                else:  # pragma: no cover
                    tar.extractall(staging)
        except (tarfile.TarError, OSError) as exc:
            raise DownloadFailure(f"Cannot unpack {archive.name}: {exc}") from exc

        children = list(staging.iterdir())
        root = children[0] if len(children) == 1 and children[0].is_dir() else staging
        destination.mkdir(parents=True, exist_ok=True)
        for child in root.iterdir():
            shutil.move(str(child), str(destination / child.name))
