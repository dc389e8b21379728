"""Uploading resolved cookbooks to a Chef server.

Each cookbook of a solution is packed as a gzipped tarball (honouring its
``chefignore``) and PUT to ``{server_url}/cookbooks/{name}/{version}``.
Before any request is made the uploader checks that a server URL, a node
name and a client key are all configured; a missing one raises
``MissingConfiguration`` naming the ``chef.*`` attribute.
"""

from __future__ import annotations

import io
import logging
import tarfile
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable

from cookshelf.core.cache.export import DEFAULT_IGNORE_FILENAME, files_to_copy, read_ignore_patterns
from cookshelf.exceptions import MissingConfiguration
from cookshelf.locations import http_client

if TYPE_CHECKING:
    from cookshelf.config import ShelfConfig
    from cookshelf.core.cache.store import CachedArtifact
    from cookshelf.core.dependency.resolver import Solution

logger = logging.getLogger(__name__)


@dataclass
class UploadResult:
    name: str
    version: str
    status: int


class Uploader:
    """Upload cookbooks to a Chef server.

    Args:
        config: Configuration holding the ``chef`` credentials and SSL
            settings.
        server_url: Server to upload to; overrides ``chef.server_url``.
        force: Overwrite cookbook versions that already exist.
        freeze: Freeze the uploaded versions on the server.

    Raises:
        MissingConfiguration: If ``chef.server_url``, ``chef.node_name`` or
            ``chef.client_key`` is not set.
    """

    def __init__(
        self,
        config: ShelfConfig,
        server_url: str | None = None,
        force: bool = False,
        freeze: bool = False,
    ) -> None:
        chef = config.chef
        self.server_url = (server_url or chef.server_url or "").rstrip("/")
        if not self.server_url:
            raise MissingConfiguration("chef.server_url")
        if not chef.node_name:
            raise MissingConfiguration("chef.node_name")
        if not chef.client_key:
            raise MissingConfiguration("chef.client_key")
        self.node_name = chef.node_name
        self.client_key = chef.client_key
        self.verify = config.ssl.verify
        self.force = force
        self.freeze = freeze

    def upload(self, solution: Solution) -> list[UploadResult]:
        """Upload every cookbook of *solution*, in name order.

        Raises:
            UploadFailure: If the server rejects a cookbook. Cookbooks
                uploaded before the failure stay uploaded.
        """
        return self.upload_artifacts(
            solution.artifacts[name] for name in sorted(solution.artifacts)
        )

    def upload_artifacts(self, artifacts: Iterable[CachedArtifact]) -> list[UploadResult]:
        results: list[UploadResult] = []
        for artifact in artifacts:
            url = f"{self.server_url}/cookbooks/{artifact.name}/{artifact.version}"
            status = http_client.put_bytes(
                url,
                pack(artifact),
                params={"force": _flag(self.force), "freeze": _flag(self.freeze)},
                headers={
                    "X-Ops-UserId": self.node_name,
                    "Content-Type": "application/x-gzip",
                },
                auth=(self.node_name, self.client_key),
                verify=self.verify,
            )
            logger.info("Uploaded %s (%s) to %s", artifact.name, artifact.version, self.server_url)
            results.append(UploadResult(artifact.name, artifact.version, status))
        return results


def pack(artifact: CachedArtifact, ignore_filename: str = DEFAULT_IGNORE_FILENAME) -> bytes:
    """Gzipped tarball of a cookbook under a top-level ``<name>/`` directory."""
    patterns = read_ignore_patterns(artifact.path / ignore_filename)
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
        for source in files_to_copy(artifact.path, patterns):
            arcname = f"{artifact.name}/{source.relative_to(artifact.path).as_posix()}"
            tar.add(source, arcname=arcname)
    return buffer.getvalue()


def _flag(value: bool) -> str:
    return "true" if value else "false"
