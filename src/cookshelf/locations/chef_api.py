"""Chef API location: cookbooks stored on a Chef server (the registry).

Endpoints used::

    GET {server_url}/cookbooks/{name}
        {"nginx": {"versions": [{"version": "0.101.0", "url": "..."}]}}

    GET {server_url}/cookbooks/{name}/{version}
        {"metadata": {"dependencies": {...}},
         "files": [{"path": "recipes/default.rb", "url": "..."}]}

Requests identify the client with the ``X-Ops-UserId`` header and HTTP basic
auth built from the credentials. A 404 on the listing means the server does
not know the cookbook. Requests are not retried.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING, Any

from cookshelf.core.dependency.constraints import VersionConstraint
from cookshelf.core.manifest import find_manifest
from cookshelf.exceptions import DownloadFailure, NotFound
from cookshelf.locations import http_client
from cookshelf.locations.base import Candidate, Location, select_candidates

if TYPE_CHECKING:
    from cookshelf.config import ShelfConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChefAPICredentials:
    """Client identity used to talk to a Chef server.

    Attributes:
        node_name: Client (node) name.
        client_key: Client key material or path to it.
    """

    node_name: str
    client_key: str

    def __repr__(self) -> str:
        return f"ChefAPICredentials(node_name={self.node_name!r}, client_key=***)"


class ChefAPILocation(Location):
    """Cookbooks served by a Chef server API."""

    kind = "chef_api"

    def __init__(
        self,
        server_url: str,
        credentials: ChefAPICredentials | None = None,
        *,
        verify: bool = True,
    ) -> None:
        self.server_url = server_url.rstrip("/")
        self.credentials = credentials
        self.verify = verify

    def descriptor(self) -> dict[str, Any]:
        desc: dict[str, Any] = {"type": self.kind, "server_url": self.server_url}
        if self.credentials is not None:
            desc["node_name"] = self.credentials.node_name
        return desc

    @classmethod
    def from_descriptor(cls, descriptor: dict[str, Any], config: ShelfConfig | None = None) -> ChefAPILocation:
        credentials = None
        verify = True
        if config is not None:
            verify = config.ssl.verify
            if config.chef.node_name and config.chef.client_key:
                credentials = ChefAPICredentials(config.chef.node_name, config.chef.client_key)
        return cls(descriptor["server_url"], credentials, verify=verify)

    def _request_options(self) -> dict[str, Any]:
        if self.credentials is None:
            return {"verify": self.verify}
        return {
            "headers": {"X-Ops-UserId": self.credentials.node_name},
            "auth": (self.credentials.node_name, self.credentials.client_key),
            "verify": self.verify,
        }

    def fetch(self, name: str, constraint: VersionConstraint) -> list[Candidate]:
        data = http_client.get_json(
            f"{self.server_url}/cookbooks/{name}",
            allow_missing=True,
            **self._request_options(),
        )
        if not data or name not in data:
            raise NotFound(name, str(self))
        offered = {
            str(item["version"]): {"url": item.get("url", "")}
            for item in data[name].get("versions", [])
            if isinstance(item, dict) and "version" in item
        }
        if not offered:
            raise NotFound(name, str(self))
        return select_candidates(name, constraint, offered, str(self))

    def candidate_for(self, name: str, version: str) -> Candidate:
        return Candidate(name=name, version=version)

    def download(self, candidate: Candidate, destination: Path) -> None:
        doc = http_client.get_json(
            f"{self.server_url}/cookbooks/{candidate.name}/"
            f"{candidate.metadata.get('index_version', candidate.version)}",
            **self._request_options(),
        )
        if not isinstance(doc, dict):
            raise DownloadFailure(
                f"Malformed cookbook document for {candidate.name} {candidate.version}"
            )
        destination.mkdir(parents=True, exist_ok=True)
        for item in doc.get("files", []):
            rel = PurePosixPath(item.get("path", ""))
            if not rel.parts or rel.is_absolute() or ".." in rel.parts:
                raise DownloadFailure(f"Refusing unsafe file path {str(rel)!r}")
            http_client.download(item["url"], destination.joinpath(*rel.parts), **self._request_options())
        if find_manifest(destination) is None:
            metadata = doc.get("metadata") or {}
            (destination / "metadata.json").write_text(
                json.dumps({
                    "name": candidate.name,
                    "version": candidate.version,
                    "dependencies": metadata.get("dependencies") or {},
                }, indent=2),
                encoding="utf-8",
            )
        logger.debug(
            "Downloaded %d files for %s %s from %s",
            len(doc.get("files", [])), candidate.name, candidate.version, self.server_url,
        )

    def __str__(self) -> str:
        return f"chef_api '{self.server_url}'"
