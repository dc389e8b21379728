"""Shared helpers for cookshelf tests.

``write_cookbook`` lays out a cookbook on disk; ``FakeLocation`` is an
in-memory location that serves cookbooks from a catalog and records every
``fetch`` and ``download`` call.
"""

from __future__ import annotations

import threading
import time
from pathlib import Path
from typing import Any, ClassVar

import yaml

from cookshelf.core.dependency.constraints import VersionConstraint
from cookshelf.exceptions import DownloadFailure, NotFound
from cookshelf.locations.base import Candidate, Location, select_candidates

Catalog = dict[str, dict[str, dict[str, str]]]


def write_cookbook(
    root: Path,
    name: str,
    version: str,
    dependencies: dict[str, str] | None = None,
    *,
    files: dict[str, str] | None = None,
) -> Path:
    """Write a cookbook with a ``metadata.yaml`` and a default recipe."""
    root.mkdir(parents=True, exist_ok=True)
    manifest = {"name": name, "version": version, "dependencies": dict(dependencies or {})}
    (root / "metadata.yaml").write_text(yaml.safe_dump(manifest), encoding="utf-8")
    recipes = root / "recipes"
    recipes.mkdir(exist_ok=True)
    (recipes / "default.rb").write_text(f"# {name} {version}\n", encoding="utf-8")
    for rel, content in (files or {}).items():
        target = root / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
    return root


class FakeLocation(Location):
    """Location serving cookbooks from an in-memory catalog.

    Args:
        label: Distinguishes fake locations (part of the descriptor).
        catalog: name -> version -> dependencies.
        delay: Seconds each download sleeps, to widen race windows.
        fail: Names whose download raises ``DownloadFailure``.
    """

    kind = "fake"
    instances: ClassVar[dict[str, FakeLocation]] = {}

    def __init__(
        self,
        label: str,
        catalog: Catalog,
        *,
        delay: float = 0.0,
        fail: set[str] | None = None,
    ) -> None:
        self.label = label
        self.catalog = catalog
        self.delay = delay
        self.fail = fail or set()
        self.fetch_calls: list[str] = []
        self.download_calls: list[tuple[str, str]] = []
        self._lock = threading.Lock()
        FakeLocation.instances[label] = self

    def descriptor(self) -> dict[str, Any]:
        return {"type": self.kind, "label": self.label}

    @classmethod
    def from_descriptor(cls, descriptor: dict[str, Any], config: Any = None) -> FakeLocation:
        return cls.instances[descriptor["label"]]

    def fetch(self, name: str, constraint: VersionConstraint) -> list[Candidate]:
        with self._lock:
            self.fetch_calls.append(name)
        versions = self.catalog.get(name)
        if not versions:
            raise NotFound(name, str(self))
        return select_candidates(name, constraint, {v: {} for v in versions}, str(self))

    def download(self, candidate: Candidate, destination: Path) -> None:
        with self._lock:
            self.download_calls.append((candidate.name, candidate.version))
        if self.delay:
            time.sleep(self.delay)
        if candidate.name in self.fail:
            raise DownloadFailure(f"simulated failure for {candidate.name}")
        version = candidate.metadata.get("index_version", candidate.version)
        deps = self.catalog[candidate.name][version]
        write_cookbook(destination, candidate.name, version, deps)

    def __str__(self) -> str:
        return f"fake '{self.label}'"
