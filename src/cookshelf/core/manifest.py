"""Cookbook manifests: the metadata file every artifact carries at its root.

A manifest names the cookbook, pins its version, and lists the cookbooks it
depends on. Reading it after install is what makes resolution transitive.

Two encodings are accepted, checked in this order::

    metadata.yaml            metadata.json
    -------------            -------------
    name: nginx              {"name": "nginx",
    version: 0.101.0          "version": "0.101.0",
    dependencies:             "dependencies": {"ohai": ">= 0.1.0"}}
      ohai: ">= 0.1.0"
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from cookshelf.core.dependency.constraints import Version, VersionConstraint
from cookshelf.exceptions import ManifestError

MANIFEST_FILENAMES: tuple[str, ...] = ("metadata.yaml", "metadata.json")


@dataclass(frozen=True)
class Manifest:
    """Parsed cookbook metadata.

    Attributes:
        name: Cookbook name.
        version: Normalised version string.
        dependencies: Mapping of dependency name to constraint string.
    """

    name: str
    version: str
    dependencies: dict[str, str] = field(default_factory=dict)


def find_manifest(root: Path) -> Path | None:
    """Return the manifest file under *root*, or None if there is none."""
    for filename in MANIFEST_FILENAMES:
        candidate = root / filename
        if candidate.is_file():
            return candidate
    return None


def read_manifest(root: Path) -> Manifest:
    """Read and validate the manifest of the cookbook at *root*.

    Raises:
        ManifestError: If no manifest exists or it is malformed.
    """
    path = find_manifest(root)
    if path is None:
        raise ManifestError(
            f"No metadata.yaml or metadata.json found in {root}"
        )
    text = path.read_text(encoding="utf-8")
    try:
        data = json.loads(text) if path.suffix == ".json" else yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ManifestError(f"Cannot parse {path}: {exc}") from exc
    return parse_manifest(data, source=str(path))


def parse_manifest(data: Any, *, source: str = "<manifest>") -> Manifest:
    """Validate a decoded manifest mapping.

    Raises:
        ManifestError: On missing fields, an invalid version, or an invalid
            dependency constraint.
    """
    if not isinstance(data, dict):
        raise ManifestError(f"{source}: manifest must be a mapping")

    name = data.get("name")
    if not name or not isinstance(name, str):
        raise ManifestError(f"{source}: missing cookbook name")

    raw_version = data.get("version")
    if raw_version is None:
        raise ManifestError(f"{source}: missing version for {name!r}")
    try:
        version = str(Version.parse(str(raw_version)))
    except ValueError as exc:
        raise ManifestError(f"{source}: {exc}") from exc

    raw_deps = data.get("dependencies") or {}
    if not isinstance(raw_deps, dict):
        raise ManifestError(f"{source}: dependencies must be a mapping")

    dependencies: dict[str, str] = {}
    for dep_name, dep_constraint in raw_deps.items():
        try:
            constraint = VersionConstraint.parse(
                None if dep_constraint is None else str(dep_constraint)
            )
        except ValueError as exc:
            raise ManifestError(f"{source}: dependency {dep_name!r}: {exc}") from exc
        dependencies[str(dep_name)] = constraint.raw

    return Manifest(name=name, version=version, dependencies=dependencies)
