"""Lockfile operations --- deserialization, validation, and diffing.

This module extends the ``Lockfile`` class (defined in ``lockfile.py``) with
classmethods and instance methods for:

- **Deserialization:** ``from_dict``, ``from_json``, ``read`` (disk).
- **Validation:** internal consistency checks (dependencies, digests,
  versions).
- **Diffing:** structured comparison of two lockfiles.

These are attached to the ``Lockfile`` class at import time (in
``__init__.py``) to keep each source file focused while presenting a single
unified API to callers.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from cookshelf.core.dependency.constraints import Version, VersionConstraint
from cookshelf.core.lockfile.models import _DIGEST_RE, LockedEntry
from cookshelf.exceptions import LockfileError


def _from_dict(cls: type, data: Any) -> Any:
    """Deserialize a lockfile from a dict (parsed JSON).

    Accepts the dict format produced by ``to_dict()``. Optional fields that
    are absent use their defaults.

    Args:
        data: Dictionary matching the lockfile schema.

    Returns:
        A new ``Lockfile`` instance populated from the dict.

    Raises:
        LockfileError: If required fields are missing or mistyped.
    """
    if not isinstance(data, dict):
        raise LockfileError("Lockfile must be a JSON object")
    entries = data.get("entries", [])
    if not isinstance(entries, list):
        raise LockfileError("Lockfile 'entries' must be a list")

    lf = cls(fingerprint=str(data.get("fingerprint", "")))
    for raw in entries:
        if not isinstance(raw, dict) or "name" not in raw or "version" not in raw:
            raise LockfileError(f"Malformed lockfile entry: {raw!r}")
        location = raw.get("location") or {}
        dependencies = raw.get("dependencies") or {}
        if not isinstance(location, dict) or not isinstance(dependencies, dict):
            raise LockfileError(f"Malformed lockfile entry for {raw['name']!r}")
        lf.add_entry(
            LockedEntry(
                name=str(raw["name"]),
                version=str(raw["version"]),
                location=dict(location),
                dependencies={str(k): str(v) for k, v in dependencies.items()},
                checksum=str(raw.get("checksum", "")),
                explicit=bool(raw.get("explicit", True)),
                revision=str(raw.get("revision", "")),
            )
        )
    return lf


def _from_json(cls: type, json_str: str) -> Any:
    """Deserialize from a JSON string.

    Raises:
        LockfileError: If the string is not valid JSON or does not match
            the lockfile schema.
    """
    try:
        data = json.loads(json_str)
    except json.JSONDecodeError as exc:
        raise LockfileError(f"Lockfile is not valid JSON: {exc}") from exc
    return cls.from_dict(data)


def _read(cls: type, path: Path) -> Any:
    """Read a lockfile from disk.

    Args:
        path: Filesystem path to the lockfile.

    Returns:
        A new ``Lockfile`` instance.

    Raises:
        FileNotFoundError: If the file does not exist.
        LockfileError: If the file is corrupt.
    """
    text = Path(path).read_text(encoding="utf-8")
    try:
        return cls.from_json(text)
    except LockfileError as exc:
        raise LockfileError(f"{path}: {exc}") from exc


def _validate(self: Any) -> list[str]:
    """Validate the lockfile for internal consistency.

    Performs the following checks:

    1. **Version format:** Every entry carries a parseable version.
    2. **Dependency completeness:** Every dependency name referenced by an
       entry must itself be locked.
    3. **Dependency satisfaction:** The locked version of every dependency
       satisfies the constraint that requires it.
    4. **Checksum format:** Every checksum must match ``sha256:<64-hex>``.

    Returns:
        List of validation error messages. Empty means the lockfile is
        valid.
    """
    errors: list[str] = []
    pins = self.pins()

    for entry in self.entries:
        try:
            Version.parse(entry.version)
        except ValueError:
            errors.append(f"Entry {entry.name!r} has invalid version {entry.version!r}")

        for dep_name, raw in sorted(entry.dependencies.items()):
            if dep_name not in pins:
                errors.append(
                    f"Entry {entry.name!r} depends on {dep_name!r} which is "
                    f"not in the lockfile"
                )
                continue
            try:
                satisfied = VersionConstraint.parse(raw).satisfies(pins[dep_name])
            except ValueError:
                errors.append(f"Entry {entry.name!r} has invalid constraint {raw!r} on {dep_name!r}")
                continue
            if not satisfied:
                errors.append(
                    f"Entry {entry.name!r} requires {dep_name} {raw!r} but "
                    f"{pins[dep_name]} is locked"
                )

        if entry.checksum and not _DIGEST_RE.match(entry.checksum):
            errors.append(f"Entry {entry.name!r} has invalid checksum format: {entry.checksum!r}")

    return errors


def _diff(self: Any, other: Any) -> dict[str, Any]:
    """Compare two lockfiles and return differences.

    - **added**: Cookbooks present in ``other`` but not in ``self``.
    - **removed**: Cookbooks present in ``self`` but not in ``other``.
    - **changed**: Cookbooks present in both with a different version,
      location, checksum or revision.

    Args:
        other: The lockfile to compare against (typically the newer one).

    Returns:
        Dict with keys 'added', 'removed', 'changed'.
    """
    self_names = set(self.entry_names)
    other_names = set(other.entry_names)

    changed: list[dict[str, Any]] = []
    for name in sorted(self_names & other_names):
        old = self.get_entry(name)
        new = other.get_entry(name)
        fields = [
            attr
            for attr in ("version", "location", "checksum", "revision")
            if getattr(old, attr) != getattr(new, attr)
        ]
        if fields:
            changed.append({
                "name": name,
                "old_version": old.version,
                "new_version": new.version,
                "fields": fields,
            })

    return {
        "added": sorted(other_names - self_names),
        "removed": sorted(self_names - other_names),
        "changed": changed,
    }
