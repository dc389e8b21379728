"""Lockfile core class: entry management, fingerprinting, and serialization.

The ``Lockfile`` class is the central data structure representing a
``Shelffile.lock`` file. It provides:

- **Entry management:** add, get, count, and list pinned cookbooks.
- **Fingerprint:** SHA-256 of the raw Shelffile text the lock was made from.
- **Serialization:** deterministic ``to_dict``, ``to_json``, and an atomic
  ``write``.

Determinism guarantee: ``to_json()`` and ``to_dict()`` produce deterministic
output. Entries are sorted alphabetically by name, and all dictionary keys
are sorted. Two lockfiles with the same content always produce
byte-identical JSON, so a lockfile can be committed to version control.
"""

from __future__ import annotations

import hashlib
import json
import os
import tempfile
from pathlib import Path
from typing import Any

from cookshelf.core.lockfile.models import LockedEntry
from cookshelf.exceptions import LockPersistFailure


class Lockfile:
    """Cookbook lockfile: the pinned result of a previous resolution.

    Example::

        lf = Lockfile(fingerprint=Lockfile.compute_fingerprint(text))
        lf.add_entry(LockedEntry(
            name="nginx",
            version="0.101.0",
            location={"type": "site", "index_url": "https://supermarket.chef.io"},
        ))
        lf.write(Path("Shelffile.lock"))
    """

    LOCKFILE_VERSION: str = "1.0"
    FINGERPRINT_ALGORITHM: str = "sha256"

    def __init__(self, fingerprint: str = "") -> None:
        self.fingerprint = fingerprint
        self._entries: dict[str, LockedEntry] = {}

    # -- Entry management ---------------------------------------------------

    def add_entry(self, entry: LockedEntry) -> None:
        """Add a locked entry, replacing any entry with the same name."""
        self._entries[entry.name] = entry

    def get_entry(self, name: str) -> LockedEntry | None:
        """Retrieve a locked entry by name, or None if not present."""
        return self._entries.get(name)

    def has_entry(self, name: str) -> bool:
        return name in self._entries

    def remove_entry(self, name: str) -> None:
        self._entries.pop(name, None)

    @property
    def entries(self) -> list[LockedEntry]:
        """All entries, sorted by name."""
        return [self._entries[name] for name in sorted(self._entries)]

    @property
    def entry_count(self) -> int:
        return len(self._entries)

    @property
    def entry_names(self) -> list[str]:
        return sorted(self._entries.keys())

    def pins(self) -> dict[str, str]:
        """Cookbook name -> pinned version."""
        return {e.name: e.version for e in self.entries}

    # -- Fingerprint --------------------------------------------------------

    @staticmethod
    def compute_fingerprint(content: str | bytes) -> str:
        """Compute the SHA-256 fingerprint of raw Shelffile content.

        Returns:
            Fingerprint string in "sha256:<64-hex-chars>" format.
        """
        if isinstance(content, str):
            content = content.encode("utf-8")
        digest = hashlib.sha256(content).hexdigest()
        return f"sha256:{digest}"

    def matches(self, content: str | bytes) -> bool:
        """True when this lock was made from exactly *content*."""
        return bool(self.fingerprint) and self.fingerprint == self.compute_fingerprint(content)

    # -- Serialization ------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Serialize the lockfile to a dict matching the schema."""
        entries: list[dict[str, Any]] = []
        for entry in self.entries:
            item: dict[str, Any] = {
                "name": entry.name,
                "version": entry.version,
                "location": dict(sorted(entry.location.items())) if entry.location else None,
                "dependencies": dict(sorted(entry.dependencies.items())),
            }
            if entry.checksum:
                item["checksum"] = entry.checksum
            if entry.revision:
                item["revision"] = entry.revision
            if not entry.explicit:
                item["explicit"] = False
            entries.append(item)

        return {
            "lockfile_version": self.LOCKFILE_VERSION,
            "generated_by": "cookshelf",
            "fingerprint": self.fingerprint,
            "entries": entries,
        }

    def to_json(self, indent: int = 2) -> str:
        """Deterministic JSON string representation of the lockfile."""
        return json.dumps(self.to_dict(), indent=indent, sort_keys=True) + "\n"

    def write(self, path: Path) -> Path:
        """Write the lockfile atomically.

        The JSON is written to a temporary file in the same directory and
        renamed over *path*, so readers never observe a partial lockfile.

        Raises:
            LockPersistFailure: If the file cannot be written.
        """
        path = Path(path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    fh.write(self.to_json())
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise LockPersistFailure(f"Cannot write lockfile {path}: {exc}") from exc
        return path
