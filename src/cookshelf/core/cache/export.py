"""Vendoring: copy cached cookbooks into a target directory.

Each cookbook is copied to ``<destination>/<name>``. Files matching a
pattern in the cookbook's ``chefignore`` are skipped. The ignore file is
looked up at the root of each cookbook; a cookbook without one is copied
whole.

``chefignore`` syntax: one glob per line, ``#`` starts a comment, blank
lines are ignored. A pattern matches a file when it matches the file's
path relative to the cookbook root, its basename, or one of its parent
directories::

    # editor files
    *~
    .DS_Store
    spec/*
    test
"""

from __future__ import annotations

import fnmatch
import logging
import shutil
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from cookshelf.core.cache.store import CachedArtifact

logger = logging.getLogger(__name__)

DEFAULT_IGNORE_FILENAME = "chefignore"


def read_ignore_patterns(path: Path) -> list[str]:
    """Parse an ignore file. A missing file yields no patterns."""
    if not path.is_file():
        return []
    patterns: list[str] = []
    for line in path.read_text(encoding="utf-8").splitlines():
        stripped = line.strip()
        if stripped and not stripped.startswith("#"):
            patterns.append(stripped)
    return patterns


def is_ignored(relative: str, patterns: list[str]) -> bool:
    """Return True if the POSIX relative path *relative* matches any pattern."""
    rel = PurePosixPath(relative)
    prefixes = [str(p) for p in reversed(rel.parents) if str(p) != "."]
    for pattern in patterns:
        pattern = pattern.rstrip("/")
        if fnmatch.fnmatch(relative, pattern) or fnmatch.fnmatch(rel.name, pattern):
            return True
        if any(fnmatch.fnmatch(prefix, pattern) for prefix in prefixes):
            return True
    return False


def files_to_copy(root: Path, patterns: list[str]) -> list[Path]:
    """Files under *root* that survive the ignore *patterns*, sorted."""
    kept: list[Path] = []
    for path in sorted(p for p in root.rglob("*") if p.is_file()):
        if not is_ignored(path.relative_to(root).as_posix(), patterns):
            kept.append(path)
    return kept


def vendor(
    artifacts: Iterable[CachedArtifact],
    destination: str | Path,
    ignore_filename: str = DEFAULT_IGNORE_FILENAME,
) -> Path:
    """Copy each artifact into ``destination/<name>`` honouring its ignore file.

    An existing ``destination/<name>`` is replaced.

    Args:
        artifacts: Cached cookbooks to export.
        destination: Target directory, created if needed.
        ignore_filename: Name of the ignore file at each cookbook's root.

    Returns:
        The resolved destination directory.
    """
    target_root = Path(destination).expanduser().resolve()
    target_root.mkdir(parents=True, exist_ok=True)

    for artifact in artifacts:
        patterns = read_ignore_patterns(artifact.path / ignore_filename)
        target = target_root / artifact.name
        if target.exists():
            shutil.rmtree(target)
        copied = 0
        for source in files_to_copy(artifact.path, patterns):
            dest = target / source.relative_to(artifact.path)
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source, dest)
            copied += 1
        target.mkdir(parents=True, exist_ok=True)
        logger.debug(
            "Vendored %s (%s): %d files, %d ignore patterns",
            artifact.name, artifact.version, copied, len(patterns),
        )

    return target_root
