"""Versions and version constraints for cookbook dependencies.

This module provides the foundational data types for declaring version
requirements on cookbooks and ordering the versions a location offers.

Versions follow the Chef/SemVer convention ``MAJOR[.MINOR[.PATCH]]`` with an
optional ``-prerelease`` tag and ``+build`` metadata. Missing components are
zero, so ``1.2`` and ``1.2.0`` are the same version.

Ordering is total: major, then minor, then patch, then pre-release. A
pre-release sorts *below* the final release with the same
``major.minor.patch`` and two pre-release tags compare lexically. Build
metadata never affects precedence.

Constraint syntax supports exact match (``=``/``==``), range (``>=``, ``<=``,
``>``, ``<``), not-equal (``!=``), pessimistic (``~>``), caret (``^``), tilde
(``~``), wildcard (``*``), and compound comma-separated constraints.

References
----------
.. [SemVer] Preston-Werner, T. (2013). "Semantic Versioning 2.0.0."
   https://semver.org/
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field


# ---------------------------------------------------------------------------
# Version: a parsed, totally ordered version number
# ---------------------------------------------------------------------------

_VERSION_RE = re.compile(
    r"^(?P<major>\d+)(?:\.(?P<minor>\d+))?(?:\.(?P<patch>\d+))?"
    r"(?:-(?P<pre>[0-9A-Za-z\-.]+))?"
    r"(?:\+(?P<build>[0-9A-Za-z\-.]+))?$"
)


@dataclass(frozen=True)
class Version:
    """A concrete cookbook version.

    Attributes:
        major: Major component.
        minor: Minor component (0 when omitted).
        patch: Patch component (0 when omitted).
        pre: Pre-release tag without the leading dash, or "" for a final
            release.
        build: Build metadata, ignored for ordering and equality.
        precision: How many numeric components were written (1 to 3). Used
            by the pessimistic operator.
    """

    major: int
    minor: int = 0
    patch: int = 0
    pre: str = ""
    build: str = field(default="", compare=False)
    precision: int = field(default=3, compare=False)

    @classmethod
    def parse(cls, text: str) -> Version:
        """Parse a version string.

        Raises:
            ValueError: If *text* is not a valid version.
        """
        m = _VERSION_RE.match(str(text).strip())
        if not m:
            raise ValueError(f"Invalid version: {text!r}")
        precision = 1 + (m.group("minor") is not None) + (m.group("patch") is not None)
        return cls(
            major=int(m.group("major")),
            minor=int(m.group("minor") or 0),
            patch=int(m.group("patch") or 0),
            pre=m.group("pre") or "",
            build=m.group("build") or "",
            precision=precision,
        )

    @property
    def key(self) -> tuple[int, int, int, int, str]:
        """Sort key. Final releases carry flag 1 so they outrank pre-releases."""
        return (self.major, self.minor, self.patch, 0 if self.pre else 1, self.pre)

    def __lt__(self, other: Version) -> bool:
        return self.key < other.key

    def __le__(self, other: Version) -> bool:
        return self.key <= other.key

    def __gt__(self, other: Version) -> bool:
        return self.key > other.key

    def __ge__(self, other: Version) -> bool:
        return self.key >= other.key

    def __str__(self) -> str:
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.pre:
            text += f"-{self.pre}"
        if self.build:
            text += f"+{self.build}"
        return text


def _version_key(version: str) -> tuple[int, int, int, int, str]:
    """Sort key for version strings. Use with ``reverse=True`` for newest first."""
    return Version.parse(version).key


def sort_versions(versions: list[str], *, descending: bool = True) -> list[str]:
    """Return *versions* ordered by precedence, newest first by default."""
    return sorted(versions, key=_version_key, reverse=descending)


# ---------------------------------------------------------------------------
# VersionConstraint: Declarative version requirement
# ---------------------------------------------------------------------------

# Tokenize a single constraint atom like ">= 1.2.3", "~> 1.2" or "0.5.0"
_CONSTRAINT_ATOM_RE = re.compile(
    r"^\s*(?P<op>==|=|!=|>=|<=|~>|>|<|\^|~)?\s*"
    r"(?P<ver>\d+(?:\.\d+){0,2}(?:-[0-9A-Za-z\-.]+)?(?:\+[0-9A-Za-z\-.]+)?)\s*$"
)

_ANY = "*"


@dataclass(frozen=True)
class VersionConstraint:
    """A version constraint, written the way Shelffiles and manifests write it.

    Supports:
    - Exact match: ``= 1.0.0``, ``==1.0.0`` or a bare ``1.0.0``
    - Not-equal: ``!= 1.0.0``
    - Ranges: ``>= 1.0.0``, ``<= 2.0.0``, ``> 1.0.0``, ``< 2.0.0``
    - Pessimistic: ``~> 1.2`` (>= 1.2, < 2.0) and ``~> 1.2.3``
      (>= 1.2.3, < 1.3.0)
    - Caret ``^1.2.3`` and tilde ``~1.2.0``
    - Wildcard (any version): ``*``
    - Compound (comma-separated, all must hold): ``>= 1.0.0, < 2.0.0``

    Attributes:
        raw: The raw constraint string as authored.
    """

    raw: str = _ANY

    @classmethod
    def any(cls) -> VersionConstraint:
        """The unconstrained range."""
        return cls(_ANY)

    @classmethod
    def parse(cls, value: str | VersionConstraint | None) -> VersionConstraint:
        """Coerce a declared value into a constraint.

        ``None`` and the empty string mean "any version". Every atom is
        validated eagerly so malformed constraints fail at declaration time.

        Raises:
            ValueError: If an atom cannot be parsed.
        """
        if isinstance(value, VersionConstraint):
            return value
        if value is None or not str(value).strip():
            return cls.any()
        constraint = cls(str(value).strip())
        for atom in constraint.atoms:
            if not _CONSTRAINT_ATOM_RE.match(atom):
                raise ValueError(f"Invalid constraint atom: {atom!r}")
        return constraint

    @property
    def atoms(self) -> list[str]:
        """The individual comma-separated atoms, wildcards dropped."""
        return [
            a.strip() for a in self.raw.split(",")
            if a.strip() and a.strip() != _ANY
        ]

    @property
    def is_any(self) -> bool:
        """True when every version satisfies this constraint."""
        return not self.atoms

    def satisfies(self, version: str | Version) -> bool:
        """Check whether a version satisfies this constraint.

        For compound constraints, ALL atoms must be satisfied (conjunction
        semantics).

        Raises:
            ValueError: If *version* is not a valid version.
        """
        ver = version if isinstance(version, Version) else Version.parse(version)
        return all(self._atom_satisfies(atom, ver) for atom in self.atoms)

    def merge(self, other: VersionConstraint) -> VersionConstraint:
        """Return the conjunction of this constraint and *other*."""
        if self.is_any:
            return other
        if other.is_any or other.raw == self.raw:
            return self
        return VersionConstraint(f"{self.raw}, {other.raw}")

    @staticmethod
    def _atom_satisfies(atom: str, ver: Version) -> bool:
        """Evaluate a single constraint atom against a parsed version."""
        m = _CONSTRAINT_ATOM_RE.match(atom)
        if not m:
            raise ValueError(f"Invalid constraint atom: {atom!r}")

        op = m.group("op") or "="
        target = Version.parse(m.group("ver"))

        if op in ("=", "=="):
            return ver == target
        elif op == "!=":
            return ver != target
        elif op == ">=":
            return ver >= target
        elif op == "<=":
            return ver <= target
        elif op == ">":
            return ver > target
        elif op == "<":
            return ver < target
        elif op == "~>":
            # Pessimistic: bump the second-to-last written component.
            if ver < target:
                return False
            if target.precision <= 2:
                return ver.major == target.major
            return ver.major == target.major and ver.minor == target.minor
        elif op == "^":
            # Caret: same major (same major.minor when major is 0).
            if ver < target:
                return False
            if target.major == 0:
                return ver.major == 0 and ver.minor == target.minor
            return ver.major == target.major
        elif op == "~":
            # Tilde: same major.minor, patch >= target patch.
            return (
                ver.major == target.major
                and ver.minor == target.minor
                and ver >= target
            )
        else:  # pragma: no cover
            raise ValueError(f"Unknown operator: {op!r}")

    def __str__(self) -> str:
        return self.raw

    def __repr__(self) -> str:
        return f"VersionConstraint({self.raw!r})"
