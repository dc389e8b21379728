"""Lockfile data models.

Defines the core data structure used in the ``Shelffile.lock`` format. It is
a pure data holder with no business logic, making it safe to import without
circular-dependency concerns.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

# ---------------------------------------------------------------------------
# Hash format: "sha256:<64-hex-characters>"
# ---------------------------------------------------------------------------

_DIGEST_RE = re.compile(r"^sha256:[0-9a-f]{64}$")


# ---------------------------------------------------------------------------
# LockedEntry: A single entry in the lockfile
# ---------------------------------------------------------------------------


@dataclass
class LockedEntry:
    """A single cookbook pinned in the lockfile.

    Attributes:
        name: Cookbook name (e.g., "nginx").
        version: Pinned version (e.g., "0.101.0").
        location: Descriptor of the location that served it (see
            ``Location.descriptor``).
        dependencies: Dependency name -> constraint, as read from the
            cookbook's manifest.
        checksum: Content digest in "sha256:<hex>" format, or "" if unknown.
        explicit: True when the cookbook was declared in the Shelffile,
            False when it was pulled in by another cookbook.
        revision: Source commit for locations that track one (git), or "".
    """

    name: str
    version: str
    location: dict[str, Any] = field(default_factory=dict)
    dependencies: dict[str, str] = field(default_factory=dict)
    checksum: str = ""
    explicit: bool = True
    revision: str = ""
