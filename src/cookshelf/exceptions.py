"""cookshelf exception hierarchy.

All public exceptions inherit from CookshelfError, giving callers a single
base class to catch when they want to handle any cookshelf-specific failure
without swallowing unrelated errors.

The families mirror the phases of an install:

- ``DeclarationError``: raised while reading a Shelffile, before any
  network activity.
- ``ResolutionError``: raised by locations and the resolver.
- ``DownloadFailure`` / ``ManifestError``: raised while installing an
  artifact into the cache.
- ``LockfileError`` / ``LockPersistFailure``: lockfile read and write.
- ``ConfigurationError``: configuration and upload.
"""

from __future__ import annotations

from typing import Any, Sequence


class CookshelfError(Exception):
    """Base exception for all cookshelf errors."""


# ---------------------------------------------------------------------------
# Declaration-time errors
# ---------------------------------------------------------------------------


class DeclarationError(CookshelfError):
    """Raised when a Shelffile cannot be turned into dependency entries."""


class DeclarationNotFound(DeclarationError):
    """Raised when no Shelffile exists at the given path."""

    def __init__(self, path: Any) -> None:
        self.path = path
        super().__init__(f"No Shelffile found at: {path}")


class DuplicateSource(DeclarationError):
    """Raised when the same cookbook name is declared twice."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(
            f"Cookbook {name!r} is declared more than once. "
            "Each cookbook may only appear once in a Shelffile."
        )


class DeclarationArgumentError(DeclarationError):
    """Raised for invalid builder arguments (conflicting location options,
    unknown keys, malformed values)."""


class InvalidFilterOptions(DeclarationError):
    """Raised when both ``only`` and ``except`` group filters are given."""

    def __init__(self) -> None:
        super().__init__("Cannot specify both :except and :only")


# ---------------------------------------------------------------------------
# Resolution-time errors
# ---------------------------------------------------------------------------


class ResolutionError(CookshelfError):
    """Raised when dependency resolution fails.

    Covers unknown cookbooks, unsatisfiable version constraints, and
    conflicts between constraints on the same cookbook.
    """


class NotFound(ResolutionError):
    """Raised when a location does not serve the requested cookbook."""

    def __init__(self, name: str, location: str) -> None:
        self.name = name
        self.location = location
        super().__init__(f"Cookbook {name!r} not found at {location}")


class NoSatisfyingVersion(ResolutionError):
    """Raised when a location serves the cookbook but no version matches."""

    def __init__(
        self,
        name: str,
        constraint: str,
        location: str,
        available: Sequence[str] = (),
    ) -> None:
        self.name = name
        self.constraint = constraint
        self.location = location
        self.available = list(available)
        detail = f" (available: {', '.join(self.available)})" if self.available else ""
        super().__init__(
            f"No version of {name!r} at {location} satisfies "
            f"{constraint!r}{detail}"
        )


class UnresolvableConflict(ResolutionError):
    """Raised when constraints on one cookbook cannot be jointly satisfied.

    Attributes:
        entries: The dependency entries whose constraints conflict, in the
            order they were encountered. Callers can show every origin.
    """

    def __init__(self, message: str, entries: Sequence[Any] = ()) -> None:
        self.entries = list(entries)
        super().__init__(message)


# ---------------------------------------------------------------------------
# Install-time errors
# ---------------------------------------------------------------------------


class DownloadFailure(CookshelfError):
    """Raised on transport or I/O failure while fetching an artifact.

    The core never retries; each location documents its own policy.
    """


class ManifestError(CookshelfError):
    """Raised when an artifact's metadata file is missing or malformed."""


# ---------------------------------------------------------------------------
# Lockfile errors
# ---------------------------------------------------------------------------


class LockfileError(CookshelfError):
    """Raised when an existing lockfile is corrupted or unreadable."""


class LockPersistFailure(LockfileError):
    """Raised when writing a new lockfile fails.

    Non-fatal: the installer reports it as a warning after a successful
    install.
    """


# ---------------------------------------------------------------------------
# Configuration and upload errors
# ---------------------------------------------------------------------------


class ConfigurationError(CookshelfError):
    """Raised when the cookshelf configuration is malformed."""


class MissingConfiguration(ConfigurationError):
    """Raised when a required configuration attribute is absent."""

    def __init__(self, attribute: str) -> None:
        self.attribute = attribute
        super().__init__(
            f"Missing required attribute in your configuration: {attribute}"
        )


class UploadFailure(CookshelfError):
    """Raised when the remote server rejects an uploaded cookbook."""
