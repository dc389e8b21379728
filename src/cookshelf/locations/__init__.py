"""Cookbook locations: where cookbooks are fetched from.

The set of location kinds is closed; adding a source kind means adding a
class here and registering it in ``LOCATION_TYPES``.

Public API::

    from cookshelf.locations import Location, Candidate, location_from_descriptor
    from cookshelf.locations.path import PathLocation
    from cookshelf.locations.git import GitLocation
    from cookshelf.locations.chef_api import ChefAPILocation
    from cookshelf.locations.site import SiteLocation
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from cookshelf.exceptions import LockfileError
from cookshelf.locations.base import Candidate, Location
from cookshelf.locations.chef_api import ChefAPICredentials, ChefAPILocation
from cookshelf.locations.git import GitLocation
from cookshelf.locations.path import PathLocation
from cookshelf.locations.site import SiteLocation

if TYPE_CHECKING:
    from cookshelf.config import ShelfConfig

LOCATION_TYPES: dict[str, type[Location]] = {
    PathLocation.kind: PathLocation,
    GitLocation.kind: GitLocation,
    ChefAPILocation.kind: ChefAPILocation,
    SiteLocation.kind: SiteLocation,
}


def location_from_descriptor(
    descriptor: dict[str, Any],
    config: ShelfConfig | None = None,
) -> Location:
    """Rebuild a location from the descriptor stored in a lockfile.

    Chef API credentials are never persisted; they come from *config*.

    Raises:
        LockfileError: If the descriptor is malformed or of unknown type.
    """
    kind = descriptor.get("type")
    location_type = LOCATION_TYPES.get(kind)
    if location_type is None:
        raise LockfileError(f"Unknown location type {kind!r}")
    try:
        return location_type.from_descriptor(descriptor, config)
    except KeyError as exc:
        raise LockfileError(f"Location descriptor {descriptor!r} is missing {exc}") from exc


__all__ = [
    "Candidate",
    "ChefAPICredentials",
    "ChefAPILocation",
    "GitLocation",
    "LOCATION_TYPES",
    "Location",
    "PathLocation",
    "SiteLocation",
    "location_from_descriptor",
]
