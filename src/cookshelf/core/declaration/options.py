"""Per-cookbook declaration options.

``DeclareOptions`` is the fixed set of options a ``cookbook`` declaration
accepts: its group tags and at most one location. Options are validated
when they are built, so a Shelffile with a typo fails at declaration time
rather than during resolution.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Mapping

from cookshelf.exceptions import DeclarationArgumentError
from cookshelf.locations.chef_api import ChefAPICredentials, ChefAPILocation
from cookshelf.locations.git import GitLocation
from cookshelf.locations.path import PathLocation
from cookshelf.locations.site import DEFAULT_SITE_URL, SiteLocation

if TYPE_CHECKING:
    from pathlib import Path

    from cookshelf.config import ShelfConfig
    from cookshelf.locations.base import Location

# Keys that select a location. At most one may be given per cookbook.
LOCATION_KEYS: tuple[str, ...] = ("path", "git", "site", "chef_api")

# Shorthands accepted by ``site`` and ``chef_api``.
DEFAULT_SITE_ALIASES = frozenset({"default", "opscode"})
CONFIG_ALIAS = "config"


@dataclass(frozen=True)
class DeclareOptions:
    """Options for one cookbook declaration.

    Attributes:
        groups: Group tags for ``only``/``except`` filtering.
        path: Directory holding the cookbook.
        git: Repository URI; ``ref`` and ``rel`` refine it.
        ref: Branch, tag or commit to check out (git only).
        rel: Subdirectory of the repository holding the cookbook (git only).
        site: Community site index URL, or "default".
        chef_api: Chef server URL, or "config" for the configured server.
        node_name: Client name for ``chef_api`` (overrides config).
        client_key: Client key for ``chef_api`` (overrides config).
    """

    groups: tuple[str, ...] = ()
    path: str | None = None
    git: str | None = None
    ref: str | None = None
    rel: str | None = None
    site: str | None = None
    chef_api: str | None = None
    node_name: str | None = None
    client_key: str | None = None

    def __post_init__(self) -> None:
        given = [key for key in LOCATION_KEYS if getattr(self, key) is not None]
        if len(given) > 1:
            raise DeclarationArgumentError(
                f"Only one location may be given per cookbook, got: {', '.join(given)}"
            )
        if (self.ref is not None or self.rel is not None) and self.git is None:
            raise DeclarationArgumentError("'ref' and 'rel' are only valid with 'git'")
        if (self.node_name is not None or self.client_key is not None) and self.chef_api is None:
            raise DeclarationArgumentError(
                "'node_name' and 'client_key' are only valid with 'chef_api'"
            )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> DeclareOptions:
        """Build options from a decoded mapping (e.g. a Shelffile entry).

        ``group`` may be a single tag or a list of tags.

        Raises:
            DeclarationArgumentError: On unknown keys or bad values.
        """
        if not data:
            return cls()
        values = dict(data)
        values.pop("constraint", None)
        group = values.pop("group", values.pop("groups", None))
        known = set(cls.__dataclass_fields__) - {"groups"}
        unknown = sorted(set(values) - known)
        if unknown:
            raise DeclarationArgumentError(f"Unknown cookbook option(s): {', '.join(unknown)}")
        for key, value in values.items():
            if value is not None and not isinstance(value, str):
                raise DeclarationArgumentError(f"Option {key!r} must be a string, got {value!r}")
        return cls(groups=normalize_groups(group), **values)

    def with_groups(self, groups: tuple[str, ...]) -> DeclareOptions:
        """Return a copy with *groups* added to the existing tags."""
        merged = tuple(dict.fromkeys(self.groups + tuple(groups)))
        return DeclareOptions(
            groups=merged,
            path=self.path,
            git=self.git,
            ref=self.ref,
            rel=self.rel,
            site=self.site,
            chef_api=self.chef_api,
            node_name=self.node_name,
            client_key=self.client_key,
        )

    def location(self, base_dir: Path, config: ShelfConfig | None = None) -> Location | None:
        """Build the location these options name, or None for the defaults.

        Relative paths are taken relative to *base_dir* (the Shelffile's
        directory).
        """
        if self.path is not None:
            return PathLocation(base_dir / self.path)
        if self.git is not None:
            return GitLocation(self.git, self.ref, self.rel)
        if self.site is not None:
            return site_location(self.site, config)
        if self.chef_api is not None:
            return chef_api_location(self.chef_api, config, self.node_name, self.client_key)
        return None


def normalize_groups(value: Any) -> tuple[str, ...]:
    """Turn a single tag or a list of tags into a tuple of tags."""
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if isinstance(value, (list, tuple, set, frozenset)) and all(isinstance(v, str) for v in value):
        return tuple(value)
    raise DeclarationArgumentError(f"Invalid group value {value!r}")


def site_location(uri: str, config: ShelfConfig | None = None) -> SiteLocation:
    """A site location; "default" means the configured community site."""
    verify = config.ssl.verify if config is not None else True
    if uri in DEFAULT_SITE_ALIASES:
        uri = config.site_url if config is not None else DEFAULT_SITE_URL
    return SiteLocation(uri, verify=verify)


def chef_api_location(
    uri: str,
    config: ShelfConfig | None = None,
    node_name: str | None = None,
    client_key: str | None = None,
) -> ChefAPILocation:
    """A Chef API location; "config" means the configured Chef server.

    Explicit ``node_name``/``client_key`` win over the configured ones.

    Raises:
        DeclarationArgumentError: If "config" is used and no server URL is
            configured.
    """
    chef = config.chef if config is not None else None
    if uri == CONFIG_ALIAS:
        if chef is None or not chef.server_url:
            raise DeclarationArgumentError(
                "chef_api 'config' requires chef.server_url in your configuration"
            )
        uri = chef.server_url
    node_name = node_name or (chef.node_name if chef is not None else None)
    client_key = client_key or (chef.client_key if chef is not None else None)
    credentials = ChefAPICredentials(node_name, client_key) if node_name and client_key else None
    verify = config.ssl.verify if config is not None else True
    return ChefAPILocation(uri, credentials, verify=verify)
