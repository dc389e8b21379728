"""The Shelffile: a project's cookbook declarations.

A Shelffile is a YAML document listing the cookbooks a project needs, the
default locations to look for them, and optional group tags::

    site: default
    chef_api: config
    metadata: true
    cookbooks:
      ntp: "<= 1.0.0"
      mysql:
      nginx: "< 0.101.2"
      ssh_known_hosts2:
        git: https://github.com/example/ssh_known_hosts2.git
    groups:
      test:
        minitest-handler:

``Shelffile.load`` replays the document through the builder methods
(``cookbook``, ``group``, ``metadata``, ``site``, ``chef_api``), which may
also be called directly. Every declaration is validated as it is made: a
cookbook declared twice raises ``DuplicateSource`` and bad options raise
``DeclarationArgumentError`` before anything is resolved.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterable, Iterator

import yaml

from cookshelf.core.declaration.options import (
    DeclareOptions,
    chef_api_location,
    normalize_groups,
    site_location,
)
from cookshelf.core.dependency.constraints import VersionConstraint
from cookshelf.core.dependency.entry import DEFAULT_GROUP, DependencyEntry
from cookshelf.core.lockfile.lockfile import Lockfile
from cookshelf.core.manifest import read_manifest
from cookshelf.exceptions import (
    DeclarationArgumentError,
    DeclarationError,
    DeclarationNotFound,
    DuplicateSource,
    InvalidFilterOptions,
    ManifestError,
)

if TYPE_CHECKING:
    from cookshelf.config import ShelfConfig
    from cookshelf.locations.base import Location

logger = logging.getLogger(__name__)

DEFAULT_FILENAME = "Shelffile"
TOP_LEVEL_KEYS = frozenset({"site", "chef_api", "metadata", "cookbooks", "groups"})


def _scalar_keys(node: yaml.Node) -> Iterator[tuple[yaml.Node, Any, yaml.Node]]:
    """Yield ``(key_node, key, value_node)`` for the scalar keys of a mapping node."""
    if not isinstance(node, yaml.MappingNode):
        return
    for key_node, value_node in node.value:
        if isinstance(key_node, yaml.ScalarNode):
            yield key_node, key_node.value, value_node


def _reject_duplicate_keys(node: yaml.Node, cookbooks: bool = False) -> None:
    """Fail on a repeated key in *node* or any mapping below it.

    A repeated name inside a ``cookbooks`` or group mapping is a cookbook
    declared twice; anywhere else it is a malformed document.
    """
    seen: set[Any] = set()
    for key_node, key, value_node in _scalar_keys(node):
        if key in seen:
            if cookbooks:
                raise DuplicateSource(str(key))
            raise DeclarationError(
                f"Duplicate key {key!r} on line {key_node.start_mark.line + 1}"
            )
        seen.add(key)
        _reject_duplicate_keys(value_node)
    if isinstance(node, yaml.SequenceNode):
        for item in node.value:
            _reject_duplicate_keys(item)


def _check_document(root: yaml.Node) -> None:
    # Cookbook mappings first, so a repeated cookbook is reported as such.
    for _, key, value_node in _scalar_keys(root):
        if key == "cookbooks":
            _reject_duplicate_keys(value_node, cookbooks=True)
        elif key == "groups":
            for _, _, group_node in _scalar_keys(value_node):
                _reject_duplicate_keys(group_node, cookbooks=True)
    _reject_duplicate_keys(root)


def _parse_document(content: str) -> Any:
    """``yaml.safe_load`` that rejects duplicate mapping keys instead of keeping the last."""
    loader = yaml.SafeLoader(content)
    try:
        root = loader.get_single_node()
        if root is None:
            return None
        _check_document(root)
        return loader.construct_document(root)
    finally:
        loader.dispose()


class Shelffile:
    """Cookbook declarations for one project.

    Args:
        path: Path of the Shelffile. Relative ``path`` options and
            ``metadata`` are resolved against its directory.
        config: Configuration used for ``site: default`` and
            ``chef_api: config``.
    """

    def __init__(self, path: str | Path = DEFAULT_FILENAME, config: ShelfConfig | None = None) -> None:
        self.path = Path(path).expanduser().resolve()
        self.config = config
        self.raw_text = ""
        self._sources: dict[str, DependencyEntry] = {}
        self._locations: list[Location] = []
        self._group_stack: list[tuple[str, ...]] = []

    @classmethod
    def from_file(cls, path: str | Path, config: ShelfConfig | None = None) -> Shelffile:
        """Read and load the Shelffile at *path*.

        Raises:
            DeclarationNotFound: If the file does not exist.
            DeclarationError: If the file is not a valid Shelffile.
        """
        path = Path(path)
        if not path.is_file():
            raise DeclarationNotFound(str(path))
        shelffile = cls(path, config)
        shelffile.load(path.read_text(encoding="utf-8"))
        return shelffile

    @property
    def base_dir(self) -> Path:
        return self.path.parent

    @property
    def lockfile_path(self) -> Path:
        """``<Shelffile>.lock`` next to the Shelffile."""
        return self.path.with_name(self.path.name + ".lock")

    @property
    def sha(self) -> str:
        """Fingerprint of the raw Shelffile text."""
        return Lockfile.compute_fingerprint(self.raw_text)

    # -- Loading ------------------------------------------------------------

    def load(self, content: str) -> Shelffile:
        """Replay a YAML Shelffile document through the builder.

        Raises:
            DeclarationError: If the document is malformed.
            DuplicateSource: If a cookbook is declared twice.
        """
        self.raw_text = content
        try:
            data = _parse_document(content) or {}
        except yaml.YAMLError as exc:
            raise DeclarationError(f"Cannot parse {self.path}: {exc}") from exc
        if not isinstance(data, dict):
            raise DeclarationError(f"{self.path} must contain a mapping")
        unknown = sorted(set(data) - TOP_LEVEL_KEYS)
        if unknown:
            raise DeclarationArgumentError(f"Unknown Shelffile key(s): {', '.join(unknown)}")

        # Mapping order is declaration order, which sets location priority.
        for key, value in data.items():
            if key == "site":
                for uri in _as_list(value):
                    self.site(uri)
            elif key == "chef_api":
                for item in _as_list(value):
                    if isinstance(item, dict):
                        options = dict(item)
                        uri = options.pop("url", options.pop("uri", None))
                        if not uri:
                            raise DeclarationArgumentError("chef_api entry needs a 'url'")
                        self.chef_api(uri, options)
                    else:
                        self.chef_api(item)
            elif key == "metadata":
                if value:
                    self.metadata()
            elif key == "cookbooks":
                self._load_cookbooks(value)
            elif key == "groups":
                if not isinstance(value, dict):
                    raise DeclarationError("'groups' must map group names to cookbooks")
                for tag, cookbooks in value.items():
                    with self.group(*normalize_groups(tag)):
                        self._load_cookbooks(cookbooks)

        logger.debug("Loaded %d cookbooks from %s", len(self._sources), self.path)
        return self

    def _load_cookbooks(self, data: Any) -> None:
        if data is None:
            return
        if not isinstance(data, dict):
            raise DeclarationError("'cookbooks' must map cookbook names to constraints or options")
        for name, spec in data.items():
            if spec is None or isinstance(spec, str):
                self.cookbook(str(name), spec)
            elif isinstance(spec, dict):
                constraint = spec.get("constraint")
                self.cookbook(str(name), constraint, DeclareOptions.from_mapping(spec))
            else:
                raise DeclarationArgumentError(f"Invalid declaration for cookbook {name!r}: {spec!r}")

    # -- Builder ------------------------------------------------------------

    def cookbook(
        self,
        name: str,
        constraint: str | None = None,
        options: DeclareOptions | None = None,
    ) -> DependencyEntry:
        """Declare a cookbook, tagged with the enclosing ``group`` tags."""
        options = options or DeclareOptions()
        for tags in self._group_stack:
            options = options.with_groups(tags)
        return self.add_source(name, constraint, options)

    @contextmanager
    def group(self, *tags: str) -> Iterator[Shelffile]:
        """Tag every cookbook declared inside the block with *tags*.

        Example::

            with shelffile.group("test"):
                shelffile.cookbook("minitest-handler")
        """
        if not tags:
            raise DeclarationArgumentError("group() needs at least one tag")
        self._group_stack.append(tuple(tags))
        try:
            yield self
        finally:
            self._group_stack.pop()

    def metadata(self) -> DependencyEntry:
        """Declare the cookbook whose manifest sits next to the Shelffile.

        The entry is pinned to the manifest's exact version and served from
        the Shelffile's own directory.

        Raises:
            DeclarationError: If there is no readable manifest.
        """
        try:
            manifest = read_manifest(self.base_dir)
        except ManifestError as exc:
            raise DeclarationError(f"metadata: {exc}") from exc
        return self.cookbook(
            manifest.name,
            f"= {manifest.version}",
            DeclareOptions(path=str(self.base_dir)),
        )

    def site(self, uri: str) -> Location:
        """Add a community site as a default location ("default" allowed)."""
        return self.add_location(site_location(str(uri), self.config))

    def chef_api(self, uri: str, options: dict[str, Any] | None = None) -> Location:
        """Add a Chef server as a default location ("config" allowed).

        Args:
            uri: Server URL, or "config" for the configured server.
            options: Optional ``node_name`` and ``client_key``.
        """
        options = dict(options or {})
        node_name = options.pop("node_name", None)
        client_key = options.pop("client_key", None)
        if options:
            raise DeclarationArgumentError(f"Unknown chef_api option(s): {', '.join(sorted(options))}")
        return self.add_location(chef_api_location(str(uri), self.config, node_name, client_key))

    def add_location(self, location: Location) -> Location:
        """Append a default location, ignoring exact repeats."""
        if location not in self._locations:
            self._locations.append(location)
        return location

    def add_source(
        self,
        name: str,
        constraint: str | VersionConstraint | None = None,
        options: DeclareOptions | None = None,
    ) -> DependencyEntry:
        """Validate and record one explicit entry.

        Raises:
            DuplicateSource: If *name* is already declared.
            DeclarationArgumentError: If the constraint is invalid.
        """
        if name in self._sources:
            raise DuplicateSource(name)
        options = options or DeclareOptions()
        try:
            parsed = VersionConstraint.parse(constraint)
        except ValueError as exc:
            raise DeclarationArgumentError(f"Invalid constraint for {name!r}: {exc}") from exc
        entry = DependencyEntry(
            name=name,
            constraint=parsed,
            groups=frozenset(options.groups or (DEFAULT_GROUP,)),
            location=options.location(self.base_dir, self.config),
        )
        self._sources[name] = entry
        return entry

    # -- Queries ------------------------------------------------------------

    def sources(
        self,
        only: Iterable[str] | str | None = None,
        except_: Iterable[str] | str | None = None,
    ) -> list[DependencyEntry]:
        """Declared entries, optionally filtered by group.

        Args:
            only: Keep only entries in any of these groups.
            except_: Drop entries in any of these groups.

        Raises:
            InvalidFilterOptions: If both filters are given.
        """
        only_tags = set(normalize_groups(only)) if only else set()
        except_tags = set(normalize_groups(except_)) if except_ else set()
        if only_tags and except_tags:
            raise InvalidFilterOptions()
        entries = list(self._sources.values())
        if only_tags:
            return [e for e in entries if e.groups & only_tags]
        if except_tags:
            return [e for e in entries if not e.groups & except_tags]
        return entries

    def has_source(self, name: str) -> bool:
        return name in self._sources

    def find(self, name: str) -> DependencyEntry | None:
        return self._sources.get(name)

    def groups(self) -> dict[str, list[DependencyEntry]]:
        """Group tag -> entries tagged with it."""
        result: dict[str, list[DependencyEntry]] = {}
        for entry in self._sources.values():
            for tag in sorted(entry.groups):
                result.setdefault(tag, []).append(entry)
        return result

    @property
    def default_locations(self) -> list[Location]:
        """Declared default locations; the community site if none were declared."""
        if self._locations:
            return list(self._locations)
        return [site_location("default", self.config)]


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    return list(value) if isinstance(value, list) else [value]
