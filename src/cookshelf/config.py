"""User configuration for cookshelf.

Settings live in ``<home>/config.yaml`` where ``<home>`` is ``~/.cookshelf``
unless the ``COOKSHELF_PATH`` environment variable points elsewhere. The
file is optional; every setting has a default. The loaded ``ShelfConfig``
is passed explicitly to whatever needs it (locations, the installer, the
uploader) rather than held in a global.

Example ``config.yaml``::

    chef:
      server_url: https://chef.example.com/organizations/acme
      node_name: deployer
      client_key: ~/.chef/deployer.pem
    ssl:
      verify: false
    site_url: https://supermarket.example.com
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from cookshelf.exceptions import ConfigurationError
from cookshelf.locations.site import DEFAULT_SITE_URL

logger = logging.getLogger(__name__)

ENV_HOME = "COOKSHELF_PATH"
DEFAULT_HOME = Path("~/.cookshelf")
CONFIG_FILENAME = "config.yaml"


@dataclass
class ChefConfig:
    """Chef server settings used by the Chef API location and upload."""

    server_url: str | None = None
    node_name: str | None = None
    client_key: str | None = None


@dataclass
class SSLConfig:
    verify: bool = True


@dataclass
class ShelfConfig:
    """Resolved cookshelf configuration.

    Attributes:
        path: The cookshelf home directory (config file and cache root).
        chef: Chef server settings.
        ssl: TLS settings applied to every HTTP request.
        site_url: Index URL used for ``site: default`` in a Shelffile.
    """

    path: Path = field(default_factory=lambda: default_home())
    chef: ChefConfig = field(default_factory=ChefConfig)
    ssl: SSLConfig = field(default_factory=SSLConfig)
    site_url: str = DEFAULT_SITE_URL

    @property
    def cache_path(self) -> Path:
        """Root of the artifact cache."""
        return self.path

    @property
    def config_file(self) -> Path:
        return self.path / CONFIG_FILENAME

    @classmethod
    def load(cls, path: str | Path | None = None) -> ShelfConfig:
        """Load configuration from the cookshelf home.

        Args:
            path: Home directory to read. Defaults to ``$COOKSHELF_PATH`` or
                ``~/.cookshelf``.

        Returns:
            A ``ShelfConfig``; defaults when the config file is absent.

        Raises:
            ConfigurationError: If the file is not valid YAML or a section
                has the wrong shape.
        """
        home = Path(path).expanduser() if path is not None else default_home()
        config_file = home / CONFIG_FILENAME
        if not config_file.is_file():
            logger.debug("No config file at %s; using defaults", config_file)
            return cls(path=home)

        try:
            data = yaml.safe_load(config_file.read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigurationError(f"Cannot read {config_file}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigurationError(f"{config_file} must contain a mapping")

        config = cls(
            path=home,
            chef=_section(ChefConfig, data.get("chef"), "chef", config_file),
            ssl=_section(SSLConfig, data.get("ssl"), "ssl", config_file),
            site_url=str(data.get("site_url") or DEFAULT_SITE_URL),
        )
        logger.debug("Loaded config from %s", config_file)
        return config


def default_home() -> Path:
    """The cookshelf home: ``$COOKSHELF_PATH`` or ``~/.cookshelf``."""
    return Path(os.environ.get(ENV_HOME) or DEFAULT_HOME).expanduser()


def _section(kind: type, data: Any, name: str, source: Path) -> Any:
    """Build a config section dataclass, ignoring unknown keys."""
    if data is None:
        return kind()
    if not isinstance(data, dict):
        raise ConfigurationError(f"{source}: '{name}' must be a mapping")
    known = {f.name for f in fields(kind)}
    unknown = sorted(set(data) - known)
    if unknown:
        logger.warning("Ignoring unknown '%s' settings in %s: %s", name, source, ", ".join(unknown))
    return kind(**{k: v for k, v in data.items() if k in known})
