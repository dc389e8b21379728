"""Shared plumbing for cookshelf commands.

Loads the configuration, Shelffile and cache for a command, and maps
cookshelf errors onto exit codes:

    1 - Resolution, download, lockfile or upload failure.
    2 - Declaration or configuration error.
"""

from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from typing import Iterator

import click

from cookshelf.cli.output import print_error
from cookshelf.config import ShelfConfig
from cookshelf.core.cache.store import ArtifactCache
from cookshelf.core.declaration.shelffile import DEFAULT_FILENAME, Shelffile
from cookshelf.core.installer import Installer
from cookshelf.exceptions import ConfigurationError, CookshelfError, DeclarationError

logger = logging.getLogger(__name__)

EXIT_FAILURE = 1
EXIT_USAGE = 2

shelffile_option = click.option(
    "--shelffile", "-b",
    type=click.Path(dir_okay=False),
    default=DEFAULT_FILENAME,
    show_default=True,
    help="Path to the Shelffile.",
)

only_option = click.option(
    "--only",
    multiple=True,
    help="Only cookbooks in this group (repeatable).",
)

except_option = click.option(
    "--except", "except_",
    multiple=True,
    help="All cookbooks except those in this group (repeatable).",
)


def build_installer(shelffile_path: str) -> Installer:
    """Load config, Shelffile and cache for a command."""
    config = ShelfConfig.load()
    shelffile = Shelffile.from_file(shelffile_path, config)
    return Installer(shelffile, ArtifactCache(config.cache_path), config)


def exit_code_for(exc: CookshelfError) -> int:
    if isinstance(exc, (DeclarationError, ConfigurationError)):
        return EXIT_USAGE
    return EXIT_FAILURE


@contextmanager
def reporting_errors() -> Iterator[None]:
    """Print cookshelf errors in red and exit with the matching code."""
    try:
        yield
    except CookshelfError as exc:
        logger.debug("Command failed", exc_info=True)
        print_error(exc)
        sys.exit(exit_code_for(exc))
