"""cookshelf CLI - Cookbook dependency management.

Entry point for the ``cookshelf`` command-line tool. Registers all
subcommands under a single Click group.

Commands:
    install - Resolve and install the Shelffile's cookbooks.
    update  - Re-resolve, discarding locked pins.
    upload  - Upload the installed cookbooks to a Chef server.
    show    - Print the locked cookbook set.

Usage::

    cookshelf install
    cookshelf install --except test --path vendor/cookbooks
    cookshelf update nginx
    cookshelf upload --server-url https://chef.example.com
    cookshelf show --format json
"""

from __future__ import annotations

import logging

import click
from rich.logging import RichHandler

from cookshelf import __version__
from cookshelf.cli.install import install_command
from cookshelf.cli.output import err_console
from cookshelf.cli.show import show_command
from cookshelf.cli.update import update_command
from cookshelf.cli.upload import upload_command


def configure_logging(verbose: bool) -> None:
    """Route cookshelf logs to stderr through rich."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging.")
def cli(verbose: bool) -> None:
    """cookshelf: Resolve, lock and vendor cookbook dependencies.

    Reads the Shelffile in the current directory, resolves every declared
    cookbook and its dependencies to concrete versions, and records them
    in Shelffile.lock for repeatable installs.
    """
    configure_logging(verbose)


# Register all subcommands
cli.add_command(install_command)
cli.add_command(update_command)
cli.add_command(upload_command)
cli.add_command(show_command)
