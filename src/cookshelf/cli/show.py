"""``cookshelf show`` - Print the cookbooks pinned in ``Shelffile.lock``.

Exit Codes:
    0 - Lockfile printed.
    1 - The lockfile is corrupt.
    2 - There is no lockfile (run ``cookshelf install`` first).
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from cookshelf.cli.common import EXIT_USAGE, reporting_errors, shelffile_option
from cookshelf.cli.output import print_json, print_locked
from cookshelf.core.lockfile import Lockfile


@click.command("show")
@shelffile_option
@click.option(
    "--format", "output_format",
    type=click.Choice(["text", "json"], case_sensitive=False),
    default="text",
    help="Output format (default: text).",
)
def show_command(shelffile: str, output_format: str) -> None:
    """Show the locked cookbook set."""
    path = Path(shelffile)
    lock_path = path.with_name(path.name + ".lock")
    if not lock_path.is_file():
        click.echo(f"No lockfile at {lock_path}; run 'cookshelf install' first.")
        sys.exit(EXIT_USAGE)

    with reporting_errors():
        lockfile = Lockfile.read(lock_path)

    if output_format.lower() == "json":
        print_json(lockfile.to_dict())
    else:
        print_locked(lockfile)
