"""``cookshelf install`` - Install the cookbooks a Shelffile declares.

Reuses ``Shelffile.lock`` when the Shelffile is unchanged, otherwise
resolves (keeping still-valid pins) and rewrites the lockfile.

Exit Codes:
    0 - Cookbooks installed.
    1 - Resolution or download failed.
    2 - The Shelffile or configuration is invalid.
"""

from __future__ import annotations

import click

from cookshelf.cli.common import (
    build_installer,
    except_option,
    only_option,
    reporting_errors,
    shelffile_option,
)
from cookshelf.cli.output import console, print_solution, print_warnings


@click.command("install")
@shelffile_option
@only_option
@except_option
@click.option(
    "--path", "-p",
    type=click.Path(file_okay=False),
    default=None,
    help="Vendor the installed cookbooks into this directory.",
)
def install_command(
    shelffile: str,
    only: tuple[str, ...],
    except_: tuple[str, ...],
    path: str | None,
) -> None:
    """Install the cookbooks declared in the Shelffile."""
    with reporting_errors():
        installer = build_installer(shelffile)
        result = installer.install(only=only or None, except_=except_ or None, path=path)

    print_solution(result.solution, reused_lock=result.reused_lock)
    print_warnings(result.warnings)
    if result.vendor_path is not None:
        console.print(f"\nCookbooks vendored to: {result.vendor_path}")
