"""``cookshelf update [NAMES]...`` - Re-resolve, ignoring locked pins.

With no names every pin is discarded; otherwise only the named cookbooks
are freed and the rest of the lockfile is kept where still valid.
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
from cookshelf.cli.output import print_solution, print_warnings


@click.command("update")
@click.argument("names", nargs=-1)
@shelffile_option
@only_option
@except_option
def update_command(
    names: tuple[str, ...],
    shelffile: str,
    only: tuple[str, ...],
    except_: tuple[str, ...],
) -> None:
    """Update NAMES (or every cookbook) to the newest allowed versions."""
    with reporting_errors():
        installer = build_installer(shelffile)
        result = installer.update(list(names) or None, only=only or None, except_=except_ or None)

    print_solution(result.solution)
    print_warnings(result.warnings)
