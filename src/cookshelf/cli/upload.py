"""``cookshelf upload`` - Install, then upload every cookbook to a Chef server.

The server URL, node name and client key come from the ``chef`` section of
the configuration; ``--server-url`` overrides the URL. They are checked
before anything is resolved or sent.
"""

from __future__ import annotations

import click

from cookshelf.cli.common import build_installer, reporting_errors, shelffile_option
from cookshelf.cli.output import print_uploads, print_warnings
from cookshelf.core.upload import Uploader


@click.command("upload")
@shelffile_option
@click.option("--server-url", default=None, help="Chef server URL (overrides config).")
@click.option("--force", is_flag=True, help="Overwrite versions already on the server.")
@click.option("--freeze", is_flag=True, help="Freeze the uploaded versions.")
def upload_command(shelffile: str, server_url: str | None, force: bool, freeze: bool) -> None:
    """Upload the installed cookbooks to a Chef server."""
    with reporting_errors():
        installer = build_installer(shelffile)
        uploader = Uploader(installer.config, server_url=server_url, force=force, freeze=freeze)
        result = installer.install()
        uploaded = uploader.upload(result.solution)

    print_warnings(result.warnings)
    print_uploads(uploaded, uploader.server_url)
