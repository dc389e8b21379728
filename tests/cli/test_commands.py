"""Tests for the cookshelf commands: install, update, show, upload.

Every Shelffile here uses ``path`` locations, so no command touches the
network. Verifies:
    - Exit code 0 on success, 1 on resolution failure, 2 on bad input.
    - ``install`` writes Shelffile.lock and reuses it on the next run.
    - ``show`` prints the locked set as text or JSON.
    - ``upload`` checks the chef configuration before anything else.
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from cookshelf.cli.main import cli
from tests.helpers import write_cookbook


@pytest.fixture
def runner() -> CliRunner:
    """Create a Click CliRunner for invoking commands."""
    return CliRunner()


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """A Shelffile declaring two local cookbooks, one in the test group."""
    write_cookbook(tmp_path / "cookbooks" / "app", "app", "1.2.0")
    write_cookbook(tmp_path / "cookbooks" / "app-test", "app-test", "0.1.0")
    shelffile = tmp_path / "Shelffile"
    shelffile.write_text(
        "cookbooks:\n"
        "  app:\n"
        "    path: cookbooks/app\n"
        "groups:\n"
        "  test:\n"
        "    app-test:\n"
        "      path: cookbooks/app-test\n"
    )
    return shelffile


# ===========================================================================
# install
# ===========================================================================


class TestInstall:
    """Tests for ``cookshelf install``."""

    def test_install_writes_lockfile(self, runner: CliRunner, project: Path) -> None:
        """A first install resolves and locks every cookbook."""
        result = runner.invoke(cli, ["install", "-b", str(project)])
        assert result.exit_code == 0, result.output
        assert "Resolution successful" in result.output
        assert "app-test" in result.output
        assert (project.parent / "Shelffile.lock").is_file()

    def test_second_install_uses_lockfile(self, runner: CliRunner, project: Path) -> None:
        """An unchanged Shelffile installs straight from the lockfile."""
        runner.invoke(cli, ["install", "-b", str(project)])
        result = runner.invoke(cli, ["install", "-b", str(project)])
        assert result.exit_code == 0, result.output
        assert "Installed from lockfile" in result.output

    def test_except_group(self, runner: CliRunner, project: Path) -> None:
        """Excluded groups are not installed and the lockfile is not written."""
        result = runner.invoke(cli, ["install", "-b", str(project), "--except", "test"])
        assert result.exit_code == 0, result.output
        assert "app-test" not in result.output
        assert not (project.parent / "Shelffile.lock").exists()

    def test_only_and_except_together(self, runner: CliRunner, project: Path) -> None:
        """Both group filters at once is a usage error."""
        result = runner.invoke(
            cli, ["install", "-b", str(project), "--only", "test", "--except", "default"]
        )
        assert result.exit_code == 2
        assert "Cannot specify both :except and :only" in result.output

    def test_vendor_path(self, runner: CliRunner, project: Path) -> None:
        """``--path`` copies the installed cookbooks into a directory."""
        target = project.parent / "vendor"
        result = runner.invoke(cli, ["install", "-b", str(project), "--path", str(target)])
        assert result.exit_code == 0, result.output
        assert (target / "app" / "metadata.yaml").is_file()
        assert (target / "app-test" / "recipes" / "default.rb").is_file()

    def test_missing_shelffile(self, runner: CliRunner, tmp_path: Path) -> None:
        """No Shelffile exits with code 2."""
        result = runner.invoke(cli, ["install", "-b", str(tmp_path / "Shelffile")])
        assert result.exit_code == 2
        assert "No Shelffile found" in result.output

    def test_duplicate_declaration(self, runner: CliRunner, tmp_path: Path) -> None:
        """A cookbook declared twice exits with code 2."""
        shelffile = tmp_path / "Shelffile"
        shelffile.write_text("cookbooks:\n  app:\ngroups:\n  test:\n    app:\n")
        result = runner.invoke(cli, ["install", "-b", str(shelffile)])
        assert result.exit_code == 2
        assert "declared more than once" in result.output

    def test_unsatisfiable_constraint(self, runner: CliRunner, tmp_path: Path) -> None:
        """A constraint the location cannot meet exits with code 1."""
        write_cookbook(tmp_path / "app", "app", "1.2.0")
        shelffile = tmp_path / "Shelffile"
        shelffile.write_text("cookbooks:\n  app:\n    constraint: '>= 2.0.0'\n    path: app\n")
        result = runner.invoke(cli, ["install", "-b", str(shelffile)])
        assert result.exit_code == 1
        assert "Error" in result.output
        assert "declared in Shelffile" in result.output

    def test_verbose_flag(self, runner: CliRunner, project: Path) -> None:
        """``--verbose`` is accepted before the command."""
        result = runner.invoke(cli, ["--verbose", "install", "-b", str(project)])
        assert result.exit_code == 0, result.output


# ===========================================================================
# update / show
# ===========================================================================


class TestUpdateAndShow:
    """Tests for ``cookshelf update`` and ``cookshelf show``."""

    def test_update_rewrites_lockfile(self, runner: CliRunner, project: Path) -> None:
        runner.invoke(cli, ["install", "-b", str(project)])
        write_cookbook(project.parent / "cookbooks" / "app", "app", "1.3.0")
        result = runner.invoke(cli, ["update", "app", "-b", str(project)])
        assert result.exit_code == 0, result.output
        assert "1.3.0" in (project.parent / "Shelffile.lock").read_text()

    def test_show_text(self, runner: CliRunner, project: Path) -> None:
        runner.invoke(cli, ["install", "-b", str(project)])
        result = runner.invoke(cli, ["show", "-b", str(project)])
        assert result.exit_code == 0, result.output
        assert "Locked cookbooks" in result.output
        assert "1.2.0" in result.output

    def test_show_json(self, runner: CliRunner, project: Path) -> None:
        runner.invoke(cli, ["install", "-b", str(project)])
        result = runner.invoke(cli, ["show", "-b", str(project), "--format", "json"])
        assert result.exit_code == 0, result.output
        assert '"lockfile_version"' in result.output
        assert '"app-test"' in result.output

    def test_show_without_lockfile(self, runner: CliRunner, project: Path) -> None:
        result = runner.invoke(cli, ["show", "-b", str(project)])
        assert result.exit_code == 2
        assert "cookshelf install" in result.output

    def test_show_corrupt_lockfile(self, runner: CliRunner, project: Path) -> None:
        (project.parent / "Shelffile.lock").write_text("{")
        result = runner.invoke(cli, ["show", "-b", str(project)])
        assert result.exit_code == 1


# ===========================================================================
# upload
# ===========================================================================


class TestUpload:
    """Tests for ``cookshelf upload``."""

    def test_missing_configuration(self, runner: CliRunner, project: Path) -> None:
        """Without chef settings nothing is installed or sent."""
        with patch("cookshelf.locations.http_client.put_bytes") as put_bytes:
            result = runner.invoke(cli, ["upload", "-b", str(project)])
        assert result.exit_code == 2
        assert "chef.server_url" in result.output
        put_bytes.assert_not_called()
        assert not (project.parent / "Shelffile.lock").exists()

    def test_upload_everything(self, runner: CliRunner, project: Path, isolated_home: Path) -> None:
        isolated_home.mkdir(parents=True, exist_ok=True)
        (isolated_home / "config.yaml").write_text(
            "chef:\n"
            "  server_url: https://chef.example.com\n"
            "  node_name: deployer\n"
            "  client_key: deployer.pem\n"
        )
        with patch("cookshelf.locations.http_client.put_bytes", return_value=201) as put_bytes:
            result = runner.invoke(cli, ["upload", "-b", str(project), "--freeze"])

        assert result.exit_code == 0, result.output
        urls = [c.args[0] for c in put_bytes.call_args_list]
        assert urls == [
            "https://chef.example.com/cookbooks/app/1.2.0",
            "https://chef.example.com/cookbooks/app-test/0.1.0",
        ]
        assert put_bytes.call_args.kwargs["params"]["freeze"] == "true"
