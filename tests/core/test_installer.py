"""Tests for Installer: lockfile reuse, re-resolution, update and vendoring."""

from __future__ import annotations

import shutil
from pathlib import Path
from unittest.mock import patch

import pytest

from cookshelf.core.cache.store import ArtifactCache
from cookshelf.core.declaration import Shelffile
from cookshelf.core.installer import Installer
from cookshelf.core.lockfile import Lockfile
from cookshelf.exceptions import InvalidFilterOptions, LockfileError, LockPersistFailure, UnresolvableConflict
from tests.helpers import FakeLocation, write_cookbook

_TEXT = """\
cookbooks:
  nginx: ">= 1.0.0"
groups:
  test:
    minitest-handler:
"""


# ===========================================================================
# Helpers
# ===========================================================================


@pytest.fixture
def site() -> FakeLocation:
    return FakeLocation("site", {
        "nginx": {"1.0.0": {"ohai": ">= 1.0.0"}},
        "ohai": {"1.0.0": {}},
        "minitest-handler": {"0.1.0": {}},
        "apt": {"2.0.0": {}},
    })


def _declare(extra: str) -> str:
    """The base Shelffile with *extra* appended to its cookbooks section."""
    return _TEXT.replace("groups:", extra + "groups:")


def _installer(tmp_path: Path, cache: ArtifactCache, site: FakeLocation, text: str = _TEXT) -> Installer:
    shelffile = Shelffile(tmp_path / "Shelffile").load(text)
    shelffile.add_location(site)
    return Installer(shelffile, cache)


# ===========================================================================
# Install
# ===========================================================================


class TestInstall:
    """Tests for ``Installer.install``."""

    def test_first_install_writes_lockfile(self, tmp_path: Path, cache: ArtifactCache, site: FakeLocation) -> None:
        result = _installer(tmp_path, cache, site).install()

        assert result.reused_lock is False
        assert result.warnings == []
        lock = Lockfile.read(tmp_path / "Shelffile.lock")
        assert lock.pins() == {"minitest-handler": "0.1.0", "nginx": "1.0.0", "ohai": "1.0.0"}
        assert lock.matches(_TEXT)
        assert lock.get_entry("ohai").explicit is False

    def test_unchanged_shelffile_reuses_lock(self, tmp_path: Path, cache: ArtifactCache, site: FakeLocation) -> None:
        _installer(tmp_path, cache, site).install()
        site.catalog["nginx"]["2.0.0"] = {}
        site.fetch_calls.clear()
        site.download_calls.clear()

        result = _installer(tmp_path, cache, site).install()

        assert result.reused_lock is True
        assert result.solution.pins()["nginx"] == "1.0.0"
        assert site.fetch_calls == []
        assert site.download_calls == []

    def test_changed_shelffile_keeps_valid_pins(self, tmp_path: Path, cache: ArtifactCache, site: FakeLocation) -> None:
        _installer(tmp_path, cache, site).install()
        site.catalog["nginx"]["2.0.0"] = {}
        site.catalog["ohai"]["1.5.0"] = {}

        result = _installer(tmp_path, cache, site, _declare("  apt:\n")).install()

        assert result.reused_lock is False
        assert result.solution.pins() == {
            "apt": "2.0.0",
            "minitest-handler": "0.1.0",
            "nginx": "1.0.0",
            "ohai": "1.0.0",
        }
        assert Lockfile.read(tmp_path / "Shelffile.lock").get_entry("apt").version == "2.0.0"

    def test_tightened_constraint_frees_pin(self, tmp_path: Path, cache: ArtifactCache, site: FakeLocation) -> None:
        _installer(tmp_path, cache, site).install()
        site.catalog["nginx"]["2.0.0"] = {}

        text = _TEXT.replace(">= 1.0.0", ">= 2.0.0")
        result = _installer(tmp_path, cache, site, text).install()

        assert result.solution.pins()["nginx"] == "2.0.0"

    def test_filtered_install_leaves_lockfile_alone(
        self, tmp_path: Path, cache: ArtifactCache, site: FakeLocation
    ) -> None:
        result = _installer(tmp_path, cache, site).install(except_=["test"])
        assert "minitest-handler" not in result.solution
        assert not (tmp_path / "Shelffile.lock").exists()

    def test_filtered_install_from_lock(self, tmp_path: Path, cache: ArtifactCache, site: FakeLocation) -> None:
        _installer(tmp_path, cache, site).install()
        result = _installer(tmp_path, cache, site).install(only=["test"])
        assert result.reused_lock is True
        assert result.solution.pins() == {"minitest-handler": "0.1.0"}

    def test_both_filters_rejected(self, tmp_path: Path, cache: ArtifactCache, site: FakeLocation) -> None:
        with pytest.raises(InvalidFilterOptions):
            _installer(tmp_path, cache, site).install(only=["a"], except_=["b"])

    def test_conflicting_lock_pin_is_released(self, tmp_path: Path, cache: ArtifactCache) -> None:
        site = FakeLocation("site", {"apache": {"1.0.0": {}}, "php": {"1.0.0": {}}})
        text = "cookbooks:\n  apache:\n  php:\n"
        _installer(tmp_path, cache, site, text).install()
        site.catalog["apache"]["2.0.0"] = {}
        site.catalog["php"]["2.0.0"] = {"apache": ">= 2.0.0"}

        changed = "cookbooks:\n  apache:\n  php: '>= 2.0.0'\n"
        result = _installer(tmp_path, cache, site, changed).install()

        assert result.solution.pins() == {"apache": "2.0.0", "php": "2.0.0"}
        assert Lockfile.read(tmp_path / "Shelffile.lock").pins() == {"apache": "2.0.0", "php": "2.0.0"}

    def test_conflicting_transitive_preference_is_released(
        self, tmp_path: Path, cache: ArtifactCache, site: FakeLocation
    ) -> None:
        _installer(tmp_path, cache, site).install()
        site.catalog["ohai"]["2.0.0"] = {}
        site.catalog["apt"]["3.0.0"] = {"ohai": ">= 2.0.0"}

        result = _installer(tmp_path, cache, site, _declare("  apt: '>= 3.0.0'\n")).install()

        assert result.solution.pins()["ohai"] == "2.0.0"
        assert result.solution.violations() == []

    def test_conflict_without_lock_pins_still_raises(
        self, tmp_path: Path, cache: ArtifactCache, site: FakeLocation
    ) -> None:
        site.catalog["apt"]["3.0.0"] = {"ohai": ">= 2.0.0"}
        with pytest.raises(UnresolvableConflict):
            _installer(tmp_path, cache, site, _declare("  apt: '>= 3.0.0'\n")).install()

    def test_lock_write_failure_is_a_warning(self, tmp_path: Path, cache: ArtifactCache, site: FakeLocation) -> None:
        with patch.object(Lockfile, "write", side_effect=LockPersistFailure("disk full")):
            result = _installer(tmp_path, cache, site).install()
        assert len(result.solution) == 3
        assert [str(w) for w in result.warnings] == ["disk full"]

    def test_corrupt_lockfile_is_an_error(self, tmp_path: Path, cache: ArtifactCache, site: FakeLocation) -> None:
        (tmp_path / "Shelffile.lock").write_text("{broken")
        with pytest.raises(LockfileError):
            _installer(tmp_path, cache, site).install()

    def test_resolve_ignores_lockfile(self, tmp_path: Path, cache: ArtifactCache, site: FakeLocation) -> None:
        _installer(tmp_path, cache, site).install()
        site.catalog["nginx"]["2.0.0"] = {}

        resolved = _installer(tmp_path, cache, site).resolve(only=["default"])

        assert [e.name for e in resolved["sources"]] == ["nginx"]
        assert resolved["solution"].pins() == {"nginx": "2.0.0"}
        assert Lockfile.read(tmp_path / "Shelffile.lock").pins()["nginx"] == "1.0.0"

    def test_vendor_path(self, tmp_path: Path, cache: ArtifactCache, site: FakeLocation) -> None:
        result = _installer(tmp_path, cache, site).install(path=tmp_path / "vendor")
        assert result.vendor_path == (tmp_path / "vendor").resolve()
        assert sorted(p.name for p in result.vendor_path.iterdir()) == ["minitest-handler", "nginx", "ohai"]


# ===========================================================================
# Update
# ===========================================================================


class TestUpdate:
    """Tests for ``Installer.update``."""

    def test_update_all(self, tmp_path: Path, cache: ArtifactCache, site: FakeLocation) -> None:
        _installer(tmp_path, cache, site).install()
        site.catalog["nginx"]["2.0.0"] = {"ohai": ">= 1.0.0"}
        site.catalog["ohai"]["1.5.0"] = {}

        result = _installer(tmp_path, cache, site).update()

        assert result.solution.pins()["nginx"] == "2.0.0"
        assert result.solution.pins()["ohai"] == "1.5.0"
        assert Lockfile.read(tmp_path / "Shelffile.lock").pins()["nginx"] == "2.0.0"

    def test_update_named_keeps_other_pins(self, tmp_path: Path, cache: ArtifactCache, site: FakeLocation) -> None:
        _installer(tmp_path, cache, site).install()
        site.catalog["nginx"]["2.0.0"] = {"ohai": ">= 1.0.0"}
        site.catalog["ohai"]["1.5.0"] = {}

        result = _installer(tmp_path, cache, site).update(["nginx"])

        assert result.solution.pins()["nginx"] == "2.0.0"
        assert result.solution.pins()["ohai"] == "1.0.0"
        lock = Lockfile.read(tmp_path / "Shelffile.lock")
        assert lock.matches(_TEXT)

    def test_then_install_reuses_updated_lock(self, tmp_path: Path, cache: ArtifactCache, site: FakeLocation) -> None:
        _installer(tmp_path, cache, site).install()
        site.catalog["nginx"]["2.0.0"] = {}
        _installer(tmp_path, cache, site).update(["nginx"])

        result = _installer(tmp_path, cache, site).install()
        assert result.reused_lock is True
        assert result.solution.pins()["nginx"] == "2.0.0"


# ===========================================================================
# Git revisions
# ===========================================================================


class TestGitRevision:
    """Git cookbooks are locked to the commit they resolved at."""

    def test_restore_uses_locked_commit_after_branch_moves(self, tmp_path: Path) -> None:
        commits = {
            "c1": write_cookbook(tmp_path / "commits" / "c1", "app", "1.0.0"),
            "c2": write_cookbook(tmp_path / "commits" / "c2", "app", "2.0.0"),
        }
        branches = {"main": "c1"}

        def run_git(argv: list[str], cwd: Path | None = None) -> str:
            if argv[0] == "clone":
                (Path(argv[-1]) / ".git").mkdir(parents=True)
            elif argv[0] == "checkout":
                commit = branches.get(argv[-1], argv[-1])
                shutil.copytree(commits[commit], cwd, dirs_exist_ok=True)
                (cwd / ".git" / "HEAD").write_text(commit)
            elif argv[0] == "rev-parse":
                return (cwd / ".git" / "HEAD").read_text()
            return ""

        project = tmp_path / "project"
        project.mkdir()
        text = "cookbooks:\n  app:\n    git: https://example.com/app.git\n    ref: main\n"

        with patch("cookshelf.locations.git._run_git", run_git):
            Installer(Shelffile(project / "Shelffile").load(text), ArtifactCache(tmp_path / "warm")).install()
            branches["main"] = "c2"
            cold = ArtifactCache(tmp_path / "cold")
            result = Installer(Shelffile(project / "Shelffile").load(text), cold).install()

        assert Lockfile.read(project / "Shelffile.lock").get_entry("app").revision == "c1"
        assert result.reused_lock is True
        assert result.solution.pins() == {"app": "1.0.0"}
