"""Tests for the remote locations: community site and Chef API.

HTTP is stubbed by patching ``cookshelf.locations.http_client``.
"""

from __future__ import annotations

import io
import json
import tarfile
from pathlib import Path
from unittest.mock import patch

import pytest

from cookshelf.config import ChefConfig, ShelfConfig, SSLConfig
from cookshelf.core.cache.store import ArtifactCache
from cookshelf.core.dependency import VersionConstraint
from cookshelf.exceptions import DownloadFailure, NoSatisfyingVersion, NotFound
from cookshelf.locations import (
    ChefAPICredentials,
    ChefAPILocation,
    SiteLocation,
    location_from_descriptor,
)
from cookshelf.locations.site import unpack_archive

_ANY = VersionConstraint.any()

_UNIVERSE = {
    "nginx": {
        "0.100.0": {"download_url": "https://site.example.com/nginx-0.100.0.tgz", "dependencies": {}},
        "0.101.0": {"download_url": "https://site.example.com/nginx-0.101.0.tgz", "dependencies": {}},
        "garbage": {"download_url": "https://site.example.com/x.tgz"},
    },
}


def _tarball(path: Path, name: str, version: str) -> Path:
    """Write a cookbook archive with a single top-level directory."""
    with tarfile.open(path, "w:gz") as tar:
        files = {
            f"{name}/metadata.json": json.dumps({"name": name, "version": version}),
            f"{name}/recipes/default.rb": "# recipe\n",
        }
        for arcname, content in files.items():
            data = content.encode("utf-8")
            info = tarfile.TarInfo(arcname)
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))
    return path


# ===========================================================================
# Site
# ===========================================================================


class TestSiteLocation:
    """Tests for ``SiteLocation``."""

    def test_fetch_newest_first_skipping_invalid(self) -> None:
        loc = SiteLocation("https://site.example.com/")
        with patch("cookshelf.locations.http_client.get_json", return_value=_UNIVERSE) as get_json:
            candidates = loc.fetch("nginx", _ANY)
            loc.fetch("nginx", VersionConstraint.parse("< 0.101.0"))

        assert [c.version for c in candidates] == ["0.101.0", "0.100.0"]
        assert candidates[0].metadata["download_url"].endswith("nginx-0.101.0.tgz")
        # The universe is fetched once per instance.
        get_json.assert_called_once_with("https://site.example.com/universe", verify=True)

    def test_unknown_cookbook(self) -> None:
        with patch("cookshelf.locations.http_client.get_json", return_value=_UNIVERSE):
            with pytest.raises(NotFound):
                SiteLocation().fetch("apache2", _ANY)

    def test_no_matching_version(self) -> None:
        with patch("cookshelf.locations.http_client.get_json", return_value=_UNIVERSE):
            with pytest.raises(NoSatisfyingVersion):
                SiteLocation().fetch("nginx", VersionConstraint.parse(">= 1.0.0"))

    def test_malformed_universe(self) -> None:
        with patch("cookshelf.locations.http_client.get_json", return_value=["nginx"]):
            with pytest.raises(DownloadFailure):
                SiteLocation().fetch("nginx", _ANY)

    def test_install_unpacks_archive(self, cache: ArtifactCache, tmp_path: Path) -> None:
        archive = _tarball(tmp_path / "nginx.tgz", "nginx", "0.101.0")

        def fake_download(url: str, destination: Path, **kwargs) -> Path:
            destination.write_bytes(archive.read_bytes())
            return destination

        loc = SiteLocation("https://site.example.com")
        with patch("cookshelf.locations.http_client.get_json", return_value=_UNIVERSE), patch(
            "cookshelf.locations.http_client.download", side_effect=fake_download
        ) as download:
            artifact = loc.install(loc.fetch("nginx", _ANY)[0], cache)

        assert download.call_args.args[0] == "https://site.example.com/nginx-0.101.0.tgz"
        assert (artifact.path / "metadata.json").is_file()
        assert (artifact.path / "recipes" / "default.rb").is_file()

    def test_corrupt_archive(self, tmp_path: Path) -> None:
        archive = tmp_path / "bad.tgz"
        archive.write_bytes(b"not a tarball")
        with pytest.raises(DownloadFailure):
            unpack_archive(archive, tmp_path / "out")

    def test_descriptor_uses_config_ssl(self, tmp_path: Path) -> None:
        config = ShelfConfig(path=tmp_path, ssl=SSLConfig(verify=False))
        loc = location_from_descriptor({"type": "site", "index_url": "https://s.example.com"}, config)
        assert isinstance(loc, SiteLocation)
        assert loc.verify is False


# ===========================================================================
# Chef API
# ===========================================================================


class TestChefAPILocation:
    """Tests for ``ChefAPILocation``."""

    @pytest.fixture
    def location(self) -> ChefAPILocation:
        return ChefAPILocation(
            "https://chef.example.com/",
            ChefAPICredentials("deployer", "secret"),
        )

    def test_fetch_sends_identity(self, location: ChefAPILocation) -> None:
        listing = {"apt": {"versions": [{"version": "1.0.0", "url": "u1"}, {"version": "2.0.0", "url": "u2"}]}}
        with patch("cookshelf.locations.http_client.get_json", return_value=listing) as get_json:
            candidates = location.fetch("apt", VersionConstraint.parse("~> 1.0"))

        assert [c.version for c in candidates] == ["1.0.0"]
        kwargs = get_json.call_args.kwargs
        assert get_json.call_args.args[0] == "https://chef.example.com/cookbooks/apt"
        assert kwargs["headers"] == {"X-Ops-UserId": "deployer"}
        assert kwargs["auth"] == ("deployer", "secret")
        assert kwargs["allow_missing"] is True

    def test_short_version_keeps_server_spelling(self, location: ChefAPILocation, tmp_path: Path) -> None:
        listing = {"apt": {"versions": [{"version": "1.0", "url": "u1"}]}}
        with patch("cookshelf.locations.http_client.get_json", return_value=listing):
            (candidate,) = location.fetch("apt", _ANY)
        assert candidate.version == "1.0.0"

        with patch("cookshelf.locations.http_client.get_json", return_value={"files": []}) as get_json:
            location.download(candidate, tmp_path / "apt")
        assert get_json.call_args.args[0] == "https://chef.example.com/cookbooks/apt/1.0"
        assert "1.0.0" in (tmp_path / "apt" / "metadata.json").read_text()

    def test_missing_cookbook(self, location: ChefAPILocation) -> None:
        with patch("cookshelf.locations.http_client.get_json", return_value=None):
            with pytest.raises(NotFound):
                location.fetch("apt", _ANY)

    def test_download_writes_files_and_manifest(
        self, location: ChefAPILocation, cache: ArtifactCache
    ) -> None:
        doc = {
            "metadata": {"dependencies": {"ohai": ">= 1.0.0"}},
            "files": [{"path": "recipes/default.rb", "url": "https://files/default.rb"}],
        }

        def fake_download(url: str, destination: Path, **kwargs) -> Path:
            destination.parent.mkdir(parents=True, exist_ok=True)
            destination.write_text("# recipe\n")
            return destination

        with patch("cookshelf.locations.http_client.get_json", return_value=doc), patch(
            "cookshelf.locations.http_client.download", side_effect=fake_download
        ):
            artifact = cache.get_or_install(location, "apt", "1.0.0")

        assert artifact.dependencies == {"ohai": ">= 1.0.0"}
        assert (artifact.path / "recipes" / "default.rb").read_text() == "# recipe\n"

    def test_unsafe_file_path_rejected(self, location: ChefAPILocation, tmp_path: Path) -> None:
        doc = {"files": [{"path": "../escape.rb", "url": "https://files/x"}]}
        with patch("cookshelf.locations.http_client.get_json", return_value=doc):
            with pytest.raises(DownloadFailure, match="unsafe"):
                location.download(location.candidate_for("apt", "1.0.0"), tmp_path)

    def test_descriptor_never_holds_the_key(self, location: ChefAPILocation) -> None:
        assert location.descriptor() == {
            "type": "chef_api",
            "server_url": "https://chef.example.com",
            "node_name": "deployer",
        }
        assert "secret" not in repr(location.credentials)

    def test_credentials_restored_from_config(self, tmp_path: Path) -> None:
        config = ShelfConfig(path=tmp_path, chef=ChefConfig(node_name="deployer", client_key="k"))
        loc = location_from_descriptor({"type": "chef_api", "server_url": "https://chef.example.com"}, config)
        assert loc.credentials == ChefAPICredentials("deployer", "k")
