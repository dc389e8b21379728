"""Shared fixtures for cookshelf tests."""

from __future__ import annotations

import pathlib

import pytest

from cookshelf.config import ShelfConfig
from cookshelf.core.cache.store import ArtifactCache
from cookshelf.locations import LOCATION_TYPES
from tests.helpers import FakeLocation


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: pathlib.Path, monkeypatch: pytest.MonkeyPatch) -> pathlib.Path:
    """Point COOKSHELF_PATH at a temporary directory for every test."""
    home = tmp_path / "cookshelf-home"
    monkeypatch.setenv("COOKSHELF_PATH", str(home))
    return home


@pytest.fixture
def cache(tmp_path: pathlib.Path) -> ArtifactCache:
    """An empty artifact cache under the test's temporary directory."""
    return ArtifactCache(tmp_path / "cache")


@pytest.fixture
def config(isolated_home: pathlib.Path) -> ShelfConfig:
    return ShelfConfig(path=isolated_home)


@pytest.fixture(autouse=True)
def fake_locations(monkeypatch: pytest.MonkeyPatch):
    """Make ``FakeLocation`` descriptors resolvable from lockfiles."""
    monkeypatch.setitem(LOCATION_TYPES, FakeLocation.kind, FakeLocation)
    yield FakeLocation.instances
    FakeLocation.instances.clear()
