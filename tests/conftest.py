"""Pytest configuration and shared fixtures."""

import shutil
import tempfile
from pathlib import Path

import pytest

from gumdb.core.store import Store


@pytest.fixture(autouse=True)
def isolate_environment(tmp_path_factory, monkeypatch):
    """Keep tests away from the real XDG directories and gum settings."""
    home = tmp_path_factory.mktemp("home")
    monkeypatch.setenv("XDG_CACHE_HOME", str(home / "cache"))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(home / "config"))
    for var in ("GUM_DATABASE_PATH", "GUM_CACHE_DIR", "GUM_CONFIG_DIR"):
        monkeypatch.delenv(var, raising=False)
    yield


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    temp = tempfile.mkdtemp()
    yield Path(temp)
    shutil.rmtree(temp)


@pytest.fixture
def store(temp_dir):
    """Create a store in a temporary directory."""
    s = Store(temp_dir / "gum.db")
    yield s
    s.close()
