"""Tests for configuration management."""

import pytest
from pathlib import Path
import toml

from gumdb.config import Config, GumConfig


class TestConfig:
    """Test configuration management."""

    def test_defaults_without_file(self, temp_dir):
        config = Config(temp_dir)

        assert not config.exists
        data = config.load()

        assert data.busy_timeout == 30.0
        assert data.lock_timeout == 30.0
        assert data.usage_limit == 50
        assert data.cache_dir.name == "gum"
        assert data.database_path == data.cache_dir / "gum.db"

    def test_xdg_locations(self, temp_dir, monkeypatch):
        monkeypatch.setenv("XDG_CACHE_HOME", str(temp_dir / "xdg-cache"))
        monkeypatch.setenv("XDG_CONFIG_HOME", str(temp_dir / "xdg-config"))

        config = Config()
        data = config.load()

        assert config.config_path == temp_dir / "xdg-config" / "gum" / "config.toml"
        assert data.database_path == temp_dir / "xdg-cache" / "gum" / "gum.db"

    def test_load_from_file(self, temp_dir):
        (temp_dir / "config.toml").write_text(
            toml.dumps({"cache_dir": str(temp_dir / "c"), "usage_limit": 10, "projects_dirs": ["~/src"]})
        )

        data = Config(temp_dir).load()

        assert data.usage_limit == 10
        assert data.database_path == temp_dir / "c" / "gum.db"

    def test_env_overrides(self, temp_dir, monkeypatch):
        (temp_dir / "config.toml").write_text(
            toml.dumps({"database_path": str(temp_dir / "file.db")})
        )
        monkeypatch.setenv("GUM_DATABASE_PATH", str(temp_dir / "env.db"))

        assert Config(temp_dir).load().database_path == temp_dir / "env.db"

    def test_cache_dir_override_moves_default_store(self, temp_dir, monkeypatch):
        (temp_dir / "config.toml").write_text(
            toml.dumps({"database_path": str(temp_dir / "file.db")})
        )
        monkeypatch.setenv("GUM_CACHE_DIR", str(temp_dir / "elsewhere"))

        data = Config(temp_dir).load()

        assert data.cache_dir == temp_dir / "elsewhere"
        assert data.database_path == temp_dir / "elsewhere" / "gum.db"

    def test_config_dir_env(self, temp_dir, monkeypatch):
        monkeypatch.setenv("GUM_CONFIG_DIR", str(temp_dir))
        assert Config().config_path == temp_dir / "config.toml"

    def test_invalid_values_rejected(self, temp_dir):
        (temp_dir / "config.toml").write_text(toml.dumps({"busy_timeout": -1}))
        with pytest.raises(ValueError):
            Config(temp_dir).load()

    def test_save_round_trip(self, temp_dir):
        config = Config(temp_dir / "nested")
        config.save(GumConfig(cache_dir=temp_dir / "c", lock_timeout=5))

        assert config.exists
        loaded = Config(temp_dir / "nested").load()
        assert loaded.lock_timeout == 5
        assert loaded.database_path == temp_dir / "c" / "gum.db"

    def test_save_without_config(self, temp_dir):
        with pytest.raises(ValueError, match="No configuration"):
            Config(temp_dir).save()

    def test_expands_home(self):
        data = GumConfig(cache_dir=Path("~/cache"))
        assert "~" not in str(data.cache_dir)
