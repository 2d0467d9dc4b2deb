"""Configuration management for gumdb."""

import os
from pathlib import Path
from typing import Optional, Dict, Any
import toml
from pydantic import BaseModel, Field, ConfigDict, model_validator

from gumdb.core.path_utils import (
    CONFIG_FILENAME,
    DATABASE_FILENAME,
    get_default_cache_dir,
    get_default_config_dir,
)


class GumConfig(BaseModel):
    """Settings stored in ``$XDG_CONFIG_HOME/gum/config.toml``."""

    model_config = ConfigDict(extra="allow")  # Other gum tools share this file

    cache_dir: Path = Field(
        default_factory=get_default_cache_dir,
        description="Directory holding the store and the legacy JSON caches",
    )
    database_path: Optional[Path] = Field(
        default=None, description="Store file, gum.db inside cache_dir by default"
    )
    busy_timeout: float = Field(
        default=30.0, gt=0, description="Seconds a writer waits for the write lock"
    )
    lock_timeout: float = Field(
        default=30.0, gt=0, description="Seconds to wait for an advisory lock"
    )
    integrity_interval: float = Field(
        default=300.0, gt=0, description="Seconds between background integrity checks"
    )
    usage_limit: int = Field(
        default=50, ge=1, description="Directories listed by default"
    )

    @model_validator(mode="after")
    def default_database_path(self) -> "GumConfig":
        self.cache_dir = self.cache_dir.expanduser()
        if self.database_path is None:
            self.database_path = self.cache_dir / DATABASE_FILENAME
        else:
            self.database_path = self.database_path.expanduser()
        return self


class Config:
    """Manages the gumdb configuration file."""

    def __init__(self, config_dir: Optional[Path] = None):
        """Initialize config manager.

        Args:
            config_dir: Directory holding config.toml. If None, uses GUM_CONFIG_DIR env var or the XDG config directory.
        """
        if config_dir is None:
            env_dir = os.environ.get("GUM_CONFIG_DIR")
            if env_dir:
                config_dir = Path(env_dir)

        self.config_dir = Path(config_dir) if config_dir else get_default_config_dir()
        self.config_path = self.config_dir / CONFIG_FILENAME
        self._config: Optional[GumConfig] = None

    @property
    def exists(self) -> bool:
        """Check if config file exists."""
        return self.config_path.exists()

    def load(self) -> GumConfig:
        """Load configuration from disk, with environment variable overrides.

        A missing file yields the defaults.
        """
        data: Dict[str, Any] = {}
        if self.exists:
            with open(self.config_path, "r") as f:
                data = toml.load(f)

        # Apply environment variable overrides
        self._apply_env_overrides(data)

        self._config = GumConfig(**data)
        return self._config

    def _apply_env_overrides(self, data: Dict[str, Any]) -> None:
        """Apply environment variable overrides to configuration data."""
        if env_cache := os.environ.get("GUM_CACHE_DIR"):
            data["cache_dir"] = env_cache
            # A relocated cache takes the store with it unless one is named
            if not os.environ.get("GUM_DATABASE_PATH"):
                data.pop("database_path", None)

        if env_db := os.environ.get("GUM_DATABASE_PATH"):
            data["database_path"] = env_db

    def save(self, config: Optional[GumConfig] = None) -> None:
        """Save configuration to disk.

        Args:
            config: Configuration to save. If None, saves current config.
        """
        if config:
            self._config = config

        if not self._config:
            raise ValueError("No configuration to save")

        # Ensure config directory exists
        self.config_dir.mkdir(parents=True, exist_ok=True)

        with open(self.config_path, "w") as f:
            toml.dump(self._config.model_dump(mode="json"), f)
