"""Default filesystem locations for gumdb."""

import os
from pathlib import Path


APP_DIRNAME = "gum"
DATABASE_FILENAME = "gum.db"
CONFIG_FILENAME = "config.toml"


def _xdg_dir(env_var: str, fallback: str) -> Path:
    base = os.environ.get(env_var)
    if base:
        return Path(base)
    return Path.home() / fallback


def get_default_cache_dir() -> Path:
    """Get the cache directory holding the store and legacy JSON caches.

    Returns:
        ``$XDG_CACHE_HOME/gum`` or ``~/.cache/gum``
    """
    return _xdg_dir("XDG_CACHE_HOME", ".cache") / APP_DIRNAME


def get_default_database_path() -> Path:
    """Get the default path of the SQLite store file."""
    return get_default_cache_dir() / DATABASE_FILENAME


def get_default_config_dir() -> Path:
    """Get the configuration directory.

    Returns:
        ``$XDG_CONFIG_HOME/gum`` or ``~/.config/gum``
    """
    return _xdg_dir("XDG_CONFIG_HOME", ".config") / APP_DIRNAME


def canonical_path(path) -> str:
    """Normalize a filesystem path into the form used as a unique key.

    Expands ``~`` and collapses redundant separators and ``..`` segments
    without touching the filesystem, so paths that no longer exist still
    normalize consistently.

    Args:
        path: Path-like or string

    Returns:
        Normalized path string
    """
    text = os.path.expanduser(str(path).strip())
    if not text:
        raise ValueError("Path must be a non-empty string")
    return os.path.normpath(text)
