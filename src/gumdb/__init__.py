"""gumdb - SQLite-backed index of projects and frecently used directories."""

from gumdb.core.store import Store
from gumdb.managers.cache import CacheManager
from gumdb.managers.migration import Migrator
from gumdb.managers.integrity import IntegrityMonitor

try:
    from importlib.metadata import version, PackageNotFoundError

    __version__ = version("gumdb")
except PackageNotFoundError:
    # Package metadata is not available when running from a source checkout
    __version__ = "0.2.0"

__all__ = ["Store", "CacheManager", "Migrator", "IntegrityMonitor", "__version__"]
