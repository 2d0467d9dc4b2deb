"""gumdb managers."""

from gumdb.managers.tracker import OperationTracker
from gumdb.managers.locker import DatabaseLocker
from gumdb.managers.cache import CacheManager, CACHE_KEYS
from gumdb.managers.migration import Migrator
from gumdb.managers.integrity import IntegrityMonitor
from gumdb.managers.refresh import RefreshManager

__all__ = [
    "OperationTracker",
    "DatabaseLocker",
    "CacheManager",
    "CACHE_KEYS",
    "Migrator",
    "IntegrityMonitor",
    "RefreshManager",
]
