"""Cache façade used by command handlers to read and replace cached entities."""

import logging
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from gumdb.core.frecency import rank_directories
from gumdb.core.store import Store
from gumdb.managers.tracker import OperationTracker
from gumdb.models import (
    CacheStats,
    DirectoryUsage,
    ExternalRepository,
    Project,
    ProjectDirectory,
)

logger = logging.getLogger(__name__)

# Public cache keys and the tables each one clears
CACHE_KEYS: Dict[str, Tuple[str, ...]] = {
    "projects": ("projects",),
    "project-dirs": ("project_dirs",),
    "dirs": ("dir_usage",),
    "github-repos": ("github_repos",),
    "all": ("projects", "project_dirs", "dir_usage", "github_repos"),
}


class CacheManager:
    """Reads and bulk replaces for projects, project dirs and directory usage.

    There is no expiry here: data is as fresh as the last replace, and an
    external scheduler decides when to refresh. Every call is counted in
    :attr:`tracker`.
    """

    def __init__(self, store: Store, tracker: Optional[OperationTracker] = None):
        """Initialize the cache manager.

        Args:
            store: Backing store
            tracker: Operation tracker, a fresh one when omitted
        """
        self.store = store
        self.tracker = tracker or OperationTracker()

    # Projects

    def get_projects(self) -> List[Project]:
        """Return every cached project."""
        with self.tracker.track("get_projects"):
            return self.store.get_projects()

    def get_similar_projects(self, target_path: str, limit: int = 10) -> List[Project]:
        """Return up to ``limit`` projects resembling the basename of ``target_path``."""
        with self.tracker.track("get_similar_projects"):
            return self.store.get_similar_projects(target_path, limit)

    def set_projects(self, projects: List[Project]) -> None:
        """Replace the cached projects with ``projects``.

        The clear and the inserts share one transaction: concurrent readers see
        either the old set or the new one, and a failure leaves the old set.
        """
        with self.tracker.track("set_projects"):
            with self.store.transaction():
                self.store.clear("projects")
                for project in projects:
                    self.store.upsert_project(project)
            logger.info(f"Cached {len(projects)} projects")

    # Project directories

    def get_project_dirs(self) -> List[ProjectDirectory]:
        """Return every cached project directory."""
        with self.tracker.track("get_project_dirs"):
            return self.store.get_project_dirs()

    def set_project_dirs(self, project_dirs: List[ProjectDirectory]) -> None:
        """Replace the cached project directories, atomically."""
        with self.tracker.track("set_project_dirs"):
            with self.store.transaction():
                self.store.clear("project_dirs")
                for project_dir in project_dirs:
                    self.store.upsert_project_dir(project_dir)
            logger.info(f"Cached {len(project_dirs)} project directories")

    # Directory usage

    def get_directory_usage(self, limit: Optional[int] = None) -> List[DirectoryUsage]:
        """Return usage records, most frequent first."""
        with self.tracker.track("get_directory_usage"):
            return self.store.get_dir_usage(limit)

    def get_ranked_directories(
        self, limit: Optional[int] = None, now: Optional[datetime] = None
    ) -> List[DirectoryUsage]:
        """Return usage records ordered by frecency score, with scores filled in."""
        with self.tracker.track("get_ranked_directories"):
            ranked = rank_directories(self.store.get_dir_usage(), now)
            return ranked[:limit] if limit is not None else ranked

    def set_directory_usage(self, usage: List[DirectoryUsage]) -> None:
        """Record one observation per entry in ``usage``.

        Unlike the project setters this is additive: known paths get their
        frequency bumped, nothing is cleared.
        """
        with self.tracker.track("set_directory_usage"):
            with self.store.transaction():
                for record in usage:
                    self.store.upsert_dir_usage(record)
            logger.debug(f"Recorded usage for {len(usage)} directories")

    # External repositories

    def get_external_repositories(self) -> List[ExternalRepository]:
        """Return every cached external repository."""
        with self.tracker.track("get_external_repositories"):
            return self.store.get_github_repos()

    def set_external_repositories(self, repos: List[ExternalRepository]) -> None:
        """Upsert external repositories by full name.

        Repositories missing from ``repos`` are kept so project links stay
        valid.
        """
        with self.tracker.track("set_external_repositories"):
            with self.store.transaction():
                for repo in repos:
                    self.store.upsert_github_repo(repo)
            logger.info(f"Cached {len(repos)} external repositories")

    # Maintenance

    def clear_cache(self, key: str) -> int:
        """Clear the tables behind cache ``key``.

        Args:
            key: One of ``projects``, ``project-dirs``, ``dirs``,
                ``github-repos`` or ``all``

        Returns:
            Number of rows deleted

        Raises:
            ValueError: If the key is unknown
        """
        if key not in CACHE_KEYS:
            raise ValueError(
                f"Unknown cache key '{key}'. Valid keys: {', '.join(CACHE_KEYS)}"
            )

        with self.tracker.track("clear_cache"):
            deleted = 0
            with self.store.transaction():
                for table in CACHE_KEYS[key]:
                    deleted += self.store.clear(table)
            logger.info(f"Cleared cache '{key}' ({deleted} rows)")
            return deleted

    def cache_stats(self) -> CacheStats:
        """Row counts of the cached entities."""
        with self.tracker.track("cache_stats"):
            return CacheStats(
                projects=self.store.count("projects"),
                project_dirs=self.store.count("project_dirs"),
                dir_usage=self.store.count("dir_usage"),
                github_repos=self.store.count("github_repos"),
                linked_projects=self.store.count("projects", "github_repo_id IS NOT NULL"),
            )
