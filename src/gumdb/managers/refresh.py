"""Refresh of cached entities from the collaborator providers."""

import logging
import os
from collections import Counter
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional

from gumdb.core.frecency import merge_live_observations
from gumdb.core.path_utils import canonical_path
from gumdb.managers.cache import CacheManager
from gumdb.models import DirectoryUsage, Project, ProjectDirectory
from gumdb.models.base import utc_now
from gumdb.providers import (
    DirectoryScanner,
    ExternalCatalog,
    LiveStateProvider,
    MetadataProvider,
)

logger = logging.getLogger(__name__)


class RefreshManager:
    """Rebuilds cache contents from scanners and metadata providers.

    Called by an external scheduler or an explicit refresh command; the cache
    itself never decides when data is stale.
    """

    def __init__(
        self,
        cache: CacheManager,
        scanner: Optional[DirectoryScanner] = None,
        metadata: Optional[MetadataProvider] = None,
        live_state: Optional[LiveStateProvider] = None,
        catalog: Optional[ExternalCatalog] = None,
    ):
        self.cache = cache
        self.scanner = scanner
        self.metadata = metadata
        self.live_state = live_state
        self.catalog = catalog

    def _require(self, provider, name: str):
        if provider is None:
            raise RuntimeError(f"No {name} configured for this refresh")
        return provider

    def _read_metadata(self, path: Path, field: str) -> Optional[str]:
        if self.metadata is None:
            return None
        try:
            return getattr(self.metadata, field)(path)
        except Exception as e:
            # Providers shell out to git; one broken checkout must not abort the scan
            logger.warning(f"Could not read {field} of {path}: {e}")
            return None

    def refresh_projects(self, roots: Iterable[Path], now: Optional[datetime] = None) -> List[Project]:
        """Scan ``roots`` and replace the cached projects and project directories.

        Links to external repositories are carried over for paths that were
        already cached.

        Returns:
            The projects written to the cache
        """
        scanner = self._require(self.scanner, "directory scanner")
        now = now or utc_now()
        roots = [Path(root) for root in roots]

        existing = {project.path: project for project in self.cache.get_projects()}
        git_roots = scanner.find_git_roots(roots)

        projects = []
        seen = set()
        for git_root in git_roots:
            path = canonical_path(git_root)
            if path in seen:
                continue
            seen.add(path)

            previous = existing.get(path)
            projects.append(
                Project(
                    path=path,
                    remote_url=self._read_metadata(Path(path), "remote_url"),
                    branch=self._read_metadata(Path(path), "current_branch"),
                    last_modified=self._mtime(Path(path)),
                    github_repo_id=previous.github_repo_id if previous else None,
                )
            )

        counts = Counter()
        for project in projects:
            for root in roots:
                root_path = canonical_path(root)
                if project.path == root_path or project.path.startswith(root_path.rstrip(os.sep) + os.sep):
                    counts[root_path] += 1
        project_dirs = [
            ProjectDirectory(path=root, last_scanned=now, git_count=counts[canonical_path(root)])
            for root in roots
        ]

        # Projects and their directories are replaced together
        with self.cache.store.transaction():
            self.cache.set_projects(projects)
            self.cache.set_project_dirs(project_dirs)
        logger.info(f"Refreshed {len(projects)} projects under {len(project_dirs)} directories")
        return projects

    @staticmethod
    def _mtime(path: Path) -> Optional[datetime]:
        try:
            return datetime.fromtimestamp(path.stat().st_mtime).astimezone()
        except OSError:
            return None

    def refresh_directory_usage(self, now: Optional[datetime] = None) -> List[DirectoryUsage]:
        """Record the live directories as one observation each.

        Returns:
            The merged usage history, ranked by frecency
        """
        live_state = self._require(self.live_state, "live-state provider")
        now = now or utc_now()

        live = list(live_state.current_directories())
        history = self.cache.get_directory_usage()
        merged = merge_live_observations(history, live, now)

        live_paths = set()
        observations = []
        for path, _observed_at in live:
            try:
                path = canonical_path(path)
            except ValueError:
                continue
            if path not in live_paths:
                live_paths.add(path)
                observations.append(DirectoryUsage(path=path, frequency=1, last_seen=now))

        self.cache.set_directory_usage(observations)
        logger.info(f"Recorded {len(observations)} live directories")
        return merged

    def refresh_external_repositories(self) -> int:
        """Fetch the catalog and upsert every repository.

        Returns:
            Number of repositories cached
        """
        catalog = self._require(self.catalog, "external catalog")
        repos = catalog.list_repositories()
        self.cache.set_external_repositories(repos)
        return len(repos)
