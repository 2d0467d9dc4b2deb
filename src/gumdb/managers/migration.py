"""Migration of the legacy JSON cache files into the store."""

import json
import logging
import shutil
from pathlib import Path
from typing import Callable, Dict, List, Optional, Type, Union

from pydantic import BaseModel, ValidationError

from gumdb.core.errors import BackupError, MigrationError, StoreError
from gumdb.core.store import Store
from gumdb.managers.locker import DatabaseLocker
from gumdb.models import (
    FileMigrationResult,
    LegacyEnvelope,
    LegacyProject,
    LegacyProjectDir,
    MigrationSummary,
)
from gumdb.models.base import utc_now

logger = logging.getLogger(__name__)

MIGRATION_LOCK = "migration"
BACKUP_DIRNAME = "backup"
PROJECTS_FILE = "projects.json"
PROJECT_DIRS_FILE = "project-dirs.json"
LEGACY_FILES = (PROJECTS_FILE, PROJECT_DIRS_FILE)


def _url_variants(url: str) -> List[str]:
    """Forms of a remote URL that identify the same repository."""
    url = url.strip().rstrip("/")
    if not url:
        return []
    if url.endswith(".git"):
        return [url, url[: -len(".git")]]
    return [url, url + ".git"]


class Migrator:
    """Imports legacy cache files and manages store backups.

    Legacy files are moved into ``<cache_dir>/backup/`` once imported, which
    both marks them as done and lets :meth:`rollback` put them back.
    """

    def __init__(self, store: Store, locker: Optional[DatabaseLocker] = None,
                 lock_timeout: Optional[float] = None):
        """Initialize the migrator.

        Args:
            store: Target store
            locker: Locker guarding migrations, one over ``store`` when omitted
            lock_timeout: Seconds to wait for another migration to finish
        """
        self.store = store
        self.locker = locker or DatabaseLocker(store)
        self.lock_timeout = lock_timeout

    def needs_migration(self, cache_dir: Union[str, Path]) -> bool:
        """Whether ``cache_dir`` still holds legacy cache files."""
        cache_dir = Path(cache_dir)
        return any((cache_dir / name).exists() for name in LEGACY_FILES)

    def migrate_from_legacy(self, cache_dir: Union[str, Path]) -> MigrationSummary:
        """Import ``projects.json`` and ``project-dirs.json`` from ``cache_dir``.

        Missing files are skipped. Records that fail validation or that the
        store rejects are counted and skipped; they never abort the file.

        Returns:
            Per-file counts of migrated and skipped records

        Raises:
            MigrationError: If a file cannot be read or is not a cache envelope;
                the file is left where it was
            LockTimeoutError: If another migration holds the lock
        """
        cache_dir = Path(cache_dir)
        summary = MigrationSummary(cache_dir=cache_dir)

        with self.locker.lock(MIGRATION_LOCK, self.lock_timeout):
            plan = (
                (PROJECTS_FILE, LegacyProject, lambda r: self.store.upsert_project(r.to_project())),
                (PROJECT_DIRS_FILE, LegacyProjectDir,
                 lambda r: self.store.upsert_project_dir(r.to_project_dir())),
            )
            for filename, record_model, store_record in plan:
                source = cache_dir / filename
                if not source.exists():
                    logger.debug(f"No legacy file {source}, nothing to migrate")
                    continue
                summary.files.append(self._migrate_file(source, record_model, store_record))

        if summary.performed:
            logger.info(
                f"Migrated {summary.migrated} records from {cache_dir} "
                f"({summary.skipped} skipped)"
            )
        return summary

    def _read_envelope(self, source: Path) -> LegacyEnvelope:
        try:
            with open(source, "r") as f:
                raw = json.load(f)
        except (OSError, UnicodeDecodeError) as e:
            raise MigrationError(f"Cannot read legacy cache file {source}: {e}", path=source) from e
        except json.JSONDecodeError as e:
            raise MigrationError(f"Invalid JSON in legacy cache file {source}: {e}", path=source) from e

        try:
            return LegacyEnvelope.model_validate(raw)
        except ValidationError as e:
            raise MigrationError(
                f"Legacy cache file {source} is not a cache envelope: {e}", path=source
            ) from e

    def _migrate_file(
        self,
        source: Path,
        record_model: Type[BaseModel],
        store_record: Callable[[BaseModel], None],
    ) -> FileMigrationResult:
        envelope = self._read_envelope(source)
        result = FileMigrationResult(source=source)

        for index, item in enumerate(envelope.data):
            try:
                record = record_model.model_validate(item)
            except ValidationError as e:
                logger.warning(f"Skipping malformed record {index} in {source.name}: {e}")
                result.skipped += 1
                continue

            try:
                store_record(record)
            except (StoreError, ValidationError) as e:
                logger.error(f"Failed to store record {index} from {source.name}: {e}")
                result.failed += 1
                continue
            result.migrated += 1

        backup_dir = source.parent / BACKUP_DIRNAME
        backup = backup_dir / source.name
        try:
            backup_dir.mkdir(parents=True, exist_ok=True)
            if backup.exists():
                kept = backup.with_name(f"{backup.name}.{utc_now().strftime('%Y%m%dT%H%M%S%f')}")
                logger.warning(f"{backup} is left from an earlier migration, keeping it as {kept.name}")
                backup.rename(kept)
            shutil.move(str(source), str(backup))
        except OSError as e:
            raise MigrationError(f"Failed to move {source} to {backup}: {e}", path=source) from e
        result.backup = backup

        logger.info(
            f"Migrated {result.migrated} records from {source.name} "
            f"({result.skipped} malformed, {result.failed} failed)"
        )
        return result

    def link_external_metadata(self) -> int:
        """Point projects at the external repositories their remotes clone.

        A project matches a repository when its remote URL equals the
        repository's clone or SSH URL, with or without a ``.git`` suffix.

        Returns:
            Number of projects linked
        """
        url_map: Dict[str, int] = {}
        for repo in self.store.get_github_repos():
            for url in (repo.clone_url, repo.ssh_url, repo.url):
                if url:
                    for variant in _url_variants(url):
                        url_map.setdefault(variant, repo.id)

        linked = 0
        with self.store.transaction():
            for project in self.store.get_projects():
                if not project.remote_url:
                    continue
                repo_id = next(
                    (url_map[v] for v in _url_variants(project.remote_url) if v in url_map),
                    None,
                )
                if repo_id is None:
                    continue
                if project.github_repo_id != repo_id:
                    project.github_repo_id = repo_id
                    self.store.upsert_project(project)
                linked += 1

        logger.info(f"Linked {linked} projects to external repositories")
        return linked

    def rollback(self, cache_dir: Union[str, Path]) -> None:
        """Undo a migration.

        Moves the backed-up legacy files back into ``cache_dir`` and clears
        the projects and project directories the migration filled.

        Raises:
            MigrationError: If a backed-up file cannot be moved back or the
                tables cannot be cleared
        """
        cache_dir = Path(cache_dir)
        backup_dir = cache_dir / BACKUP_DIRNAME

        with self.locker.lock(MIGRATION_LOCK, self.lock_timeout):
            for filename in LEGACY_FILES:
                backup = backup_dir / filename
                if not backup.exists():
                    continue
                target = cache_dir / filename
                try:
                    shutil.move(str(backup), str(target))
                except OSError as e:
                    raise MigrationError(
                        f"Failed to restore {backup} to {target}: {e}", path=backup
                    ) from e
                logger.info(f"Restored {target} from backup")

            try:
                with self.store.transaction():
                    self.store.clear("projects")
                    self.store.clear("project_dirs")
            except StoreError as e:
                raise MigrationError(
                    f"Failed to clear migrated tables: {e}", path=self.store.db_path
                ) from e

            if backup_dir.is_dir() and not any(backup_dir.iterdir()):
                backup_dir.rmdir()

        logger.info("Migration rolled back")

    def backup(self, path: Union[str, Path]) -> Path:
        """Copy the store file to ``path``.

        Raises:
            BackupError: If the copy fails
        """
        path = Path(path)
        try:
            return self.store.backup_to(path)
        except StoreError as e:
            raise BackupError(f"Failed to back up store to {path}: {e.detail}", path=path) from e

    def restore(self, path: Union[str, Path]) -> None:
        """Replace the store file with the backup at ``path``.

        Raises:
            BackupError: If the backup is missing, unreadable or not a store file
        """
        path = Path(path)
        if not path.is_file():
            raise BackupError(f"Backup file {path} does not exist", path=path)
        try:
            self.store.restore_from(path)
        except StoreError as e:
            raise BackupError(f"Failed to restore store from {path}: {e.detail}", path=path) from e
