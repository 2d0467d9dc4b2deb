"""SQLite-backed store for projects, project directories and directory usage."""

import logging
import shutil
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from gumdb.core.connection import DatabaseConnection, DEFAULT_BUSY_TIMEOUT
from gumdb.core.errors import ConstraintViolationError, StoreError
from gumdb.core.path_utils import canonical_path
from gumdb.models import (
    DirectoryUsage,
    ExternalRepository,
    IntegrityCheckResult,
    Project,
    ProjectDirectory,
)
from gumdb.models.base import utc_now

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 2

# Tables callers may address by name through query/clear/count
TABLES = ("projects", "project_dirs", "github_repos", "dir_usage", "lock_table")

# (table, column) pairs that must be unique
UNIQUE_KEYS = (
    ("projects", "path"),
    ("project_dirs", "path"),
    ("dir_usage", "path"),
    ("github_repos", "full_name"),
)

SQLITE_HEADER = b"SQLite format 3\x00"

SCHEMA_SQL = """
    -- Repositories discovered through an external catalog
    CREATE TABLE IF NOT EXISTS github_repos (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        full_name TEXT NOT NULL UNIQUE,
        description TEXT,
        url TEXT,
        clone_url TEXT,
        ssh_url TEXT,
        language TEXT,
        stars INTEGER NOT NULL DEFAULT 0,
        forks INTEGER NOT NULL DEFAULT 0,
        is_private BOOLEAN NOT NULL DEFAULT 0,
        is_fork BOOLEAN NOT NULL DEFAULT 0,
        updated_at TIMESTAMP,
        last_discovered TIMESTAMP,
        created_at TIMESTAMP
    );

    -- Git working copies found in project directories
    CREATE TABLE IF NOT EXISTS projects (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        path TEXT NOT NULL UNIQUE,
        name TEXT NOT NULL,
        remote_url TEXT,
        branch TEXT,
        last_modified TIMESTAMP,
        git_count INTEGER NOT NULL DEFAULT 0 CHECK (git_count >= 0),
        github_repo_id INTEGER REFERENCES github_repos(id) ON DELETE SET NULL,
        created_at TIMESTAMP,
        updated_at TIMESTAMP
    );

    -- Directories that contain projects
    CREATE TABLE IF NOT EXISTS project_dirs (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        path TEXT NOT NULL UNIQUE,
        last_scanned TIMESTAMP,
        git_count INTEGER NOT NULL DEFAULT 0 CHECK (git_count >= 0),
        created_at TIMESTAMP,
        updated_at TIMESTAMP
    );

    -- Frecency bookkeeping for visited directories
    CREATE TABLE IF NOT EXISTS dir_usage (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        path TEXT NOT NULL UNIQUE,
        frequency INTEGER NOT NULL DEFAULT 1 CHECK (frequency >= 1),
        last_seen TIMESTAMP NOT NULL,
        created_at TIMESTAMP,
        updated_at TIMESTAMP
    );

    -- Advisory locks, one row per held lock
    CREATE TABLE IF NOT EXISTS lock_table (
        lock_name TEXT PRIMARY KEY,
        locked_at TIMESTAMP,
        locked_by TEXT
    );

    CREATE TABLE IF NOT EXISTS schema_info (
        id INTEGER PRIMARY KEY CHECK (id = 1),
        version INTEGER NOT NULL
    );

    CREATE INDEX IF NOT EXISTS idx_projects_name ON projects(name);
    CREATE INDEX IF NOT EXISTS idx_projects_remote ON projects(remote_url);
    CREATE INDEX IF NOT EXISTS idx_projects_updated ON projects(updated_at);

    CREATE INDEX IF NOT EXISTS idx_project_dirs_scanned ON project_dirs(last_scanned);

    CREATE INDEX IF NOT EXISTS idx_github_repos_name ON github_repos(name);
    CREATE INDEX IF NOT EXISTS idx_github_repos_clone_url ON github_repos(clone_url);

    CREATE INDEX IF NOT EXISTS idx_dir_usage_frequency ON dir_usage(frequency);
    CREATE INDEX IF NOT EXISTS idx_dir_usage_last_seen ON dir_usage(last_seen);
"""

PROJECT_COLUMNS = (
    "id, path, name, remote_url, branch, last_modified, git_count, "
    "github_repo_id, created_at, updated_at"
)


class Store:
    """Transactional persistence for the gumdb schema.

    Each thread gets its own connection to the backing file, all opened with
    the same WAL and busy-timeout settings. SQLite then admits one writer at
    a time while readers keep working from their snapshot.
    """

    def __init__(self, db_path: Union[str, Path], busy_timeout: float = DEFAULT_BUSY_TIMEOUT):
        """Open (and if needed create) the store.

        Args:
            db_path: Path to the SQLite file
            busy_timeout: Seconds a writer waits for the write lock

        Raises:
            StoreError: If the directory or the database cannot be initialized
        """
        self.db_path = Path(db_path)
        self.busy_timeout = busy_timeout
        self._local = threading.local()
        self._connections: List[DatabaseConnection] = []
        self._connections_lock = threading.Lock()

        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreError("initialize", str(e), path=self.db_path) from e

        self._initialize()

    # Connection handling

    @property
    def conn(self) -> DatabaseConnection:
        """Connection owned by the calling thread, opened on first use."""
        conn = getattr(self._local, "conn", None)
        if conn is None or conn.closed:
            with self._translate_errors("connect"):
                conn = DatabaseConnection(self.db_path, busy_timeout=self.busy_timeout)
            with self._connections_lock:
                self._connections = [c for c in self._connections if not c.closed]
                self._connections.append(conn)
            self._local.conn = conn
        return conn

    def close(self) -> None:
        """Close every connection opened by this store, across all threads."""
        with self._connections_lock:
            for conn in self._connections:
                conn.close()
            self._connections.clear()
        self._local = threading.local()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        _ = (exc_type, exc_val, exc_tb)
        self.close()
        return False

    @contextmanager
    def _translate_errors(self, operation: str, table: Optional[str] = None) -> Iterator[None]:
        """Wrap SQLite and OS errors with the operation and table involved."""
        try:
            yield
        except sqlite3.IntegrityError as e:
            raise ConstraintViolationError(operation, str(e), table=table, path=self.db_path) from e
        except (sqlite3.Error, OSError) as e:
            raise StoreError(operation, str(e), table=table, path=self.db_path) from e

    @contextmanager
    def transaction(self):
        """Run a block of store calls as one atomic transaction.

        Nested use on the same thread joins the outer transaction.
        """
        conn = self.conn
        with self._translate_errors("transaction"):
            with conn.transaction():
                yield self

    # Schema

    def _initialize(self) -> None:
        # executescript() commits implicitly, so statements run one by one
        with self._translate_errors("initialize schema"):
            with self.conn.transaction():
                for statement in _split_statements(SCHEMA_SQL):
                    self.conn.execute(statement)
                self._migrate_schema()
                # Older files only gain the column during the migration above
                self.conn.execute(
                    "CREATE INDEX IF NOT EXISTS idx_projects_github_repo ON projects(github_repo_id)"
                )

    def _column_names(self, table: str) -> List[str]:
        rows = self.conn.execute(f"PRAGMA table_info({table})").fetchall()
        return [row["name"] for row in rows]

    def _migrate_schema(self) -> None:
        """Upgrade store files written by older versions in place."""
        row = self.conn.execute("SELECT version FROM schema_info WHERE id = 1").fetchone()
        version = row["version"] if row else 0
        if version >= SCHEMA_VERSION:
            return

        project_columns = self._column_names("projects")
        if "github_repo_id" not in project_columns:
            self.conn.execute(
                "ALTER TABLE projects ADD COLUMN github_repo_id INTEGER "
                "REFERENCES github_repos(id) ON DELETE SET NULL"
            )

        repo_columns = self._column_names("github_repos")
        for column, ddl in (
            ("language", "TEXT"),
            ("stars", "INTEGER NOT NULL DEFAULT 0"),
            ("forks", "INTEGER NOT NULL DEFAULT 0"),
        ):
            if column not in repo_columns:
                self.conn.execute(f"ALTER TABLE github_repos ADD COLUMN {column} {ddl}")

        # Freshness is managed by an external scheduler; TTL bookkeeping is gone
        self.conn.execute("DROP TABLE IF EXISTS cache_metadata")

        self.conn.execute(
            "INSERT INTO schema_info (id, version) VALUES (1, ?) "
            "ON CONFLICT(id) DO UPDATE SET version = excluded.version",
            (SCHEMA_VERSION,),
        )
        if version:
            logger.info(f"Upgraded store schema from version {version} to {SCHEMA_VERSION}")

    def schema_version(self) -> int:
        """Schema version recorded in the store file."""
        with self._translate_errors("read schema version", "schema_info"):
            row = self.conn.execute("SELECT version FROM schema_info WHERE id = 1").fetchone()
        return row["version"] if row else 0

    # Upserts

    def upsert(self, entity: Union[Project, ProjectDirectory, DirectoryUsage, ExternalRepository]) -> None:
        """Insert or update an entity by its unique key.

        Raises:
            TypeError: If the entity type has no table
        """
        if isinstance(entity, Project):
            self.upsert_project(entity)
        elif isinstance(entity, ProjectDirectory):
            self.upsert_project_dir(entity)
        elif isinstance(entity, DirectoryUsage):
            self.upsert_dir_usage(entity)
        elif isinstance(entity, ExternalRepository):
            self.upsert_github_repo(entity)
        else:
            raise TypeError(f"Cannot store entity of type {type(entity).__name__}")

    def upsert_project(self, project: Project) -> None:
        """Insert or update a project by path."""
        now = utc_now()
        with self._translate_errors("upsert", "projects"):
            self.conn.execute(
                """
                INSERT INTO projects (path, name, remote_url, branch, last_modified,
                                      git_count, github_repo_id, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(path) DO UPDATE SET
                    name = excluded.name,
                    remote_url = excluded.remote_url,
                    branch = excluded.branch,
                    last_modified = excluded.last_modified,
                    git_count = excluded.git_count,
                    github_repo_id = excluded.github_repo_id,
                    updated_at = excluded.updated_at
                """,
                (
                    project.path,
                    project.name,
                    project.remote_url,
                    project.branch,
                    project.last_modified,
                    project.git_count,
                    project.github_repo_id,
                    project.created_at or now,
                    now,
                ),
            )

    def upsert_project_dir(self, project_dir: ProjectDirectory) -> None:
        """Insert or update a project directory by path."""
        now = utc_now()
        with self._translate_errors("upsert", "project_dirs"):
            self.conn.execute(
                """
                INSERT INTO project_dirs (path, last_scanned, git_count, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(path) DO UPDATE SET
                    last_scanned = excluded.last_scanned,
                    git_count = excluded.git_count,
                    updated_at = excluded.updated_at
                """,
                (
                    project_dir.path,
                    project_dir.last_scanned,
                    project_dir.git_count,
                    project_dir.created_at or now,
                    now,
                ),
            )

    def upsert_dir_usage(self, usage: DirectoryUsage) -> None:
        """Record an observation of a directory.

        New paths are stored with the record's frequency. Known paths get
        their frequency incremented by one and ``last_seen`` advanced, never
        moved backwards. A ``last_seen`` in the future is stored as the
        current time.
        """
        now = utc_now()
        last_seen = min(usage.last_seen, now)
        with self._translate_errors("upsert", "dir_usage"):
            self.conn.execute(
                """
                INSERT INTO dir_usage (path, frequency, last_seen, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(path) DO UPDATE SET
                    frequency = dir_usage.frequency + 1,
                    last_seen = MAX(dir_usage.last_seen, excluded.last_seen),
                    updated_at = excluded.updated_at
                """,
                (usage.path, usage.frequency, last_seen, usage.created_at or now, now),
            )

    def upsert_github_repo(self, repo: ExternalRepository) -> None:
        """Insert or update an external repository by full name."""
        now = utc_now()
        with self._translate_errors("upsert", "github_repos"):
            self.conn.execute(
                """
                INSERT INTO github_repos (name, full_name, description, url, clone_url, ssh_url,
                                          language, stars, forks, is_private, is_fork,
                                          updated_at, last_discovered, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(full_name) DO UPDATE SET
                    name = excluded.name,
                    description = excluded.description,
                    url = excluded.url,
                    clone_url = excluded.clone_url,
                    ssh_url = excluded.ssh_url,
                    language = excluded.language,
                    stars = excluded.stars,
                    forks = excluded.forks,
                    is_private = excluded.is_private,
                    is_fork = excluded.is_fork,
                    updated_at = excluded.updated_at,
                    last_discovered = excluded.last_discovered
                """,
                (
                    repo.name,
                    repo.full_name,
                    repo.description,
                    repo.url,
                    repo.clone_url,
                    repo.ssh_url,
                    repo.language,
                    repo.stars,
                    repo.forks,
                    repo.is_private,
                    repo.is_fork,
                    repo.updated_at,
                    repo.last_discovered or now,
                    repo.created_at or now,
                ),
            )

    # Reads

    def get_projects(self, sort_by_similarity: bool = False, target: str = "") -> List[Project]:
        """Return all projects, most recently updated first.

        Args:
            sort_by_similarity: Rank exact and partial name matches of
                ``target`` ahead of the rest
            target: Name to rank against
        """
        if sort_by_similarity and target:
            sql = f"""
                SELECT {PROJECT_COLUMNS} FROM projects
                ORDER BY
                    CASE
                        WHEN LOWER(name) = LOWER(?) THEN 0
                        WHEN LOWER(name) LIKE '%' || LOWER(?) || '%' THEN 1
                        ELSE 2
                    END,
                    updated_at DESC, path
            """
            params: Tuple = (target, target)
        else:
            sql = f"SELECT {PROJECT_COLUMNS} FROM projects ORDER BY updated_at DESC, path"
            params = ()

        with self._translate_errors("query", "projects"):
            rows = self.conn.execute(sql, params).fetchall()
        return [Project.model_validate(dict(row)) for row in rows]

    def get_project(self, path: str) -> Optional[Project]:
        """Get a project by path."""
        with self._translate_errors("query", "projects"):
            row = self.conn.execute(
                f"SELECT {PROJECT_COLUMNS} FROM projects WHERE path = ?",
                (canonical_path(path),),
            ).fetchone()
        return Project.model_validate(dict(row)) if row else None

    def get_similar_projects(self, target_path: str, limit: int = 10) -> List[Project]:
        """Return projects whose name or path contains the basename of ``target_path``."""
        target_name = target_path.rstrip("/").rsplit("/", 1)[-1]
        with self._translate_errors("query", "projects"):
            rows = self.conn.execute(
                f"""
                SELECT {PROJECT_COLUMNS} FROM projects
                WHERE LOWER(name) LIKE '%' || LOWER(?) || '%'
                   OR LOWER(path) LIKE '%' || LOWER(?) || '%'
                ORDER BY
                    CASE
                        WHEN LOWER(name) = LOWER(?) THEN 0
                        WHEN LOWER(name) LIKE '%' || LOWER(?) || '%' THEN 1
                        ELSE 2
                    END,
                    updated_at DESC
                LIMIT ?
                """,
                (target_name, target_name, target_name, target_name, limit),
            ).fetchall()
        return [Project.model_validate(dict(row)) for row in rows]

    def get_project_dirs(self) -> List[ProjectDirectory]:
        """Return all project directories ordered by path."""
        with self._translate_errors("query", "project_dirs"):
            rows = self.conn.execute(
                "SELECT id, path, last_scanned, git_count, created_at, updated_at "
                "FROM project_dirs ORDER BY path"
            ).fetchall()
        return [ProjectDirectory.model_validate(dict(row)) for row in rows]

    def get_dir_usage(self, limit: Optional[int] = None) -> List[DirectoryUsage]:
        """Return usage records, most frequent first.

        Args:
            limit: Maximum number of records, all when None
        """
        sql = (
            "SELECT id, path, frequency, last_seen, created_at, updated_at "
            "FROM dir_usage ORDER BY frequency DESC, last_seen DESC, path"
        )
        params: Tuple = ()
        if limit is not None:
            sql += " LIMIT ?"
            params = (limit,)
        with self._translate_errors("query", "dir_usage"):
            rows = self.conn.execute(sql, params).fetchall()
        return [DirectoryUsage.model_validate(dict(row)) for row in rows]

    def get_github_repos(self) -> List[ExternalRepository]:
        """Return all external repositories, most recently updated first."""
        with self._translate_errors("query", "github_repos"):
            rows = self.conn.execute(
                "SELECT * FROM github_repos ORDER BY updated_at DESC, full_name"
            ).fetchall()
        return [ExternalRepository.model_validate(dict(row)) for row in rows]

    def get_github_repo_by_clone_url(self, clone_url: str) -> Optional[ExternalRepository]:
        """Find an external repository by its clone URL."""
        with self._translate_errors("query", "github_repos"):
            row = self.conn.execute(
                "SELECT * FROM github_repos WHERE clone_url = ?", (clone_url,)
            ).fetchone()
        return ExternalRepository.model_validate(dict(row)) if row else None

    def query(self, table: str, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Return rows of ``table`` matching every equality filter.

        Args:
            table: One of :data:`TABLES`
            filters: Column to value mapping; None values match NULL

        Raises:
            ValueError: For unknown tables or columns
        """
        self._check_table(table)
        filters = filters or {}
        columns = self._column_names(table)
        clauses = []
        params = []
        for column, value in filters.items():
            if column not in columns:
                raise ValueError(f"Unknown column '{column}' for table '{table}'")
            if value is None:
                clauses.append(f"{column} IS NULL")
            else:
                clauses.append(f"{column} = ?")
                params.append(value)

        sql = f"SELECT * FROM {table}"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        with self._translate_errors("query", table):
            rows = self.conn.execute(sql, tuple(params)).fetchall()
        return [dict(row) for row in rows]

    # Deletes and counts

    def _check_table(self, table: str) -> None:
        if table not in TABLES:
            raise ValueError(f"Unknown table '{table}'. Known tables: {', '.join(TABLES)}")

    def clear(self, table: str) -> int:
        """Delete every row of ``table``.

        Returns:
            Number of rows deleted
        """
        self._check_table(table)
        with self._translate_errors("clear", table):
            cursor = self.conn.execute(f"DELETE FROM {table}")
        logger.debug(f"Cleared {cursor.rowcount} rows from {table}")
        return cursor.rowcount

    def count(self, table: str, where: Optional[str] = None) -> int:
        """Count rows of ``table``, optionally restricted by a fixed SQL condition."""
        self._check_table(table)
        sql = f"SELECT COUNT(*) FROM {table}"
        if where:
            sql += f" WHERE {where}"
        with self._translate_errors("count", table):
            return self.conn.execute(sql).fetchone()[0]

    def stats(self) -> Dict[str, int]:
        """Row counts for every data table."""
        return {table: self.count(table) for table in TABLES if table != "lock_table"}

    # Advisory lock rows

    def try_insert_lock(self, lock_name: str, owner: str, wait: Optional[float] = None) -> bool:
        """Insert the row for ``lock_name``.

        Args:
            lock_name: Lock to take
            owner: Value recorded in ``locked_by``
            wait: Seconds to wait for another writer's transaction, at most
                the store busy timeout. ``None`` waits the full busy timeout.

        Returns:
            False if the lock is already held or the write lock could not
            be obtained within ``wait``
        """
        conn = self.conn
        wait = self.busy_timeout if wait is None else wait
        try:
            with self._translate_errors("acquire lock", "lock_table"):
                with conn.limited_busy_timeout(wait):
                    conn.execute(
                        "INSERT INTO lock_table (lock_name, locked_at, locked_by) VALUES (?, ?, ?)",
                        (lock_name, utc_now(), owner),
                    )
        except ConstraintViolationError:
            return False
        except StoreError as e:
            if not _is_busy(e.__cause__):
                raise
            logger.debug(f"Store busy while acquiring lock '{lock_name}'")
            return False
        return True

    def delete_lock(self, lock_name: str, owner: Optional[str] = None) -> bool:
        """Delete the row for ``lock_name``, only if held by ``owner`` when given."""
        sql = "DELETE FROM lock_table WHERE lock_name = ?"
        params: Tuple = (lock_name,)
        if owner is not None:
            sql += " AND locked_by = ?"
            params = (lock_name, owner)
        with self._translate_errors("release lock", "lock_table"):
            cursor = self.conn.execute(sql, params)
        return cursor.rowcount > 0

    def get_lock(self, lock_name: str) -> Optional[Dict[str, Any]]:
        """Return the lock row for ``lock_name`` if held."""
        with self._translate_errors("query", "lock_table"):
            row = self.conn.execute(
                "SELECT * FROM lock_table WHERE lock_name = ?", (lock_name,)
            ).fetchone()
        return dict(row) if row else None

    # Integrity

    def structural_check(self) -> List[str]:
        """Run ``PRAGMA integrity_check``. Returns problems, empty when healthy."""
        with self._translate_errors("integrity check"):
            rows = self.conn.execute("PRAGMA integrity_check").fetchall()
        messages = [row[0] for row in rows]
        return [] if messages == ["ok"] else messages

    def foreign_key_violations(self) -> List[str]:
        """Run ``PRAGMA foreign_key_check``. Returns one description per violation."""
        with self._translate_errors("foreign key check"):
            rows = self.conn.execute("PRAGMA foreign_key_check").fetchall()
        return [f"{row[0]} rowid {row[1]} references missing {row[2]} row" for row in rows]

    def find_orphaned_projects(self) -> List[str]:
        """Paths of projects whose ``github_repo_id`` points at no repository."""
        with self._translate_errors("orphan check", "projects"):
            rows = self.conn.execute(
                """
                SELECT p.path FROM projects p
                LEFT JOIN github_repos gr ON p.github_repo_id = gr.id
                WHERE p.github_repo_id IS NOT NULL AND gr.id IS NULL
                """
            ).fetchall()
        return [row["path"] for row in rows]

    def find_duplicates(self, table: str, column: str) -> List[Tuple[str, int]]:
        """Values of ``column`` that appear more than once in ``table``."""
        if (table, column) not in UNIQUE_KEYS:
            raise ValueError(f"'{table}.{column}' is not a unique key")
        with self._translate_errors("duplicate check", table):
            rows = self.conn.execute(
                f"SELECT {column}, COUNT(*) FROM {table} GROUP BY {column} HAVING COUNT(*) > 1"
            ).fetchall()
        return [(row[0], row[1]) for row in rows]

    def integrity_check(self) -> IntegrityCheckResult:
        """Run the structural and foreign key checks."""
        problems = self.structural_check()
        if problems:
            return IntegrityCheckResult(ok=False, message="; ".join(problems))
        violations = self.foreign_key_violations()
        if violations:
            return IntegrityCheckResult(ok=False, message="; ".join(violations))
        return IntegrityCheckResult(ok=True, message="ok")

    # Backup and restore

    def checkpoint(self) -> bool:
        """Fold the WAL back into the main file.

        Returns:
            False if readers kept part of the WAL from being checkpointed
        """
        with self._translate_errors("checkpoint"):
            row = self.conn.execute("PRAGMA wal_checkpoint(TRUNCATE)").fetchone()
        return row[0] == 0

    def backup_to(self, destination: Union[str, Path]) -> Path:
        """Copy the store file byte for byte to ``destination``.

        The WAL is checkpointed first. If a concurrent reader blocks the
        checkpoint, the WAL file is copied alongside the snapshot.
        """
        destination = Path(destination)
        complete = self.checkpoint()
        with self._translate_errors("backup"):
            destination.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(self.db_path, destination)
            wal_path = Path(f"{self.db_path}-wal")
            wal_backup = Path(f"{destination}-wal")
            if not complete and wal_path.exists():
                logger.warning("WAL checkpoint incomplete, copying WAL file with the backup")
                shutil.copy2(wal_path, wal_backup)
            elif wal_backup.exists():
                wal_backup.unlink()
        logger.info(f"Backed up store to {destination}")
        return destination

    def restore_from(self, source: Union[str, Path]) -> None:
        """Replace the store file with the snapshot at ``source``.

        Every connection is closed first; threads reopen lazily on next use.
        """
        source = Path(source)
        with self._translate_errors("restore"):
            with open(source, "rb") as f:
                header = f.read(len(SQLITE_HEADER))
        if header != SQLITE_HEADER:
            raise StoreError("restore", "not a SQLite database file", path=source)

        self.close()
        with self._translate_errors("restore"):
            shutil.copy2(source, self.db_path)
            for suffix in ("-wal", "-shm"):
                target = Path(f"{self.db_path}{suffix}")
                backup = Path(f"{source}{suffix}")
                if suffix == "-wal" and backup.exists():
                    shutil.copy2(backup, target)
                elif target.exists():
                    # Stale WAL pages would be replayed over the restored file
                    target.unlink()
        self._initialize()
        logger.info(f"Restored store from {source}")


def _split_statements(script: str) -> List[str]:
    """Split a schema script on semicolons, dropping comments and blanks."""
    statements = []
    for chunk in script.split(";"):
        lines = [line for line in chunk.splitlines() if not line.strip().startswith("--")]
        statement = "\n".join(lines).strip()
        if statement:
            statements.append(statement)
    return statements


def _is_busy(error: Optional[BaseException]) -> bool:
    """Whether ``error`` is SQLite giving up on another connection's write lock."""
    if not isinstance(error, sqlite3.OperationalError):
        return False
    if getattr(error, "sqlite_errorname", None) in ("SQLITE_BUSY", "SQLITE_LOCKED"):
        return True
    message = str(error)
    return "database is locked" in message or "database is busy" in message
