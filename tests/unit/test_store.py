"""Tests for the SQLite store."""

import sqlite3
import pytest
from datetime import datetime, timedelta, timezone
from pathlib import Path

from gumdb.core.errors import ConstraintViolationError, StoreError
from gumdb.core.store import SCHEMA_VERSION, Store
from gumdb.models import DirectoryUsage, ExternalRepository, Project, ProjectDirectory

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


class TestStoreInitialization:
    """Test store creation and schema setup."""

    def test_creates_parent_directory(self, temp_dir):
        db_path = temp_dir / "nested" / "deeper" / "gum.db"
        with Store(db_path):
            pass
        assert db_path.exists()

    def test_schema_tables(self, store):
        rows = store.conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table'"
        ).fetchall()
        tables = {row[0] for row in rows}
        assert {"projects", "project_dirs", "dir_usage", "github_repos", "lock_table"} <= tables
        assert "cache_metadata" not in tables

    def test_connection_settings(self, store):
        assert store.conn.execute("PRAGMA journal_mode").fetchone()[0] == "wal"
        assert store.conn.execute("PRAGMA foreign_keys").fetchone()[0] == 1
        assert store.conn.execute("PRAGMA synchronous").fetchone()[0] == 1

    def test_schema_version_recorded(self, store):
        assert store.schema_version() == SCHEMA_VERSION

    def test_reopen_is_idempotent(self, temp_dir):
        db_path = temp_dir / "gum.db"
        with Store(db_path) as first:
            first.upsert_project(Project(path="/src/app"))
        with Store(db_path) as second:
            assert [p.path for p in second.get_projects()] == ["/src/app"]

    def test_upgrades_old_schema(self, temp_dir):
        """Files written before repository links existed gain the new columns."""
        db_path = temp_dir / "old.db"
        conn = sqlite3.connect(str(db_path))
        conn.executescript(
            """
            CREATE TABLE projects (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                path TEXT NOT NULL UNIQUE,
                name TEXT NOT NULL,
                remote_url TEXT,
                branch TEXT,
                last_modified TIMESTAMP,
                git_count INTEGER NOT NULL DEFAULT 0,
                created_at TIMESTAMP,
                updated_at TIMESTAMP
            );
            CREATE TABLE github_repos (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                full_name TEXT NOT NULL UNIQUE,
                description TEXT,
                url TEXT,
                clone_url TEXT,
                ssh_url TEXT,
                is_private BOOLEAN NOT NULL DEFAULT 0,
                is_fork BOOLEAN NOT NULL DEFAULT 0,
                updated_at TIMESTAMP,
                last_discovered TIMESTAMP,
                created_at TIMESTAMP
            );
            CREATE TABLE cache_metadata (cache_key TEXT PRIMARY KEY, last_updated TIMESTAMP, ttl_seconds INTEGER);
            INSERT INTO projects (path, name) VALUES ('/src/legacy', 'legacy');
            """
        )
        conn.close()

        with Store(db_path) as store:
            project_columns = store._column_names("projects")
            repo_columns = store._column_names("github_repos")
            assert "github_repo_id" in project_columns
            assert {"language", "stars", "forks"} <= set(repo_columns)
            assert store.get_project("/src/legacy").name == "legacy"
            tables = {
                row[0]
                for row in store.conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
            }
            assert "cache_metadata" not in tables
            assert store.schema_version() == SCHEMA_VERSION

    def test_unwritable_location_raises_store_error(self, temp_dir):
        blocker = temp_dir / "file"
        blocker.write_text("not a directory")
        with pytest.raises(StoreError):
            Store(blocker / "gum.db")


class TestUpserts:
    """Test insert-or-update behaviour."""

    def test_upsert_project_is_idempotent(self, store):
        project = Project(path="/src/app", remote_url="git@host:me/app.git", branch="main")
        store.upsert_project(project)
        first = store.get_project("/src/app")

        store.upsert_project(project)
        second = store.get_project("/src/app")

        assert store.count("projects") == 1
        assert second.remote_url == first.remote_url
        assert second.branch == first.branch
        assert second.created_at == first.created_at
        assert second.updated_at >= first.updated_at

    def test_upsert_project_last_writer_wins(self, store):
        store.upsert_project(Project(path="/src/app", branch="main"))
        store.upsert_project(Project(path="/src/app", branch="feature"))

        assert store.get_project("/src/app").branch == "feature"

    def test_project_defaults(self, store):
        store.upsert_project(Project(path="~/code/tool/"))
        projects = store.get_projects()

        assert len(projects) == 1
        assert projects[0].path.endswith("/code/tool")
        assert projects[0].name == "tool"
        assert projects[0].id is not None
        assert projects[0].created_at.tzinfo is not None

    def test_upsert_project_dir(self, store):
        store.upsert_project_dir(ProjectDirectory(path="/src", last_scanned=NOW, git_count=3))
        store.upsert_project_dir(ProjectDirectory(path="/src", last_scanned=NOW, git_count=5))

        dirs = store.get_project_dirs()
        assert len(dirs) == 1
        assert dirs[0].git_count == 5
        assert dirs[0].last_scanned == NOW

    def test_dir_usage_is_additive(self, store):
        store.upsert_dir_usage(DirectoryUsage(path="/work", frequency=4, last_seen=NOW))
        store.upsert_dir_usage(DirectoryUsage(path="/work", last_seen=NOW + timedelta(hours=1)))

        usage = store.get_dir_usage()
        assert len(usage) == 1
        assert usage[0].frequency == 5
        assert usage[0].last_seen == NOW + timedelta(hours=1)

    def test_dir_usage_last_seen_never_moves_back(self, store):
        store.upsert_dir_usage(DirectoryUsage(path="/work", last_seen=NOW))
        store.upsert_dir_usage(DirectoryUsage(path="/work", last_seen=NOW - timedelta(days=1)))

        assert store.get_dir_usage()[0].last_seen == NOW

    def test_dir_usage_future_last_seen_is_clamped(self, store):
        before = datetime.now(timezone.utc)
        store.upsert_dir_usage(DirectoryUsage(path="/future", last_seen=before + timedelta(days=3)))
        after = datetime.now(timezone.utc)

        stored = store.get_dir_usage()[0].last_seen
        assert before <= stored <= after

        store.upsert_dir_usage(DirectoryUsage(path="/future", last_seen=after + timedelta(days=3)))
        usage = store.get_dir_usage()[0]
        assert usage.frequency == 2
        assert usage.last_seen <= datetime.now(timezone.utc)

    def test_dir_usage_limit(self, store):
        for i in range(5):
            store.upsert_dir_usage(DirectoryUsage(path=f"/d{i}", frequency=i + 1, last_seen=NOW))

        usage = store.get_dir_usage(limit=2)
        assert [u.path for u in usage] == ["/d4", "/d3"]

    def test_upsert_github_repo(self, store):
        repo = ExternalRepository(
            name="app", full_name="me/app", clone_url="https://github.com/me/app.git", stars=3
        )
        store.upsert_github_repo(repo)
        store.upsert_github_repo(repo.model_copy(update={"stars": 7, "is_private": True}))

        repos = store.get_github_repos()
        assert len(repos) == 1
        assert repos[0].stars == 7
        assert repos[0].is_private is True
        assert store.get_github_repo_by_clone_url("https://github.com/me/app.git").full_name == "me/app"
        assert store.get_github_repo_by_clone_url("https://nowhere") is None

    def test_upsert_dispatch(self, store):
        store.upsert(Project(path="/p"))
        store.upsert(ProjectDirectory(path="/d"))
        store.upsert(DirectoryUsage(path="/u"))
        store.upsert(ExternalRepository(name="r", full_name="me/r"))

        assert store.stats() == {
            "projects": 1,
            "project_dirs": 1,
            "github_repos": 1,
            "dir_usage": 1,
        }

    def test_upsert_unknown_type(self, store):
        with pytest.raises(TypeError):
            store.upsert({"path": "/p"})

    def test_missing_repository_reference_is_constraint_violation(self, store):
        with pytest.raises(ConstraintViolationError) as exc_info:
            store.upsert_project(Project(path="/p", github_repo_id=999))

        assert exc_info.value.table == "projects"
        assert exc_info.value.path == store.db_path
        assert isinstance(exc_info.value.__cause__, sqlite3.IntegrityError)

    def test_deleting_repository_unlinks_projects(self, store):
        store.upsert_github_repo(ExternalRepository(name="r", full_name="me/r"))
        repo_id = store.get_github_repos()[0].id
        store.upsert_project(Project(path="/p", github_repo_id=repo_id))

        store.clear("github_repos")

        assert store.get_project("/p").github_repo_id is None


class TestQueries:
    """Test read operations."""

    @pytest.fixture
    def populated(self, store):
        for path in ("/src/gum", "/src/gumdb", "/src/other", "/src/tools/gum-helper"):
            store.upsert_project(Project(path=path))
        return store

    def test_get_projects_similarity_order(self, populated):
        projects = populated.get_projects(sort_by_similarity=True, target="gum")

        assert projects[0].name == "gum"
        assert {p.name for p in projects[1:3]} == {"gumdb", "gum-helper"}
        assert projects[-1].name == "other"

    def test_get_similar_projects(self, populated):
        similar = populated.get_similar_projects("/home/me/gum", limit=10)

        assert similar[0].name == "gum"
        assert "other" not in {p.name for p in similar}

    def test_get_similar_projects_limit(self, populated):
        assert len(populated.get_similar_projects("gum", limit=1)) == 1

    def test_get_project_missing(self, store):
        assert store.get_project("/nope") is None

    def test_query_filters(self, store):
        store.upsert_project(Project(path="/a", branch="main"))
        store.upsert_project(Project(path="/b", branch="dev"))
        store.upsert_project(Project(path="/c"))

        assert [r["path"] for r in store.query("projects", {"branch": "dev"})] == ["/b"]
        assert [r["path"] for r in store.query("projects", {"branch": None})] == ["/c"]
        assert len(store.query("projects")) == 3

    def test_query_rejects_unknown_table(self, store):
        with pytest.raises(ValueError, match="Unknown table"):
            store.query("sqlite_master")

    def test_query_rejects_unknown_column(self, store):
        with pytest.raises(ValueError, match="Unknown column"):
            store.query("projects", {"path; DROP TABLE projects": 1})


class TestClearAndTransactions:
    """Test clearing tables and transactional grouping."""

    def test_clear(self, store):
        store.upsert_project(Project(path="/a"))
        store.upsert_project(Project(path="/b"))

        assert store.clear("projects") == 2
        assert store.count("projects") == 0

    def test_clear_rejects_unknown_table(self, store):
        with pytest.raises(ValueError):
            store.clear("projects; DROP TABLE dir_usage")

    def test_transaction_rolls_back(self, store):
        store.upsert_project(Project(path="/keep"))

        with pytest.raises(RuntimeError):
            with store.transaction():
                store.clear("projects")
                store.upsert_project(Project(path="/new"))
                raise RuntimeError("boom")

        assert [p.path for p in store.get_projects()] == ["/keep"]

    def test_nested_transaction_joins_outer(self, store):
        with pytest.raises(RuntimeError):
            with store.transaction():
                store.upsert_project(Project(path="/outer"))
                with store.transaction():
                    store.upsert_project(Project(path="/inner"))
                raise RuntimeError("boom")

        assert store.count("projects") == 0


class TestIntegrityAndBackup:
    """Test integrity checks, backup and restore."""

    def test_integrity_check_passes(self, store):
        store.upsert_project(Project(path="/a"))
        result = store.integrity_check()
        assert result.ok
        assert result.message == "ok"

    def test_integrity_check_reports_foreign_key_violation(self, store):
        store.conn.execute("PRAGMA foreign_keys = OFF")
        store.conn.execute("INSERT INTO projects (path, name, github_repo_id) VALUES ('/x', 'x', 42)")
        store.conn.execute("PRAGMA foreign_keys = ON")

        result = store.integrity_check()

        assert not result.ok
        assert "projects" in result.message
        assert store.find_orphaned_projects() == ["/x"]

    def test_find_duplicates_only_on_unique_keys(self, store):
        assert store.find_duplicates("projects", "path") == []
        with pytest.raises(ValueError):
            store.find_duplicates("projects", "name")

    def test_backup_and_restore(self, store, temp_dir):
        store.upsert_project(Project(path="/before"))
        backup = store.backup_to(temp_dir / "backups" / "gum.db.bak")
        assert backup.exists()
        assert backup.read_bytes()[:16] == b"SQLite format 3\x00"

        store.clear("projects")
        store.upsert_project(Project(path="/after"))

        store.restore_from(backup)

        assert [p.path for p in store.get_projects()] == ["/before"]

    def test_restore_rejects_non_database(self, store, temp_dir):
        bogus = temp_dir / "bogus.db"
        bogus.write_text("definitely not sqlite")
        store.upsert_project(Project(path="/kept"))

        with pytest.raises(StoreError, match="not a SQLite database"):
            store.restore_from(bogus)

        assert store.count("projects") == 1

    def test_restore_missing_file(self, store, temp_dir):
        with pytest.raises(StoreError):
            store.restore_from(temp_dir / "missing.db")

    def test_checkpoint(self, store):
        store.upsert_project(Project(path="/a"))
        assert store.checkpoint() is True
        assert Path(f"{store.db_path}-wal").stat().st_size == 0
