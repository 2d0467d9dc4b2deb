"""Tests for legacy cache migration, rollback and store backups."""

import json
import pytest
from pathlib import Path

from gumdb.core.errors import BackupError, LockTimeoutError, MigrationError, StoreError
from gumdb.managers.locker import DatabaseLocker
from gumdb.managers.migration import MIGRATION_LOCK, Migrator
from gumdb.models import ExternalRepository, Project


def write_envelope(path: Path, data, ttl=300):
    path.write_text(
        json.dumps({"data": data, "timestamp": "2024-05-01T10:00:00.123456789Z", "ttl": ttl})
    )


class TestMigrateFromLegacy:
    """Test importing projects.json and project-dirs.json."""

    @pytest.fixture
    def cache_dir(self, temp_dir):
        path = temp_dir / "cache"
        path.mkdir()
        return path

    @pytest.fixture
    def migrator(self, store):
        return Migrator(store, lock_timeout=1.0)

    def test_no_legacy_files(self, migrator, cache_dir, store):
        assert not migrator.needs_migration(cache_dir)

        summary = migrator.migrate_from_legacy(cache_dir)

        assert not summary.performed
        assert summary.migrated == 0
        assert store.count("projects") == 0
        assert not (cache_dir / "backup").exists()

    def test_valid_and_malformed_records(self, migrator, cache_dir, store):
        """N valid records land in the store and K malformed ones are counted."""
        write_envelope(
            cache_dir / "projects.json",
            [
                {"Path": "/src/alpha", "Remote": "https://github.com/me/alpha.git", "Branch": "main"},
                {"Path": "/src/beta", "Remote": "", "Branch": ""},
                {"Path": "/src/gamma"},
                {"Remote": "https://github.com/me/nopath.git"},
                {"Path": ""},
                "not an object",
            ],
        )
        assert migrator.needs_migration(cache_dir)

        summary = migrator.migrate_from_legacy(cache_dir)

        assert summary.migrated == 3
        assert summary.skipped == 3
        assert store.count("projects") == 3
        beta = store.get_project("/src/beta")
        assert beta.name == "beta"
        assert beta.remote_url is None
        assert beta.branch is None
        assert store.get_project("/src/alpha").branch == "main"

        assert not (cache_dir / "projects.json").exists()
        assert (cache_dir / "backup" / "projects.json").exists()
        assert summary.files[0].backup == cache_dir / "backup" / "projects.json"

    def test_project_dirs(self, migrator, cache_dir, store):
        write_envelope(
            cache_dir / "project-dirs.json",
            [
                {"Path": "/src", "LastScanned": "2024-05-01T09:30:00.987654321+02:00", "GitCount": 4},
                {"Path": "/opt", "GitCount": -1},
                {"Path": "/work"},
            ],
        )

        summary = migrator.migrate_from_legacy(cache_dir)

        assert summary.migrated == 2
        assert summary.skipped == 1
        dirs = {d.path: d for d in store.get_project_dirs()}
        assert dirs["/src"].git_count == 4
        assert dirs["/src"].last_scanned.isoformat() == "2024-05-01T07:30:00.987654+00:00"
        assert dirs["/work"].last_scanned is None

    def test_both_files(self, migrator, cache_dir, store):
        write_envelope(cache_dir / "projects.json", [{"Path": "/src/a"}])
        write_envelope(cache_dir / "project-dirs.json", [{"Path": "/src"}])

        summary = migrator.migrate_from_legacy(cache_dir)

        assert [f.source.name for f in summary.files] == ["projects.json", "project-dirs.json"]
        assert summary.migrated == 2
        assert not migrator.needs_migration(cache_dir)
        # Re-running is a no-op once the files are gone
        assert not migrator.migrate_from_legacy(cache_dir).performed

    def test_store_failures_counted(self, migrator, cache_dir, store, monkeypatch):
        write_envelope(cache_dir / "projects.json", [{"Path": "/src/a"}, {"Path": "/src/b"}])
        original = store.upsert_project

        def flaky_upsert(project):
            if project.path == "/src/b":
                raise StoreError("upsert", "disk I/O error", table="projects")
            original(project)

        monkeypatch.setattr(store, "upsert_project", flaky_upsert)

        summary = migrator.migrate_from_legacy(cache_dir)

        assert summary.files[0].migrated == 1
        assert summary.files[0].failed == 1
        assert summary.skipped == 1

    def test_earlier_backup_is_kept(self, migrator, cache_dir):
        backup_dir = cache_dir / "backup"
        backup_dir.mkdir()
        (backup_dir / "projects.json").write_text("earlier copy")
        write_envelope(cache_dir / "projects.json", [{"Path": "/src/a"}])
        current = (cache_dir / "projects.json").read_bytes()

        migrator.migrate_from_legacy(cache_dir)

        assert (backup_dir / "projects.json").read_bytes() == current
        kept = [p for p in backup_dir.iterdir() if p.name.startswith("projects.json.")]
        assert len(kept) == 1
        assert kept[0].read_text() == "earlier copy"

    def test_invalid_json_leaves_file(self, migrator, cache_dir):
        source = cache_dir / "projects.json"
        source.write_text("{ not json")

        with pytest.raises(MigrationError) as exc_info:
            migrator.migrate_from_legacy(cache_dir)

        assert exc_info.value.path == source
        assert source.exists()

    def test_wrong_envelope_shape(self, migrator, cache_dir):
        (cache_dir / "projects.json").write_text(json.dumps([{"Path": "/a"}]))

        with pytest.raises(MigrationError, match="not a cache envelope"):
            migrator.migrate_from_legacy(cache_dir)

    def test_runs_under_migration_lock(self, store, cache_dir):
        write_envelope(cache_dir / "projects.json", [{"Path": "/src/a"}])
        locker = DatabaseLocker(store)
        owner = locker.acquire(MIGRATION_LOCK)

        with pytest.raises(LockTimeoutError):
            Migrator(store, locker=locker, lock_timeout=0.1).migrate_from_legacy(cache_dir)

        locker.release(MIGRATION_LOCK, owner)
        assert (cache_dir / "projects.json").exists()
        assert not locker.is_locked(MIGRATION_LOCK)


class TestRollback:
    """Test undoing a migration."""

    def test_rollback_restores_files_exactly(self, store, temp_dir):
        cache_dir = temp_dir / "cache"
        cache_dir.mkdir()
        projects_file = cache_dir / "projects.json"
        dirs_file = cache_dir / "project-dirs.json"
        write_envelope(projects_file, [{"Path": "/src/a"}, {"Path": "/src/b"}])
        write_envelope(dirs_file, [{"Path": "/src", "GitCount": 2}])
        original_projects = projects_file.read_bytes()
        original_dirs = dirs_file.read_bytes()

        migrator = Migrator(store)
        migrator.migrate_from_legacy(cache_dir)
        assert store.count("projects") == 2

        migrator.rollback(cache_dir)

        assert projects_file.read_bytes() == original_projects
        assert dirs_file.read_bytes() == original_dirs
        assert store.count("projects") == 0
        assert store.count("project_dirs") == 0
        assert not (cache_dir / "backup").exists()

    def test_rollback_keeps_unrelated_backups(self, store, temp_dir):
        cache_dir = temp_dir / "cache"
        (cache_dir / "backup").mkdir(parents=True)
        (cache_dir / "backup" / "notes.txt").write_text("keep me")

        Migrator(store).rollback(cache_dir)

        assert (cache_dir / "backup" / "notes.txt").exists()

    def test_rollback_leaves_usage_alone(self, store, temp_dir):
        from gumdb.models import DirectoryUsage

        store.upsert_dir_usage(DirectoryUsage(path="/u"))
        Migrator(store).rollback(temp_dir)
        assert store.count("dir_usage") == 1


class TestLinkExternalMetadata:
    """Test linking projects to external repositories."""

    def test_links_by_clone_and_ssh_url(self, store):
        store.upsert_github_repo(
            ExternalRepository(
                name="alpha",
                full_name="me/alpha",
                clone_url="https://github.com/me/alpha.git",
                ssh_url="git@github.com:me/alpha.git",
            )
        )
        store.upsert_github_repo(
            ExternalRepository(name="beta", full_name="me/beta", clone_url="https://github.com/me/beta.git")
        )
        store.upsert_project(Project(path="/a1", remote_url="https://github.com/me/alpha.git"))
        store.upsert_project(Project(path="/a2", remote_url="git@github.com:me/alpha.git"))
        store.upsert_project(Project(path="/b", remote_url="https://github.com/me/beta"))
        store.upsert_project(Project(path="/c", remote_url="https://gitlab.com/me/other.git"))
        store.upsert_project(Project(path="/d"))

        linked = Migrator(store).link_external_metadata()

        assert linked == 3
        ids = {r.full_name: r.id for r in store.get_github_repos()}
        assert store.get_project("/a1").github_repo_id == ids["me/alpha"]
        assert store.get_project("/a2").github_repo_id == ids["me/alpha"]
        assert store.get_project("/b").github_repo_id == ids["me/beta"]
        assert store.get_project("/c").github_repo_id is None

    def test_no_repositories(self, store):
        store.upsert_project(Project(path="/a", remote_url="https://github.com/me/a.git"))
        assert Migrator(store).link_external_metadata() == 0


class TestBackupRestore:
    """Test byte-level store backups."""

    def test_backup_then_restore(self, store, temp_dir):
        migrator = Migrator(store)
        store.upsert_project(Project(path="/before"))
        backup = migrator.backup(temp_dir / "gum.bak")

        store.upsert_project(Project(path="/after"))
        migrator.restore(backup)

        assert [p.path for p in store.get_projects()] == ["/before"]

    def test_restore_missing_backup(self, store, temp_dir):
        missing = temp_dir / "missing.bak"
        with pytest.raises(BackupError) as exc_info:
            Migrator(store).restore(missing)
        assert exc_info.value.path == missing
        assert str(missing) in str(exc_info.value)

    def test_restore_garbage(self, store, temp_dir):
        garbage = temp_dir / "garbage.bak"
        garbage.write_bytes(b"\x00" * 64)
        with pytest.raises(BackupError):
            Migrator(store).restore(garbage)

    def test_backup_to_unwritable_path(self, store, temp_dir):
        blocker = temp_dir / "blocker"
        blocker.write_text("file, not a directory")
        with pytest.raises(BackupError):
            Migrator(store).backup(blocker / "gum.bak")
