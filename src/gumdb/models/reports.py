"""Report and statistics models returned by the managers."""

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional
from pydantic import Field

from gumdb.models.base import GumBaseModel


class IntegrityCheckResult(GumBaseModel):
    """Outcome of the store's built-in structural and foreign key checks."""

    ok: bool = Field(description="Whether both checks passed")
    message: str = Field(description="'ok' or a diagnostic")


class MonitorState(str, Enum):
    """Integrity monitor states."""

    IDLE = "idle"
    CHECKING = "checking"
    ERROR_RECORDED = "error_recorded"


class CheckOutcome(GumBaseModel):
    """Result of a single integrity check."""

    name: str
    passed: bool
    message: str = "ok"


class IntegrityReport(GumBaseModel):
    """Full report produced by one integrity monitor pass."""

    started_at: datetime
    finished_at: datetime
    checks: List[CheckOutcome] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(check.passed for check in self.checks)

    @property
    def failures(self) -> List[CheckOutcome]:
        return [check for check in self.checks if not check.passed]


class IntegrityStats(GumBaseModel):
    """Running statistics of an integrity monitor."""

    last_check: Optional[datetime] = None
    check_count: int = 0
    error_count: int = 0
    error_rate: float = 0.0
    is_monitoring: bool = False
    state: MonitorState = MonitorState.IDLE


class OperationStats(GumBaseModel):
    """Snapshot of the operation tracker counters."""

    active_operations: Dict[str, int] = Field(default_factory=dict)
    completed_by_type: Dict[str, int] = Field(default_factory=dict)
    failed_by_type: Dict[str, int] = Field(default_factory=dict)
    completed_operations: int = 0
    failed_operations: int = 0
    total_active: int = 0


class CacheStats(GumBaseModel):
    """Row counts of the cache tables."""

    projects: int = 0
    project_dirs: int = 0
    dir_usage: int = 0
    github_repos: int = 0
    linked_projects: int = 0
    freshness: str = Field(
        default="external",
        description="Freshness is driven by an external scheduler, never by TTLs",
    )


class FileMigrationResult(GumBaseModel):
    """Outcome of migrating one legacy cache file."""

    source: Path
    backup: Optional[Path] = None
    migrated: int = 0
    skipped: int = Field(default=0, description="Malformed records that failed validation")
    failed: int = Field(default=0, description="Valid records the store rejected")


class MigrationSummary(GumBaseModel):
    """End-of-operation summary of a legacy migration."""

    cache_dir: Path
    files: List[FileMigrationResult] = Field(default_factory=list)

    @property
    def migrated(self) -> int:
        return sum(f.migrated for f in self.files)

    @property
    def skipped(self) -> int:
        return sum(f.skipped + f.failed for f in self.files)

    @property
    def performed(self) -> bool:
        return bool(self.files)
