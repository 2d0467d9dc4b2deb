"""Core data models for gumdb."""

from .base import GumBaseModel, GumTableModel
from .project import Project, ProjectDirectory
from .usage import DirectoryUsage
from .repository import ExternalRepository
from .legacy import LegacyEnvelope, LegacyProject, LegacyProjectDir
from .reports import (
    CacheStats,
    CheckOutcome,
    FileMigrationResult,
    IntegrityCheckResult,
    IntegrityReport,
    IntegrityStats,
    MigrationSummary,
    MonitorState,
    OperationStats,
)

__all__ = [
    "GumBaseModel",
    "GumTableModel",
    "Project",
    "ProjectDirectory",
    "DirectoryUsage",
    "ExternalRepository",
    "LegacyEnvelope",
    "LegacyProject",
    "LegacyProjectDir",
    "CacheStats",
    "CheckOutcome",
    "FileMigrationResult",
    "IntegrityCheckResult",
    "IntegrityReport",
    "IntegrityStats",
    "MigrationSummary",
    "MonitorState",
    "OperationStats",
]
