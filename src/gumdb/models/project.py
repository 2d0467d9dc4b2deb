"""Project and project directory models."""

import os
from datetime import datetime
from typing import Any, Optional
from pydantic import Field, field_validator, model_validator

from gumdb.core.path_utils import canonical_path
from gumdb.models.base import GumTableModel, ensure_utc


class Project(GumTableModel):
    """A discovered Git working copy, keyed by its canonical path."""

    path: str = Field(description="Canonical path to the working copy")
    name: str = Field(default="", description="Display name, the path basename by default")
    remote_url: Optional[str] = Field(default=None, description="Remote URL of the checkout")
    branch: Optional[str] = Field(default=None, description="Currently checked out branch")
    last_modified: Optional[datetime] = Field(
        default=None, description="Last modification time of the working copy"
    )
    git_count: int = Field(default=0, ge=0, description="Repositories found under this path")
    github_repo_id: Optional[int] = Field(
        default=None, description="Weak reference to a github_repos row"
    )

    @field_validator("path", mode="before")
    @classmethod
    def normalize_path(cls, v: Any) -> Any:
        if isinstance(v, (str, os.PathLike)):
            return canonical_path(v)
        return v

    @field_validator("remote_url", "branch")
    @classmethod
    def empty_to_none(cls, v: Optional[str]) -> Optional[str]:
        """Legacy caches and git output use empty strings for missing values."""
        if v is None:
            return None
        v = v.strip()
        return v or None

    @field_validator("last_modified", "created_at", "updated_at")
    @classmethod
    def normalize_timestamp(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)

    @model_validator(mode="after")
    def default_name(self) -> "Project":
        if not self.name:
            # validate_assignment would re-enter this validator
            object.__setattr__(self, "name", os.path.basename(self.path) or self.path)
        return self


class ProjectDirectory(GumTableModel):
    """A directory scanned for projects."""

    path: str = Field(description="Canonical directory path")
    last_scanned: Optional[datetime] = Field(default=None, description="Time of the last scan")
    git_count: int = Field(default=0, ge=0, description="Repositories found in the last scan")

    @field_validator("path", mode="before")
    @classmethod
    def normalize_path(cls, v: Any) -> Any:
        if isinstance(v, (str, os.PathLike)):
            return canonical_path(v)
        return v

    @field_validator("last_scanned", "created_at", "updated_at")
    @classmethod
    def normalize_timestamp(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)
