"""Models for the legacy JSON cache files.

The old file-based cache wrote one envelope per cache key:
``{"data": [...], "timestamp": "...", "ttl": ...}``. Record fields use the
capitalized names of the old writer.
"""

import re
from datetime import datetime
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from gumdb.models.project import Project, ProjectDirectory


# Go's RFC 3339 output carries nanoseconds; Python stops at microseconds
_EXCESS_FRACTION = re.compile(r"(\.\d{6})\d+")


def _trim_fraction(v: Any) -> Any:
    if isinstance(v, str):
        return _EXCESS_FRACTION.sub(r"\1", v)
    return v


class LegacyEnvelope(BaseModel):
    """Wrapper written around every legacy cache payload."""

    model_config = ConfigDict(extra="ignore")

    data: list = Field(description="Cached records")
    timestamp: Optional[datetime] = None
    ttl: Optional[int] = None

    @field_validator("timestamp", mode="before")
    @classmethod
    def trim_timestamp(cls, v: Any) -> Any:
        return _trim_fraction(v)


class LegacyProject(BaseModel):
    """A record of the legacy ``projects.json`` cache."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    path: str = Field(alias="Path", min_length=1)
    remote: Optional[str] = Field(default=None, alias="Remote")
    branch: Optional[str] = Field(default=None, alias="Branch")

    def to_project(self) -> Project:
        return Project(path=self.path, remote_url=self.remote, branch=self.branch)


class LegacyProjectDir(BaseModel):
    """A record of the legacy ``project-dirs.json`` cache."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    path: str = Field(alias="Path", min_length=1)
    last_scanned: Optional[datetime] = Field(default=None, alias="LastScanned")
    git_count: int = Field(default=0, ge=0, alias="GitCount")

    @field_validator("last_scanned", mode="before")
    @classmethod
    def trim_last_scanned(cls, v: Any) -> Any:
        return _trim_fraction(v)

    def to_project_dir(self) -> ProjectDirectory:
        return ProjectDirectory(
            path=self.path, last_scanned=self.last_scanned, git_count=self.git_count
        )
