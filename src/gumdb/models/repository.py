"""External (GitHub) repository metadata model."""

from datetime import datetime
from typing import Optional
from pydantic import Field, field_validator

from gumdb.models.base import GumTableModel, ensure_utc


class ExternalRepository(GumTableModel):
    """Repository record fetched from a remote catalog.

    Projects point at these rows through ``Project.github_repo_id``; the
    reference carries no ownership, deleting a repository only unlinks the
    projects pointing at it.
    """

    name: str = Field(description="Repository name")
    full_name: str = Field(description="Owner-qualified name, unique")
    description: Optional[str] = Field(default=None, description="Repository description")
    url: Optional[str] = Field(default=None, description="Web URL")
    clone_url: Optional[str] = Field(default=None, description="HTTPS clone URL")
    ssh_url: Optional[str] = Field(default=None, description="SSH clone URL")
    language: Optional[str] = Field(default=None, description="Primary language")
    stars: int = Field(default=0, ge=0, description="Stargazer count")
    forks: int = Field(default=0, ge=0, description="Fork count")
    is_private: bool = Field(default=False, description="Whether the repository is private")
    is_fork: bool = Field(default=False, description="Whether the repository is a fork")
    last_discovered: Optional[datetime] = Field(
        default=None, description="When the catalog last reported this repository"
    )

    @field_validator("full_name")
    @classmethod
    def require_full_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("full_name must not be empty")
        return v

    @field_validator("last_discovered", "created_at", "updated_at")
    @classmethod
    def normalize_timestamp(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)
