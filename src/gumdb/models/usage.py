"""Directory usage model for frecency tracking."""

import os
from datetime import datetime
from typing import Any, Optional
from pydantic import Field, field_validator

from gumdb.core.path_utils import canonical_path
from gumdb.models.base import GumTableModel, ensure_utc, utc_now


class DirectoryUsage(GumTableModel):
    """Frecency bookkeeping for a visited directory."""

    path: str = Field(description="Canonical directory path")
    frequency: int = Field(default=1, ge=1, description="Number of observations")
    last_seen: datetime = Field(default_factory=utc_now, description="Last observation time")
    score: Optional[int] = Field(
        default=None, exclude=True, description="Frecency score, computed on read"
    )

    @field_validator("path", mode="before")
    @classmethod
    def normalize_path(cls, v: Any) -> Any:
        if isinstance(v, (str, os.PathLike)):
            return canonical_path(v)
        return v

    @field_validator("last_seen", "created_at", "updated_at")
    @classmethod
    def normalize_timestamp(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)
