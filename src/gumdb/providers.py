"""Interfaces of the collaborators that feed the cache.

Concrete implementations (filesystem scanning, ``git`` invocation, the
GitHub API, process inspection) live outside this package.
"""

from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional, Protocol, Tuple, runtime_checkable

from gumdb.models import ExternalRepository


@runtime_checkable
class DirectoryScanner(Protocol):
    """Finds Git working copies below a set of roots."""

    def find_git_roots(self, roots: Iterable[Path]) -> List[Path]:
        """Return the top-level directory of every working copy under ``roots``."""
        ...


@runtime_checkable
class MetadataProvider(Protocol):
    """Reads repository metadata of a working copy.

    Both methods return None when the value is unavailable and raise only for
    unexpected failures, which callers log and tolerate.
    """

    def remote_url(self, path: Path) -> Optional[str]:
        ...

    def current_branch(self, path: Path) -> Optional[str]:
        ...


@runtime_checkable
class LiveStateProvider(Protocol):
    """Reports the directories currently open in running processes."""

    def current_directories(self) -> List[Tuple[str, datetime]]:
        """Return ``(path, observed_at)`` pairs."""
        ...


@runtime_checkable
class ExternalCatalog(Protocol):
    """Lists repositories known to a remote hosting service."""

    def list_repositories(self) -> List[ExternalRepository]:
        ...
