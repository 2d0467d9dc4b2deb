"""Exception hierarchy for gumdb."""

from pathlib import Path
from typing import Optional, Union


class GumError(Exception):
    """Base class for all gumdb errors."""

    pass


class StoreError(GumError):
    """Raised when the store fails to read or write.

    Carries the operation, table and backing file involved so callers can
    report where a failure happened without parsing the message.
    """

    def __init__(
        self,
        operation: str,
        detail: str,
        table: Optional[str] = None,
        path: Optional[Union[str, Path]] = None,
    ):
        self.operation = operation
        self.detail = detail
        self.table = table
        self.path = Path(path) if path else None

        context = operation
        if table:
            context += f" on table '{table}'"
        if self.path:
            context += f" ({self.path})"
        super().__init__(f"Store {context} failed: {detail}")


class ConstraintViolationError(StoreError):
    """Raised when a write violates a uniqueness, check or foreign key constraint."""

    pass


class LockTimeoutError(GumError):
    """Raised when an advisory lock cannot be acquired before the timeout."""

    def __init__(self, lock_name: str, timeout: float):
        self.lock_name = lock_name
        self.timeout = timeout
        super().__init__(
            f"Failed to acquire lock '{lock_name}' within {timeout:.2f}s"
        )


class MigrationError(GumError):
    """Raised when a legacy cache migration or rollback cannot proceed."""

    def __init__(self, message: str, path: Optional[Union[str, Path]] = None):
        self.path = Path(path) if path else None
        super().__init__(message)


class BackupError(GumError):
    """Raised when backing up or restoring the store file fails."""

    def __init__(self, message: str, path: Optional[Union[str, Path]] = None):
        self.path = Path(path) if path else None
        super().__init__(message)
