"""SQLite connection management for gumdb."""

import sqlite3
from pathlib import Path
from typing import Iterator, Optional
from contextlib import contextmanager
from datetime import datetime, timezone


DEFAULT_BUSY_TIMEOUT = 30.0


# Custom datetime adapter and converter for SQLite
def adapt_datetime(dt: datetime) -> str:
    """Convert datetime to a UTC ISO 8601 string.

    Naive datetimes are taken to be UTC. A fixed precision keeps stored
    values ordered lexically, which the upserts rely on.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


def convert_datetime(val: bytes) -> datetime:
    """Convert ISO 8601 string to an aware UTC datetime."""
    dt = datetime.fromisoformat(val.decode())
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


# Register the adapter and converter
sqlite3.register_adapter(datetime, adapt_datetime)
sqlite3.register_converter("TIMESTAMP", convert_datetime)
sqlite3.register_converter("DATETIME", convert_datetime)


class DatabaseConnection:
    """Manages a SQLite database connection with WAL mode.

    The connection runs in autocommit mode; multi-statement work goes through
    :meth:`transaction`, which takes the write lock up front with
    ``BEGIN IMMEDIATE`` so concurrent writers queue on the busy timeout
    instead of failing on a stale read snapshot.
    """

    def __init__(self, path: Path, busy_timeout: float = DEFAULT_BUSY_TIMEOUT):
        """Initialize database connection.

        Args:
            path: Path to SQLite database file
            busy_timeout: Seconds to wait for another writer before failing
        """
        self.path = Path(path)
        self.busy_timeout = busy_timeout
        self._conn: Optional[sqlite3.Connection] = None
        self._connect()

    def _connect(self) -> None:
        """Establish database connection and configure WAL mode."""
        # Ensure directory exists
        self.path.parent.mkdir(parents=True, exist_ok=True)

        self._conn = sqlite3.connect(
            str(self.path),
            timeout=self.busy_timeout,
            detect_types=sqlite3.PARSE_DECLTYPES,
            isolation_level=None,
            check_same_thread=False,  # Store closes every thread's connection
        )

        # Every connection to the store file must carry identical settings
        try:
            self._conn.execute("PRAGMA journal_mode = WAL")
            self._conn.execute("PRAGMA synchronous = NORMAL")
            self._conn.execute(f"PRAGMA busy_timeout = {int(self.busy_timeout * 1000)}")
            self._conn.execute("PRAGMA foreign_keys = ON")
            self._conn.row_factory = sqlite3.Row
        except sqlite3.Error:
            self._conn.close()
            self._conn = None
            raise

    @property
    def closed(self) -> bool:
        """Whether the connection has been closed."""
        return self._conn is None

    @property
    def in_transaction(self) -> bool:
        """Whether an explicit transaction is open on this connection."""
        return self._conn is not None and self._conn.in_transaction

    def execute(self, sql: str, params: Optional[tuple] = None) -> sqlite3.Cursor:
        """Execute a SQL statement.

        Args:
            sql: SQL statement to execute
            params: Optional parameters for parameterized queries

        Returns:
            Cursor with results
        """
        if not self._conn:
            raise RuntimeError("Connection is closed")

        if params:
            return self._conn.execute(sql, params)
        return self._conn.execute(sql)

    @contextmanager
    def limited_busy_timeout(self, seconds: float) -> Iterator["DatabaseConnection"]:
        """Wait at most ``seconds`` for the write lock inside the block.

        The configured busy timeout is an upper bound and is restored on exit.
        """
        if not self._conn:
            raise RuntimeError("Connection is closed")

        limit = max(0.0, min(seconds, self.busy_timeout))
        self._conn.execute(f"PRAGMA busy_timeout = {int(limit * 1000)}")
        try:
            yield self
        finally:
            if self._conn is not None:
                self._conn.execute(f"PRAGMA busy_timeout = {int(self.busy_timeout * 1000)}")

    @contextmanager
    def transaction(self):
        """Context manager for database transactions.

        Automatically commits on success or rolls back on exception. A
        transaction opened while another is active on this connection joins
        the outer one.
        """
        if not self._conn:
            raise RuntimeError("Connection is closed")

        if self._conn.in_transaction:
            yield self
            return

        self._conn.execute("BEGIN IMMEDIATE")
        try:
            yield self
            self._conn.execute("COMMIT")
        except BaseException:
            if self._conn is not None and self._conn.in_transaction:
                self._conn.execute("ROLLBACK")
            raise

    def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def __enter__(self):
        """Enter context manager."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Exit context manager."""
        # Parameters are required by context manager protocol but not used
        _ = (exc_type, exc_val, exc_tb)
        self.close()
        return False
