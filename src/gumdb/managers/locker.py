"""Advisory, cross-process named locks stored as rows in the store."""

import logging
import os
import socket
import threading
import time
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional, TypeVar

from gumdb.core.errors import LockTimeoutError
from gumdb.core.store import Store

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_LOCK_TIMEOUT = 30.0
INITIAL_BACKOFF = 0.01
MAX_BACKOFF = 0.1


def lock_owner() -> str:
    """Identity written to ``lock_table.locked_by`` for the calling thread."""
    return f"{socket.gethostname()}:{os.getpid()}:{threading.get_ident()}"


class DatabaseLocker:
    """Named mutual exclusion across threads and processes sharing a store.

    A lock is held while its row exists in ``lock_table``. The primary key
    makes acquisition an atomic insert; contenders retry with exponential
    backoff until their timeout runs out.
    """

    def __init__(self, store: Store, default_timeout: float = DEFAULT_LOCK_TIMEOUT):
        self.store = store
        self.default_timeout = default_timeout

    def acquire(self, lock_name: str, timeout: Optional[float] = None) -> str:
        """Acquire ``lock_name``, waiting at most ``timeout`` seconds.

        Returns:
            The owner string the lock was taken under

        Raises:
            LockTimeoutError: If the lock is still held when the timeout expires
        """
        timeout = self.default_timeout if timeout is None else timeout
        owner = lock_owner()
        deadline = time.monotonic() + timeout
        backoff = INITIAL_BACKOFF

        while True:
            # Each attempt waits on a busy store no longer than the time left
            wait = max(deadline - time.monotonic(), 0.0)
            if self.store.try_insert_lock(lock_name, owner, wait=wait):
                logger.debug(f"Acquired lock '{lock_name}' as {owner}")
                return owner

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                holder = self.store.get_lock(lock_name)
                held_by = holder["locked_by"] if holder else "unknown"
                logger.warning(f"Timed out waiting for lock '{lock_name}' held by {held_by}")
                raise LockTimeoutError(lock_name, timeout)

            time.sleep(min(backoff, remaining))
            backoff = min(backoff * 2, MAX_BACKOFF)

    def release(self, lock_name: str, owner: str) -> None:
        """Release ``lock_name`` if ``owner`` still holds it."""
        if not self.store.delete_lock(lock_name, owner):
            logger.warning(f"Lock '{lock_name}' was not held by {owner} at release")
        else:
            logger.debug(f"Released lock '{lock_name}'")

    @contextmanager
    def lock(self, lock_name: str, timeout: Optional[float] = None) -> Iterator[None]:
        """Hold ``lock_name`` for the duration of the block."""
        owner = self.acquire(lock_name, timeout)
        try:
            yield
        finally:
            self.release(lock_name, owner)

    def with_lock(
        self, lock_name: str, timeout: Optional[float], fn: Callable[..., T], *args: Any, **kwargs: Any
    ) -> T:
        """Run ``fn`` while holding ``lock_name`` and return its result.

        The lock is released whether ``fn`` returns or raises.
        """
        with self.lock(lock_name, timeout):
            return fn(*args, **kwargs)

    def is_locked(self, lock_name: str) -> bool:
        """Whether any owner currently holds ``lock_name``."""
        return self.store.get_lock(lock_name) is not None

    def force_release(self, lock_name: str) -> bool:
        """Remove ``lock_name`` regardless of owner.

        Meant for locks left behind by a crashed process.

        Returns:
            Whether a lock row was removed
        """
        removed = self.store.delete_lock(lock_name)
        if removed:
            logger.warning(f"Force-released lock '{lock_name}'")
        return removed
