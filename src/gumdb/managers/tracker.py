"""Operation tracking for the cache façade."""

import logging
import threading
from collections import defaultdict
from contextlib import contextmanager
from typing import Dict, Iterator

from gumdb.models import OperationStats

logger = logging.getLogger(__name__)


class OperationTracker:
    """Thread-safe counters of in-flight, completed and failed operations.

    Operations are started and ended only through :meth:`track`, so the
    active count for a type always returns to zero once its blocks exit.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._active: Dict[str, int] = defaultdict(int)
        self._completed: Dict[str, int] = defaultdict(int)
        self._failed: Dict[str, int] = defaultdict(int)

    @contextmanager
    def track(self, op_type: str) -> Iterator[None]:
        """Count the enclosed block as one ``op_type`` operation.

        The operation counts as failed if the block raises; the exception
        propagates unchanged.
        """
        with self._lock:
            self._active[op_type] += 1

        succeeded = False
        try:
            yield
            succeeded = True
        finally:
            with self._lock:
                self._active[op_type] -= 1
                if self._active[op_type] == 0:
                    del self._active[op_type]
                if succeeded:
                    self._completed[op_type] += 1
                else:
                    self._failed[op_type] += 1
            if not succeeded:
                logger.debug(f"Operation '{op_type}' failed")

    def get_stats(self) -> OperationStats:
        """Snapshot of the counters."""
        with self._lock:
            return OperationStats(
                active_operations=dict(self._active),
                completed_by_type=dict(self._completed),
                failed_by_type=dict(self._failed),
                completed_operations=sum(self._completed.values()),
                failed_operations=sum(self._failed.values()),
                total_active=sum(self._active.values()),
            )

    def reset(self) -> None:
        """Zero the completed and failed counters. Active operations are kept."""
        with self._lock:
            self._completed.clear()
            self._failed.clear()
