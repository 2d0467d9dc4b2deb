"""Periodic integrity checking of the store."""

import logging
import threading
from typing import Callable, List, Optional

from gumdb.core.errors import StoreError
from gumdb.core.store import UNIQUE_KEYS, Store
from gumdb.models import CheckOutcome, IntegrityReport, IntegrityStats, MonitorState
from gumdb.models.base import utc_now

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 300.0


class IntegrityMonitor:
    """Runs consistency checks against a store and keeps error statistics.

    A check pass moves the monitor from ``IDLE`` to ``CHECKING`` and back to
    ``IDLE``, or to ``ERROR_RECORDED`` when any individual check failed. A
    failing check never stops the remaining ones from running.
    """

    def __init__(self, store: Store):
        self.store = store
        self._lock = threading.Lock()
        self._state = MonitorState.IDLE
        self._last_check = None
        self._check_count = 0
        self._error_count = 0
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def state(self) -> MonitorState:
        with self._lock:
            return self._state

    def _checks(self) -> List[tuple]:
        checks = [
            ("structural", self._check_structure),
            ("orphans", self._check_orphans),
        ]
        for table, column in UNIQUE_KEYS:
            checks.append((f"duplicates:{table}.{column}", self._duplicate_check(table, column)))
        checks.append(("foreign_keys", self._check_foreign_keys))
        return checks

    def perform_check(self) -> IntegrityReport:
        """Run every check once and return the report."""
        with self._lock:
            self._state = MonitorState.CHECKING
        started = utc_now()

        outcomes = []
        for name, check in self._checks():
            outcome = self._run_check(name, check)
            if not outcome.passed:
                logger.error(f"Integrity check '{name}' failed: {outcome.message}")
            outcomes.append(outcome)

        finished = utc_now()
        failures = sum(1 for outcome in outcomes if not outcome.passed)
        with self._lock:
            self._check_count += 1
            self._error_count += failures
            self._last_check = finished
            self._state = MonitorState.ERROR_RECORDED if failures else MonitorState.IDLE

        if failures:
            logger.warning(f"Integrity check finished with {failures} failing checks")
        else:
            logger.debug("Integrity check passed")
        return IntegrityReport(started_at=started, finished_at=finished, checks=outcomes)

    def _run_check(self, name: str, check: Callable[[], Optional[str]]) -> CheckOutcome:
        try:
            problem = check()
        except StoreError as e:
            return CheckOutcome(name=name, passed=False, message=str(e))
        if problem:
            return CheckOutcome(name=name, passed=False, message=problem)
        return CheckOutcome(name=name, passed=True)

    # Individual checks return None when healthy, a description otherwise

    def _check_structure(self) -> Optional[str]:
        problems = self.store.structural_check()
        return "; ".join(problems) if problems else None

    def _check_orphans(self) -> Optional[str]:
        orphans = self.store.find_orphaned_projects()
        if not orphans:
            return None
        return f"{len(orphans)} projects reference missing repositories: {', '.join(orphans[:5])}"

    def _duplicate_check(self, table: str, column: str) -> Callable[[], Optional[str]]:
        def check() -> Optional[str]:
            duplicates = self.store.find_duplicates(table, column)
            if not duplicates:
                return None
            shown = ", ".join(f"{value} (x{count})" for value, count in duplicates[:5])
            return f"{len(duplicates)} duplicate values of {table}.{column}: {shown}"

        return check

    def _check_foreign_keys(self) -> Optional[str]:
        violations = self.store.foreign_key_violations()
        return "; ".join(violations) if violations else None

    def get_stats(self) -> IntegrityStats:
        """Counters of all check passes so far.

        ``error_rate`` is failing checks per pass, 0.0 before the first pass.
        """
        with self._lock:
            error_rate = self._error_count / self._check_count if self._check_count else 0.0
            return IntegrityStats(
                last_check=self._last_check,
                check_count=self._check_count,
                error_count=self._error_count,
                error_rate=error_rate,
                is_monitoring=self.is_monitoring,
                state=self._state,
            )

    # Background monitoring

    @property
    def is_monitoring(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start_monitoring(self, interval: float = DEFAULT_INTERVAL) -> None:
        """Run :meth:`perform_check` every ``interval`` seconds on a daemon thread."""
        if interval <= 0:
            raise ValueError("interval must be positive")
        if self.is_monitoring:
            logger.debug("Integrity monitoring already running")
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._monitor_loop, args=(interval,), name="gumdb-integrity", daemon=True
        )
        self._thread.start()
        logger.info(f"Started integrity monitoring every {interval}s")

    def stop_monitoring(self, timeout: Optional[float] = None) -> None:
        """Stop background monitoring and wait for the thread to exit."""
        thread = self._thread
        if thread is None:
            return
        self._stop_event.set()
        thread.join(timeout)
        self._thread = None
        logger.info("Stopped integrity monitoring")

    def _monitor_loop(self, interval: float) -> None:
        while not self._stop_event.is_set():
            try:
                self.perform_check()
            except Exception as e:
                # Keep the monitor alive; the next pass retries
                logger.error(f"Integrity monitoring pass failed: {e}")
            self._stop_event.wait(interval)
