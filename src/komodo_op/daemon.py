"""
komodo-op daemon — keep Komodo in step with 1Password on a timer.

Runs one sync immediately, then one per interval, in a single thread.
A cycle never starts while another is still running. SIGINT/SIGTERM
stop the loop once the in-flight cycle has finished; per-cycle errors
are logged and never end the process.
"""

from __future__ import annotations

import logging
import signal
import threading
from datetime import datetime, timezone
from typing import Optional

from .models import SyncReport
from .synchronizer import Synchronizer


class DaemonState:
    """Running totals across sync cycles."""

    def __init__(self) -> None:
        self.started_at: Optional[datetime] = None
        self.last_run: Optional[datetime] = None
        self.last_report: Optional[SyncReport] = None
        self.runs_completed: int = 0
        self.failed_runs: int = 0
        self.running: bool = False

    def record_run(self, report: SyncReport) -> None:
        """Record the outcome of one sync cycle."""
        self.last_run = datetime.now(timezone.utc)
        self.last_report = report
        self.runs_completed += 1
        if not report.ok:
            self.failed_runs += 1

    def snapshot(self) -> dict:
        """Serializable view of the daemon state."""
        return {
            "running": self.running,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "last_run": self.last_run.isoformat() if self.last_run else None,
            "runs_completed": self.runs_completed,
            "failed_runs": self.failed_runs,
            "last_errors": self.last_report.total_errors if self.last_report else None,
        }


def run_once(synchronizer: Synchronizer, logger: Optional[logging.Logger] = None) -> SyncReport:
    """Run a single sync and log the outcome.

    Args:
        synchronizer: Configured synchronizer.
        logger: Where to log the outcome.

    Returns:
        The run report; the caller maps ``total_errors`` to an exit code.
    """
    log = logger or logging.getLogger(__name__)
    log.info("Starting one-off sync...")
    report = synchronizer.run()
    if report.ok:
        log.info("Synchronization completed successfully.")
    else:
        log.error("Synchronization completed with %d errors.", report.total_errors)
    return report


class SyncDaemon:
    """Repeat synchronizer runs every ``interval`` seconds until stopped.

    Args:
        synchronizer: Configured synchronizer.
        interval: Seconds between the end of one cycle and the next.
        logger: Logger for cycle outcomes.
    """

    def __init__(
        self,
        synchronizer: Synchronizer,
        interval: float,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if interval <= 0:
            raise ValueError("Sync interval must be positive.")
        self.synchronizer = synchronizer
        self.interval = interval
        self.log = logger or logging.getLogger(__name__)
        self.state = DaemonState()
        self._stop_event = threading.Event()

    def run_cycle(self, label: str = "Periodic") -> Optional[SyncReport]:
        """Run one sync, never letting an exception escape the loop."""
        self.log.info("%s sync triggered...", label)
        try:
            report = self.synchronizer.run()
        except Exception as exc:
            self.log.exception("%s sync aborted: %s", label, exc)
            self.state.failed_runs += 1
            return None

        self.state.record_run(report)
        if report.ok:
            self.log.info("%s sync completed successfully.", label)
        else:
            self.log.error("%s sync completed with %d errors.", label, report.total_errors)
        return report

    def run_forever(self, install_signals: bool = True) -> None:
        """Block, syncing once now and then every interval, until stopped."""
        if install_signals:
            self._setup_signals()

        self.state.running = True
        self.state.started_at = datetime.now(timezone.utc)
        self.log.info("Starting daemon mode with sync interval: %gs", self.interval)

        try:
            self.run_cycle("Initial")
            while not self._stop_event.wait(timeout=self.interval):
                self.run_cycle("Periodic")
        except KeyboardInterrupt:
            pass
        finally:
            self.state.running = False
            self.log.info("Daemon stopped after %d runs.", self.state.runs_completed)

    def stop(self) -> None:
        """Ask the loop to exit after the current cycle."""
        self._stop_event.set()

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def _setup_signals(self) -> None:
        """Register signal handlers for graceful shutdown."""
        for sig in (signal.SIGTERM, signal.SIGINT):
            signal.signal(sig, self._handle_signal)

    def _handle_signal(self, signum, frame):
        """Handle shutdown signals."""
        self.log.info("Received signal %s. Exiting daemon mode...", signal.Signals(signum).name)
        self._stop_event.set()
