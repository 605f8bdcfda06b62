"""
Daemon scheduler for periodic sheet-to-GroupMe synchronization.

Provides a DaemonScheduler class that manages:
- Sync passes at a fixed interval, never overlapping
- A startup delay and optional network-readiness wait before the first pass
- Signal handling for graceful shutdown (SIGTERM/SIGINT)
- PID file management for daemon control
"""

from __future__ import annotations

import logging
import os
import signal
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional

from groupme_sync.sync.result import SyncResult
from groupme_sync.utils import DEFAULT_CONFIG_DIR

logger = logging.getLogger(__name__)


DEFAULT_INTERVAL = 3600  # seconds
DEFAULT_STARTUP_DELAY = 3.0  # seconds
DEFAULT_PID_FILE = DEFAULT_CONFIG_DIR / "daemon.pid"


class DaemonError(Exception):
    """Base exception for daemon-related errors."""

    pass


class PIDFileError(DaemonError):
    """Raised when PID file operations fail."""

    pass


class DaemonAlreadyRunningError(DaemonError):
    """Raised when attempting to start a daemon that is already running."""

    pass


@dataclass
class DaemonStats:
    """Counters for the passes run since the daemon started."""

    started_at: datetime = field(default_factory=datetime.now)
    sync_count: int = 0
    sync_success_count: int = 0
    sync_error_count: int = 0
    total_added: int = 0
    last_sync_at: datetime | None = None
    last_sync_success: bool = False
    last_result: SyncResult | None = None
    last_error: str | None = None


class PIDFileManager:
    """
    Manages the PID file used for duplicate prevention and `daemon stop`.
    """

    def __init__(self, pid_file: Path | None = None):
        self.pid_file = pid_file or DEFAULT_PID_FILE

    def create(self) -> None:
        """
        Write the current process ID, replacing a stale file.

        Raises:
            PIDFileError: If the PID file cannot be created.
            DaemonAlreadyRunningError: If a daemon is already running.
        """
        existing_pid = self.read()
        if existing_pid is not None:
            if self._is_process_running(existing_pid):
                raise DaemonAlreadyRunningError(
                    f"Daemon already running with PID {existing_pid}"
                )
            logger.warning(
                f"Removing stale PID file (process {existing_pid} not running)"
            )
            self.remove()

        try:
            self.pid_file.parent.mkdir(parents=True, exist_ok=True)
            pid = os.getpid()
            self.pid_file.write_text(str(pid))
            logger.debug(f"Created PID file: {self.pid_file} (PID: {pid})")
        except OSError as e:
            raise PIDFileError(f"Failed to create PID file {self.pid_file}: {e}") from e

    def read(self) -> int | None:
        """
        Read the PID from the PID file.

        Returns:
            The PID stored in the file, or None if the file doesn't exist.

        Raises:
            PIDFileError: If the PID file exists but cannot be read or parsed.
        """
        if not self.pid_file.exists():
            return None

        content = ""
        try:
            content = self.pid_file.read_text().strip()
            return int(content)
        except ValueError as e:
            raise PIDFileError(f"Invalid PID in file {self.pid_file}: {content}") from e
        except OSError as e:
            raise PIDFileError(f"Failed to read PID file {self.pid_file}: {e}") from e

    def remove(self) -> None:
        """Remove the PID file if present."""
        if not self.pid_file.exists():
            return

        try:
            self.pid_file.unlink()
            logger.debug(f"Removed PID file: {self.pid_file}")
        except OSError as e:
            raise PIDFileError(f"Failed to remove PID file {self.pid_file}: {e}") from e

    def _is_process_running(self, pid: int) -> bool:
        try:
            # Signal 0 only checks that the process exists
            os.kill(pid, 0)
            return True
        except ProcessLookupError:
            return False
        except PermissionError:
            return True


class DaemonScheduler:
    """
    Runs a sync callback repeatedly, pausing a fixed interval between
    passes, until signalled to stop.

    The loop is single-threaded and the callback blocks, so a pass never
    starts while the previous one is still running.

    Usage:
        scheduler = DaemonScheduler(interval=3600)
        scheduler.set_sync_callback(runner.run)
        scheduler.set_network_check(wait_for_network)
        scheduler.run()  # blocks until SIGTERM/SIGINT

    Attributes:
        interval: Seconds to wait after a pass finishes before the next starts
        startup_delay: Seconds to wait before the first pass
        run_immediately: Run a pass at startup instead of after one interval
        stats: Daemon statistics
    """

    def __init__(
        self,
        interval: int = DEFAULT_INTERVAL,
        pid_file: Path | None = None,
        run_immediately: bool = True,
        startup_delay: float = DEFAULT_STARTUP_DELAY,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.time,
    ):
        self.interval = interval
        self.run_immediately = run_immediately
        self.startup_delay = startup_delay
        self._pid_manager = PIDFileManager(pid_file)
        self._sync_callback: Optional[Callable[[], SyncResult]] = None
        self._network_check: Optional[Callable[[], object]] = None
        self._sleep = sleep
        self._clock = clock
        self._running = False
        self._shutdown_requested = False
        self._original_sigterm_handler: signal.Handlers | None = None  # type: ignore[assignment]
        self._original_sigint_handler: signal.Handlers | None = None  # type: ignore[assignment]
        self.stats = DaemonStats()

    @property
    def pid_file(self) -> Path:
        return self._pid_manager.pid_file

    def set_sync_callback(self, callback: Callable[[], SyncResult]) -> None:
        """
        Set the function that runs one pass.

        A pass counts as successful when its result has no errors.
        """
        self._sync_callback = callback

    def set_network_check(self, check: Callable[[], object]) -> None:
        """Set a function called once, after the startup delay, before any pass."""
        self._network_check = check

    def _setup_signal_handlers(self) -> None:
        self._original_sigterm_handler = signal.signal(  # type: ignore[assignment]
            signal.SIGTERM, self._signal_handler
        )
        self._original_sigint_handler = signal.signal(  # type: ignore[assignment]
            signal.SIGINT, self._signal_handler
        )
        logger.debug("Signal handlers installed for SIGTERM and SIGINT")

    def _restore_signal_handlers(self) -> None:
        if self._original_sigterm_handler is not None:
            signal.signal(signal.SIGTERM, self._original_sigterm_handler)
        if self._original_sigint_handler is not None:
            signal.signal(signal.SIGINT, self._original_sigint_handler)
        logger.debug("Signal handlers restored")

    def _signal_handler(self, signum: int, frame: object) -> None:
        signal_name = signal.Signals(signum).name
        logger.info(f"Received {signal_name}, initiating graceful shutdown...")
        self._shutdown_requested = True

    def _run_sync(self) -> bool:
        """
        Execute the sync callback and update statistics.

        Returns:
            True if the pass finished without errors, False otherwise.
        """
        if self._sync_callback is None:
            logger.warning("No sync callback configured, skipping sync")
            return False

        self.stats.sync_count += 1
        self.stats.last_sync_at = datetime.now()

        try:
            logger.info(f"Starting sync (cycle #{self.stats.sync_count})")
            result = self._sync_callback()
        except Exception as e:
            self.stats.sync_error_count += 1
            self.stats.last_sync_success = False
            self.stats.last_error = str(e)
            logger.error(f"Sync failed with exception: {e}")
            return False

        self.stats.last_result = result
        self.stats.total_added += result.added
        success = result.errors == 0

        if success:
            self.stats.sync_success_count += 1
            self.stats.last_sync_success = True
            self.stats.last_error = None
        else:
            self.stats.sync_error_count += 1
            self.stats.last_sync_success = False
            logger.warning(f"Sync completed with errors: {result.summary()}")

        return success

    def _sleep_interruptible(self, seconds: float) -> bool:
        """
        Sleep for the given duration, checking for shutdown every second.

        Uses wall-clock time so a pass still runs on schedule after the
        host wakes from suspend.

        Returns:
            True if sleep completed normally, False if interrupted by shutdown.
        """
        end_time = self._clock() + seconds
        while self._clock() < end_time and not self._shutdown_requested:
            remaining = end_time - self._clock()
            sleep_time = min(1.0, max(0.0, remaining))
            if sleep_time > 0:
                self._sleep(sleep_time)

        return not self._shutdown_requested

    def _prepare_first_pass(self) -> bool:
        if self.startup_delay > 0:
            logger.info(f"Waiting {self.startup_delay:g}s for network initialization...")
            if not self._sleep_interruptible(self.startup_delay):
                return False
        if self._network_check is not None:
            self._network_check()
        return not self._shutdown_requested

    def run(self) -> None:
        """
        Run the scheduler loop.

        Blocks until a shutdown signal is received. The PID file exists
        for exactly as long as the loop runs.

        Raises:
            PIDFileError: If the PID file cannot be written.
            DaemonAlreadyRunningError: If another daemon is already running.
        """
        logger.info(f"Starting daemon scheduler (interval: {self.interval}s)")

        self._pid_manager.create()
        logger.info(f"Daemon started (PID: {os.getpid()}, PID file: {self.pid_file})")

        self._setup_signal_handlers()

        self._running = True
        self._shutdown_requested = False
        self.stats = DaemonStats()

        try:
            if not self._prepare_first_pass():
                return

            if self.run_immediately:
                self._run_sync()

            while not self._shutdown_requested:
                logger.debug(f"Sleeping for {self.interval} seconds until next sync")
                if not self._sleep_interruptible(self.interval):
                    break
                self._run_sync()

        finally:
            self._running = False
            self._restore_signal_handlers()
            self._pid_manager.remove()
            logger.info(
                f"Daemon scheduler stopped after {self.stats.sync_count} sync(s)"
            )

    def stop(self) -> None:
        """Request shutdown; the loop exits at its next check."""
        logger.info("Stop requested")
        self._shutdown_requested = True

    def is_running(self) -> bool:
        return self._running

    @classmethod
    def get_running_pid(cls, pid_file: Path | None = None) -> int | None:
        """
        Get the PID of the currently running daemon.

        Returns:
            PID if a daemon is running, None otherwise.
        """
        manager = PIDFileManager(pid_file)
        pid = manager.read()

        if pid is None:
            return None

        if manager._is_process_running(pid):
            return pid

        return None

    @classmethod
    def stop_running_daemon(cls, pid_file: Path | None = None) -> bool:
        """
        Send SIGTERM to the running daemon.

        Returns:
            True if the signal was sent, False if no daemon is running.
        """
        pid = cls.get_running_pid(pid_file)

        if pid is None:
            logger.info("No running daemon found")
            return False

        try:
            os.kill(pid, signal.SIGTERM)
            logger.info(f"Sent SIGTERM to daemon (PID: {pid})")
            return True
        except ProcessLookupError:
            logger.warning(f"Daemon process {pid} not found")
            return False
        except PermissionError:
            logger.error(f"Permission denied sending signal to PID {pid}")
            return False
