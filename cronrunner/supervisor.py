"""
Crontab supervisor: runs crontab files and reloads them when they change.

The supervisor owns the ScheduleManager for its crontabs, polls each
watched file's modification time, and reschedules a file when it has
been modified.
"""

import logging
import os
import threading
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from cronrunner.service import ScheduleManager

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 2.0


def _modified_time(path: Path) -> Optional[float]:
    try:
        return os.stat(path).st_mtime
    except OSError:
        return None


class CrontabSupervisor:
    """
    Schedules crontab files and hot-reloads them on modification.

    A changed file triggers removal of every scheduled job, from all
    files, followed by rescheduling of the changed file only.

    Example:
        supervisor = CrontabSupervisor(ScheduleManager())
        supervisor.load(["~/.cron/crontab"])
        supervisor.start()
        ...
        supervisor.stop()
    """

    def __init__(
        self,
        manager: Optional[ScheduleManager] = None,
        poll_interval: float = POLL_INTERVAL_SECONDS
    ):
        self.manager = manager or ScheduleManager()
        self.poll_interval = poll_interval
        self._mtimes: Dict[Path, Optional[float]] = {}
        self._running = False
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._poll_count = 0

    @property
    def is_running(self) -> bool:
        return self._running

    def watched_files(self) -> List[Path]:
        return list(self._mtimes)

    def watch(self, path: Union[str, Path]) -> Path:
        """Watch a file, recording its modification time on first sight."""
        path = Path(path).expanduser()
        if path not in self._mtimes:
            self._mtimes[path] = _modified_time(path)
        return path

    def load(self, paths: Iterable[Union[str, Path]]) -> List[Path]:
        """
        Schedule crontab files and watch them.

        Files that cannot be opened are logged and skipped; the remaining
        files are still loaded.

        Returns:
            The files that were loaded
        """
        loaded = []
        for path in paths:
            path = Path(path).expanduser()
            try:
                self.manager.schedule_file(path)
            except FileNotFoundError as e:
                logger.error(f"Could not load crontab {path}: {e}")
                continue
            loaded.append(self.watch(path))
        return loaded

    def check_once(self) -> List[Path]:
        """
        Poll every watched file once and reload the ones that changed.

        Returns:
            The files found modified
        """
        changed = []
        for path, last in list(self._mtimes.items()):
            current = _modified_time(path)
            if current == last:
                continue

            logger.info(f"Crontab {path.resolve()} has changed!")
            changed.append(path)
            self.manager.remove_all_jobs()
            try:
                self.manager.schedule_file(path)
            except FileNotFoundError as e:
                logger.error(f"Could not reload crontab {path}: {e}")
            self._mtimes[path] = current
        return changed

    def start(self) -> None:
        """Start the tick loop, then the watcher loop."""
        if self._running:
            return
        self.manager.start()
        self._running = True
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._poll_loop, name="crontab-watcher", daemon=True)
        self._thread.start()
        logger.info(f"Crontab watcher started for {len(self._mtimes)} file(s)")

    def stop(self, timeout: float = 1.0) -> None:
        """Stop the tick loop first, then the watcher loop."""
        if not self._running:
            return
        self.manager.stop(timeout)
        self._running = False
        self._stop_event.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)
        self._thread = None
        logger.info("Crontab watcher stopped")

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until stopped. Returns True if the supervisor has stopped."""
        return self._stop_event.wait(timeout)

    def _poll_loop(self) -> None:
        # Heartbeat every 150 polls (~5 min at 2s interval)
        heartbeat_interval = 150
        while self._running:
            try:
                self._poll_count += 1
                if self._poll_count % heartbeat_interval == 0:
                    logger.info(
                        f"Crontab watcher heartbeat: {self._poll_count} polls, "
                        f"{len(self.manager.core.active_jobs())} active job(s)"
                    )
                self.check_once()
            except Exception as e:
                logger.error(f"Crontab check failed: {e}", exc_info=True)
            self._stop_event.wait(self.poll_interval)
