"""
Schedule manager: the public face of the scheduler.

Parses schedules, hands jobs to the SchedulerCore and remembers which
jobs came from which crontab file so a file's jobs can be removed as
a group.
"""

import logging
import threading
from pathlib import Path
from typing import Dict, List, Optional, Union

from cronrunner.core import SchedulerCore
from cronrunner.jobs import CommandAction, NotExecutableError, validate_executable
from cronrunner.models import Action, Job, TimeSpec
from cronrunner.parser import parse_crontab_file, parse_expression

logger = logging.getLogger(__name__)


class ScheduleManager:
    """
    Schedules jobs from cron expressions and crontab files.

    Example:
        manager = ScheduleManager()
        manager.schedule_job("0,10,20,30,40,50 * * 9 0", my_action)
        manager.schedule_file("~/.cron/crontab")
        manager.start()
    """

    def __init__(
        self,
        core: Optional[SchedulerCore] = None,
        job_timeout: Optional[int] = None,
        max_workers: int = 4
    ):
        """
        Initialize schedule manager.

        Args:
            core: Scheduler core to use (a new one is created if not given)
            job_timeout: Timeout in seconds for commands from crontab files
            max_workers: Worker count for a newly created core
        """
        self.core = core or SchedulerCore(max_workers=max_workers)
        self.job_timeout = job_timeout
        self._file_jobs: Dict[Path, List[Job]] = {}
        self._lock = threading.Lock()

    def schedule_job(self, expression: str, action: Action) -> Job:
        """
        Schedule an action on a cron expression.

        Raises:
            ParseError: If the expression is not valid cron syntax
        """
        spec = parse_expression(expression)
        job = self.core.add_job(action, spec)
        logger.info(f"Scheduled {action.title()} at '{spec}'")
        return job

    def schedule_file(self, path: Union[str, Path]) -> List[Job]:
        """
        Schedule every valid job line of a crontab file.

        Lines that fail to parse, or whose command is not an executable
        file, are logged and skipped.

        Returns:
            The jobs scheduled from this file

        Raises:
            FileNotFoundError: If the file cannot be opened
        """
        path = Path(path).expanduser()
        entries = parse_crontab_file(path)

        jobs: List[Job] = []
        for entry in entries:
            try:
                validate_executable(entry.command)
                action = CommandAction(entry.command, timeout=self.job_timeout)
            except NotExecutableError as e:
                logger.error(f"{path}:{entry.line_number}: {e} - skipping job")
                continue

            jobs.append(self.core.add_job(action, entry.spec))
            logger.info(f"Scheduled {action.title()} at '{entry.spec}' from {path}")

        with self._lock:
            if jobs:
                self._file_jobs[path] = jobs
            else:
                self._file_jobs.pop(path, None)

        logger.info(f"Scheduled {len(jobs)} of {len(entries)} job(s) from {path}")
        return jobs

    def remove_job(self, action: Action, spec: TimeSpec) -> None:
        """Remove the job with exactly this action and schedule."""
        self.core.remove_job(action, spec)

    def remove_file(self, path: Union[str, Path]) -> int:
        """
        Remove the jobs scheduled from a crontab file.

        Returns:
            Number of jobs staged for removal
        """
        path = Path(path).expanduser()
        with self._lock:
            jobs = self._file_jobs.pop(path, [])
        for job in jobs:
            self.core.remove_job(job.action, job.spec)
        if jobs:
            logger.info(f"Removing {len(jobs)} job(s) from {path}")
        return len(jobs)

    def remove_all_jobs(self) -> None:
        """Remove every job, whichever file or caller it came from."""
        self.core.remove_all_jobs()
        with self._lock:
            self._file_jobs.clear()

    def jobs_for_file(self, path: Union[str, Path]) -> List[Job]:
        with self._lock:
            return list(self._file_jobs.get(Path(path).expanduser(), []))

    def files(self) -> List[Path]:
        with self._lock:
            return list(self._file_jobs)

    def start(self) -> None:
        """Start the tick loop."""
        self.core.start()

    def stop(self, timeout: float = 1.0) -> None:
        """Stop the tick loop."""
        self.core.stop(timeout)
