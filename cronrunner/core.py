"""
The scheduler core: a once-per-second tick loop matching jobs against
wall-clock time.

Jobs may be added and removed from any thread. Changes made while the
loop is running are staged and applied in one batch at the start of the
next tick; the tick thread is the only one that merges them into the
active set. Matching happens once per minute, near second :00.
"""

import enum
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from cronrunner.models import EVERY, Action, Field, Job, TimeSpec

logger = logging.getLogger(__name__)

TICK_SECONDS = 1.0


class CoreState(enum.Enum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    STOPPED = "stopped"


def day_of_week(now: datetime) -> int:
    """Cron day of week, Sunday=0."""
    return now.isoweekday() % 7


def hour_24(now: datetime) -> int:
    """Hour of day on the 24-hour clock, from its 12-hour clock and AM/PM."""
    hour = now.hour % 12
    if now.hour >= 12:  # PM
        hour += 12
    return hour


def _field_matches(field: Field, value: int) -> bool:
    return field is EVERY or value in field


def matches(spec: TimeSpec, now: datetime, title: str = "") -> bool:
    """
    Check whether a schedule matches a point in time.

    Fields are checked right to left in the cron expression (day of
    week, month, day of month, hour, minute), stopping at the first
    field that fails.
    """
    checks = (
        ("DAYS_OF_WEEK", spec.days_of_week, day_of_week(now)),
        ("MONTHS", spec.months, now.month),
        ("DAYS_OF_MONTH", spec.days_of_month, now.day),
        ("HOURS", spec.hours, hour_24(now)),
        ("MINUTES", spec.minutes, now.minute),
    )
    for slogan, field, value in checks:
        if not _field_matches(field, value):
            if title:
                logger.debug(f"Job {title} was denied on basis of: {slogan} (now {value})")
            return False
    return True


class SchedulerCore:
    """
    Owns the tick loop and the job sets.

    Lifecycle is NOT_STARTED -> RUNNING -> STOPPED. A stopped core
    cannot be restarted; build a new one.

    Triggers run on a small worker pool so a slow action never delays
    the tick thread, and a job is not dispatched again while its
    previous trigger call is still in progress.
    """

    def __init__(
        self,
        max_workers: int = 4,
        clock: Optional[Callable[[], datetime]] = None
    ):
        """
        Initialize scheduler core.

        Args:
            max_workers: Maximum number of concurrent trigger calls
            clock: Source of the current time (default: datetime.now)
        """
        self._clock = clock or datetime.now
        self._max_workers = max_workers
        self._lock = threading.Lock()
        self._active: Dict[Job, None] = {}
        self._pending_add: Dict[Job, None] = {}
        self._pending_remove: Dict[Job, None] = {}
        self._in_flight = set()
        self._state = CoreState.NOT_STARTED
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._executor: Optional[ThreadPoolExecutor] = None
        self._last_handled: Optional[datetime] = None

    @property
    def state(self) -> CoreState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is CoreState.RUNNING

    def active_jobs(self) -> List[Job]:
        with self._lock:
            return list(self._active)

    def pending_jobs(self) -> List[Job]:
        with self._lock:
            return list(self._pending_add)

    # ------------------------------------------------------------------
    # Job management (any thread)
    # ------------------------------------------------------------------

    def add_job(self, action: Action, spec: TimeSpec) -> Job:
        """
        Add a job. It is staged for the next tick when jobs are already
        active, otherwise it goes straight into the active set.
        """
        job = Job(spec, action)
        with self._lock:
            if self._active:
                self._pending_add[job] = None
                logger.debug(f"Staged job {job.title} ({spec})")
            else:
                self._active[job] = None
                logger.debug(f"Added job {job.title} ({spec})")
        return job

    def remove_job(self, action: Action, spec: TimeSpec) -> None:
        """Stage removal of the job with this action and schedule."""
        with self._lock:
            if not self._active:
                return
            logger.info(f"Scheduling to remove job: {action.title()}")
            self._pending_remove[Job(spec, action)] = None

    def remove_all_jobs(self) -> None:
        """Stage removal of every active job and drop all staged additions."""
        with self._lock:
            if self._active:
                logger.info("Scheduling to remove ALL jobs..")
                self._pending_remove.update(self._active)
            self._pending_add.clear()

    # ------------------------------------------------------------------
    # Tick steps (tick thread)
    # ------------------------------------------------------------------

    def apply_pending(self) -> None:
        """Apply staged removals, then merge staged additions."""
        with self._lock:
            if self._pending_remove:
                for job in self._pending_remove:
                    if job in self._active:
                        logger.info(f"Removing job from actual jobs: {job.title}")
                        del self._active[job]
                    if job in self._pending_add:
                        logger.info(f"Removing job from potential jobs: {job.title}")
                        del self._pending_add[job]
                self._pending_remove.clear()

            if self._pending_add:
                logger.info(f"Adding {len(self._pending_add)} job(s)..")
                self._active.update(self._pending_add)
                self._pending_add.clear()

    def fire_due(self, now: datetime) -> List[Job]:
        """
        Trigger every active job whose schedule matches now.

        Returns:
            The matched jobs
        """
        logger.debug(
            f"Checking min-{now.minute} hour-{hour_24(now)} dayOfMon-{now.day} "
            f"mon-{now.month} dayOfWeek-{day_of_week(now)}"
        )
        matched = [
            job for job in self.active_jobs()
            if matches(job.spec, now, job.title)
        ]
        for job in matched:
            self._dispatch(job)
        return matched

    def _dispatch(self, job: Job) -> None:
        with self._lock:
            if job in self._in_flight:
                logger.warning(f"Job {job.title} is still being triggered, skipping")
                return
            self._in_flight.add(job)

        if self._executor is None:
            self._fire(job)
            return

        try:
            self._executor.submit(self._fire, job)
        except RuntimeError as e:
            # executor already shut down
            with self._lock:
                self._in_flight.discard(job)
            logger.warning(f"Could not dispatch job {job.title}: {e}")

    def _fire(self, job: Job) -> None:
        try:
            job.action.trigger()
        except Exception as e:
            logger.error(f"Job {job.title} failed to trigger: {e}", exc_info=True)
        finally:
            with self._lock:
                self._in_flight.discard(job)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the tick loop in a background thread."""
        if self._state is not CoreState.NOT_STARTED:
            raise RuntimeError(f"Scheduler core cannot start from state {self._state.value}")
        self._state = CoreState.RUNNING
        self._executor = ThreadPoolExecutor(
            max_workers=self._max_workers, thread_name_prefix="cron-trigger"
        )
        self._thread = threading.Thread(target=self._run, name="cron-tick", daemon=True)
        self._thread.start()
        logger.info(f"Scheduler core started with {len(self.active_jobs())} job(s)")

    def stop(self, timeout: float = 1.0) -> None:
        """
        Stop the tick loop. Triggered work already running is left alone.

        Args:
            timeout: Seconds to wait for the tick thread to exit
        """
        if self._state is CoreState.STOPPED:
            return
        self._state = CoreState.STOPPED
        self._stop_event.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)
        if self._executor is not None:
            self._executor.shutdown(wait=False)
        logger.info("Scheduler core stopped")

    def _sleep(self, seconds: float) -> bool:
        """Sleep unless stopped. Returns True if the loop should exit."""
        self._stop_event.wait(seconds)
        return not self.is_running

    def _run(self) -> None:
        current = self._clock()
        calibrated_sleep = 60 - current.second
        logger.info(f"Calibrated sleep is: {calibrated_sleep}s")
        current += timedelta(seconds=calibrated_sleep)
        if self._sleep(calibrated_sleep):
            return

        countdown = 60
        while self.is_running:
            countdown -= 1
            try:
                self.apply_pending()

                minute = current.replace(second=0, microsecond=0)
                if current.second == 0 and minute != self._last_handled:
                    self.fire_due(current)
                    self._last_handled = minute

                    logger.debug("Calibrating seconds..")
                    current = self._clock()
                    countdown = 60 - current.second
                else:
                    logger.debug(f"Already executed - secs to next check: {countdown}")
            except Exception as e:
                logger.error(f"Tick failed: {e}", exc_info=True)

            if self._sleep(TICK_SECONDS):
                break
            current += timedelta(seconds=TICK_SECONDS)
