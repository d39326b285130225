"""Cron-driven background loop that fires the ping cycle."""

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from threading import Event, Thread
from typing import Any, Protocol

from apscheduler.triggers.cron import CronTrigger

from .config import ConfigError

logger = logging.getLogger(__name__)


class Trigger(Protocol):
    """Anything that can compute the next fire time (APScheduler trigger API)."""

    def get_next_fire_time(self, previous_fire_time: datetime | None, now: datetime) -> datetime | None: ...


def build_trigger(expression: str) -> CronTrigger:
    """Build a trigger from a standard 5-field crontab expression.

    Raises:
        ConfigError: If the expression cannot be parsed.
    """
    try:
        return CronTrigger.from_crontab(expression.strip())
    except ValueError as e:
        raise ConfigError(f"Invalid schedule expression '{expression}': {e}")


class CycleScheduler:
    """Runs a job immediately and then on every tick of a trigger.

    The job runs in a single background thread, so at most one invocation
    is in flight at a time. Ticks that pass while a job is running are
    skipped. Exceptions raised by the job are logged and do not stop the
    schedule. Each job result is handed to the optional on_report callback,
    whose failures are logged the same way.

    Example:
        scheduler = CycleScheduler(job, build_trigger("*/15 * * * *"))
        scheduler.start()
        # ... later ...
        scheduler.stop()
    """

    def __init__(
        self,
        job: Callable[[], object],
        trigger: Trigger,
        stop_event: Event | None = None,
        on_report: Callable[[Any], None] | None = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            job: Callable invoked on every tick.
            trigger: Computes fire times, e.g. from build_trigger().
            stop_event: Cancellation token; setting it stops future invocations.
            on_report: Optional callback invoked with the result of each run.
        """
        self._job = job
        self._trigger = trigger
        self._stop_event = stop_event if stop_event is not None else Event()
        self._thread: Thread | None = None
        self._last_fire_time: datetime | None = None
        self._next_fire_time: datetime | None = None
        self._on_report = on_report

    @property
    def stop_event(self) -> Event:
        return self._stop_event

    @property
    def next_fire_time(self) -> datetime | None:
        """When the job fires next, or None if not scheduled."""
        return self._next_fire_time

    def start(self) -> None:
        """Start the scheduler loop in a background thread."""
        if self._thread is not None and self._thread.is_alive():
            logger.warning("Scheduler already running")
            return

        self._thread = Thread(target=self._run_loop, daemon=True, name="ping-scheduler")
        self._thread.start()
        logger.info("Scheduler started")

    def stop(self, timeout: float = 10.0) -> None:
        """Stop the scheduler loop gracefully.

        Args:
            timeout: Maximum seconds to wait for an in-flight job to finish.
        """
        self._stop_event.set()
        if self._thread is None or not self._thread.is_alive():
            return

        logger.info("Stopping scheduler...")
        self._thread.join(timeout=timeout)

        if self._thread.is_alive():
            logger.warning("Scheduler thread did not stop within timeout, abandoning current cycle")
        else:
            logger.info("Scheduler stopped")

    def is_running(self) -> bool:
        """Check if the scheduler loop is currently running."""
        return self._thread is not None and self._thread.is_alive()

    def _run_loop(self) -> None:
        """Main scheduler loop - runs in background thread."""
        logger.debug("Scheduler loop started")
        self._fire()

        while not self._stop_event.is_set():
            next_fire = self._compute_next_fire_time()
            self._next_fire_time = next_fire
            if next_fire is None:
                logger.info("Schedule has no further fire times")
                break

            logger.info("Next ping cycle at %s", next_fire.isoformat())
            wait_seconds = (next_fire - datetime.now(UTC)).total_seconds()
            if self._stop_event.wait(timeout=max(wait_seconds, 0.0)):
                break

            self._last_fire_time = next_fire
            self._fire()

        self._next_fire_time = None
        logger.debug("Scheduler loop exited")

    def _compute_next_fire_time(self) -> datetime | None:
        now = datetime.now(UTC)
        # Never fire twice for the same tick when the wait returns early.
        if self._last_fire_time is not None and now <= self._last_fire_time:
            now = self._last_fire_time + timedelta(seconds=1)
        return self._trigger.get_next_fire_time(None, now)

    def _fire(self) -> None:
        """Invoke the job once, then the report callback, logging anything they raise."""
        try:
            result = self._job()
        except Exception:
            logger.exception("Error in scheduled ping cycle")
            return

        if self._on_report is not None:
            try:
                self._on_report(result)
            except Exception:
                logger.exception("Report callback failed")
