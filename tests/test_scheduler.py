"""Tests for the scheduler module."""

import logging
import time
from datetime import UTC, datetime, timedelta
from threading import Event
from unittest.mock import MagicMock

import pytest
from apscheduler.triggers.cron import CronTrigger

from universalping.config import ConfigError
from universalping.scheduler import CycleScheduler, build_trigger


class _FastTrigger:
    """Trigger that fires every `interval` seconds."""

    def __init__(self, interval: float = 0.05) -> None:
        self.interval = interval

    def get_next_fire_time(self, previous_fire_time: datetime | None, now: datetime) -> datetime:
        return now + timedelta(seconds=self.interval)


class _OneShotTrigger:
    """Trigger with no fire times after the immediate run."""

    def get_next_fire_time(self, previous_fire_time: datetime | None, now: datetime) -> None:
        return None


def _wait_for(predicate, timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class TestBuildTrigger:
    """Tests for build_trigger function."""

    def test_builds_cron_trigger(self) -> None:
        assert isinstance(build_trigger("*/15 * * * *"), CronTrigger)

    def test_next_fire_time_follows_expression(self) -> None:
        trigger = build_trigger("*/15 * * * *")
        now = datetime(2024, 1, 1, 12, 7, 30, tzinfo=UTC)
        next_fire = trigger.get_next_fire_time(None, now)
        assert next_fire is not None
        assert next_fire > now
        assert next_fire.minute % 15 == 0
        assert next_fire - now <= timedelta(minutes=15)

    @pytest.mark.parametrize("expression", ["every 15 minutes", "* * *", "61 * * * *"])
    def test_rejects_invalid_expression(self, expression: str) -> None:
        with pytest.raises(ConfigError, match="Invalid schedule expression"):
            build_trigger(expression)


class TestCycleScheduler:
    """Tests for CycleScheduler class."""

    def test_fires_immediately_on_start(self) -> None:
        """The first invocation does not wait for a tick."""
        job = MagicMock()
        scheduler = CycleScheduler(job, build_trigger("0 0 1 1 *"))
        try:
            scheduler.start()
            assert _wait_for(lambda: job.call_count == 1)
            assert _wait_for(lambda: scheduler.next_fire_time is not None)
            assert job.call_count == 1
        finally:
            scheduler.stop()

    def test_fires_on_each_tick(self) -> None:
        job = MagicMock()
        scheduler = CycleScheduler(job, _FastTrigger())
        try:
            scheduler.start()
            assert _wait_for(lambda: job.call_count >= 3)
        finally:
            scheduler.stop()

    def test_job_error_does_not_stop_schedule(self, caplog: pytest.LogCaptureFixture) -> None:
        """An exception escaping a cycle is logged and the next tick still fires."""
        job = MagicMock(side_effect=[RuntimeError("cycle exploded"), None, None])
        scheduler = CycleScheduler(job, _FastTrigger())
        with caplog.at_level(logging.ERROR, logger="universalping.scheduler"):
            try:
                scheduler.start()
                assert _wait_for(lambda: job.call_count >= 2)
            finally:
                scheduler.stop()

        assert "Error in scheduled ping cycle" in caplog.text
        assert "cycle exploded" in caplog.text

    def test_stop_halts_invocations(self) -> None:
        job = MagicMock()
        scheduler = CycleScheduler(job, _FastTrigger())
        scheduler.start()
        assert _wait_for(lambda: job.call_count >= 1)

        scheduler.stop()

        assert not scheduler.is_running()
        calls = job.call_count
        time.sleep(0.2)
        assert job.call_count == calls

    def test_external_stop_event(self) -> None:
        """Setting the shared stop event ends the loop."""
        stop_event = Event()
        job = MagicMock()
        scheduler = CycleScheduler(job, _FastTrigger(), stop_event=stop_event)
        scheduler.start()
        assert _wait_for(lambda: job.call_count >= 1)

        stop_event.set()

        assert _wait_for(lambda: not scheduler.is_running())
        assert scheduler.stop_event is stop_event

    def test_preset_stop_event_still_runs_first_cycle_only(self) -> None:
        """A stop requested before start allows the initial run and nothing more."""
        stop_event = Event()
        stop_event.set()
        job = MagicMock()
        scheduler = CycleScheduler(job, _FastTrigger(), stop_event=stop_event)
        scheduler.start()

        assert _wait_for(lambda: not scheduler.is_running())
        assert job.call_count == 1

    def test_exhausted_trigger_ends_loop(self) -> None:
        job = MagicMock()
        scheduler = CycleScheduler(job, _OneShotTrigger())
        scheduler.start()

        assert _wait_for(lambda: not scheduler.is_running())
        assert job.call_count == 1
        assert scheduler.next_fire_time is None

    def test_cycles_never_overlap(self) -> None:
        """A slow job delays the next tick instead of running concurrently."""
        in_flight = 0
        max_in_flight = 0
        finished = 0

        def slow_job() -> None:
            nonlocal in_flight, max_in_flight, finished
            in_flight += 1
            max_in_flight = max(max_in_flight, in_flight)
            time.sleep(0.1)
            in_flight -= 1
            finished += 1

        scheduler = CycleScheduler(slow_job, _FastTrigger(interval=0.01))
        try:
            scheduler.start()
            assert _wait_for(lambda: finished >= 3)
        finally:
            scheduler.stop()

        assert max_in_flight == 1

    def test_multiple_start_calls_safe(self) -> None:
        job = MagicMock()
        scheduler = CycleScheduler(job, _FastTrigger(interval=10))
        try:
            scheduler.start()
            scheduler.start()
            assert _wait_for(lambda: job.call_count == 1)
            time.sleep(0.05)
            assert job.call_count == 1
        finally:
            scheduler.stop()

    def test_stop_on_non_running_safe(self) -> None:
        scheduler = CycleScheduler(MagicMock(), _FastTrigger())
        scheduler.stop()
        assert not scheduler.is_running()


class TestReportCallback:
    """Tests for the on_report hook of CycleScheduler."""

    def test_receives_each_job_result(self) -> None:
        results = iter(["first", "second", "third", "fourth", "fifth"])
        on_report = MagicMock()
        scheduler = CycleScheduler(lambda: next(results, None), _FastTrigger(), on_report=on_report)
        try:
            scheduler.start()
            assert _wait_for(lambda: on_report.call_count >= 2)
        finally:
            scheduler.stop()

        assert on_report.call_args_list[0].args == ("first",)
        assert on_report.call_args_list[1].args == ("second",)

    def test_callback_error_does_not_stop_schedule(self, caplog: pytest.LogCaptureFixture) -> None:
        """A failing callback is logged with its traceback and the next tick still fires."""
        job = MagicMock(return_value="report")
        on_report = MagicMock(side_effect=RuntimeError("callback exploded"))
        scheduler = CycleScheduler(job, _FastTrigger(), on_report=on_report)
        with caplog.at_level(logging.ERROR, logger="universalping.scheduler"):
            try:
                scheduler.start()
                assert _wait_for(lambda: on_report.call_count >= 2)
            finally:
                scheduler.stop()

        assert job.call_count >= 2
        assert "Report callback failed" in caplog.text
        assert "callback exploded" in caplog.text

    def test_skipped_when_job_fails(self) -> None:
        """A run that raised has no result to report."""
        job = MagicMock(side_effect=RuntimeError("cycle exploded"))
        on_report = MagicMock()
        scheduler = CycleScheduler(job, _OneShotTrigger(), on_report=on_report)
        scheduler.start()

        assert _wait_for(lambda: not scheduler.is_running())
        job.assert_called_once()
        on_report.assert_not_called()
