"""
Tests for the collection scheduler state machine.
"""

import threading

import pytest

from app.models.collection import CollectionStatus, SchedulerState
from app.services.scheduler_service import CollectionScheduler, thread_dispatcher

from conftest import FakeAttendanceRepository, FakeDemographicsSource, FakeProgressRepository


class ExplodingCollector:
    """Collector whose run raises instead of returning an error run."""

    def __init__(self, clock):
        self.clock = clock
        self.calls = 0

    def run_once(self):
        self.calls += 1
        raise RuntimeError("boom")


def failing_sources(make_collector):
    error = ConnectionError("db down")
    return make_collector(
        attendance=FakeAttendanceRepository(error=error),
        progress=FakeProgressRepository(error=error),
        students=FakeDemographicsSource(error=error),
    )


class TestTrigger:
    """Test manual triggers and the run lifecycle."""

    def test_starts_idle(self, make_scheduler):
        scheduler = make_scheduler()

        assert scheduler.state == SchedulerState.IDLE
        assert scheduler.latest_run() is None

    def test_successful_run(self, make_scheduler, timer_factory):
        scheduler = make_scheduler()

        assert scheduler.trigger_now() is True

        assert scheduler.state == SchedulerState.COMPLETED
        assert scheduler.latest_run().status == CollectionStatus.COMPLETED
        assert len(timer_factory.pending(3.0)) == 1

    def test_success_cooldown_returns_to_idle(self, make_scheduler, timer_factory):
        scheduler = make_scheduler()
        scheduler.trigger_now()

        timer_factory.pending(3.0)[0].fire()

        assert scheduler.state == SchedulerState.IDLE

    def test_error_cooldown_is_longer(self, make_scheduler, make_collector, timer_factory):
        scheduler = make_scheduler(collector=failing_sources(make_collector))

        scheduler.trigger_now()

        assert scheduler.state == SchedulerState.ERROR
        assert scheduler.latest_run().status == CollectionStatus.ERROR
        assert timer_factory.pending(3.0) == []
        timer_factory.pending(5.0)[0].fire()
        assert scheduler.state == SchedulerState.IDLE

    def test_trigger_during_cooldown_starts_new_run(self, make_scheduler, timer_factory):
        scheduler = make_scheduler()
        scheduler.trigger_now()
        first_cooldown = timer_factory.pending(3.0)[0]

        assert scheduler.trigger_now() is True

        assert first_cooldown.cancelled
        assert len(scheduler.history) == 2

    def test_stale_cooldown_does_not_reset_newer_run(self, make_scheduler, timer_factory):
        scheduler = make_scheduler()
        scheduler.trigger_now()
        stale = timer_factory.pending(3.0)[0]
        scheduler.trigger_now()

        # Simulate the first cooldown firing after it was superseded
        stale.callback()

        assert scheduler.state == SchedulerState.COMPLETED

    def test_unexpected_collector_failure_is_recorded(self, make_scheduler, fake_clock):
        collector = ExplodingCollector(fake_clock)
        scheduler = make_scheduler(collector=collector)

        scheduler.trigger_now()

        run = scheduler.latest_run()
        assert run.status == CollectionStatus.ERROR
        assert run.error == "RuntimeError: boom"
        assert run.stats.data_quality == 0
        assert run.timestamp == fake_clock.now()
        assert scheduler.state == SchedulerState.ERROR

    def test_survives_repeated_failures(self, make_scheduler, fake_clock, timer_factory):
        collector = ExplodingCollector(fake_clock)
        scheduler = make_scheduler(collector=collector)

        for _ in range(3):
            assert scheduler.trigger_now() is True
            timer_factory.pending(5.0)[0].fire()

        assert collector.calls == 3
        assert len(scheduler.history) == 3
        assert scheduler.state == SchedulerState.IDLE

    def test_dispatch_failure_becomes_error_run(self, make_scheduler):
        def broken_dispatcher(work):
            raise RuntimeError("no threads left")

        scheduler = make_scheduler(dispatcher=broken_dispatcher)

        assert scheduler.trigger_now() is True
        assert scheduler.state == SchedulerState.ERROR
        assert "no threads left" in scheduler.latest_run().error


class TestSingleFlight:
    """Only one run may be in flight at a time."""

    def test_trigger_rejected_while_collecting(self, make_scheduler, make_collector, release_gate):
        attendance = FakeAttendanceRepository(gate=release_gate)
        scheduler = make_scheduler(collector=make_collector(attendance=attendance), dispatcher=thread_dispatcher)

        assert scheduler.trigger_now() is True
        assert scheduler.state == SchedulerState.COLLECTING
        assert scheduler.trigger_now() is False
        assert scheduler.trigger_now() is False

        release_gate.set()
        assert scheduler.wait_for_run(timeout=5)

        assert len(attendance.calls) == 1
        assert len(scheduler.history) == 1
        assert scheduler.state == SchedulerState.COMPLETED

    def test_concurrent_triggers_dispatch_once(self, make_scheduler, make_collector, release_gate):
        attendance = FakeAttendanceRepository(gate=release_gate)
        scheduler = make_scheduler(collector=make_collector(attendance=attendance), dispatcher=thread_dispatcher)
        results = []

        threads = [threading.Thread(target=lambda: results.append(scheduler.trigger_now())) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        release_gate.set()
        assert scheduler.wait_for_run(timeout=5)

        assert results.count(True) == 1
        assert len(attendance.calls) == 1


class TestPeriodicSchedule:
    """Test start/stop of periodic collection."""

    def test_start_schedules_tick(self, make_scheduler, timer_factory):
        scheduler = make_scheduler()

        scheduler.start(60)

        assert scheduler.is_started
        assert len(timer_factory.pending(60)) == 1
        assert scheduler.status().interval_seconds == 60

    def test_start_twice_is_noop(self, make_scheduler, timer_factory):
        scheduler = make_scheduler()

        scheduler.start(60)
        scheduler.start(60)

        assert len(timer_factory.pending(60)) == 1

    @pytest.mark.parametrize("interval", [0, -5])
    def test_rejects_non_positive_interval(self, make_scheduler, interval):
        with pytest.raises(ValueError):
            make_scheduler().start(interval)

    def test_tick_runs_and_reschedules(self, make_scheduler, timer_factory):
        scheduler = make_scheduler()
        scheduler.start(60)

        timer_factory.pending(60)[0].fire()

        assert len(scheduler.history) == 1
        assert len(timer_factory.pending(60)) == 1

    def test_stop_cancels_next_tick(self, make_scheduler, timer_factory):
        scheduler = make_scheduler()
        scheduler.start(60)
        tick = timer_factory.pending(60)[0]

        scheduler.stop()

        assert not scheduler.is_started
        assert tick.cancelled
        assert timer_factory.pending(60) == []

    def test_stopped_scheduler_still_accepts_manual_trigger(self, make_scheduler):
        scheduler = make_scheduler()
        scheduler.start(60)
        scheduler.stop()

        assert scheduler.trigger_now() is True

    def test_cooldowns_from_config(self, make_collector, history):
        scheduler = CollectionScheduler(make_collector(), history)

        assert scheduler.success_cooldown == 3.0
        assert scheduler.error_cooldown == 5.0


def test_status_snapshot(make_scheduler):
    scheduler = make_scheduler()
    scheduler.trigger_now()

    status = scheduler.status()

    assert status.state == SchedulerState.COMPLETED
    assert status.started is False
    assert status.latest_run.id == scheduler.latest_run().id
