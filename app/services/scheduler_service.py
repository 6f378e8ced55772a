"""
Collection scheduler: periodic and on-demand collection runs with single-flight.
"""

import logging
import threading
import uuid
from typing import Callable, Optional, Protocol

from app.models.collection import (
    CollectionRun,
    CollectionStatus,
    SchedulerState,
    SchedulerStatus,
)
from app.services.collector_service import CollectorService
from app.services.config_service import config_service
from app.services.history_service import HistoryStore

logger = logging.getLogger("app.scheduler")

DEFAULT_INTERVAL_SECONDS = 3600.0
SUCCESS_COOLDOWN_SECONDS = 3.0
ERROR_COOLDOWN_SECONDS = 5.0


class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


TimerFactory = Callable[[float, Callable[[], None]], TimerHandle]
Dispatcher = Callable[[Callable[[], None]], None]


def threading_timer(delay: float, callback: Callable[[], None]) -> TimerHandle:
    """Run callback once after delay seconds on a daemon thread."""
    timer = threading.Timer(delay, callback)
    timer.daemon = True
    timer.start()
    return timer


def thread_dispatcher(work: Callable[[], None]) -> None:
    """Run work on its own daemon thread."""
    threading.Thread(target=work, name="collection-run", daemon=True).start()


class CollectionScheduler:
    """
    Drives the collector on a fixed period and on manual triggers.

    State machine: idle -> collecting -> completed|error -> idle, where the
    final reset happens after a cooldown. At most one run is in flight at a
    time; triggers arriving while collecting are rejected.
    """

    def __init__(
        self,
        collector: CollectorService,
        history: HistoryStore,
        timer_factory: TimerFactory = threading_timer,
        dispatcher: Dispatcher = thread_dispatcher,
        success_cooldown: Optional[float] = None,
        error_cooldown: Optional[float] = None,
    ):
        self.collector = collector
        self.history = history
        self._timer_factory = timer_factory
        self._dispatcher = dispatcher
        self.success_cooldown = (
            success_cooldown
            if success_cooldown is not None
            else config_service.get_float("COLLECTION_SUCCESS_COOLDOWN_SECONDS", SUCCESS_COOLDOWN_SECONDS)
        )
        self.error_cooldown = (
            error_cooldown
            if error_cooldown is not None
            else config_service.get_float("COLLECTION_ERROR_COOLDOWN_SECONDS", ERROR_COOLDOWN_SECONDS)
        )

        self._lock = threading.RLock()
        self._state = SchedulerState.IDLE
        self._started = False
        self._interval: Optional[float] = None
        self._periodic_timer: Optional[TimerHandle] = None
        self._cooldown_timer: Optional[TimerHandle] = None
        self._run_generation = 0
        self._run_finished = threading.Event()
        self._run_finished.set()

    @property
    def state(self) -> SchedulerState:
        with self._lock:
            return self._state

    @property
    def is_started(self) -> bool:
        with self._lock:
            return self._started

    def start(self, interval_seconds: Optional[float] = None) -> None:
        """Begin periodic collection. Does nothing if already started."""
        interval = interval_seconds if interval_seconds is not None else DEFAULT_INTERVAL_SECONDS
        if interval <= 0:
            raise ValueError("Collection interval must be positive")

        with self._lock:
            if self._started:
                logger.debug("Collection scheduler already started")
                return
            self._started = True
            self._interval = interval
            self._schedule_tick()

        logger.info(f"Collection scheduler started, interval={interval:g}s")

    def stop(self) -> None:
        """Cancel the next periodic trigger; an in-flight run is left to finish."""
        with self._lock:
            if not self._started:
                return
            self._started = False
            if self._periodic_timer is not None:
                self._periodic_timer.cancel()
                self._periodic_timer = None

        logger.info("Collection scheduler stopped")

    def trigger_now(self) -> bool:
        """
        Request an immediate collection run.

        Returns:
            False if a run is already in flight, True if a run was dispatched
        """
        with self._lock:
            if self._state == SchedulerState.COLLECTING:
                logger.info("Collection already in progress, trigger ignored")
                return False
            if self._cooldown_timer is not None:
                self._cooldown_timer.cancel()
                self._cooldown_timer = None
            self._state = SchedulerState.COLLECTING
            self._run_generation += 1
            self._run_finished.clear()

        try:
            self._dispatcher(self._execute)
        except Exception as e:
            logger.error(f"Failed to dispatch collection run: {e}")
            self._finish(self._failed_run(e))
        return True

    def wait_for_run(self, timeout: Optional[float] = None) -> bool:
        """Block until no run is in flight. Returns False on timeout."""
        return self._run_finished.wait(timeout)

    def latest_run(self) -> Optional[CollectionRun]:
        return self.history.latest()

    def status(self) -> SchedulerStatus:
        with self._lock:
            state, started, interval = self._state, self._started, self._interval
        return SchedulerStatus(
            state=state,
            started=started,
            interval_seconds=interval,
            latest_run=self.history.latest(),
        )

    def _tick(self) -> None:
        with self._lock:
            if not self._started:
                return
            self._schedule_tick()
        self.trigger_now()

    def _schedule_tick(self) -> None:
        # Caller holds the lock
        self._periodic_timer = self._timer_factory(self._interval, self._tick)

    def _execute(self) -> None:
        try:
            run = self.collector.run_once()
        except Exception as e:
            logger.exception(f"Unexpected error during collection run: {e}")
            run = self._failed_run(e)
        self._finish(run)

    def _finish(self, run: CollectionRun) -> None:
        try:
            self.history.append(run)
        except Exception as e:
            logger.error(f"Failed to record collection run {run.id}: {e}")

        succeeded = run.status == CollectionStatus.COMPLETED
        with self._lock:
            self._state = SchedulerState.COMPLETED if succeeded else SchedulerState.ERROR
            cooldown = self.success_cooldown if succeeded else self.error_cooldown
            generation = self._run_generation
            self._cooldown_timer = self._timer_factory(cooldown, lambda: self._reset_to_idle(generation))
            self._run_finished.set()

        logger.info(f"Collection run {run.id} finished with status {run.status.value}")

    def _reset_to_idle(self, generation: int) -> None:
        with self._lock:
            # A cooldown that fired late must not reset a newer run
            if generation != self._run_generation:
                return
            if self._state in (SchedulerState.COMPLETED, SchedulerState.ERROR):
                self._state = SchedulerState.IDLE
                self._cooldown_timer = None

    def _failed_run(self, error: Exception) -> CollectionRun:
        run = CollectionRun(id=uuid.uuid4().hex, timestamp=self.collector.clock.now())
        return run.finalize(CollectionStatus.ERROR, duration_ms=0, error=f"{type(error).__name__}: {error}")
