"""
Collector: one end-to-end data gathering pass.
"""

import logging
import uuid
from concurrent.futures import ThreadPoolExecutor, wait
from datetime import datetime
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Protocol

from app.database.repositories import AttendanceRepository, DemographicsSource, ProgressRepository
from app.models.collection import CollectionRun, CollectionStats, CollectionStatus
from app.models.records import DateRange
from app.services.config_service import config_service
from app.services.errors import AggregationError, CollectionError, FetchError
from app.services.quality_service import QualityAnalyzer, as_records, quality_analyzer

logger = logging.getLogger("app.collector")

ATTENDANCE_SOURCE = "attendance"
PROGRESS_SOURCE = "progress"
DEMOGRAPHICS_SOURCE = "demographics"


class Clock(Protocol):
    def now(self) -> datetime:
        ...

    def monotonic(self) -> float:
        ...


class FetchOutcome(NamedTuple):
    value: Any = None
    error: Optional[FetchError] = None


class CollectorService:
    """
    Gathers attendance, progress and head counts, and scores their quality.

    The three fetches run concurrently and are joined before the run is
    finalized. A failing fetch only zeroes its own contribution; the run is
    marked as error when every fetch fails or aggregation breaks.
    """

    def __init__(
        self,
        attendance_repository: AttendanceRepository,
        progress_repository: ProgressRepository,
        demographics_source: DemographicsSource,
        analyzer: Optional[QualityAnalyzer] = None,
        clock: Optional[Clock] = None,
        fetch_timeout: Optional[float] = None,
        period: Optional[str] = None,
    ):
        self.attendance_repository = attendance_repository
        self.progress_repository = progress_repository
        self.demographics_source = demographics_source
        self.analyzer = analyzer or quality_analyzer
        self.clock = clock or config_service
        self.fetch_timeout = (
            fetch_timeout
            if fetch_timeout is not None
            else config_service.get_float("COLLECTION_FETCH_TIMEOUT_SECONDS", 30.0)
        )
        self.period = period or config_service.get_setting("COLLECTION_PERIOD", "day")

    def start_run(self) -> CollectionRun:
        """Create a run in the collecting state."""
        return CollectionRun(id=uuid.uuid4().hex, timestamp=self.clock.now(), status=CollectionStatus.COLLECTING)

    def run_once(self) -> CollectionRun:
        """
        Execute one collection pass.

        Returns:
            Finalized CollectionRun (completed or error)
        """
        started = self.clock.monotonic()
        run = self.start_run()
        logger.info(f"Starting data collection run {run.id}")

        warnings: List[str] = []
        try:
            date_range = DateRange.for_period(self.period, run.timestamp)
            outcomes = self._fetch_all(date_range)

            failures = [outcome.error for outcome in outcomes.values() if outcome.error is not None]
            warnings = [str(error) for error in failures]
            for error in failures:
                logger.warning(f"Collection run {run.id}: {error}")

            if len(failures) == len(outcomes):
                raise CollectionError("All data sources failed: " + "; ".join(warnings))

            attendance = _fetched_records(outcomes[ATTENDANCE_SOURCE], ATTENDANCE_SOURCE)
            progress = _fetched_records(outcomes[PROGRESS_SOURCE], PROGRESS_SOURCE)
            total_students = self._as_count(outcomes[DEMOGRAPHICS_SOURCE].value)

            data_quality = self.analyzer.score(attendance, progress)

            stats = CollectionStats(
                attendance_record_count=len(attendance),
                progress_record_count=len(progress),
                total_students=total_students,
                data_quality=data_quality,
            )
            finalized = run.finalize(
                CollectionStatus.COMPLETED,
                duration_ms=self._elapsed_ms(started),
                stats=stats,
                warnings=warnings,
            )
            logger.info(
                f"Data collection run {run.id} completed: {stats.attendance_record_count} attendance, "
                f"{stats.progress_record_count} progress, {stats.total_students} students, "
                f"quality={stats.data_quality} in {finalized.duration_ms}ms"
            )
            return finalized

        except CollectionError as e:
            logger.error(f"Data collection run {run.id} failed: {e}")
            return run.finalize(
                CollectionStatus.ERROR,
                duration_ms=self._elapsed_ms(started),
                error=str(e),
                warnings=warnings,
            )

    def _fetch_all(self, date_range: DateRange) -> Dict[str, FetchOutcome]:
        """Run every fetch concurrently and wait for all of them (or the timeout)."""
        fetchers: Dict[str, Callable[[], Any]] = {
            ATTENDANCE_SOURCE: lambda: self.attendance_repository.fetch_attendance(date_range),
            PROGRESS_SOURCE: lambda: self.progress_repository.fetch_progress(),
            DEMOGRAPHICS_SOURCE: self.demographics_source.total_students,
        }

        executor = ThreadPoolExecutor(max_workers=len(fetchers), thread_name_prefix="collector")
        try:
            futures = {name: executor.submit(fetch) for name, fetch in fetchers.items()}
            _, pending = wait(futures.values(), timeout=self.fetch_timeout)

            outcomes: Dict[str, FetchOutcome] = {}
            for name, future in futures.items():
                if future in pending:
                    cause = TimeoutError(f"no response within {self.fetch_timeout:g}s")
                    outcomes[name] = FetchOutcome(error=FetchError(name, cause))
                    continue

                exc = future.exception()
                if exc is not None:
                    outcomes[name] = FetchOutcome(error=FetchError(name, exc))
                else:
                    outcomes[name] = FetchOutcome(value=future.result())

            return outcomes
        finally:
            # Timed-out fetches keep running in the background; nothing waits for them
            executor.shutdown(wait=False, cancel_futures=True)

    @staticmethod
    def _as_count(value: Any) -> int:
        if value is None:
            return 0
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise AggregationError(f"Invalid student count: {value!r}")
        return value

    def _elapsed_ms(self, started: float) -> int:
        return int(round((self.clock.monotonic() - started) * 1000))


def _fetched_records(outcome: FetchOutcome, source: str) -> List[Any]:
    if outcome.value is None:
        return []
    return as_records(outcome.value, source)
