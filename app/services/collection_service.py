"""
Process-wide wiring of the collection scheduler and the reporting service.
"""

import logging
import threading
from typing import Optional

from app.database.repositories import SqlAttendanceRepository, SqlDemographicsSource, SqlProgressRepository
from app.database.session import get_db_session
from app.services.collector_service import CollectorService
from app.services.config_service import config_service
from app.services.history_service import HistoryStore
from app.services.reporting_service import ReportingService
from app.services.scheduler_service import DEFAULT_INTERVAL_SECONDS, CollectionScheduler
from app.services.storage_service import SqlKeyValueStore

logger = logging.getLogger("app.collection")

MODE_INPROCESS = "inprocess"
MODE_CELERY = "celery"
MODE_DISABLED = "disabled"

_scheduler: Optional[CollectionScheduler] = None
_reporting_service: Optional[ReportingService] = None
_lock = threading.Lock()


def scheduler_mode() -> str:
    mode = str(config_service.get_setting("COLLECTION_SCHEDULER_MODE", MODE_INPROCESS)).lower()
    if mode not in (MODE_INPROCESS, MODE_CELERY, MODE_DISABLED):
        logger.warning(f"Unknown COLLECTION_SCHEDULER_MODE={mode}, using {MODE_INPROCESS}")
        return MODE_INPROCESS
    return mode


def collection_interval() -> float:
    return config_service.get_float("COLLECTION_INTERVAL_SECONDS", DEFAULT_INTERVAL_SECONDS)


def build_scheduler(session_factory=get_db_session) -> CollectionScheduler:
    """Create a scheduler wired to the SQL repositories and key-value store."""
    history = HistoryStore(SqlKeyValueStore(session_factory))
    history.load()

    collector = CollectorService(
        attendance_repository=SqlAttendanceRepository(session_factory),
        progress_repository=SqlProgressRepository(session_factory),
        demographics_source=SqlDemographicsSource(session_factory),
    )
    return CollectionScheduler(collector, history)


def get_scheduler() -> CollectionScheduler:
    """Return the process-wide scheduler, creating it on first use."""
    global _scheduler
    with _lock:
        if _scheduler is None:
            _scheduler = build_scheduler()
            logger.info("Collection scheduler created")
        return _scheduler


def get_reporting_service() -> ReportingService:
    """Return the process-wide reporting service."""
    global _reporting_service
    with _lock:
        if _reporting_service is None:
            _reporting_service = ReportingService(
                attendance_repository=SqlAttendanceRepository(get_db_session),
                progress_repository=SqlProgressRepository(get_db_session),
                demographics_source=SqlDemographicsSource(get_db_session),
            )
        return _reporting_service


def refresh_history(scheduler: CollectionScheduler) -> None:
    """Reload persisted history when another process (the Celery worker) owns collection."""
    if scheduler_mode() == MODE_CELERY:
        scheduler.history.load()
