"""
Pytest configuration and fixtures for CareTrack tests.
"""

import os
import threading
from datetime import date, datetime, timedelta, timezone

# Keep the application from starting a real scheduler while tests import it
os.environ["COLLECTION_SCHEDULER_MODE"] = "disabled"
os.environ["DB_URL"] = "sqlite:///./test.db"

import pytest
from fastapi.testclient import TestClient

from app.database.init_db import init_database
from app.database.session import get_session, make_session_factory, session_scope
from app.main import app
from app.models.records import AttendanceRecord, ProgressRecord
from app.services.collection_service import get_reporting_service, get_scheduler
from app.services.collector_service import CollectorService
from app.services.history_service import HistoryStore
from app.services.reporting_service import ReportingService
from app.services.scheduler_service import CollectionScheduler
from app.services.storage_service import InMemoryKeyValueStore


class FakeClock:
    """Clock frozen at a fixed instant that only moves when told to."""

    def __init__(self, start: datetime = datetime(2024, 3, 15, 9, 0, tzinfo=timezone.utc)):
        self.current = start
        self.ticks = 0.0

    def now(self) -> datetime:
        return self.current

    def monotonic(self) -> float:
        return self.ticks

    def advance(self, seconds: float) -> None:
        self.ticks += seconds
        self.current += timedelta(seconds=seconds)


class ManualTimer:
    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if self.cancelled or self.fired:
            return
        self.fired = True
        self.callback()


class ManualTimerFactory:
    """Records every timer so tests decide when each one fires."""

    def __init__(self):
        self.timers = []

    def __call__(self, delay, callback):
        timer = ManualTimer(delay, callback)
        self.timers.append(timer)
        return timer

    def pending(self, delay=None):
        return [
            timer for timer in self.timers
            if not timer.cancelled and not timer.fired and (delay is None or timer.delay == delay)
        ]


class FakeAttendanceRepository:
    def __init__(self, records=None, error=None, gate=None):
        self.records = list(records or [])
        self.error = error
        self.gate = gate
        self.calls = []

    def fetch_attendance(self, date_range=None, section_id=None, student_id=None):
        self.calls.append(date_range)
        if self.gate is not None:
            self.gate.wait(5)
        if self.error is not None:
            raise self.error
        return [
            record for record in self.records
            if not hasattr(record, "date") or (
                (date_range is None or date_range.contains(record.date))
                and (section_id is None or record.section_id == section_id)
                and (student_id is None or record.student_id == student_id)
            )
        ]


class FakeProgressRepository:
    def __init__(self, records=None, error=None, gate=None):
        self.records = list(records or [])
        self.error = error
        self.gate = gate
        self.calls = []

    def fetch_progress(self, date_range=None, student_id=None):
        self.calls.append(date_range)
        if self.gate is not None:
            self.gate.wait(5)
        if self.error is not None:
            raise self.error
        return [record for record in self.records if student_id is None or record.user_id == student_id]


class FakeDemographicsSource:
    def __init__(self, students=0, teachers=0, error=None, roster=None):
        self.students = students
        self.teachers = teachers
        self.error = error
        self.roster = {student.id: student for student in roster or []}

    def total_students(self):
        if self.error is not None:
            raise self.error
        return self.students

    def total_teachers(self):
        return self.teachers

    def get_student(self, student_id):
        return self.roster.get(student_id)


def attendance_records(statuses, day=date(2024, 3, 15), student_id="s1", section_id=None):
    """Attendance records with the given statuses, all on one day."""
    return [
        AttendanceRecord(id=f"a{index}", date=day, student_id=student_id, status=status, section_id=section_id)
        for index, status in enumerate(statuses)
    ]


def progress_records(percentages, user_id="s1"):
    """Progress records with the given percentages for one student."""
    return [
        ProgressRecord(id=f"p{index}", user_id=user_id, lesson_id=f"l{index}", percentage=value)
        for index, value in enumerate(percentages)
    ]


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def timer_factory():
    return ManualTimerFactory()


@pytest.fixture
def sync_dispatcher():
    """Dispatcher that runs the collection inline."""
    return lambda work: work()


@pytest.fixture
def kv_store():
    return InMemoryKeyValueStore()


@pytest.fixture
def history(kv_store):
    return HistoryStore(kv_store)


@pytest.fixture
def make_collector(fake_clock):
    """Build a collector over fake sources."""

    def build(attendance=None, progress=None, students=0, fetch_timeout=5.0, period="day"):
        return CollectorService(
            attendance_repository=attendance if attendance is not None else FakeAttendanceRepository(),
            progress_repository=progress if progress is not None else FakeProgressRepository(),
            demographics_source=students if isinstance(students, FakeDemographicsSource)
            else FakeDemographicsSource(students=students),
            clock=fake_clock,
            fetch_timeout=fetch_timeout,
            period=period,
        )

    return build


@pytest.fixture
def make_scheduler(make_collector, history, timer_factory, sync_dispatcher):
    """Build a scheduler with manual timers and an inline dispatcher by default."""

    def build(collector=None, dispatcher=None):
        return CollectionScheduler(
            collector or make_collector(),
            history,
            timer_factory=timer_factory,
            dispatcher=dispatcher or sync_dispatcher,
            success_cooldown=3.0,
            error_cooldown=5.0,
        )

    return build


@pytest.fixture
def test_engine(tmp_path):
    """SQLite engine over a fresh database file with all tables created."""
    from sqlalchemy import create_engine

    engine = create_engine(f"sqlite:///{tmp_path / 'caretrack.db'}", connect_args={"check_same_thread": False})
    init_database(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def test_session_factory(test_engine):
    return make_session_factory(test_engine)


@pytest.fixture
def db_scope(test_session_factory):
    """Transactional session context manager bound to the test database."""
    return session_scope(test_session_factory)


@pytest.fixture
def api_scheduler(make_scheduler):
    """Scheduler served by the API under test."""
    return make_scheduler()


@pytest.fixture
def api_reporting_service():
    """Reporting service served by the API under test, over empty fake sources."""
    return ReportingService(
        attendance_repository=FakeAttendanceRepository(),
        progress_repository=FakeProgressRepository(),
        demographics_source=FakeDemographicsSource(),
    )


@pytest.fixture
def client(test_session_factory, api_scheduler, api_reporting_service):
    """Test client with the database, scheduler and reporting service overridden."""

    def override_get_session():
        session = test_session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_scheduler] = lambda: api_scheduler
    app.dependency_overrides[get_reporting_service] = lambda: api_reporting_service

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def release_gate():
    """Event used to hold fake fetches until the test releases them."""
    gate = threading.Event()
    yield gate
    gate.set()
