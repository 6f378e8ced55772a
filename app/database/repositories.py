"""
Repositories that read raw attendance, progress and demographic data.
"""
import logging
from contextlib import AbstractContextManager
from typing import Callable, List, Optional, Protocol

from sqlalchemy.orm import Session

from app.models.records import AttendanceRecord, DateRange, ProgressRecord, StudentRecord
from app.models.student import Attendance, LessonProgress, Student
from app.models.user import User

logger = logging.getLogger("app.repositories")

SessionFactory = Callable[[], AbstractContextManager[Session]]


class AttendanceRepository(Protocol):
    def fetch_attendance(
        self,
        date_range: Optional[DateRange] = None,
        section_id: Optional[str] = None,
        student_id: Optional[str] = None,
    ) -> List[AttendanceRecord]:
        ...


class ProgressRepository(Protocol):
    def fetch_progress(
        self,
        date_range: Optional[DateRange] = None,
        student_id: Optional[str] = None,
    ) -> List[ProgressRecord]:
        ...


class DemographicsSource(Protocol):
    def total_students(self) -> int:
        ...

    def total_teachers(self) -> int:
        ...

    def get_student(self, student_id: str) -> Optional[StudentRecord]:
        ...


class SqlAttendanceRepository:
    """Attendance records from the attendance table."""

    def __init__(self, session_factory: SessionFactory):
        self._session_factory = session_factory

    def fetch_attendance(
        self,
        date_range: Optional[DateRange] = None,
        section_id: Optional[str] = None,
        student_id: Optional[str] = None,
    ) -> List[AttendanceRecord]:
        with self._session_factory() as db:
            query = db.query(Attendance)
            if date_range is not None:
                query = query.filter(Attendance.date >= date_range.start, Attendance.date <= date_range.end)
            if section_id is not None:
                query = query.filter(Attendance.section_id == section_id)
            if student_id is not None:
                query = query.filter(Attendance.student_id == student_id)
            rows = query.order_by(Attendance.date.asc()).all()

            records = [
                AttendanceRecord(
                    id=row.id,
                    date=row.date,
                    student_id=row.student_id,
                    status=row.status,
                    section_id=row.section_id,
                )
                for row in rows
            ]

        logger.debug(f"Fetched {len(records)} attendance records")
        return records


class SqlProgressRepository:
    """Lesson progress records from the lesson_progress table."""

    def __init__(self, session_factory: SessionFactory):
        self._session_factory = session_factory

    def fetch_progress(
        self,
        date_range: Optional[DateRange] = None,
        student_id: Optional[str] = None,
    ) -> List[ProgressRecord]:
        with self._session_factory() as db:
            query = db.query(LessonProgress)
            if student_id is not None:
                query = query.filter(LessonProgress.user_id == student_id)
            rows = query.all()

            # Progress without an update time is kept regardless of the range
            records = [
                ProgressRecord(
                    id=row.id,
                    user_id=row.user_id,
                    lesson_id=row.lesson_id,
                    percentage=row.percentage,
                    updated_at=row.updated_at,
                )
                for row in rows
                if date_range is None or row.updated_at is None or date_range.contains(row.updated_at.date())
            ]

        logger.debug(f"Fetched {len(records)} progress records")
        return records


class SqlDemographicsSource:
    """Head counts and student lookups from the students and users tables."""

    def __init__(self, session_factory: SessionFactory):
        self._session_factory = session_factory

    def total_students(self) -> int:
        with self._session_factory() as db:
            return db.query(Student).filter(Student.is_active == True).count()  # noqa: E712

    def total_teachers(self) -> int:
        with self._session_factory() as db:
            return db.query(User).filter(User.role == "teacher", User.is_active == True).count()  # noqa: E712

    def get_student(self, student_id: str) -> Optional[StudentRecord]:
        with self._session_factory() as db:
            student = db.get(Student, student_id)
            if student is None:
                return None
            return StudentRecord(
                id=student.id,
                name=student.name,
                section_id=student.section_id,
                is_active=student.is_active,
            )
