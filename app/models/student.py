"""
Student, attendance and lesson progress models.
"""

import datetime as dt
from typing import Optional

from sqlmodel import Field, SQLModel


class Student(SQLModel, table=True):
    """Child enrolled at the center."""

    __tablename__ = "students"

    id: str = Field(primary_key=True, max_length=50)
    name: Optional[str] = Field(default=None, max_length=255)
    section_id: Optional[str] = Field(default=None, max_length=50)
    parent_id: Optional[str] = Field(default=None, max_length=50)  # users.user_id of the guardian
    is_active: bool = Field(default=True)
    created_at: dt.datetime = Field(default_factory=lambda: dt.datetime.now(dt.timezone.utc))


class Attendance(SQLModel, table=True):
    """Daily attendance mark for one student."""

    __tablename__ = "attendance"

    id: str = Field(primary_key=True, max_length=50)
    date: dt.date = Field(index=True)
    student_id: str = Field(index=True, max_length=50)
    status: Optional[str] = Field(default=None, max_length=20)  # present, late, absent
    section_id: Optional[str] = Field(default=None, max_length=50)
    created_at: dt.datetime = Field(default_factory=lambda: dt.datetime.now(dt.timezone.utc))


class LessonProgress(SQLModel, table=True):
    """Progress of one student through one lesson."""

    __tablename__ = "lesson_progress"

    id: str = Field(primary_key=True, max_length=50)
    user_id: str = Field(index=True, max_length=50)
    lesson_id: str = Field(index=True, max_length=50)
    percentage: Optional[float] = Field(default=None)  # 0-100, NULL when never reported
    updated_at: Optional[dt.datetime] = Field(default=None)
