"""
Plain record snapshots returned by the data repositories.
"""

import datetime as dt
from typing import Optional

from pydantic import BaseModel


class AttendanceRecord(BaseModel):
    id: str
    date: dt.date
    student_id: str
    status: Optional[str] = None
    section_id: Optional[str] = None


class ProgressRecord(BaseModel):
    id: str
    user_id: str
    lesson_id: str
    percentage: Optional[float] = None
    updated_at: Optional[dt.datetime] = None


class StudentRecord(BaseModel):
    id: str
    name: Optional[str] = None
    section_id: Optional[str] = None
    is_active: bool = True


class DateRange(BaseModel):
    """Inclusive range of calendar days."""

    start: dt.date
    end: dt.date

    def contains(self, day: dt.date) -> bool:
        return self.start <= day <= self.end

    @classmethod
    def for_period(cls, period: str, now: dt.datetime) -> "DateRange":
        """
        Build the reporting window ending today.

        Args:
            period: day, week, month, quarter or year (unknown values mean week)
            now: Current time

        Returns:
            DateRange covering the period
        """
        today = now.date()

        if period == "day":
            start = today
        elif period == "month":
            start = today.replace(day=1)
        elif period == "quarter":
            quarter = (today.month - 1) // 3
            start = dt.date(today.year, quarter * 3 + 1, 1)
        elif period == "year":
            start = dt.date(today.year, 1, 1)
        else:
            start = (now - dt.timedelta(days=7)).date()

        return cls(start=start, end=today)

    @classmethod
    def between(cls, start: Optional[dt.date] = None, end: Optional[dt.date] = None) -> Optional["DateRange"]:
        """
        Range from optional bounds; a missing bound is open.

        Returns:
            None when neither bound is given

        Raises:
            ValueError: if start is after end
        """
        if start is None and end is None:
            return None
        start = start or dt.date.min
        end = end or dt.date.max
        if start > end:
            raise ValueError(f"Start date {start} is after end date {end}")
        return cls(start=start, end=end)
