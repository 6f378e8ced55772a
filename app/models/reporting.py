"""
Reporting and analytics models: summaries, insights, recommendations and trends.
"""

import math
from datetime import date
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


def percentage(part: float, whole: float) -> int:
    """Rounded percentage, 0 when there is nothing to divide by."""
    if whole <= 0:
        return 0
    return round_half_up(part / whole * 100)


def round_half_up(value: float) -> int:
    """Round halves towards positive infinity (2.5 -> 3, -2.5 -> -2)."""
    return math.floor(value + 0.5)


class DailyAttendance(BaseModel):
    """Attendance counts for one day, one student or one section."""

    present: int = 0
    late: int = 0
    absent: int = 0
    total: int = 0

    @property
    def attendance_rate(self) -> int:
        return percentage(self.present, self.total)


class StudentProgress(BaseModel):
    """Lesson progress aggregated for one student."""

    total_lessons: int = 0
    completed_lessons: int = 0
    in_progress_lessons: int = 0
    not_started_lessons: int = 0
    average_progress: float = 0


class AttendanceSummary(BaseModel):
    """Aggregated attendance over a period, with optional daily breakdown."""

    present_count: int = 0
    late_count: int = 0
    absent_count: int = 0
    total_records: int = 0
    attendance_rate: int = 0
    punctuality_rate: int = 0
    daily_breakdown: Dict[date, DailyAttendance] = Field(default_factory=dict)

    @classmethod
    def from_counts(
        cls,
        present_count: int,
        late_count: int,
        absent_count: int,
        total_records: int,
        daily_breakdown: Optional[Dict[date, DailyAttendance]] = None,
    ) -> "AttendanceSummary":
        return cls(
            present_count=present_count,
            late_count=late_count,
            absent_count=absent_count,
            total_records=total_records,
            attendance_rate=percentage(present_count, total_records),
            punctuality_rate=percentage(present_count + late_count, total_records),
            daily_breakdown=daily_breakdown or {},
        )


class ProgressSummary(BaseModel):
    """Aggregated lesson progress, with optional per-student breakdown."""

    completed_lessons: int = 0
    total_lessons: int = 0
    average_progress: float = 0
    completion_rate: int = 0
    in_progress_lessons: int = 0
    not_started_lessons: int = 0
    student_progress: Dict[str, StudentProgress] = Field(default_factory=dict)


class InsightType(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    CONCERN = "concern"
    NEUTRAL = "neutral"


class InsightCategory(str, Enum):
    ATTENDANCE = "attendance"
    PROGRESS = "progress"


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Insight(BaseModel):
    type: InsightType
    category: InsightCategory
    title: str
    message: str
    priority: Priority


class RecommendationCategory(str, Enum):
    ATTENDANCE = "attendance"
    PROGRESS = "progress"
    ENGAGEMENT = "engagement"
    CURRICULUM = "curriculum"


class Recommendation(BaseModel):
    category: RecommendationCategory
    priority: Priority
    title: str
    action: str
    description: str
    timeline: str
    resources: List[str] = Field(default_factory=list)


class TrendDirection(str, Enum):
    IMPROVING = "improving"
    DECLINING = "declining"
    STABLE = "stable"


class AttendanceTrend(BaseModel):
    """Two-half comparison of daily attendance rates."""

    trend: TrendDirection = TrendDirection.STABLE
    change: int = 0
    first_avg: Optional[int] = None
    second_avg: Optional[int] = None


class PerformanceDistribution(BaseModel):
    excellent: int = 0
    good: int = 0
    average: int = 0
    needs_improvement: int = 0


class ProgressTrend(BaseModel):
    """Distribution of per-student average progress."""

    average_progress: int = 0
    high_performers: int = 0
    low_performers: int = 0
    total_students: int = 0
    performance_distribution: PerformanceDistribution = Field(default_factory=PerformanceDistribution)
