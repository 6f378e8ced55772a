"""
Reporting service: aggregates raw records into summaries and dashboard reports.
"""

import logging
from datetime import date
from typing import Any, Dict, Iterable, Optional

from app.database.repositories import AttendanceRepository, DemographicsSource, ProgressRepository
from app.models.records import AttendanceRecord, DateRange, ProgressRecord
from app.models.reporting import (
    AttendanceSummary,
    DailyAttendance,
    ProgressSummary,
    StudentProgress,
    percentage,
    round_half_up,
)
from app.services.config_service import config_service
from app.services.insight_service import InsightEngine, insight_engine
from app.services.recommendation_service import RecommendationEngine, recommendation_engine
from app.services.trend_service import TrendAnalyzer, daily_rates, trend_analyzer

logger = logging.getLogger("app.reporting")

COMPLETED_PERCENTAGE = 100
ATTENDANCE_STATUSES = ("present", "late", "absent")


def _count(breakdown: DailyAttendance, status: Optional[str]) -> None:
    if status in ATTENDANCE_STATUSES:
        setattr(breakdown, status, getattr(breakdown, status) + 1)
    breakdown.total += 1


class ReportingService:
    """Builds attendance/progress reports and the combined dashboard."""

    def __init__(
        self,
        attendance_repository: Optional[AttendanceRepository] = None,
        progress_repository: Optional[ProgressRepository] = None,
        demographics_source: Optional[DemographicsSource] = None,
        insights: Optional[InsightEngine] = None,
        recommendations: Optional[RecommendationEngine] = None,
        trends: Optional[TrendAnalyzer] = None,
    ):
        self.attendance_repository = attendance_repository
        self.progress_repository = progress_repository
        self.demographics_source = demographics_source
        self.insights = insights or insight_engine
        self.recommendations = recommendations or recommendation_engine
        self.trends = trends or trend_analyzer

    def build_attendance_report(self, records: Iterable[AttendanceRecord]) -> Dict[str, Any]:
        """
        Aggregate attendance records.

        Returns:
            Dictionary with summary (carrying the daily breakdown) and student breakdown
        """
        totals = DailyAttendance()
        daily: Dict[date, DailyAttendance] = {}
        per_student: Dict[str, DailyAttendance] = {}

        for record in records:
            _count(totals, record.status)
            _count(daily.setdefault(record.date, DailyAttendance()), record.status)
            _count(per_student.setdefault(record.student_id, DailyAttendance()), record.status)

        summary = AttendanceSummary.from_counts(
            present_count=totals.present,
            late_count=totals.late,
            absent_count=totals.absent,
            total_records=totals.total,
            daily_breakdown=dict(sorted(daily.items())),
        )

        return {"summary": summary, "student_breakdown": per_student}

    def build_progress_report(self, records: Iterable[ProgressRecord]) -> ProgressSummary:
        """Aggregate lesson progress records into a summary with per-student progress."""
        records = list(records)
        per_student: Dict[str, StudentProgress] = {}
        progress_sums: Dict[str, float] = {}

        completed = in_progress = not_started = 0
        progress_total = 0.0

        for record in records:
            value = record.percentage or 0
            progress_total += value

            student = per_student.setdefault(record.user_id, StudentProgress())
            student.total_lessons += 1
            progress_sums[record.user_id] = progress_sums.get(record.user_id, 0.0) + value

            if value >= COMPLETED_PERCENTAGE:
                completed += 1
                student.completed_lessons += 1
            elif value > 0:
                in_progress += 1
                student.in_progress_lessons += 1
            else:
                not_started += 1
                student.not_started_lessons += 1

        for user_id, student in per_student.items():
            student.average_progress = round_half_up(progress_sums[user_id] / student.total_lessons)

        total_lessons = len(records)
        return ProgressSummary(
            completed_lessons=completed,
            total_lessons=total_lessons,
            average_progress=round_half_up(progress_total / total_lessons) if total_lessons else 0,
            completion_rate=percentage(completed, total_lessons),
            in_progress_lessons=in_progress,
            not_started_lessons=not_started,
            student_progress=per_student,
        )

    def attendance_report(
        self,
        date_range: Optional[DateRange] = None,
        section_id: Optional[str] = None,
        student_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Fetch and aggregate attendance, optionally filtered.

        Returns:
            Dictionary with summary, student breakdown and the matching records
        """
        self._require_sources()
        records = self.attendance_repository.fetch_attendance(
            date_range=date_range, section_id=section_id, student_id=student_id
        )
        logger.info(f"Attendance report over {len(records)} records")
        return {**self.build_attendance_report(records), "records": records}

    def progress_report(self, student_id: Optional[str] = None) -> Dict[str, Any]:
        """Fetch and aggregate lesson progress, optionally for one student."""
        self._require_sources()
        records = self.progress_repository.fetch_progress(student_id=student_id)
        return {"summary": self.build_progress_report(records), "records": records}

    def student_report(self, student_id: str, date_range: Optional[DateRange] = None) -> Optional[Dict[str, Any]]:
        """
        Attendance and progress for one student.

        Args:
            student_id: Student ID
            date_range: Attendance window; all attendance when None

        Returns:
            Report dictionary, or None if the student does not exist
        """
        self._require_sources()
        student = self.demographics_source.get_student(student_id)
        if student is None:
            return None

        attendance = self.attendance_report(date_range=date_range, student_id=student_id)
        progress = self.progress_report(student_id=student_id)

        return {
            "student": student,
            "period": date_range,
            "attendance": {"summary": attendance["summary"], "records": attendance["records"]},
            "progress": progress,
        }

    def build_dashboard(self, period: str = "week") -> Dict[str, Any]:
        """
        Build the combined dashboard report for a period.

        Args:
            period: day, week, month, quarter or year

        Returns:
            Dictionary with demographics, reports, trends, insights and recommendations
        """
        self._require_sources()

        date_range = DateRange.for_period(period, config_service.now())
        logger.info(f"Building dashboard report for {period}: {date_range.start} - {date_range.end}")

        attendance_report = self.build_attendance_report(self.attendance_repository.fetch_attendance(date_range))
        attendance = attendance_report["summary"]
        progress = self.build_progress_report(self.progress_repository.fetch_progress())

        insights = self.insights.derive_insights(attendance, progress)
        recommendations = self.recommendations.derive_recommendations(insights, attendance, progress)

        return {
            "period": period,
            "date_range": date_range,
            "demographics": {
                "total_students": self.demographics_source.total_students(),
                "total_teachers": self.demographics_source.total_teachers(),
            },
            "attendance": attendance,
            "student_attendance": attendance_report["student_breakdown"],
            "daily_attendance_rates": daily_rates(attendance.daily_breakdown),
            "progress": progress,
            "attendance_trend": self.trends.attendance_trend(attendance.daily_breakdown),
            "progress_trend": self.trends.progress_trend(progress.student_progress),
            "insights": insights,
            "recommendations": recommendations,
        }

    def _require_sources(self) -> None:
        if self.attendance_repository is None or self.progress_repository is None or self.demographics_source is None:
            raise RuntimeError("Reports need attendance, progress and demographics sources")
