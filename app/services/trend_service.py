"""
Trend analysis over aggregated attendance and progress breakdowns.
"""

import logging
import math
from datetime import date
from typing import Any, Dict, Mapping, Optional

from app.models.reporting import (
    AttendanceTrend,
    DailyAttendance,
    PerformanceDistribution,
    ProgressTrend,
    StudentProgress,
    TrendDirection,
    percentage,
    round_half_up,
)

logger = logging.getLogger("app.trends")


class TrendAnalyzer:
    """Classifies attendance and progress series. Never raises on missing input."""

    def __init__(self):
        self.change_threshold = 5
        self.high_performer_min = 80
        self.low_performer_max = 50
        self.distribution_thresholds = {"excellent": 90, "good": 70, "average": 50}

    def attendance_trend(self, daily_breakdown: Optional[Mapping[Any, Any]]) -> AttendanceTrend:
        """
        Compare the mean daily attendance rate of the first and second half of the period.

        Args:
            daily_breakdown: Mapping of date (or ISO date string) to present/total counts

        Returns:
            AttendanceTrend; stable with zero change when there are fewer than two days
        """
        if not daily_breakdown:
            return AttendanceTrend()

        days = []
        for day, counts in daily_breakdown.items():
            try:
                days.append((_as_date(day), _as_daily(counts)))
            except (TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed attendance day {day!r}: {e}")
        days.sort(key=lambda item: item[0])
        rates = [percentage(counts.present, counts.total) for _, counts in days]

        if len(rates) < 2:
            return AttendanceTrend()

        split = math.ceil(len(rates) / 2)
        first_half, second_half = rates[:split], rates[split:]

        first_avg = sum(first_half) / len(first_half)
        second_avg = sum(second_half) / len(second_half)
        change = round_half_up(second_avg - first_avg)

        if change > self.change_threshold:
            trend = TrendDirection.IMPROVING
        elif change < -self.change_threshold:
            trend = TrendDirection.DECLINING
        else:
            trend = TrendDirection.STABLE

        logger.debug(f"Attendance trend over {len(rates)} days: {trend.value} ({change:+d})")
        return AttendanceTrend(
            trend=trend,
            change=change,
            first_avg=round_half_up(first_avg),
            second_avg=round_half_up(second_avg),
        )

    def progress_trend(self, student_progress: Optional[Mapping[str, Any]]) -> ProgressTrend:
        """
        Summarize how students are distributed across progress bands.

        Args:
            student_progress: Mapping of student id to per-student progress

        Returns:
            ProgressTrend; all zeros when there are no students
        """
        if not student_progress:
            return ProgressTrend()

        averages = []
        for student_id, progress in student_progress.items():
            try:
                averages.append(_as_student_progress(progress).average_progress)
            except (TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed progress for student {student_id!r}: {e}")

        if not averages:
            return ProgressTrend()

        thresholds = self.distribution_thresholds

        distribution = PerformanceDistribution(
            excellent=sum(1 for avg in averages if avg >= thresholds["excellent"]),
            good=sum(1 for avg in averages if thresholds["good"] <= avg < thresholds["excellent"]),
            average=sum(1 for avg in averages if thresholds["average"] <= avg < thresholds["good"]),
            needs_improvement=sum(1 for avg in averages if avg < thresholds["average"]),
        )

        return ProgressTrend(
            average_progress=round_half_up(sum(averages) / len(averages)),
            high_performers=sum(1 for avg in averages if avg >= self.high_performer_min),
            low_performers=sum(1 for avg in averages if avg < self.low_performer_max),
            total_students=len(averages),
            performance_distribution=distribution,
        )


def _as_date(value: Any) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _as_daily(value: Any) -> DailyAttendance:
    if isinstance(value, DailyAttendance):
        return value
    return DailyAttendance.model_validate(value)


def _as_student_progress(value: Any) -> StudentProgress:
    if isinstance(value, StudentProgress):
        return value
    return StudentProgress.model_validate(value)


def daily_rates(daily_breakdown: Dict[date, DailyAttendance]) -> Dict[date, int]:
    """Date-sorted attendance rate per day, for charting."""
    return {day: counts.attendance_rate for day, counts in sorted(daily_breakdown.items())}


# Global instance
trend_analyzer = TrendAnalyzer()
