"""
Rule-based insights derived from attendance and progress summaries.
"""

import logging
from typing import List, Optional

from app.models.reporting import (
    AttendanceSummary,
    Insight,
    InsightCategory,
    InsightType,
    Priority,
    ProgressSummary,
)

logger = logging.getLogger("app.insights")


class InsightEngine:
    """
    Maps summaries to qualitative insights.

    Attendance and progress are evaluated independently. Rates falling between
    the "good" and "concern" bands (70-85% attendance, 40-60% completion)
    produce no insight.
    """

    def __init__(self):
        self.attendance_thresholds = {"excellent": 95, "good": 85, "concern": 70}
        self.progress_thresholds = {"excellent": 80, "good": 60, "concern": 40}

    def derive_insights(
        self,
        attendance: Optional[AttendanceSummary] = None,
        progress: Optional[ProgressSummary] = None,
    ) -> List[Insight]:
        """
        Derive insights for whichever summaries are available.

        Args:
            attendance: Attendance summary, if any
            progress: Progress summary, if any

        Returns:
            Attendance insight (if any) followed by progress insight (if any)
        """
        insights: List[Insight] = []

        if attendance is not None:
            insight = self._attendance_insight(attendance)
            if insight is not None:
                insights.append(insight)

        if progress is not None:
            insight = self._progress_insight(progress)
            if insight is not None:
                insights.append(insight)

        logger.debug(f"Derived {len(insights)} insights")
        return insights

    def _attendance_insight(self, summary: AttendanceSummary) -> Optional[Insight]:
        rate = summary.attendance_rate
        thresholds = self.attendance_thresholds

        if rate >= thresholds["excellent"]:
            return Insight(
                type=InsightType.EXCELLENT,
                category=InsightCategory.ATTENDANCE,
                title="Outstanding Attendance",
                message=f"{rate}% attendance rate shows excellent student engagement",
                priority=Priority.HIGH,
            )
        if rate >= thresholds["good"]:
            return Insight(
                type=InsightType.GOOD,
                category=InsightCategory.ATTENDANCE,
                title="Good Attendance",
                message=f"{rate}% attendance rate indicates healthy student participation",
                priority=Priority.MEDIUM,
            )
        if rate < thresholds["concern"]:
            return Insight(
                type=InsightType.CONCERN,
                category=InsightCategory.ATTENDANCE,
                title="Attendance Concerns",
                message=(
                    f"{rate}% attendance rate needs attention. "
                    f"{summary.absent_count} absent records out of {summary.total_records} total"
                ),
                priority=Priority.HIGH,
            )
        return None

    def _progress_insight(self, summary: ProgressSummary) -> Optional[Insight]:
        rate = summary.completion_rate
        thresholds = self.progress_thresholds

        if rate >= thresholds["excellent"]:
            return Insight(
                type=InsightType.EXCELLENT,
                category=InsightCategory.PROGRESS,
                title="Strong Learning Progress",
                message=(
                    f"{rate}% completion rate with "
                    f"{summary.completed_lessons}/{summary.total_lessons} lessons completed"
                ),
                priority=Priority.HIGH,
            )
        if rate >= thresholds["good"]:
            return Insight(
                type=InsightType.GOOD,
                category=InsightCategory.PROGRESS,
                title="Steady Progress",
                message=f"{rate}% completion rate shows consistent learning",
                priority=Priority.MEDIUM,
            )
        if rate < thresholds["concern"]:
            return Insight(
                type=InsightType.CONCERN,
                category=InsightCategory.PROGRESS,
                title="Progress Challenges",
                message=f"{rate}% completion rate indicates need for additional support",
                priority=Priority.HIGH,
            )
        return None


# Global instance
insight_engine = InsightEngine()
