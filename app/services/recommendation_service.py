"""
Actionable recommendations derived from insights and trends.
"""

import logging
from typing import Iterable, List, Optional

from app.models.reporting import (
    AttendanceSummary,
    Insight,
    InsightCategory,
    InsightType,
    Priority,
    ProgressSummary,
    Recommendation,
    RecommendationCategory,
    TrendDirection,
)
from app.services.trend_service import TrendAnalyzer, trend_analyzer

logger = logging.getLogger("app.recommendations")

# Share of low performers above which the curriculum should be reviewed
LOW_PERFORMER_SHARE = 0.3


class RecommendationEngine:
    """Turns concerns and trends into templated recommendations."""

    def __init__(self, analyzer: Optional[TrendAnalyzer] = None):
        self.analyzer = analyzer or trend_analyzer

    def derive_recommendations(
        self,
        insights: Iterable[Insight],
        attendance: Optional[AttendanceSummary] = None,
        progress: Optional[ProgressSummary] = None,
    ) -> List[Recommendation]:
        """
        Build recommendations in a fixed order.

        Concern insights come first (attendance before progress), then the
        trend-based recommendations, which need both summaries.

        Args:
            insights: Insights from the insight engine
            attendance: Attendance summary with its daily breakdown
            progress: Progress summary with its per-student breakdown

        Returns:
            List of recommendations, not sorted by priority
        """
        concerns = [insight for insight in insights or [] if insight.type == InsightType.CONCERN]

        recommendations = [
            self._improve_attendance() for insight in concerns if insight.category == InsightCategory.ATTENDANCE
        ]
        recommendations += [
            self._learning_support() for insight in concerns if insight.category == InsightCategory.PROGRESS
        ]

        if attendance is not None and progress is not None:
            attendance_trend = self.analyzer.attendance_trend(attendance.daily_breakdown)
            progress_trend = self.analyzer.progress_trend(progress.student_progress)

            if attendance_trend.trend == TrendDirection.DECLINING:
                recommendations.append(self._student_engagement())

            if progress_trend.low_performers > progress_trend.total_students * LOW_PERFORMER_SHARE:
                recommendations.append(self._curriculum_review(progress_trend.low_performers))

        logger.debug(f"Derived {len(recommendations)} recommendations from {len(concerns)} concerns")
        return recommendations

    @staticmethod
    def _improve_attendance() -> Recommendation:
        return Recommendation(
            category=RecommendationCategory.ATTENDANCE,
            priority=Priority.HIGH,
            title="Improve Attendance",
            action="Contact families with frequent absences",
            description="Reach out to parents of students with attendance issues to understand barriers",
            timeline="Within 1 week",
            resources=["Parent communication templates", "Attendance tracking tools"],
        )

    @staticmethod
    def _learning_support() -> Recommendation:
        return Recommendation(
            category=RecommendationCategory.PROGRESS,
            priority=Priority.MEDIUM,
            title="Learning Support",
            action="Provide additional academic support",
            description="Offer tutoring sessions or modify lesson difficulty for struggling students",
            timeline="Within 2 weeks",
            resources=["Learning materials", "Assessment tools", "Teacher training"],
        )

    @staticmethod
    def _student_engagement() -> Recommendation:
        return Recommendation(
            category=RecommendationCategory.ENGAGEMENT,
            priority=Priority.HIGH,
            title="Student Engagement",
            action="Implement engagement initiatives",
            description="Attendance trend is declining. Consider new activities or programs",
            timeline="Within 1 week",
            resources=["Activity planning guides", "Engagement strategies"],
        )

    @staticmethod
    def _curriculum_review(low_performers: int) -> Recommendation:
        return Recommendation(
            category=RecommendationCategory.CURRICULUM,
            priority=Priority.MEDIUM,
            title="Curriculum Review",
            action="Review and adjust curriculum",
            description=f"{low_performers} students need additional support. Consider curriculum modifications",
            timeline="Within 1 month",
            resources=["Curriculum guides", "Assessment data", "Teacher feedback"],
        )


# Global instance
recommendation_engine = RecommendationEngine()
