"""
Reporting and insights endpoints.
"""
import logging
from datetime import date
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from app.models.reporting import (
    AttendanceSummary,
    AttendanceTrend,
    DailyAttendance,
    Insight,
    ProgressSummary,
    ProgressTrend,
    Recommendation,
    StudentProgress,
)
from app.models.records import DateRange
from app.services.collection_service import get_reporting_service
from app.services.insight_service import insight_engine
from app.services.recommendation_service import recommendation_engine
from app.services.reporting_service import ReportingService
from app.services.trend_service import trend_analyzer

logger = logging.getLogger("app.routes.reports")
router = APIRouter(prefix="/api/reports", tags=["reports"])

PERIODS = ("day", "week", "month", "quarter", "year")


class InsightsRequest(BaseModel):
    attendance: Optional[AttendanceSummary] = None
    progress: Optional[ProgressSummary] = None


class RecommendationsRequest(InsightsRequest):
    insights: Optional[List[Insight]] = None


class AttendanceTrendRequest(BaseModel):
    daily_breakdown: Dict[date, DailyAttendance] = Field(default_factory=dict)


class ProgressTrendRequest(BaseModel):
    student_progress: Dict[str, StudentProgress] = Field(default_factory=dict)


@router.post("/insights", response_model=List[Insight])
async def derive_insights(request_data: InsightsRequest) -> List[Insight]:
    """Insights for the given attendance and/or progress summaries."""
    return insight_engine.derive_insights(request_data.attendance, request_data.progress)


@router.post("/recommendations", response_model=List[Recommendation])
async def derive_recommendations(request_data: RecommendationsRequest) -> List[Recommendation]:
    """
    Recommendations for the given insights and summaries.

    When insights are omitted they are derived from the summaries; an empty
    list is taken as given.
    """
    insights = request_data.insights
    if insights is None:
        insights = insight_engine.derive_insights(request_data.attendance, request_data.progress)
    return recommendation_engine.derive_recommendations(insights, request_data.attendance, request_data.progress)


@router.post("/trends/attendance", response_model=AttendanceTrend)
async def attendance_trend(request_data: AttendanceTrendRequest) -> AttendanceTrend:
    return trend_analyzer.attendance_trend(request_data.daily_breakdown)


@router.post("/trends/progress", response_model=ProgressTrend)
async def progress_trend(request_data: ProgressTrendRequest) -> ProgressTrend:
    return trend_analyzer.progress_trend(request_data.student_progress)


@router.get("/dashboard")
async def dashboard_report(
    period: str = Query("week"),
    reporting_service: ReportingService = Depends(get_reporting_service),
) -> Dict[str, Any]:
    """
    Combined dashboard report for a period.

    Args:
        period: day, week, month, quarter or year
    """
    if period not in PERIODS:
        raise HTTPException(status_code=400, detail=f"Unknown period: {period}")

    try:
        return reporting_service.build_dashboard(period)
    except Exception as e:
        logger.error(f"Error generating dashboard report: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to generate dashboard report: {e}")


def _date_range(start_date: Optional[date], end_date: Optional[date]) -> Optional[DateRange]:
    try:
        return DateRange.between(start_date, end_date)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/attendance")
async def attendance_report(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    section_id: Optional[str] = Query(None),
    student_id: Optional[str] = Query(None),
    reporting_service: ReportingService = Depends(get_reporting_service),
) -> Dict[str, Any]:
    """
    Attendance summary with daily and per-student breakdowns.

    Args:
        start_date: First day included (open when omitted)
        end_date: Last day included (open when omitted)
        section_id: Only records of this section
        student_id: Only records of this student
    """
    date_range = _date_range(start_date, end_date)

    try:
        return reporting_service.attendance_report(date_range=date_range, section_id=section_id, student_id=student_id)
    except Exception as e:
        logger.error(f"Error generating attendance report: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to generate attendance report: {e}")


@router.get("/progress")
async def progress_report(
    student_id: Optional[str] = Query(None),
    reporting_service: ReportingService = Depends(get_reporting_service),
) -> Dict[str, Any]:
    """Lesson progress summary, optionally for one student."""
    try:
        return reporting_service.progress_report(student_id=student_id)
    except Exception as e:
        logger.error(f"Error generating progress report: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to generate progress report: {e}")


@router.get("/student/{student_id}")
async def student_report(
    student_id: str,
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    reporting_service: ReportingService = Depends(get_reporting_service),
) -> Dict[str, Any]:
    """
    Attendance and progress report for one student.

    Raises:
        HTTPException: 404 if the student does not exist
    """
    date_range = _date_range(start_date, end_date)

    try:
        report = reporting_service.student_report(student_id, date_range=date_range)
    except Exception as e:
        logger.error(f"Error exporting student report for {student_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to export student report: {e}")

    if report is None:
        raise HTTPException(status_code=404, detail="Student not found")
    return report
