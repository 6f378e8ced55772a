"""
Tests for the collection and reporting API.
"""

import threading
from datetime import date
from types import SimpleNamespace

import pytest

import app.routes.collection as collection_routes
from app.models.records import StudentRecord
from app.services.config_service import config_service
from app.services.history_service import HistoryStore
from app.services.scheduler_service import CollectionScheduler, thread_dispatcher

from conftest import (
    FakeAttendanceRepository,
    FakeDemographicsSource,
    FakeProgressRepository,
    attendance_records,
    progress_records,
)


class TestCollectionEndpoints:
    """Test /api/collection endpoints."""

    def test_status_before_any_run(self, client):
        response = client.get("/api/collection/status")

        assert response.status_code == 200
        data = response.json()
        assert data["state"] == "idle"
        assert data["latest_run"] is None

    def test_latest_without_runs(self, client):
        response = client.get("/api/collection/latest")

        assert response.status_code == 404

    def test_trigger_runs_collection(self, client):
        response = client.post("/api/collection/trigger")

        assert response.status_code == 202
        assert response.json() == {"accepted": True, "message": "Collection started"}

        latest = client.get("/api/collection/latest").json()
        assert latest["status"] == "completed"
        assert latest["stats"]["data_quality"] == 100

        status = client.get("/api/collection/status").json()
        assert status["state"] == "completed"
        assert status["latest_run"]["id"] == latest["id"]

    def test_history_newest_first(self, client, api_scheduler):
        for _ in range(12):
            api_scheduler.trigger_now()

        history = client.get("/api/collection/history").json()

        assert len(history) == 10
        assert history[0]["id"] == api_scheduler.latest_run().id

    def test_trigger_conflict_while_collecting(self, client, api_scheduler, make_collector):
        gate = threading.Event()
        scheduler = api_scheduler
        scheduler.collector = make_collector(attendance=FakeAttendanceRepository(gate=gate))
        scheduler._dispatcher = thread_dispatcher

        try:
            assert client.post("/api/collection/trigger").status_code == 202
            response = client.post("/api/collection/trigger")
        finally:
            gate.set()
            scheduler.wait_for_run(timeout=5)

        assert response.status_code == 409
        assert response.json()["accepted"] is False


class TestReportEndpoints:
    """Test /api/reports endpoints."""

    def test_insights(self, client):
        payload = {"attendance": {"present_count": 65, "absent_count": 35, "total_records": 100, "attendance_rate": 65}}

        response = client.post("/api/reports/insights", json=payload)

        assert response.status_code == 200
        insights = response.json()
        assert len(insights) == 1
        assert insights[0]["type"] == "concern"
        assert "35" in insights[0]["message"]

    def test_recommendations_derive_insights(self, client):
        payload = {"progress": {"completed_lessons": 1, "total_lessons": 10, "completion_rate": 10}}

        response = client.post("/api/reports/recommendations", json=payload)

        assert response.status_code == 200
        assert [rec["title"] for rec in response.json()] == ["Learning Support"]

    def test_attendance_trend(self, client):
        payload = {
            "daily_breakdown": {
                "2024-03-01": {"present": 80, "total": 100},
                "2024-03-02": {"present": 82, "total": 100},
                "2024-03-03": {"present": 60, "total": 100},
                "2024-03-04": {"present": 58, "total": 100},
            }
        }

        response = client.post("/api/reports/trends/attendance", json=payload)

        assert response.json() == {"trend": "declining", "change": -22, "first_avg": 81, "second_avg": 59}

    def test_progress_trend(self, client):
        payload = {"student_progress": {"s1": {"average_progress": 95}, "s2": {"average_progress": 30}}}

        data = client.post("/api/reports/trends/progress", json=payload).json()

        assert data["total_students"] == 2
        assert data["high_performers"] == 1
        assert data["low_performers"] == 1

    def test_dashboard(self, client, api_reporting_service):
        api_reporting_service.attendance_repository = FakeAttendanceRepository(
            attendance_records(["present", "absent"], day=config_service.now().date())
        )

        response = client.get("/api/reports/dashboard?period=month")

        assert response.status_code == 200
        data = response.json()
        assert data["period"] == "month"
        assert data["attendance"]["total_records"] == 2
        assert data["attendance"]["attendance_rate"] == 50

    def test_dashboard_unknown_period(self, client):
        response = client.get("/api/reports/dashboard?period=decade")

        assert response.status_code == 400


class QueuedTask:
    def __init__(self):
        self.calls = 0

    def delay(self):
        self.calls += 1
        return SimpleNamespace(id=f"task-{self.calls}")


class TestCeleryMode:
    """When the worker owns collection the API must not collect itself."""

    @pytest.fixture(autouse=True)
    def celery_mode(self):
        config_service.set_setting("COLLECTION_SCHEDULER_MODE", "celery")
        yield
        config_service.clear_cache()

    def test_trigger_queues_worker_task(self, client, api_scheduler, monkeypatch):
        task = QueuedTask()
        monkeypatch.setattr(collection_routes, "collect_operational_data", task)

        response = client.post("/api/collection/trigger")

        assert response.status_code == 202
        assert response.json() == {"accepted": True, "message": "Collection queued", "task_id": "task-1"}
        assert task.calls == 1
        assert len(api_scheduler.history) == 0
        assert api_scheduler.state.value == "idle"

    def test_unreachable_broker(self, client, monkeypatch):
        def refuse():
            raise ConnectionError("broker down")

        monkeypatch.setattr(collection_routes, "collect_operational_data", SimpleNamespace(delay=refuse))

        response = client.post("/api/collection/trigger")

        assert response.status_code == 503

    def test_history_reflects_worker_runs(self, client, make_collector, kv_store, timer_factory):
        worker = CollectionScheduler(
            make_collector(),
            HistoryStore(kv_store),
            timer_factory=timer_factory,
            dispatcher=lambda work: work(),
        )
        worker.trigger_now()

        history = client.get("/api/collection/history").json()

        assert [run["id"] for run in history] == [worker.latest_run().id]


class TestRecommendationInsights:
    def test_explicit_empty_insights_are_used_as_given(self, client):
        payload = {"insights": [], "progress": {"completed_lessons": 1, "total_lessons": 10, "completion_rate": 10}}

        response = client.post("/api/reports/recommendations", json=payload)

        assert response.status_code == 200
        assert response.json() == []


@pytest.fixture
def seeded_reports(api_reporting_service):
    api_reporting_service.attendance_repository = FakeAttendanceRepository(
        attendance_records(["present", "late"], day=date(2024, 3, 1), student_id="s1", section_id="sec-a")
        + attendance_records(["absent"], day=date(2024, 3, 5), student_id="s2", section_id="sec-b")
        + attendance_records(["present"], day=date(2024, 4, 2), student_id="s1", section_id="sec-a")
    )
    api_reporting_service.progress_repository = FakeProgressRepository(
        progress_records([100, 50], user_id="s1") + progress_records([0], user_id="s2")
    )
    api_reporting_service.demographics_source = FakeDemographicsSource(
        students=2, roster=[StudentRecord(id="s1", name="Ann", section_id="sec-a")]
    )
    return api_reporting_service


class TestFilteredReports:
    """Test /api/reports/attendance, /progress and /student/{id}."""

    def test_attendance_unfiltered(self, client, seeded_reports):
        data = client.get("/api/reports/attendance").json()

        assert data["summary"]["total_records"] == 4
        assert len(data["records"]) == 4

    def test_attendance_by_dates_and_section(self, client, seeded_reports):
        response = client.get(
            "/api/reports/attendance",
            params={"start_date": "2024-03-01", "end_date": "2024-03-31", "section_id": "sec-a"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["summary"]["total_records"] == 2
        assert data["summary"]["punctuality_rate"] == 100
        assert set(data["student_breakdown"]) == {"s1"}
        assert list(data["summary"]["daily_breakdown"]) == ["2024-03-01"]

    def test_attendance_open_ended_range(self, client, seeded_reports):
        data = client.get("/api/reports/attendance", params={"start_date": "2024-03-02"}).json()

        assert data["summary"]["total_records"] == 2

    def test_attendance_by_student(self, client, seeded_reports):
        data = client.get("/api/reports/attendance", params={"student_id": "s2"}).json()

        assert data["summary"]["absent_count"] == 1
        assert data["summary"]["total_records"] == 1

    def test_attendance_inverted_range(self, client, seeded_reports):
        response = client.get("/api/reports/attendance", params={"start_date": "2024-04-01", "end_date": "2024-03-01"})

        assert response.status_code == 400

    def test_progress_by_student(self, client, seeded_reports):
        data = client.get("/api/reports/progress", params={"student_id": "s1"}).json()

        assert data["summary"]["total_lessons"] == 2
        assert data["summary"]["completed_lessons"] == 1
        assert set(data["summary"]["student_progress"]) == {"s1"}

    def test_progress_unfiltered(self, client, seeded_reports):
        data = client.get("/api/reports/progress").json()

        assert data["summary"]["total_lessons"] == 3

    def test_student_report(self, client, seeded_reports):
        response = client.get("/api/reports/student/s1", params={"start_date": "2024-03-01", "end_date": "2024-03-31"})

        assert response.status_code == 200
        data = response.json()
        assert data["student"]["name"] == "Ann"
        assert data["period"] == {"start": "2024-03-01", "end": "2024-03-31"}
        assert data["attendance"]["summary"]["total_records"] == 2
        assert data["progress"]["summary"]["average_progress"] == 75

    def test_student_report_unknown_student(self, client, seeded_reports):
        response = client.get("/api/reports/student/nobody")

        assert response.status_code == 404
