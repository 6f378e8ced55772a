"""
Health check endpoints.
"""
import logging
import time
from typing import Any, Dict

import psutil
from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from app.database.session import get_session
from app.services.collection_service import get_scheduler, scheduler_mode
from app.services.config_service import config_service
from app.services.scheduler_service import CollectionScheduler

router = APIRouter()
logger = logging.getLogger("app.health")

SERVICE_NAME = "CareTrack"
SERVICE_VERSION = "0.2.0"


@router.get("/healthz")
async def health_check() -> Dict[str, Any]:
    """
    Health check endpoint for Kubernetes/Docker health probes.

    Returns:
        Dict with status information
    """
    logger.info("Health check requested")

    return {
        "status": "ok",
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION
    }


@router.get("/health")
async def detailed_health(
    db: Session = Depends(get_session),
    scheduler: CollectionScheduler = Depends(get_scheduler)
) -> Dict[str, Any]:
    """
    Detailed health check with component status.

    Returns:
        Dict with database, scheduler and process information
    """
    logger.info("Detailed health check requested")

    database = await get_database_status(db)
    latest_run = scheduler.latest_run()
    fake_time = config_service.get_fake_time()

    return {
        "status": "ok" if database["status"] == "healthy" else "degraded",
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "components": {
            "database": database,
            "scheduler": {
                "mode": scheduler_mode(),
                "state": scheduler.state.value,
                "started": scheduler.is_started,
                "last_run_status": latest_run.status.value if latest_run else None,
                "last_run_at": latest_run.timestamp.isoformat() if latest_run else None,
            },
        },
        "process": get_process_metrics(),
        "fake_time": fake_time.isoformat() if fake_time else None,
    }


async def get_database_status(db: Session) -> Dict[str, Any]:
    """Test database connectivity."""
    try:
        start_time = time.time()
        db.execute(text("SELECT 1"))
        response_time = round((time.time() - start_time) * 1000, 2)  # ms
        return {"status": "healthy", "response_time_ms": response_time}
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return {"status": "unhealthy", "error": str(e)}


def get_process_metrics() -> Dict[str, Any]:
    """Get resource usage of the current process."""
    try:
        process = psutil.Process()
        return {
            "memory_mb": round(process.memory_info().rss / 1024 / 1024, 1),
            "threads": process.num_threads(),
        }
    except Exception as e:
        logger.error(f"Error getting process metrics: {e}")
        return {"memory_mb": 0, "threads": 0}
