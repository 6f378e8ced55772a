"""
Celery tasks for automatic data collection.
"""
import logging
from typing import Any, Dict

from app.models.collection import CollectionStatus
from app.services.collection_service import get_scheduler
from app.services.config_service import config_service

from worker.celery_app import celery_app

logger = logging.getLogger("worker.collection_tasks")


@celery_app.task
def collect_operational_data() -> Dict[str, Any]:
    """
    Run one data collection pass through the worker's scheduler.
    This task runs periodically; a trigger that finds a run in flight is skipped.
    """
    logger.info("Starting periodic data collection")
    
    try:
        scheduler = get_scheduler()
        
        if not scheduler.trigger_now():
            logger.info("Data collection already in progress, skipping")
            return {
                "status": "skipped",
                "timestamp": config_service.now().isoformat()
            }
        
        timeout = config_service.get_float("COLLECTION_FETCH_TIMEOUT_SECONDS", 30.0) * 2
        if not scheduler.wait_for_run(timeout):
            logger.warning(f"Data collection still running after {timeout:g}s")
            return {
                "status": "running",
                "timestamp": config_service.now().isoformat()
            }
        
        run = scheduler.latest_run()
        logger.info(f"Data collection finished: {run.status.value if run else 'no run recorded'}")
        
        return {
            "status": "success" if run and run.status == CollectionStatus.COMPLETED else "error",
            "run": run.model_dump(mode="json") if run else None,
            "timestamp": config_service.now().isoformat()
        }
        
    except Exception as e:
        logger.error(f"Error in collect_operational_data: {e}")
        return {
            "status": "error",
            "error": str(e),
            "timestamp": config_service.now().isoformat()
        }
