"""
Automatic data collection endpoints.
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from app.models.collection import CollectionRun, SchedulerStatus
from app.services.collection_service import MODE_CELERY, get_scheduler, refresh_history, scheduler_mode
from app.services.scheduler_service import CollectionScheduler
from worker.collection_tasks import collect_operational_data

logger = logging.getLogger("app.routes.collection")
router = APIRouter(prefix="/api/collection", tags=["collection"])


@router.get("/status", response_model=SchedulerStatus)
async def collection_status(scheduler: CollectionScheduler = Depends(get_scheduler)) -> SchedulerStatus:
    """Current scheduler state and the latest run."""
    refresh_history(scheduler)
    return scheduler.status()


@router.get("/latest", response_model=CollectionRun)
async def latest_run(scheduler: CollectionScheduler = Depends(get_scheduler)) -> CollectionRun:
    """
    Latest finalized collection run.

    Raises:
        HTTPException: 404 if nothing has been collected yet
    """
    refresh_history(scheduler)
    run = scheduler.latest_run()
    if run is None:
        raise HTTPException(status_code=404, detail="No collection run recorded yet")
    return run


@router.get("/history", response_model=List[CollectionRun])
async def collection_history(scheduler: CollectionScheduler = Depends(get_scheduler)) -> List[CollectionRun]:
    """Up to ten most recent runs, newest first."""
    refresh_history(scheduler)
    return list(scheduler.history.all())


@router.post("/trigger")
async def trigger_collection(scheduler: CollectionScheduler = Depends(get_scheduler)) -> JSONResponse:
    """
    Start a collection run now.

    In celery mode the run is queued for the worker instead of running in
    the API process.

    Returns:
        202 with accepted=true, or 409 with accepted=false while a run is in flight
    """
    if scheduler_mode() == MODE_CELERY:
        return queue_collection()

    try:
        accepted = scheduler.trigger_now()
    except Exception as e:
        logger.error(f"Error triggering data collection: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    if not accepted:
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={"accepted": False, "message": "Collection already in progress"},
        )

    logger.info("Manual data collection triggered")
    return JSONResponse(
        status_code=status.HTTP_202_ACCEPTED,
        content={"accepted": True, "message": "Collection started"},
    )


def queue_collection() -> JSONResponse:
    """Hand the run to the Celery worker, which owns collection in celery mode."""
    try:
        task = collect_operational_data.delay()
    except Exception as e:
        logger.error(f"Error queueing data collection: {e}")
        raise HTTPException(status_code=503, detail=f"Collection worker unavailable: {e}")

    logger.info(f"Data collection queued as task {task.id}")
    return JSONResponse(
        status_code=status.HTTP_202_ACCEPTED,
        content={"accepted": True, "message": "Collection queued", "task_id": task.id},
    )
