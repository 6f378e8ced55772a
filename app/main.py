"""
CareTrack FastAPI application entry point.
"""
import logging
import uuid
from contextlib import asynccontextmanager
from contextvars import ContextVar

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from app.database.init_db import init_database
from app.routes.collection import router as collection_router
from app.routes.health import router as health_router
from app.routes.reports import router as reports_router
from app.services.collection_service import MODE_INPROCESS, collection_interval, get_scheduler, scheduler_mode
from app.services.config_service import config_service

# Request ID context variable
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

# Custom logging filter to add request_id
class RequestIDFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get("")
        return True

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s level=%(levelname)s logger=%(name)s msg=%(message)s request_id=%(request_id)s"
)

# Add filter to every root handler so records from any logger carry request_id
for handler in logging.getLogger().handlers:
    handler.addFilter(RequestIDFilter())

logger = logging.getLogger("app.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and run the in-process collection scheduler for the app lifetime."""
    init_database()

    scheduler = None
    if scheduler_mode() == MODE_INPROCESS:
        scheduler = get_scheduler()
        scheduler.start(collection_interval())
        if config_service.get_bool("COLLECTION_RUN_ON_STARTUP", True):
            scheduler.trigger_now()
    else:
        logger.info(f"In-process collection scheduler not started (mode={scheduler_mode()})")

    yield

    if scheduler is not None:
        scheduler.stop()


# Create FastAPI app
app = FastAPI(
    title="CareTrack",
    description="Childcare center data collection, reporting and insights",
    version="0.2.0",
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure properly for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Request ID middleware
@app.middleware("http")
async def add_request_id(request: Request, call_next):
    request_id = str(uuid.uuid4())
    request_id_var.set(request_id)

    # Log request start
    request_logger = logging.getLogger("app.request")
    request_logger.info(
        f"Request started method={request.method} url={str(request.url)} client_ip={request.client.host if request.client else 'unknown'}"
    )

    response = await call_next(request)

    # Log request completion
    request_logger.info(
        f"Request completed status_code={response.status_code}"
    )

    return response

# Include routers
app.include_router(health_router, tags=["health"])
app.include_router(collection_router)
app.include_router(reports_router)
