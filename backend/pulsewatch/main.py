import logging
import uuid
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request

from pulsewatch.api.alerts import router as alerts_router
from pulsewatch.api.api_keys import router as api_keys_router
from pulsewatch.api.destinations import router as destinations_router
from pulsewatch.api.health import router as health_router
from pulsewatch.api.metrics import router as metrics_router
from pulsewatch.api.notifications import router as notifications_router
from pulsewatch.api.stats import router as stats_router
from pulsewatch.core.config import APP_VERSION, settings
from pulsewatch.core.errors import HTTPError, http_error_handler
from pulsewatch.core.logging import setup_logging
from pulsewatch.core.redis import close_redis
from pulsewatch.db.session import init_db
from pulsewatch.services.ingestion import wait_for_pending
from pulsewatch.services.notification_queue import notification_queue
from pulsewatch.services.scheduler import scheduler_service

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application startup and shutdown."""
    setup_logging()

    await init_db()

    logger.info("Starting notification queue")
    notification_queue.start()

    logger.info("Starting scheduler service")
    scheduler_service.start()

    yield

    logger.info("Stopping scheduler service")
    scheduler_service.stop()

    # Let in-flight evaluations commit and enqueue before the queue drains
    await wait_for_pending()
    logger.info("Stopping notification queue")
    await notification_queue.stop()

    logger.info("Closing Redis connection")
    await close_redis()


app = FastAPI(
    title=settings.APP_NAME,
    version=APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
    redirect_slashes=False,
)

app.add_exception_handler(HTTPError, http_error_handler)


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    """Add unique request ID for tracking and debugging."""
    request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
    request.state.request_id = request_id

    # Bind request_id to all log entries during this request
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id)

    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id

    structlog.contextvars.clear_contextvars()
    return response


app.include_router(health_router)
app.include_router(metrics_router, prefix="/api")
app.include_router(alerts_router, prefix="/api")
app.include_router(destinations_router, prefix="/api")
app.include_router(notifications_router, prefix="/api")
app.include_router(api_keys_router, prefix="/api")
app.include_router(stats_router, prefix="/api")
