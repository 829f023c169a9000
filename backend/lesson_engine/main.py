# backend/lesson_engine/main.py
from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI, Response

from .core.config import is_running_tests, settings
from .database import init_db
from .errors import register_error_handlers
from .monitoring.prometheus_metrics import prometheus_metrics
from .routes.v1 import (
    availability as availability_v1,
    holidays as holidays_v1,
    lesson_requests as lesson_requests_v1,
)
from .schemas.health import HealthResponse

API_TITLE = "Lesson Engine API"
API_DESCRIPTION = "Lesson rescheduling workflow and teacher availability"
API_VERSION = "0.1.0"

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown without deprecated events."""
    logger.info(f"{API_TITLE} starting up...")
    logger.info(f"Environment: {settings.environment}")

    if is_running_tests():
        logger.info("Running under pytest (test mode active)")
    elif settings.is_sqlite:
        # Local SQLite databases have no migration step
        init_db()

    yield

    logger.info(f"{API_TITLE} shutting down...")


def _health_payload() -> HealthResponse:
    return HealthResponse(
        status="healthy",
        service="lesson-engine-api",
        version=API_VERSION,
        environment=settings.environment,
        timestamp=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
    )


def create_app() -> FastAPI:
    app = FastAPI(
        title=API_TITLE,
        description=API_DESCRIPTION,
        version=API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=app_lifespan,
    )
    # Register unified error envelope handlers
    register_error_handlers(app)

    api_v1 = APIRouter(prefix="/api/v1")

    api_v1.include_router(holidays_v1.router, prefix="/admin/holidays")
    api_v1.include_router(availability_v1.router)
    api_v1.include_router(lesson_requests_v1.router)
    app.include_router(api_v1)

    @app.get("/health", response_model=HealthResponse, include_in_schema=False)
    def health_check() -> HealthResponse:
        return _health_payload()

    @app.get("/metrics", include_in_schema=False)
    def metrics_endpoint() -> Response:
        return Response(
            content=prometheus_metrics.get_metrics(),
            media_type=prometheus_metrics.get_content_type(),
            headers={"Cache-Control": "no-store"},
        )

    return app


app = create_app()
