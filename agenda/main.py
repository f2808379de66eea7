"""
FastAPI application for the appointment book

Scheduling rules live in agenda.services; this module only wires HTTP.
"""
import logging
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from agenda.config.settings import get_settings
from agenda.core.middleware import correlation_id_middleware, request_logging_middleware
from agenda.core.monitoring import health_router
from agenda.api.v1.router import api_v1_router
from agenda.utils.my_logging import setup_logging

settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Configure logging before the first request is served"""
    # Startup
    setup_logging()
    logger.info(f"{settings.APP_NAME} API starting up...")
    logger.info(f"Schedule locks: {settings.SCHEDULE_LOCK_BACKEND}, "
                f"max overrides per day: {settings.MAX_OVERRIDES_PER_DAY}")

    yield

    # Shutdown
    logger.info(f"{settings.APP_NAME} API shutting down...")


def create_app() -> FastAPI:
    """App factory; tests import the module-level `app`"""

    app = FastAPI(
        title=f"{settings.APP_NAME} API",
        description="Appointment scheduling with availability, overrides and recurring series",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
    )

    # Dashboard frontends call from other origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "PUT"],
        allow_headers=["*"],
    )

    # Last added runs outermost
    app.middleware("http")(request_logging_middleware)
    app.middleware("http")(correlation_id_middleware)

    # Include routers
    app.include_router(health_router, prefix="/health", tags=["monitoring"])
    app.include_router(api_v1_router, prefix="/api/v1", tags=["api"])

    @app.get("/")
    async def root():
        return {
            "service": f"{settings.APP_NAME} API",
            "version": "0.1.0",
            "status": "running",
            "endpoints": {
                "appointments": "/api/v1/dashboard/appointments",
                "health": "/health",
                "docs": "/docs" if settings.DEBUG else "disabled"
            }
        }

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "agenda.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level="info"
    )
