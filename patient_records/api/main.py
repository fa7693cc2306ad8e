"""Main FastAPI application for the patient-records API."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from patient_records import __version__
from patient_records.api.dependencies import close_resources
from patient_records.api.errors import register_exception_handlers
from patient_records.api.middleware import setup_middleware
from patient_records.api.routes import addresses, health, patients
from patient_records.infrastructure.logging_config import setup_logging
from patient_records.infrastructure.settings import settings

setup_logging(use_json=settings.json_logs, log_level=settings.log_level)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager; releases the store and cache on shutdown."""
    logger.info(f"{settings.app_name} API starting up...")
    logger.info(f"Repository backend: {settings.repository_backend}")
    logger.info(f"Cache backend: {settings.cache_config.backend}")
    yield
    logger.info(f"{settings.app_name} API shutting down...")
    close_resources()


def create_app() -> FastAPI:
    application = FastAPI(
        title=f"{settings.app_name} API",
        description="Patient and address records with cache-aside reads",
        version=__version__,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
        lifespan=lifespan,
    )
    setup_middleware(application, timeout_seconds=settings.request_timeout_seconds)
    register_exception_handlers(application)

    application.include_router(health.router)
    application.include_router(patients.router)
    application.include_router(addresses.router)
    return application


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("patient_records.api.main:app", host="0.0.0.0", port=8000, log_level="info")
