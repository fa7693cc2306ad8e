"""Health check endpoint."""

import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter

from patient_records import __version__
from patient_records.api.dependencies import PatientRepositoryDep, SettingsDep
from patient_records.domain.ports import ExternalServiceError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health")
def health_check(repository: PatientRepositoryDep, settings: SettingsDep):
    """Report repository reachability.

    Raises ExternalServiceError (mapped to 502) when the store is unreachable.
    """
    start_time = time.time()
    try:
        repository.health_check()
    except ExternalServiceError as e:
        logger.error(f"Health check failed for {settings.repository_backend} backend: {e.operation}")
        raise
    response_time = (time.time() - start_time) * 1000
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": __version__,
        "repository": {
            "backend": settings.repository_backend,
            "response_time_ms": round(response_time, 2),
        },
        "cache": {"backend": settings.cache_config.backend},
    }
