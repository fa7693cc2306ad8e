"""Mapping of domain exceptions to HTTP responses.

Callers are told apart by exception class only; messages are informational.
CacheError never reaches this layer because services absorb it.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from patient_records.domain.ports import (
    DuplicateRecordError,
    ExternalServiceError,
    OperationCancelledError,
    PatientRecordsError,
    RecordNotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)

STATUS_BY_ERROR = (
    (ValidationError, 422),
    (RecordNotFoundError, 404),
    (DuplicateRecordError, 409),
    (OperationCancelledError, 504),
    (ExternalServiceError, 502),
)


def status_for(exc: PatientRecordsError) -> int:
    for error_type, status_code in STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return 500


async def patient_records_error_handler(request: Request, exc: PatientRecordsError) -> JSONResponse:
    status_code = status_for(exc)
    content = {"error": type(exc).__name__, "detail": str(exc)}

    if isinstance(exc, ValidationError) and exc.errors:
        content["fields"] = exc.errors
    elif isinstance(exc, DuplicateRecordError) and exc.field:
        content["fields"] = {exc.field: "already in use"}

    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} - {type(exc).__name__}: {exc}")
        if isinstance(exc, ExternalServiceError):
            content["detail"] = "Storage backend unavailable"
    else:
        logger.info(f"{request.method} {request.url.path} - {type(exc).__name__}")

    return JSONResponse(status_code=status_code, content=content)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(PatientRecordsError, patient_records_error_handler)
