"""Middleware for the patient-records API: request scope and request logging."""

import logging
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp, Receive, Scope, Send

from patient_records.infrastructure.request_scope import request_scope

logger = logging.getLogger(__name__)


class RequestScopeMiddleware:
    """Opens a request scope with a deadline around every HTTP request.

    Implemented as plain ASGI so the ContextVar it sets is visible to the
    route and its dependencies.
    """

    def __init__(self, app: ASGIApp, timeout_seconds: float):
        self.app = app
        self.timeout_seconds = timeout_seconds

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return
        with request_scope(self.timeout_seconds):
            await self.app(scope, receive, send)


class LoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for request/response logging."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Log method, path, status and timing; never query strings (they may hold PHI).

        Returns:
            Response: HTTP response with X-Request-ID and X-Process-Time headers
        """
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        start_time = time.time()
        log_extra = {"request_id": request_id, "method": request.method, "path": request.url.path}

        try:
            response = await call_next(request)
        except Exception as e:
            process_time = time.time() - start_time
            logger.error(
                f"{request.method} {request.url.path} - Error: {type(e).__name__} - "
                f"Time: {process_time:.3f}s",
                exc_info=True,
                extra=log_extra,
            )
            return JSONResponse(
                status_code=500,
                content={"error": "Internal server error", "detail": "An unexpected error occurred"},
                headers={"X-Request-ID": request_id},
            )

        process_time = time.time() - start_time
        response.headers["X-Process-Time"] = f"{process_time:.3f}"
        response.headers["X-Request-ID"] = request_id
        logger.info(
            f"{request.method} {request.url.path} - Status: {response.status_code} - "
            f"Time: {process_time:.3f}s",
            extra=log_extra,
        )
        return response


def setup_middleware(app, timeout_seconds: float) -> None:
    """Install middleware; the request scope sits inside logging so timing covers it."""
    app.add_middleware(RequestScopeMiddleware, timeout_seconds=timeout_seconds)
    app.add_middleware(LoggingMiddleware)
