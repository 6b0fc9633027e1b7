"""Request logging, last-resort error handling and exception handlers.

Every error leaves the API in the same envelope:
``{"success": false, "error": ..., "request_id": ...}`` plus handler-specific
fields.
"""

import logging
import time
import uuid
from typing import Any, Callable, Dict

from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from compliance_quota.core.quota.exceptions import (
    ConfigurationError,
    QuotaServiceError,
    UpstreamUnavailableError,
)
from compliance_quota.utils.timer_utils import elapsed_ms

logger = logging.getLogger(__name__)


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "unknown")


def _error_response(request: Request, status_code: int, body: Dict[str, Any]) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, **body, "request_id": _request_id(request)},
    )


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Tag each request with a short id and log method, path, status and timing."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = uuid.uuid4().hex[:8]
        request.state.request_id = request_id
        started = time.perf_counter()
        client = request.client.host if request.client else "unknown"
        logger.info(f"[{request_id}] {request.method} {request.url.path} from {client}")

        response = await call_next(request)

        duration = elapsed_ms(started)
        logger.info(f"[{request_id}] {response.status_code} in {duration:.1f}ms")
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time-MS"] = f"{duration:.1f}"
        return response


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Turn anything the exception handlers missed into a generic 500."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception as e:
            logger.exception(f"[{_request_id(request)}] Unhandled exception: {e}")
            return _error_response(request, 500, {
                "error": "Internal server error",
                "message": "An unexpected error occurred",
            })


def add_middleware(app: FastAPI) -> None:
    # Added last runs first: request logging sits outside error handling
    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(RequestLoggingMiddleware)


async def quota_exception_handler(request: Request, exc: QuotaServiceError):
    """Domain errors carry their own status code and public message."""
    where = f"[{_request_id(request)}] {request.url.path}"
    if isinstance(exc, (ConfigurationError, UpstreamUnavailableError)):
        # details stay in the log; the response only has the generic message
        logger.error(f"{where} {exc.reason.value}: {exc.message} {exc.details}")
    else:
        logger.info(f"{where} {exc.reason.value}")
    return _error_response(request, exc.status_code, exc.to_response_dict())


async def http_exception_handler(request: Request, exc: HTTPException):
    logger.warning(f"[{_request_id(request)}] HTTP {exc.status_code} on {request.url.path}: {exc.detail}")
    return _error_response(request, exc.status_code, {
        "error": exc.detail,
        "status_code": exc.status_code,
    })


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """422 with one entry per invalid field."""
    details = [
        {
            "field": " -> ".join(str(part) for part in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    logger.warning(
        f"[{_request_id(request)}] Validation failed on {request.url.path}: "
        + "; ".join(f"{d['field']}: {d['message']}" for d in details)
    )
    return _error_response(request, 422, {"error": "Validation error", "details": details})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(QuotaServiceError, quota_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
