"""
Exception-to-response mapping for the HTTP layer.

Every error body has the shape ``{"error": <message>, "code": <code>}``.
Status codes follow the exception category, never the message:

    ValidationError             400
    NotFoundError               404
    ConflictError               409
    UpstreamRequestError        upstream 4xx status, upstream message
    UpstreamUnavailableError    502, generic message
    anything else               500 "Internal server error", logged with traceback
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from procurement_kernel.exceptions import (
    ConflictError,
    NotFoundError,
    ProcurementError,
    UpstreamRequestError,
    UpstreamUnavailableError,
    ValidationError,
)
from procurement_kernel.logging_config import get_logger

logger = get_logger("api.errors")

INTERNAL_ERROR_MESSAGE = "Internal server error"
UPSTREAM_UNAVAILABLE_MESSAGE = "Catalog service unavailable"

_CATEGORY_STATUS = (
    (ValidationError, 400),
    (NotFoundError, 404),
    (ConflictError, 409),
)


def error_body(message: str, code: str | None = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"error": message}
    if code is not None:
        body["code"] = code
    return body


def status_for(exc: ProcurementError) -> int:
    """HTTP status for a procurement error; 500 for anything uncategorised."""
    if isinstance(exc, UpstreamRequestError):
        status = exc.upstream_status
        return status if 400 <= status < 500 else 502
    if isinstance(exc, UpstreamUnavailableError):
        return 502
    for category, status in _CATEGORY_STATUS:
        if isinstance(exc, category):
            return status
    return 500


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    loc = [str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path")]
    reason = str(first.get("msg") or "invalid")
    return f"{'.'.join(loc)}: {reason}" if loc else reason


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ProcurementError)
    async def _procurement_error(request: Request, exc: ProcurementError) -> JSONResponse:
        status = status_for(exc)
        if isinstance(exc, UpstreamUnavailableError):
            logger.warning(
                "upstream_unavailable",
                extra={"path": request.url.path, "error": str(exc)},
            )
            return JSONResponse(
                status_code=status,
                content=error_body(UPSTREAM_UNAVAILABLE_MESSAGE, exc.code),
            )

        if status >= 500:
            logger.error(
                "request_failed",
                exc_info=exc,
                extra={"path": request.url.path, "method": request.method},
            )
            return JSONResponse(status_code=500, content=error_body(INTERNAL_ERROR_MESSAGE))

        return JSONResponse(status_code=status, content=error_body(str(exc), exc.code))

    @app.exception_handler(RequestValidationError)
    async def _request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content=error_body(_validation_message(exc), ValidationError.code),
        )

    @app.exception_handler(HTTPException)
    async def _http_exception(request: Request, exc: HTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "request_failed",
            exc_info=exc,
            extra={"path": request.url.path, "method": request.method},
        )
        return JSONResponse(status_code=500, content=error_body(INTERNAL_ERROR_MESSAGE))
