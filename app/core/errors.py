from __future__ import annotations

import logging
from typing import Any

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.response_envelope import envelope, status_phrase
from app.services.errors import WorkflowError

logger = logging.getLogger(__name__)

_ERROR_CODES = {
    400: "bad_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    409: "conflict",
    422: "validation_error",
    429: "rate_limited",
    502: "provider_unavailable",
}
# Location prefixes FastAPI puts in front of the offending field.
_REQUEST_PARTS = {"body", "query", "path", "header"}


def _as_details(details: Any) -> dict:
    if details is None:
        return {}
    if isinstance(details, dict):
        return details
    if isinstance(details, list):
        return {"errors": details}
    return {"detail": str(details)}


def error_response(
    status_code: int,
    code: str | None = None,
    message: str | None = None,
    details: Any = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    body = envelope(
        code or _ERROR_CODES.get(status_code, "http_error"),
        message or status_phrase(status_code, "Request failed"),
        details=_as_details(details),
    )
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body), headers=headers)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    detail = exc.detail
    if isinstance(detail, dict):
        return error_response(
            exc.status_code,
            detail.get("code"),
            detail.get("message") or detail.get("detail"),
            detail.get("details"),
            headers=exc.headers,
        )
    if isinstance(detail, str):
        return error_response(exc.status_code, message=detail, headers=exc.headers)
    return error_response(exc.status_code, details=detail, headers=exc.headers)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report the first failing field as ``field.path: reason``; the full list goes in details."""
    errors = exc.errors()
    message = "Validation failed"
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part not in _REQUEST_PARTS)
        reason = first.get("msg") or message
        message = f"{field}: {reason}" if field else reason
    return error_response(422, "validation_error", message, {"errors": errors})


async def workflow_exception_handler(request: Request, exc: WorkflowError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.warning("Provider failure on %s: %s %s", request.url.path, exc.code, exc.message)
    else:
        logger.info("Workflow refused %s %s: %s", request.method, request.url.path, exc.code)
    return error_response(exc.status_code, exc.code, exc.message, exc.details)


async def rate_limit_exception_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    return error_response(429, details={"limit": str(exc.detail)}, headers=getattr(exc, "headers", None))


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error_response(500, "internal_server_error", "Internal server error")


def register_exception_handlers(app) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exception_handler)
    app.add_exception_handler(WorkflowError, workflow_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
