"""Every JSON body leaves the API as ``{code, message, data, details}``."""

from __future__ import annotations

import json
from http import HTTPStatus
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response

from app.core.context import get_request_id

_SUCCESS_CODES = {200: "ok", 201: "created", 202: "accepted"}
_SKIPPED_HEADERS = {"content-length", "content-type"}


def status_phrase(status_code: int, fallback: str = "Success") -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return fallback


def envelope(code: str, message: str, data: Any = None, details: dict[str, Any] | None = None) -> dict[str, Any]:
    """Build the response body; ``details`` always carries the request id."""
    return {
        "code": code,
        "message": message,
        "data": data,
        "details": {**(details or {}), "request_id": get_request_id()},
    }


def _already_wrapped(payload: Any) -> bool:
    return isinstance(payload, dict) and {"code", "message"} <= payload.keys() and (
        "data" in payload or "details" in payload
    )


def _wrap(original: Response, status_code: int, data: Any) -> JSONResponse:
    wrapped = JSONResponse(
        status_code=status_code,
        content=envelope(_SUCCESS_CODES.get(status_code, "ok"), status_phrase(status_code), data),
    )
    for key, value in original.headers.items():
        if key.lower() not in _SKIPPED_HEADERS:
            wrapped.headers[key] = value
    return wrapped


class ResponseEnvelopeMiddleware(BaseHTTPMiddleware):
    """Wrap successful JSON bodies; error bodies are built by the exception handlers."""

    async def dispatch(self, request, call_next) -> Response:
        response = await call_next(request)

        if not 200 <= response.status_code < 300:
            return response
        if response.status_code == 204:
            return _wrap(response, 200, None)

        content_type = response.headers.get("content-type", "")
        if not content_type.startswith("application/json"):
            return response

        # call_next hands back a streaming response; drain it to inspect the payload.
        raw_body = b"".join([chunk async for chunk in response.body_iterator])
        try:
            payload = json.loads(raw_body) if raw_body else None
        except (UnicodeDecodeError, json.JSONDecodeError):
            payload, passthrough = None, True
        else:
            passthrough = _already_wrapped(payload)

        if passthrough:
            headers = {k: v for k, v in response.headers.items() if k.lower() != "content-length"}
            return Response(content=raw_body, status_code=response.status_code, headers=headers, media_type=content_type)
        return _wrap(response, response.status_code, payload)


def register_response_envelope(app) -> None:
    app.add_middleware(ResponseEnvelopeMiddleware)
