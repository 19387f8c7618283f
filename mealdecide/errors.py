"""
Error taxonomy and the JSON error envelope.

Every failure leaves the API as::

    {"timestamp", "status", "error", "message", "path", "requestId", "fieldErrors"}

Engine modules raise ``ApiError`` subclasses; the handlers installed by
``install_error_handlers`` translate them (and FastAPI's own errors) into the
envelope so callers never see a stack trace.
"""
from __future__ import annotations

import logging
import uuid
from http import HTTPStatus
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import JSONResponse

from .base import iso, utc_now

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-Id"


class ApiError(Exception):
    status_code: int = 500

    def __init__(self, message: str, field_errors: list[dict[str, str]] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.field_errors = field_errors


class ValidationFailed(ApiError):
    status_code = 400


class MalformedCursor(ValidationFailed):
    def __init__(self) -> None:
        super().__init__("invalid cursor")


class NotFound(ApiError):
    status_code = 404


class Forbidden(ApiError):
    status_code = 403


class Conflict(ApiError):
    status_code = 409


def request_id_for(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    if not request_id:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
    return request_id


def error_body(
    request: Request,
    status: int,
    message: str | None = None,
    field_errors: list[dict[str, str]] | None = None,
) -> dict[str, Any]:
    try:
        label = HTTPStatus(status).phrase
    except ValueError:
        label = "Error"
    return {
        "timestamp": iso(utc_now()),
        "status": status,
        "error": label,
        "message": message or label,
        "path": request.url.path,
        "requestId": request_id_for(request),
        "fieldErrors": field_errors,
    }


def error_response(
    request: Request,
    status: int,
    message: str | None = None,
    field_errors: list[dict[str, str]] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status,
        content=error_body(request, status, message, field_errors),
        headers=headers,
    )


_LOCATIONS = ("body", "query", "path", "header", "cookie")


def _field_name(loc: tuple[Any, ...]) -> str:
    # Only the leading element names the request location
    if loc and loc[0] in _LOCATIONS:
        loc = loc[1:]
    return ".".join(str(p) for p in loc) or "request"


def _field_errors(exc: RequestValidationError) -> list[dict[str, str]]:
    out: list[dict[str, str]] = []
    for err in exc.errors():
        message = err.get("msg") or "Invalid value"
        # Strip pydantic's "Value error, " prefix from custom validators
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        out.append({"field": _field_name(tuple(err.get("loc", ()))), "message": message})
    return out


async def _api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    return error_response(request, exc.status_code, exc.message, exc.field_errors)


async def _http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else None
    return error_response(request, exc.status_code, message, headers=getattr(exc, "headers", None))


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return error_response(request, 400, "Validation failed", _field_errors(exc))


async def _unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled error on %s", request.url.path, exc_info=exc)
    return error_response(request, 500, "Unexpected error")


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, _api_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(Exception, _unexpected_error_handler)
