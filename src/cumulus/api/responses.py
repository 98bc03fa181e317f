"""JSON envelope helpers and exception-to-status mapping."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from cumulus.exceptions import (
    AuthenticationError,
    ConnectivityError,
    CumulusError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: tuple[tuple[type[CumulusError], int], ...] = (
    (ValidationError, 400),
    (AuthenticationError, 401),
    (ForbiddenError, 403),
    (NotFoundError, 404),
)


def ok(data: Any = None, status_code: int = 200) -> JSONResponse:
    return JSONResponse(
        {"success": True, "data": jsonable_encoder(data)},
        status_code=status_code,
    )


def fail(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"success": False, "message": message}, status_code=status_code)


def status_for(exc: CumulusError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return 500


async def _cumulus_error_handler(request: Request, exc: CumulusError) -> JSONResponse:
    status_code = status_for(exc)
    if status_code >= 500:
        if isinstance(exc, ConnectivityError):
            logger.error("Database unreachable [%s]: %s", exc.kind, exc)
        else:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc, exc_info=exc)
    return fail(str(exc), status_code)


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        messages.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return fail("; ".join(messages) or "Invalid request", 400)


async def _http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return fail(str(exc.detail), exc.status_code)


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return fail(str(exc) or "Internal server error", 500)


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(CumulusError, _cumulus_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
