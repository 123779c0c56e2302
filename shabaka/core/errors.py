"""Domain error taxonomy and the HTTP error envelope.

Services raise the typed errors below and never build HTTP responses
themselves.  ``register_exception_handlers`` installs the single place
where errors become status codes, so every failure leaves the API in
the same shape:

    {"success": false, "message": "...", "error": "Not Found", "details": ...}

``details`` is omitted when there is nothing to add.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

logger = logging.getLogger(__name__)


class ShabakaError(Exception):
    """Base for errors that map onto an HTTP status."""

    status_code: int = 500

    def __init__(self, message: str, *, details: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class BadRequestError(ShabakaError):
    status_code = 400


class UnauthorizedError(ShabakaError):
    status_code = 401


class ForbiddenError(ShabakaError):
    status_code = 403


class NotFoundError(ShabakaError):
    status_code = 404


class ConflictError(ShabakaError):
    status_code = 409


def error_body(status_code: int, message: str, details: Any = None) -> dict[str, Any]:
    body: dict[str, Any] = {
        "success": False,
        "message": message,
        "error": HTTPStatus(status_code).phrase,
    }
    if details is not None:
        body["details"] = details
    return body


async def _handle_shabaka_error(request: Request, exc: ShabakaError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Unhandled domain error on %s: %s", request.url.path, exc.message)
    headers = None
    if exc.status_code == 401:
        headers = {"WWW-Authenticate": "Bearer"}
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.status_code, exc.message, exc.details),
        headers=headers,
    )


async def _handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else HTTPStatus(exc.status_code).phrase
    details = None if isinstance(exc.detail, str) else exc.detail
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.status_code, message, details),
        headers=getattr(exc, "headers", None),
    )


async def _handle_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    details = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content=error_body(400, "Validation failed", details),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ShabakaError, _handle_shabaka_error)  # type: ignore[arg-type]
    app.add_exception_handler(HTTPException, _handle_http_exception)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _handle_validation_error)  # type: ignore[arg-type]
