"""Request context middleware.

Assigns every request an id (honouring an inbound ``X-Request-ID`` so a
gateway's webhook retries can be correlated with our own logs), keeps it
in a ContextVar for the duration of the request, and logs one summary
line on completion.

A ContextVar rather than a thread-local: concurrent requests share the
event loop thread, and each asyncio task gets its own copy of the
context.
"""

from __future__ import annotations

import logging
import time
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

request_id_var: ContextVar[str] = ContextVar("request_id", default="-")


class _RequestContextFilter(logging.Filter):
    """Attach the current request id to every LogRecord."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = request_id_var.get("-")  # type: ignore[attr-defined]
        return True


def install_request_context_filter() -> None:
    """Install the filter on the root handlers (idempotent).

    Handler-level rather than logger-level: root logger filters do not
    run for records propagated up from child loggers.
    """
    root_logger = logging.getLogger()
    for handler in root_logger.handlers:
        if not any(isinstance(f, _RequestContextFilter) for f in handler.filters):
            handler.addFilter(_RequestContextFilter())


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Set the request id, time the request, and log a summary line."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        req_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        token = request_id_var.set(req_id)

        start = time.monotonic()
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)
        duration_ms = round((time.monotonic() - start) * 1000, 1)

        logger.info(
            "%s %s -> %d (%.1fms)",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            extra={
                "request_id": req_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )

        response.headers["X-Request-ID"] = req_id
        return response
