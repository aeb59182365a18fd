"""Request context middleware: assigns a unique ID to every request.

The ID lives in a ContextVar so any code in the async call chain (the
engine, the repos, the lock) can log with it without threading it
through every signature.  A LogRecord factory copies it onto every
record, whichever logger emits it.

Clients may supply X-Request-ID to correlate their own logs with ours;
otherwise a UUID is generated.  The value is echoed on the response.
"""

from __future__ import annotations

import logging
import time
import uuid
from contextvars import ContextVar
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

# Client-supplied IDs longer than this are replaced, not truncated.
MAX_REQUEST_ID_LEN = 128

request_id_var: ContextVar[str] = ContextVar("request_id", default="-")


_base_record_factory = logging.getLogRecordFactory()


def _record_factory(*args: Any, **kwargs: Any) -> logging.LogRecord:
    """Stamp the current request ID on every LogRecord at creation."""
    record = _base_record_factory(*args, **kwargs)
    record.request_id = request_id_var.get("-")  # type: ignore[attr-defined]
    return record


if not getattr(logging.getLogRecordFactory(), "_certify_request_context", False):
    _record_factory._certify_request_context = True  # type: ignore[attr-defined]
    logging.setLogRecordFactory(_record_factory)


def _incoming_request_id(request: Request) -> str:
    supplied = request.headers.get("x-request-id", "")
    if supplied and len(supplied) <= MAX_REQUEST_ID_LEN and supplied.isprintable():
        return supplied
    return str(uuid.uuid4())


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Assign a request ID, time the request, log one summary line."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        req_id = _incoming_request_id(request)
        token = request_id_var.set(req_id)
        try:
            start = time.monotonic()
            response = await call_next(request)
            duration_ms = round((time.monotonic() - start) * 1000, 1)

            logger.info(
                "%s %s → %d (%.1fms)",
                request.method,
                request.url.path,
                response.status_code,
                duration_ms,
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "duration_ms": duration_ms,
                },
            )

            response.headers["X-Request-ID"] = req_id
            return response
        finally:
            request_id_var.reset(token)
