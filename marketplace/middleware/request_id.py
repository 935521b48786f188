"""Request ID tracing: every response carries X-Request-ID."""
from __future__ import annotations

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

# Read by the logging filter so every log line can be tied to a request
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

_MAX_LEN = 128


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Honor a client-sent X-Request-ID, otherwise generate a UUID4."""

    async def dispatch(self, request: Request, call_next) -> Response:
        rid = (request.headers.get("x-request-id") or "")[:_MAX_LEN] or str(uuid.uuid4())
        token = request_id_var.set(rid)
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)
        response.headers["X-Request-ID"] = rid
        return response
