"""Per-request tracing context.

Each request gets an ID, taken from ``X-Request-ID`` when the caller sent a
usable one, which is bound to the logging context and echoed back. The
response also carries ``X-Process-Time``. Requests slower than the
configured threshold are logged as warnings with their ID, since a slow
batch search usually means upstream is struggling.
"""

from __future__ import annotations

import re
import time
import uuid
from typing import TYPE_CHECKING

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from price_gateway.observability.logging import bind_context, clear_context, get_logger


if TYPE_CHECKING:
    from starlette.requests import Request
    from starlette.responses import Response
    from starlette.types import ASGIApp

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
PROCESS_TIME_HEADER = "X-Process-Time"

# Caller IDs end up in logs and response headers
_VALID_REQUEST_ID = re.compile(r"^[A-Za-z0-9._:-]{1,64}$")


def resolve_request_id(incoming: str | None) -> str:
    """Return ``incoming`` if it is a safe request ID, else a fresh one."""
    if incoming and _VALID_REQUEST_ID.match(incoming):
        return incoming
    return uuid.uuid4().hex


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind a request ID and time every request."""

    def __init__(self, app: ASGIApp, slow_threshold: float) -> None:
        super().__init__(app)
        self.slow_threshold = slow_threshold

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        clear_context()
        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = request_id
        bind_context(request_id=request_id)

        started = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - started

        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers[PROCESS_TIME_HEADER] = f"{elapsed * 1000:.2f}ms"

        if elapsed > self.slow_threshold:
            logger.warning(
                "Slow request",
                method=request.method,
                path=request.url.path,
                elapsed_ms=round(elapsed * 1000, 2),
                threshold_ms=round(self.slow_threshold * 1000, 2),
            )
        return response
