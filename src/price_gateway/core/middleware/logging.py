"""Request logging middleware.

Logs each request and its response status with the request context bound.
Bearer tokens passed as ``?token=`` are masked before the query string is
logged.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from price_gateway.observability.logging import REDACTED, SENSITIVE_KEYS, bind_context, get_logger


if TYPE_CHECKING:
    from starlette.datastructures import QueryParams
    from starlette.requests import Request
    from starlette.responses import Response

logger = get_logger(__name__)


def redact_query(params: QueryParams) -> str | None:
    """Render query params with sensitive values replaced."""
    if not params:
        return None
    return "&".join(
        f"{key}={REDACTED if key.lower() in SENSITIVE_KEYS else value}"
        for key, value in params.multi_items()
    )


class LoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for structured request/response logging."""

    def __init__(
        self,
        app: ASGIApp,
        *,
        exclude_paths: set[str] | None = None,
    ) -> None:
        super().__init__(app)
        self.exclude_paths = exclude_paths or {"/health", "/metrics", "/favicon.ico"}

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        if request.url.path in self.exclude_paths:
            return await call_next(request)

        bind_context(
            method=request.method,
            path=request.url.path,
            client_ip=self._get_client_ip(request),
        )

        logger.info("Request started", query=redact_query(request.query_params))
        response = await call_next(request)
        logger.info("Request completed", status_code=response.status_code)

        return response

    def _get_client_ip(self, request: Request) -> str:
        """Extract client IP from request, considering proxies."""
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()

        real_ip = request.headers.get("x-real-ip")
        if real_ip:
            return real_ip

        if request.client:
            return request.client.host

        return "unknown"
