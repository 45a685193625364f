"""Custom middleware components."""

from price_gateway.core.middleware.logging import LoggingMiddleware
from price_gateway.core.middleware.request_context import RequestContextMiddleware


__all__ = [
    "LoggingMiddleware",
    "RequestContextMiddleware",
]
