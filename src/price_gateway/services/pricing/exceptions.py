"""Exceptions for the pricing service."""

from __future__ import annotations

from typing import Any


class PricingError(Exception):
    """Base exception for pricing service errors."""


class AuthError(PricingError):
    """Raised when a bearer token could not be obtained.

    Carries the last upstream status and body so callers can pass them
    through unchanged. The body never contains client credentials.
    """

    def __init__(self, status_code: int, body: Any, message: str | None = None) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(message or f"Token request failed with status {status_code}")


class CredentialsNotConfiguredError(AuthError):
    """Raised when the client id or secret is missing from the environment."""

    def __init__(self) -> None:
        super().__init__(
            status_code=500,
            body={"error": "Missing KROGER_CLIENT_ID or KROGER_CLIENT_SECRET"},
            message="Upstream client credentials are not configured",
        )


class GatewayError(PricingError):
    """Raised by the caller-side client when the edge answers with an error status."""

    def __init__(self, status_code: int, body: Any) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"Price gateway request failed with status {status_code}")
