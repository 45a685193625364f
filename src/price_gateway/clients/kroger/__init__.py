"""Kroger public API client."""

from price_gateway.clients.kroger.client import KrogerClient, UpstreamResponse


__all__ = ["KrogerClient", "UpstreamResponse"]
