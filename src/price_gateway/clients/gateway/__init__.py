"""Caller-side client for the price gateway edge routes."""

from price_gateway.clients.gateway.client import PriceGatewayClient


__all__ = ["PriceGatewayClient"]
