"""Integration tests for the metrics endpoint."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import pytest

from tests.fixtures.pricing import API_PREFIX


if TYPE_CHECKING:
    import respx
    from httpx import AsyncClient


pytestmark = pytest.mark.integration


class TestMetricsEndpoint:
    """Tests for GET /metrics."""

    async def test_exposes_prometheus_text(self, client: AsyncClient) -> None:
        """Should expose metrics in Prometheus text format."""
        response = await client.get(f"{API_PREFIX}/metrics")

        assert response.status_code == 200
        assert "text/plain" in response.headers["content-type"]

    async def test_counts_batch_results(
        self, client: AsyncClient, upstream: respx.MockRouter
    ) -> None:
        """Should count batch results by status class."""
        upstream.get("/products").mock(return_value=httpx.Response(200, json={"data": []}))
        await client.post(
            f"{API_PREFIX}/batch-search",
            json={"terms": ["milk"]},
            headers={"Authorization": "Bearer tok"},
        )

        response = await client.get(f"{API_PREFIX}/metrics")

        assert 'price_gateway_batch_results_total{status_class="2xx"}' in response.text
