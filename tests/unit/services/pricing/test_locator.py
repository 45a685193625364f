"""Unit tests for StoreLocator."""

from __future__ import annotations

from unittest.mock import AsyncMock

import httpx
import pytest

from price_gateway.clients.kroger.client import UpstreamResponse
from price_gateway.services.pricing.locator import StoreLocator, shape_locations
from tests.fixtures.pricing import make_location


pytestmark = pytest.mark.unit


@pytest.fixture
def client() -> AsyncMock:
    client = AsyncMock()
    client.search_locations.return_value = UpstreamResponse(200, {"data": [make_location()]})
    return client


@pytest.fixture
def locator(client: AsyncMock) -> StoreLocator:
    return StoreLocator(client)


class TestShapeLocations:
    """Tests for shape_locations."""

    def test_shapes_rows(self) -> None:
        """Should flatten the upstream address into the store record."""
        [store] = shape_locations({"data": [make_location("01400943", "45202")]})

        assert store.location_id == "01400943"
        assert store.name == "Kroger Downtown"
        assert store.address_line == "100 E Court St"
        assert store.city == "Cincinnati"
        assert store.zip_code == "45202"

    def test_skips_rows_without_id(self) -> None:
        """Should drop rows that lack a location id."""
        stores = shape_locations({"data": [{"name": "nameless"}, make_location()]})
        assert [s.location_id for s in stores] == ["01400943"]

    @pytest.mark.parametrize("body", [None, {}, {"data": "nope"}, []])
    def test_unusable_body(self, body: object) -> None:
        assert shape_locations(body) == []


class TestFindByPostalCode:
    """Tests for StoreLocator.find_by_postal_code."""

    async def test_builds_filters(self, locator: StoreLocator, client: AsyncMock) -> None:
        """Should send zip, radius, limit and chain filters."""
        stores = await locator.find_by_postal_code("45202", token="tok")

        assert [s.location_id for s in stores] == ["01400943"]
        client.search_locations.assert_awaited_once_with(
            {
                "filter.zipCode.near": "45202",
                "filter.radiusInMiles": "7",
                "filter.limit": "12",
                "filter.chain": "Kroger",
            },
            token="tok",
        )

    async def test_missing_zip(self, locator: StoreLocator, client: AsyncMock) -> None:
        """Should return nothing without calling upstream."""
        assert await locator.find_by_postal_code(None, token="tok") == []
        client.search_locations.assert_not_awaited()

    async def test_upstream_rejection(self, locator: StoreLocator, client: AsyncMock) -> None:
        """Should return nothing on an upstream error status."""
        client.search_locations.return_value = UpstreamResponse(401, {"error": "invalid_token"})
        assert await locator.find_by_postal_code("45202", token="tok") == []

    async def test_transport_failure(self, locator: StoreLocator, client: AsyncMock) -> None:
        """Should return nothing when upstream cannot be reached."""
        client.search_locations.side_effect = httpx.ConnectError("refused")
        assert await locator.find_by_postal_code("45202", token="tok") == []


class TestFindByCoordinates:
    """Tests for StoreLocator.find_by_coordinates."""

    async def test_builds_lat_long_filter(self, locator: StoreLocator, client: AsyncMock) -> None:
        """Should send a combined lat,long filter and omit an empty chain."""
        await locator.find_by_coordinates(39.1, -84.5, radius=10, limit=5, chain=None, token="tok")

        client.search_locations.assert_awaited_once_with(
            {
                "filter.latLong.near": "39.1,-84.5",
                "filter.radiusInMiles": "10",
                "filter.limit": "5",
            },
            token="tok",
        )

    async def test_missing_coordinate(self, locator: StoreLocator, client: AsyncMock) -> None:
        assert await locator.find_by_coordinates(39.1, None, token="tok") == []
        client.search_locations.assert_not_awaited()
