"""Integration test fixtures.

The app is built with ``create_app`` and driven through ``ASGITransport``,
which does not run the lifespan, so fixtures wire the pricing service into
``app.state`` themselves. The upstream API is mocked with respx.
"""

from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING

import pytest
import respx
from httpx import ASGITransport, AsyncClient
from prometheus_client import REGISTRY

from price_gateway.core.config import Settings
from price_gateway.core.config.settings import (
    KrogerSettings,
    MetricsSettings,
    ObservabilitySettings,
    PricingSettings,
    TokenSettings,
)
from price_gateway.factory import create_app
from price_gateway.services.pricing import PricingService
from tests.fixtures.pricing import CLIENT_ID, CLIENT_SECRET, KROGER_BASE_URL


if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Generator

    from fastapi import FastAPI


pytestmark = pytest.mark.integration

@pytest.fixture
def test_settings() -> Settings:
    """Create test settings with credentials and the debug route enabled."""
    return Settings(
        APP_ENV="test",
        KROGER_CLIENT_ID=CLIENT_ID,
        KROGER_CLIENT_SECRET=CLIENT_SECRET,
        kroger=KrogerSettings(
            base_url=KROGER_BASE_URL,
            scope="product.campact",
            requests_per_second=1000,
            debug=True,
        ),
        pricing=PricingSettings(
            token=TokenSettings(backoff_base_ms=0, backoff_jitter_ms=0),
        ),
        observability=ObservabilitySettings(metrics=MetricsSettings(enabled=True)),
    )


@pytest.fixture
async def app(test_settings: Settings) -> AsyncGenerator[FastAPI]:
    """Create the app with an initialized pricing service."""
    app = create_app(test_settings)
    service = PricingService(test_settings)
    await service.initialize()
    app.state.pricing_service = service
    yield app
    await service.shutdown()


@pytest.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient]:
    """Create async HTTP client for testing."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
def upstream() -> Generator[respx.MockRouter]:
    """Mock the upstream API. Unrouted upstream calls fail the test."""
    with respx.mock(base_url=KROGER_BASE_URL, assert_all_called=False) as router:
        yield router


@pytest.fixture(autouse=True)
def reset_prometheus_registry() -> Generator[None]:
    """Reset Prometheus registry between tests.

    This prevents 'Duplicated timeseries' errors when creating
    multiple app instances in tests.
    """
    collectors_before = set(REGISTRY._names_to_collectors.keys())

    yield

    collectors_to_remove = []
    for name, collector in list(REGISTRY._names_to_collectors.items()):
        if name not in collectors_before:
            collectors_to_remove.append(collector)

    for collector in collectors_to_remove:
        with contextlib.suppress(Exception):
            REGISTRY.unregister(collector)
