"""Shared test fixtures and configuration for the price gateway tests.

Tests run with ``APP_ENV=test`` so the test YAML overrides apply. The
variable must be set before any ``price_gateway`` module loads settings.
"""

from __future__ import annotations

import os


os.environ.setdefault("APP_ENV", "test")

import pytest  # noqa: E402

from tests.fixtures.pricing import FakeClock  # noqa: E402


@pytest.fixture
def clock() -> FakeClock:
    """Deterministic clock starting at an arbitrary epoch."""
    return FakeClock()
