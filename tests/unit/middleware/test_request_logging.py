"""Unit tests for request logging helpers."""

from __future__ import annotations

import pytest
from starlette.datastructures import QueryParams

from price_gateway.core.middleware.logging import redact_query


pytestmark = pytest.mark.unit


class TestRedactQuery:
    """Tests for redact_query."""

    def test_masks_token(self) -> None:
        """Should never render a bearer token passed as a query param."""
        rendered = redact_query(QueryParams("term=milk&token=abc123&limit=5"))
        assert rendered == "term=milk&token=[REDACTED]&limit=5"

    def test_case_insensitive(self) -> None:
        assert redact_query(QueryParams("Token=abc")) == "Token=[REDACTED]"

    def test_empty(self) -> None:
        assert redact_query(QueryParams("")) is None
