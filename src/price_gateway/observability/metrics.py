"""Prometheus metrics instrumentation.

This module provides:
- FastAPI automatic request metrics
- Pricing counters for token fetches and batch outcomes
- Metrics endpoint configuration
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from prometheus_client import Counter
from prometheus_fastapi_instrumentator import Instrumentator, metrics

from price_gateway.core.config import get_settings
from price_gateway.observability.logging import get_logger


if TYPE_CHECKING:
    from fastapi import FastAPI

    from price_gateway.core.config import Settings

logger = get_logger(__name__)

METRIC_NAMESPACE = "price_gateway"

TOKEN_FETCH_ATTEMPTS = Counter(
    "token_fetch_attempts_total",
    "Upstream OAuth token requests by outcome",
    ["outcome"],
    namespace=METRIC_NAMESPACE,
)

BATCH_RESULTS = Counter(
    "batch_results_total",
    "Batch price lookup results by status class",
    ["status_class"],
    namespace=METRIC_NAMESPACE,
)

PRICE_CACHE_LOOKUPS = Counter(
    "price_cache_lookups_total",
    "Price cache lookups by result",
    ["result"],
    namespace=METRIC_NAMESPACE,
)


def status_class(status_code: int) -> str:
    """Collapse a status code into its ``2xx``-style class label."""
    return f"{status_code // 100}xx"


def setup_metrics(app: FastAPI, settings: Settings | None = None) -> Instrumentator:
    """Configure Prometheus HTTP instrumentation and expose ``{prefix}/metrics``."""
    settings = settings or get_settings()

    if not settings.observability.metrics.enabled:
        logger.info("Metrics collection disabled")
        return Instrumentator()

    prefix = settings.api.v1_prefix

    instrumentator = Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        should_instrument_requests_inprogress=True,
        excluded_handlers=[
            f"{prefix}/health",
            f"{prefix}/ready",
            f"{prefix}/metrics",
            f"{prefix}/env-check",
        ],
        inprogress_name="http_requests_inprogress",
        inprogress_labels=True,
    )

    instrumentator.add(
        metrics.default(
            metric_namespace=METRIC_NAMESPACE,
            metric_subsystem="http",
            should_only_respect_2xx_for_highr=False,
        )
    )

    instrumentator.instrument(app)

    metrics_endpoint = f"{prefix}/metrics"
    instrumentator.expose(
        app,
        endpoint=metrics_endpoint,
        include_in_schema=True,
        tags=["Monitoring"],
    )

    logger.info("Prometheus metrics configured", endpoint=metrics_endpoint)

    return instrumentator


__all__ = [
    "BATCH_RESULTS",
    "PRICE_CACHE_LOOKUPS",
    "TOKEN_FETCH_ATTEMPTS",
    "setup_metrics",
    "status_class",
]
