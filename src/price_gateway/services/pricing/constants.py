"""Constants for the pricing service.

Contains:
- Upstream scope defaults and known scope typos
- Status codes and error tags for synthetic batch results
- Shaping defaults for products and store locations
"""

from __future__ import annotations

from typing import Final


# =============================================================================
# OAuth Scope
# =============================================================================

DEFAULT_SCOPE: Final[str] = "product.compact"

# Upstream documentation once shipped with this misspelling
SCOPE_TYPOS: Final[dict[str, str]] = {"campact": "compact"}


# =============================================================================
# Synthetic Batch Results
# =============================================================================

TIMEOUT_STATUS: Final[int] = 504
TIMEOUT_ERROR: Final[str] = "timeout_or_fetch_error"

DEADLINE_STATUS: Final[int] = 504
DEADLINE_ERROR: Final[str] = "deadline_exceeded"

WORKER_ERROR_STATUS: Final[int] = 500
WORKER_ERROR: Final[str] = "worker_error"

UPSTREAM_UNREACHABLE_STATUS: Final[int] = 502
UPSTREAM_UNREACHABLE_ERROR: Final[str] = "upstream_unreachable"


# =============================================================================
# Product Search
# =============================================================================

MIN_TERM_LENGTH: Final[int] = 2
DEFAULT_PRODUCT_LIMIT: Final[int] = 10
AISLE_SEPARATOR: Final[str] = " • "


# =============================================================================
# Store Locations
# =============================================================================

DEFAULT_LOCATION_RADIUS_MILES: Final[int] = 7
DEFAULT_LOCATION_LIMIT: Final[int] = 12
DEFAULT_LOCATION_CHAIN: Final[str] = "Kroger"
