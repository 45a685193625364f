"""Configuration module with YAML and environment variable support."""

from .settings import (
    BatchSettings,
    PriceCacheSettings,
    Settings,
    TokenSettings,
    get_settings,
    settings,
)


__all__ = [
    "BatchSettings",
    "PriceCacheSettings",
    "Settings",
    "TokenSettings",
    "get_settings",
    "settings",
]
