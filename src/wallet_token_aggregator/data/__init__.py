"""Configuration loading."""

from wallet_token_aggregator.data.loader import (
    ENV_OVERRIDES,
    Settings,
    load_defaults,
    load_settings,
)

__all__ = [
    "ENV_OVERRIDES",
    "Settings",
    "load_defaults",
    "load_settings",
]
