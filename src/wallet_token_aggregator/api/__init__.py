"""HTTP API for the aggregated token list."""

from wallet_token_aggregator.api.app import create_app

__all__ = ["create_app"]
