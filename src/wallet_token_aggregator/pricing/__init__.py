"""Pricing services for top-token market data and price cache refresh."""

from wallet_token_aggregator.pricing.coingecko import CoinGeckoMarkets
from wallet_token_aggregator.pricing.refresh import PriceRefresher, TopTokenTable

__all__ = [
    "CoinGeckoMarkets",
    "PriceRefresher",
    "TopTokenTable",
]
