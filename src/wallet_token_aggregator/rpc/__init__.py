"""RPC layer with the Alchemy provider and the persisted price cache."""

from wallet_token_aggregator.rpc.cache import PriceCache, PriceCacheEntry
from wallet_token_aggregator.rpc.provider import AlchemyProvider

__all__ = [
    "AlchemyProvider",
    "PriceCache",
    "PriceCacheEntry",
]
