"""Core functionality including models, errors, and the aggregation pipeline."""

from wallet_token_aggregator.core.aggregator import TokenAggregator
from wallet_token_aggregator.core.balances import BalanceFetcher
from wallet_token_aggregator.core.enricher import MetadataEnricher
from wallet_token_aggregator.core.errors import (
    CacheLoadFailure,
    InvalidIdentityError,
    MetadataLookupFailure,
    ProviderError,
    RefreshFailure,
    ResolutionError,
    TokenAggregatorError,
)
from wallet_token_aggregator.core.identity import IdentityResolver
from wallet_token_aggregator.core.models import (
    AggregatedToken,
    MetadataResult,
    RawBalanceEntry,
    TokenMetadata,
)

__all__ = [
    "AggregatedToken",
    "BalanceFetcher",
    "CacheLoadFailure",
    "IdentityResolver",
    "InvalidIdentityError",
    "MetadataEnricher",
    "MetadataLookupFailure",
    "MetadataResult",
    "ProviderError",
    "RawBalanceEntry",
    "RefreshFailure",
    "ResolutionError",
    "TokenAggregator",
    "TokenAggregatorError",
    "TokenMetadata",
]
