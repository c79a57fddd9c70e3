"""Exception types raised by the aggregation pipeline and its collaborators."""


class TokenAggregatorError(Exception):
    """Base exception for wallet-token-aggregator."""


class InvalidIdentityError(TokenAggregatorError):
    """Identity is not a valid address and cannot be resolved to one."""


class ResolutionError(InvalidIdentityError):
    """Name resolution did not produce an address."""


class ProviderError(TokenAggregatorError):
    """Upstream balance or metadata provider call failed."""


class MetadataLookupFailure(ProviderError):
    """Metadata lookup for a single token failed."""


class CacheLoadFailure(TokenAggregatorError):
    """Price cache file is unreadable or malformed."""


class RefreshFailure(TokenAggregatorError):
    """Bulk price refresh could not complete."""
