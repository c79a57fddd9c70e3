"""Wiring of providers, caches, and the aggregation pipeline."""

import logging
from dataclasses import dataclass, field
from typing import Any

from wallet_token_aggregator.core import BalanceFetcher, IdentityResolver, MetadataEnricher, TokenAggregator
from wallet_token_aggregator.data import Settings
from wallet_token_aggregator.pricing import CoinGeckoMarkets, PriceRefresher, TopTokenTable
from wallet_token_aggregator.rpc import AlchemyProvider, PriceCache

logger = logging.getLogger(__name__)


@dataclass
class TokenService:
    """
    Process-lifetime collaborators of the token endpoint.

    Attributes
    ----------
    aggregator : TokenAggregator
        Request pipeline
    price_cache : PriceCache
        Persisted price cache shared with the refresher
    top_tokens : TopTokenTable
        Secondary price source rebuilt by the refresher
    refresher : PriceRefresher | None
        Bulk price refresh job, None to disable
    resources : list[Any]
        Clients closed on shutdown

    """

    aggregator: TokenAggregator
    price_cache: PriceCache
    top_tokens: TopTokenTable
    refresher: PriceRefresher | None = None
    resources: list[Any] = field(default_factory=list)

    def start(self, *, background: bool = True) -> None:
        """Load the price cache and run the bulk refresh once."""
        self.price_cache.load()
        if self.refresher is None:
            return
        if background:
            self.refresher.start_background()
        else:
            self.refresher.refresh()

    def close(self) -> None:
        for resource in self.resources:
            resource.close()


def build_service(settings: Settings) -> TokenService:
    """
    Build a TokenService backed by Alchemy and CoinGecko.

    Parameters
    ----------
    settings : Settings
        Service configuration

    Returns
    -------
    TokenService
        Unstarted service

    Raises
    ------
    ValueError
        If the Alchemy endpoint is not configured

    """
    provider = AlchemyProvider(settings.rpc_url, timeout=settings.request_timeout)
    markets = CoinGeckoMarkets(
        base_url=settings.coingecko.base_url,
        api_key=settings.coingecko.api_key,
        timeout=settings.request_timeout,
    )

    price_cache = PriceCache(settings.price_cache.file, ttl=settings.price_cache.ttl_seconds)
    top_tokens = TopTokenTable()

    aggregator = TokenAggregator(
        resolver=IdentityResolver(provider, name_suffixes=settings.identity.name_suffixes),
        balance_fetcher=BalanceFetcher(provider),
        enricher=MetadataEnricher(
            provider,
            max_workers=settings.metadata.workers,
            logo_url_template=settings.metadata.logo_url_template,
        ),
        price_cache=price_cache,
        top_tokens=top_tokens,
    )

    refresher = PriceRefresher(
        markets,
        price_cache,
        top_tokens,
        top_n=settings.coingecko.top_tokens,
        per_page=settings.coingecko.per_page,
        platform=settings.coingecko.platform,
    )

    logger.debug("Built token service with cache file %s", settings.price_cache.file)
    return TokenService(
        aggregator=aggregator,
        price_cache=price_cache,
        top_tokens=top_tokens,
        refresher=refresher,
        resources=[provider, markets],
    )
