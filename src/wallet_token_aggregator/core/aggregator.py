"""Token aggregator orchestrating resolution, balances, metadata, and pricing."""

import logging
import time
from typing import Any

from wallet_token_aggregator.core.balances import BalanceFetcher
from wallet_token_aggregator.core.enricher import MetadataEnricher
from wallet_token_aggregator.core.identity import IdentityResolver
from wallet_token_aggregator.core.models import AggregatedToken, RawBalanceEntry, TokenMetadata

logger = logging.getLogger(__name__)


class TokenAggregator:
    """
    Builds the priced, deduplicated token list for a wallet.

    Workflow:
    1. Resolve the identity to a canonical address (via IdentityResolver)
    2. Fetch non-zero balances (via BalanceFetcher)
    3. Deduplicate by lowercase contract address, later entries win
    4. Enrich with metadata (via MetadataEnricher)
    5. Price from the price cache, then the top-token table, else 0
    6. Sort by descending USD value

    Nothing is retried. Identity and balance errors propagate to the caller;
    metadata failures are absorbed by the enricher.

    Parameters
    ----------
    resolver : IdentityResolver
        Identity resolver
    balance_fetcher : BalanceFetcher
        Balance fetcher
    enricher : MetadataEnricher
        Metadata enricher
    price_cache : Any
        Primary price source with ``get(address) -> float | None``
    top_tokens : Any | None
        Secondary price source with ``get(address) -> float | None``

    """

    def __init__(
        self,
        resolver: IdentityResolver,
        balance_fetcher: BalanceFetcher,
        enricher: MetadataEnricher,
        price_cache: Any,
        top_tokens: Any | None = None,
    ) -> None:
        self.resolver = resolver
        self.balance_fetcher = balance_fetcher
        self.enricher = enricher
        self.price_cache = price_cache
        self.top_tokens = top_tokens

    def get_tokens(self, identity: str) -> list[AggregatedToken]:
        """
        Get the aggregated token list for an address or ENS name.

        Parameters
        ----------
        identity : str
            Wallet address or ENS name

        Returns
        -------
        list[AggregatedToken]
            Tokens sorted by descending USD value; empty if nothing is held

        Raises
        ------
        InvalidIdentityError
            If the identity is malformed or cannot be resolved
        ProviderError
            If the balance provider fails

        """
        start = time.monotonic()

        address = self.resolver.resolve(identity)
        entries = self.balance_fetcher.fetch_balances(address)
        logger.info("Fetched %d tokens for %s in %dms", len(entries), address, _elapsed_ms(start))

        balances = self.deduplicate(entries)
        if not balances:
            return []

        metadata = self.enricher.enrich(balances.keys())

        tokens = [
            self._build_token(contract_address, entry, metadata[contract_address])
            for contract_address, entry in balances.items()
        ]

        for token in tokens:
            token.price = self.lookup_price(token.contract_address)

        tokens = self.sort_by_value(tokens)

        logger.info("Returning %d unique tokens for %s in %dms", len(tokens), address, _elapsed_ms(start))
        return tokens

    @staticmethod
    def deduplicate(entries: list[RawBalanceEntry]) -> dict[str, RawBalanceEntry]:
        """
        Group balance entries by lowercase contract address.

        If the same contract appears more than once, the later entry wins.
        The key keeps the position of its first occurrence.

        Parameters
        ----------
        entries : list[RawBalanceEntry]
            Balance entries in provider order

        Returns
        -------
        dict[str, RawBalanceEntry]
            One entry per contract address

        """
        balances: dict[str, RawBalanceEntry] = {}
        for entry in entries:
            balances[entry.contract_address.lower()] = entry
        return balances

    def lookup_price(self, contract_address: str) -> float:
        """
        Get the USD price for a token.

        The price cache is checked first, then the top-token table. A price of
        0 is treated like a missing price and falls through to the next source.

        Parameters
        ----------
        contract_address : str
            Lowercase contract address

        Returns
        -------
        float
            USD price, 0.0 if no source has one

        """
        price = self.price_cache.get(contract_address)
        if price:
            return price

        if self.top_tokens is not None:
            price = self.top_tokens.get(contract_address)
            if price:
                return price

        return 0.0

    @staticmethod
    def sort_by_value(tokens: list[AggregatedToken]) -> list[AggregatedToken]:
        """Sort by descending USD value; equal values keep their input order."""
        return sorted(tokens, key=lambda token: token.value, reverse=True)

    @staticmethod
    def _build_token(contract_address: str, entry: RawBalanceEntry, metadata: TokenMetadata) -> AggregatedToken:
        return AggregatedToken(
            contract_address=contract_address,
            balance=entry.raw_balance,
            decimals=metadata.decimals,
            symbol=metadata.symbol,
            logo_url=metadata.logo_url,
        )


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)
