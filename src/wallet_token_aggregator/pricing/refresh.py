"""Bulk refresh of top-token prices into the price cache."""

import logging
import math
import threading
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from wallet_token_aggregator.core.errors import RefreshFailure
from wallet_token_aggregator.rpc.cache import PriceCache

logger = logging.getLogger(__name__)


class TopTokenTable:
    """
    In-memory prices of the top tokens by market cap, keyed by contract address.

    The table is rebuilt by the refresh job and swapped in whole, so readers
    see either the previous table or the new one.

    """

    def __init__(self, prices: Mapping[str, float] | None = None) -> None:
        self._prices: dict[str, float] = {k.lower(): v for k, v in (prices or {}).items()}

    def get(self, contract_address: str) -> float | None:
        return self._prices.get(contract_address.lower())

    def replace(self, prices: Mapping[str, float]) -> None:
        """Install a freshly built table."""
        self._prices = {k.lower(): v for k, v in prices.items()}

    def snapshot(self) -> dict[str, float]:
        return dict(self._prices)

    def __len__(self) -> int:
        return len(self._prices)

    def __contains__(self, contract_address: object) -> bool:
        return isinstance(contract_address, str) and contract_address.lower() in self._prices


class PriceRefresher:
    """
    Refreshes the top-token table and the price cache from market data.

    Workflow:
    1. Fetch all market pages concurrently (any failure aborts the cycle)
    2. Resolve each token's contract address on the configured platform
    3. Install the new top-token table
    4. Write every price into the price cache, prune, and persist

    Parameters
    ----------
    market_data : Any
        Market-data client (e.g., CoinGeckoMarkets)
    price_cache : PriceCache
        Price cache to populate
    top_tokens : TopTokenTable
        Table to rebuild
    top_n : int
        Number of top tokens to keep
    per_page : int
        Market page size
    platform : str
        Asset platform whose contract addresses are used

    """

    def __init__(
        self,
        market_data: Any,
        price_cache: PriceCache,
        top_tokens: TopTokenTable,
        top_n: int = 500,
        per_page: int = 250,
        platform: str = "ethereum",
    ) -> None:
        self.market_data = market_data
        self.price_cache = price_cache
        self.top_tokens = top_tokens
        self.top_n = top_n
        self.per_page = per_page
        self.platform = platform
        self._lock = threading.Lock()

    @property
    def page_count(self) -> int:
        return max(1, math.ceil(self.top_n / self.per_page))

    def refresh(self) -> bool:
        """
        Run one refresh cycle.

        Failures are logged and leave the table and cache untouched.

        Returns
        -------
        bool
            True if the table was rebuilt

        """
        with self._lock:
            try:
                prices = self.fetch_top_prices()
            except RefreshFailure as e:
                logger.error("Failed to fetch top tokens: %s", e)
                return False

            self.top_tokens.replace(prices)
            for contract_address, price in prices.items():
                self.price_cache.put(contract_address, price)
            self.price_cache.prune_expired()

            try:
                self.price_cache.persist()
            except OSError as e:
                logger.error("Failed to persist price cache: %s", e)

            logger.info("Fetched prices for %d top tokens", len(prices))
            return True

    def fetch_top_prices(self) -> dict[str, float]:
        """
        Build a fresh contract address to price mapping.

        Returns
        -------
        dict[str, float]
            Prices keyed by lowercase contract address

        Raises
        ------
        RefreshFailure
            If any market page or the platform listing fails

        """
        pages = range(1, self.page_count + 1)
        with ThreadPoolExecutor(max_workers=len(pages)) as executor:
            responses = list(executor.map(lambda page: self.market_data.get_markets_page(page, self.per_page), pages))

        rows = [row for page_rows in responses for row in page_rows][: self.top_n]

        platform_addresses: dict[str, str] = {}
        if any(isinstance(row, dict) and "platforms" not in row for row in rows):
            platform_addresses = self.market_data.get_platform_addresses(self.platform)

        prices: dict[str, float] = {}
        for row in rows:
            if not isinstance(row, dict):
                logger.debug("Skipping malformed market row %r", row)
                continue

            contract = self._contract_address(row, platform_addresses)
            if contract is None:
                continue

            price = row.get("current_price") or 0
            if isinstance(price, bool) or not isinstance(price, int | float) or not math.isfinite(price) or price < 0:
                logger.debug("Skipping %s with invalid price %r", row.get("id"), price)
                continue

            prices[contract] = float(price)

        return prices

    def _contract_address(self, row: dict[str, Any], platform_addresses: Mapping[str, str]) -> str | None:
        """Lowercase contract address of a market row on the configured platform, if any."""
        platforms = row.get("platforms")
        contract = platforms.get(self.platform) if isinstance(platforms, dict) else None

        coin_id = row.get("id")
        if not contract and isinstance(coin_id, str):
            contract = platform_addresses.get(coin_id)

        if not contract or not isinstance(contract, str):
            return None
        return contract.lower()

    def start_background(self) -> threading.Thread:
        """
        Run a single refresh on a daemon thread.

        Returns
        -------
        threading.Thread
            The started thread

        """
        thread = threading.Thread(target=self.refresh, name="price-refresh", daemon=True)
        thread.start()
        return thread
