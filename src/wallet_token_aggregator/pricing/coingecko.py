"""CoinGecko market-data client for ranked token prices."""

from typing import Any

import httpx

from wallet_token_aggregator.core.errors import RefreshFailure


class CoinGeckoMarkets:
    """
    Fetches market-cap ranked token listings from the CoinGecko API.

    Parameters
    ----------
    base_url : str
        CoinGecko API base URL
    api_key : str | None
        Demo API key, sent as ``x-cg-demo-api-key`` when set
    timeout : float
        Request timeout in seconds
    client : httpx.Client | None
        HTTP client to use. Creates one if None.

    """

    def __init__(
        self,
        base_url: str = "https://api.coingecko.com/api/v3",
        api_key: str | None = None,
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        headers = {"x-cg-demo-api-key": api_key} if api_key else {}
        self.client = client or httpx.Client(timeout=timeout, headers=headers)

    def get_markets_page(self, page: int, per_page: int = 250, vs_currency: str = "usd") -> list[dict[str, Any]]:
        """
        Fetch one page of tokens ordered by market capitalization.

        Parameters
        ----------
        page : int
            1-based page number
        per_page : int
            Page size (CoinGecko allows up to 250)
        vs_currency : str
            Quote currency

        Returns
        -------
        list[dict[str, Any]]
            Raw market rows (``id``, ``symbol``, ``current_price``, ...)

        Raises
        ------
        RefreshFailure
            If the request fails or the payload is not a list

        """
        params = {
            "vs_currency": vs_currency,
            "order": "market_cap_desc",
            "per_page": per_page,
            "page": page,
            "sparkline": "false",
        }
        data = self._get("/coins/markets", params)
        if not isinstance(data, list):
            msg = f"coins/markets page {page} returned an unexpected payload"
            raise RefreshFailure(msg)
        return [row for row in data if isinstance(row, dict)]

    def get_platform_addresses(self, platform: str = "ethereum") -> dict[str, str]:
        """
        Map CoinGecko coin ids to their contract address on a platform.

        Parameters
        ----------
        platform : str
            CoinGecko asset platform id (e.g., 'ethereum')

        Returns
        -------
        dict[str, str]
            Mapping of coin id to lowercase contract address. Coins without a
            contract on the platform are omitted.

        Raises
        ------
        RefreshFailure
            If the request fails

        """
        data = self._get("/coins/list", {"include_platform": "true"})
        if not isinstance(data, list):
            msg = "coins/list returned an unexpected payload"
            raise RefreshFailure(msg)

        addresses = {}
        for coin in data:
            if not isinstance(coin, dict):
                continue
            platforms = coin.get("platforms")
            contract = platforms.get(platform) if isinstance(platforms, dict) else None
            coin_id = coin.get("id")
            if isinstance(coin_id, str) and coin_id and isinstance(contract, str) and contract:
                addresses[coin_id] = contract.lower()
        return addresses

    def _get(self, path: str, params: dict[str, Any]) -> Any:
        try:
            response = self.client.get(f"{self.base_url}{path}", params=params)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            msg = f"{path} failed with HTTP {e.response.status_code}"
            raise RefreshFailure(msg) from e
        except httpx.HTTPError as e:
            msg = f"{path} request failed: {e}"
            raise RefreshFailure(msg) from e
        except ValueError as e:
            msg = f"{path} returned invalid JSON: {e}"
            raise RefreshFailure(msg) from e

    def close(self) -> None:
        """Close HTTP client."""
        self.client.close()

    def __enter__(self) -> "CoinGeckoMarkets":
        """Context manager entry."""
        return self

    def __exit__(self, exc_type: type, exc_val: Exception, exc_tb: object) -> None:
        """Context manager exit."""
        self.close()
