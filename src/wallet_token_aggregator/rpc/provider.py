"""Alchemy JSON-RPC provider for token balances, token metadata, and ENS names."""

import itertools
import logging
from typing import Any

import httpx
from web3 import Web3

from wallet_token_aggregator.core.errors import MetadataLookupFailure, ProviderError, ResolutionError
from wallet_token_aggregator.core.models import RawBalanceEntry, TokenMetadata

logger = logging.getLogger(__name__)

ALCHEMY_URL_TEMPLATE = "https://{network}.g.alchemy.com/v2/{key}"


class AlchemyProvider:
    """
    Client for Alchemy's enhanced JSON-RPC API.

    Exposes the three upstream capabilities the pipeline consumes: token
    balances, token metadata and ENS name resolution. Every call is bounded
    by ``timeout`` and is never retried.

    Parameters
    ----------
    rpc_url : str
        Alchemy endpoint including the API key
    timeout : float
        Request timeout in seconds
    client : httpx.Client | None
        HTTP client to use. Creates one if None.

    """

    def __init__(
        self,
        rpc_url: str,
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ) -> None:
        self.rpc_url = rpc_url
        self.timeout = timeout
        self.client = client or httpx.Client(timeout=timeout)
        self._ids = itertools.count(1)
        self._web3: Web3 | None = None

    @classmethod
    def from_api_key(cls, api_key: str, network: str = "eth-mainnet", timeout: float = 10.0) -> "AlchemyProvider":
        """Build a provider from a bare API key."""
        return cls(ALCHEMY_URL_TEMPLATE.format(network=network, key=api_key), timeout=timeout)

    def make_request(self, method: str, params: list[Any]) -> Any:
        """
        Make a single JSON-RPC request.

        Parameters
        ----------
        method : str
            RPC method name (e.g., 'alchemy_getTokenBalances')
        params : list[Any]
            Method parameters

        Returns
        -------
        Any
            The ``result`` member of the response

        Raises
        ------
        ProviderError
            On transport errors, HTTP errors, JSON-RPC errors or malformed responses

        """
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}

        try:
            response = self.client.post(self.rpc_url, json=payload)
            response.raise_for_status()
            body = response.json()
        except httpx.TimeoutException as e:
            msg = f"{method} timed out: {e}"
            raise ProviderError(msg) from e
        except httpx.HTTPStatusError as e:
            msg = f"{method} failed with HTTP {e.response.status_code}"
            raise ProviderError(msg) from e
        except httpx.HTTPError as e:
            msg = f"{method} request failed: {e}"
            raise ProviderError(msg) from e
        except ValueError as e:
            msg = f"{method} returned invalid JSON: {e}"
            raise ProviderError(msg) from e

        if not isinstance(body, dict):
            msg = f"{method} returned an unexpected payload"
            raise ProviderError(msg)

        if body.get("error"):
            error = body["error"]
            message = error.get("message", error) if isinstance(error, dict) else error
            msg = f"{method} error: {message}"
            raise ProviderError(msg)

        return body.get("result")

    def get_token_balances(self, address: str) -> list[RawBalanceEntry]:
        """
        Fetch every ERC-20 balance for an address, following pagination.

        Parameters
        ----------
        address : str
            Canonical wallet address

        Returns
        -------
        list[RawBalanceEntry]
            Balances in provider order, zero balances included

        Raises
        ------
        ProviderError
            If any page fails; no partial list is returned

        """
        entries: list[RawBalanceEntry] = []
        page_key = None

        while True:
            options = {"pageKey": page_key} if page_key else None
            params: list[Any] = [address, "erc20", options] if options else [address, "erc20"]
            result = self.make_request("alchemy_getTokenBalances", params)

            if not isinstance(result, dict):
                msg = "alchemy_getTokenBalances returned no result"
                raise ProviderError(msg)

            for item in result.get("tokenBalances") or []:
                if not isinstance(item, dict) or not item.get("contractAddress"):
                    continue
                entries.append(RawBalanceEntry.model_validate(item))

            page_key = result.get("pageKey")
            if not page_key:
                break

        return entries

    def get_token_metadata(self, contract_address: str) -> TokenMetadata:
        """
        Fetch metadata for a token contract.

        Parameters
        ----------
        contract_address : str
            Token contract address

        Returns
        -------
        TokenMetadata
            Metadata with defaults for fields the provider left empty.
            ``logo_url`` is None when the provider has no logo.

        Raises
        ------
        MetadataLookupFailure
            If the lookup fails

        """
        try:
            result = self.make_request("alchemy_getTokenMetadata", [contract_address])
        except ProviderError as e:
            raise MetadataLookupFailure(str(e)) from e

        if not isinstance(result, dict):
            msg = f"no metadata for {contract_address}"
            raise MetadataLookupFailure(msg)

        fields = {
            "decimals": result.get("decimals"),
            "symbol": result.get("symbol") or None,
            "logo_url": result.get("logo") or None,
        }
        try:
            return TokenMetadata(**{k: v for k, v in fields.items() if v is not None})
        except ValueError as e:
            msg = f"invalid metadata for {contract_address}: {e}"
            raise MetadataLookupFailure(msg) from e

    def resolve_name(self, name: str) -> str | None:
        """
        Resolve an ENS name through the ENS registry on this endpoint.

        Parameters
        ----------
        name : str
            ENS name (e.g., 'vitalik.eth')

        Returns
        -------
        str | None
            Resolved address, or None if the name has no address record

        Raises
        ------
        ResolutionError
            If the lookup itself fails

        """
        if self._web3 is None:
            self._web3 = Web3(Web3.HTTPProvider(self.rpc_url, request_kwargs={"timeout": self.timeout}))

        try:
            address = self._web3.ens.address(name)
        except Exception as e:
            msg = f"ENS lookup for {name} failed: {e}"
            raise ResolutionError(msg) from e

        return str(address) if address else None

    def close(self) -> None:
        """Close the HTTP client."""
        self.client.close()

    def __enter__(self) -> "AlchemyProvider":
        """Context manager entry."""
        return self

    def __exit__(
        self,
        exc_type: type | None,
        exc_val: Exception | None,
        exc_tb: object | None,
    ) -> None:
        """Context manager exit."""
        self.close()
