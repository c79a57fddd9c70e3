"""Concurrent token metadata enrichment with per-token fallbacks."""

import logging
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any

from wallet_token_aggregator.core.models import MetadataResult, TokenMetadata

logger = logging.getLogger(__name__)

DEFAULT_LOGO_URL_TEMPLATE = (
    "https://raw.githubusercontent.com/trustwallet/assets/master/blockchains/ethereum/assets/{address}/logo.png"
)


class MetadataEnricher:
    """
    Fetches metadata for a set of token contracts in parallel.

    A failed lookup never fails the batch: the token gets a default record
    (18 decimals, symbol 'UNKNOWN') and the failure is logged.

    Parameters
    ----------
    metadata_provider : Any
        Object with a ``get_token_metadata(address) -> TokenMetadata`` method
    max_workers : int
        Maximum number of concurrent lookups
    logo_url_template : str
        Fallback logo URL, formatted with the lowercase ``address``

    """

    def __init__(
        self,
        metadata_provider: Any,
        max_workers: int = 16,
        logo_url_template: str = DEFAULT_LOGO_URL_TEMPLATE,
    ) -> None:
        self.metadata_provider = metadata_provider
        self.max_workers = max_workers
        self.logo_url_template = logo_url_template

    def fallback_logo_url(self, contract_address: str) -> str:
        return self.logo_url_template.format(address=contract_address.lower())

    def enrich(self, contract_addresses: Iterable[str]) -> dict[str, TokenMetadata]:
        """
        Fetch metadata for each distinct contract address.

        Parameters
        ----------
        contract_addresses : Iterable[str]
            Contract addresses; duplicates (case-insensitive) are looked up once

        Returns
        -------
        dict[str, TokenMetadata]
            Mapping of lowercase contract address to metadata, one entry per address

        """
        return {result.contract_address: result.metadata for result in self.enrich_tagged(contract_addresses)}

    def enrich_tagged(self, contract_addresses: Iterable[str]) -> list[MetadataResult]:
        """
        Fetch metadata and report which lookups fell back to defaults.

        Returns only after every lookup has finished.

        Parameters
        ----------
        contract_addresses : Iterable[str]
            Contract addresses

        Returns
        -------
        list[MetadataResult]
            One result per distinct address, in input order

        """
        addresses = list(dict.fromkeys(address.lower() for address in contract_addresses))
        if not addresses:
            return []

        results: dict[str, MetadataResult] = {}

        with ThreadPoolExecutor(max_workers=min(len(addresses), self.max_workers)) as executor:
            future_to_address = {
                executor.submit(self.metadata_provider.get_token_metadata, address): address for address in addresses
            }

            for future in as_completed(future_to_address):
                address = future_to_address[future]
                try:
                    metadata = future.result()
                    results[address] = MetadataResult(
                        contract_address=address,
                        metadata=self._with_logo(address, metadata),
                    )
                except Exception as e:
                    # Continue with other tokens even if one fails
                    logger.warning("Metadata fetch failed for %s: %s", address, e)
                    results[address] = MetadataResult(
                        contract_address=address,
                        metadata=TokenMetadata(logo_url=self.fallback_logo_url(address)),
                        defaulted=True,
                    )

        defaulted = sum(1 for result in results.values() if result.defaulted)
        if defaulted:
            logger.info("Used default metadata for %d of %d tokens", defaulted, len(addresses))

        return [results[address] for address in addresses]

    def _with_logo(self, contract_address: str, metadata: TokenMetadata) -> TokenMetadata:
        if metadata.logo_url:
            return metadata
        return metadata.model_copy(update={"logo_url": self.fallback_logo_url(contract_address)})
