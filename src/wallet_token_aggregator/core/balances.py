"""Balance fetching with zero-balance filtering."""

import logging
from typing import Any

from wallet_token_aggregator.core.errors import ProviderError
from wallet_token_aggregator.core.models import RawBalanceEntry

logger = logging.getLogger(__name__)


class BalanceFetcher:
    """
    Retrieves an address's raw token holdings from the balance provider.

    Parameters
    ----------
    balance_provider : Any
        Object with a ``get_token_balances(address) -> list[RawBalanceEntry]`` method

    """

    def __init__(self, balance_provider: Any) -> None:
        self.balance_provider = balance_provider

    def fetch_balances(self, address: str) -> list[RawBalanceEntry]:
        """
        Fetch non-zero balances for an address.

        Parameters
        ----------
        address : str
            Canonical wallet address

        Returns
        -------
        list[RawBalanceEntry]
            Entries with a positive decoded balance, in provider order

        Raises
        ------
        ProviderError
            If the provider call fails

        """
        try:
            entries = self.balance_provider.get_token_balances(address)
        except ProviderError:
            raise
        except Exception as e:
            msg = f"Balance lookup failed for {address}: {e}"
            raise ProviderError(msg) from e

        non_zero = [entry for entry in entries if entry.raw_balance > 0]
        logger.debug("Provider reported %d balances for %s, %d non-zero", len(entries), address, len(non_zero))
        return non_zero
