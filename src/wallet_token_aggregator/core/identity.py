"""Identity resolution from address or ENS name to canonical address."""

import logging
import re
from collections.abc import Sequence
from typing import Any

from wallet_token_aggregator.core.errors import InvalidIdentityError, ResolutionError

logger = logging.getLogger(__name__)

ADDRESS_PATTERN = re.compile(r"0x[a-fA-F0-9]{40}")
DEFAULT_NAME_SUFFIXES = (".eth",)


def is_address(value: str) -> bool:
    """Check whether ``value`` is a 0x-prefixed 40 hex digit address (any case)."""
    return bool(ADDRESS_PATTERN.fullmatch(value))


class IdentityResolver:
    """
    Turns a user-supplied identity into a canonical lowercase address.

    Parameters
    ----------
    name_resolver : Any
        Object with a ``resolve_name(name) -> str | None`` method
    name_suffixes : Sequence[str]
        Suffixes marking an identity as a human-readable name

    """

    def __init__(self, name_resolver: Any, name_suffixes: Sequence[str] = DEFAULT_NAME_SUFFIXES) -> None:
        self.name_resolver = name_resolver
        self.name_suffixes = tuple(suffix.lower() for suffix in name_suffixes)

    def is_name(self, identity: str) -> bool:
        return identity.lower().endswith(self.name_suffixes)

    def resolve(self, identity: str) -> str:
        """
        Resolve an identity to a canonical address.

        Parameters
        ----------
        identity : str
            Address or human-readable name

        Returns
        -------
        str
            Lowercase 0x-prefixed address

        Raises
        ------
        ResolutionError
            If a name does not resolve to an address
        InvalidIdentityError
            If the (resolved) value is not a valid address

        """
        value = (identity or "").strip()

        if self.is_name(value):
            try:
                resolved = self.name_resolver.resolve_name(value)
            except ResolutionError:
                raise
            except Exception as e:
                msg = f"Name resolution failed for {value}: {e}"
                raise ResolutionError(msg) from e

            if not resolved:
                msg = f"Invalid ENS name: {value}"
                raise ResolutionError(msg)
            logger.debug("Resolved %s to %s", value, resolved)
            value = resolved

        if not is_address(value):
            msg = f"Invalid Ethereum address: {value}"
            raise InvalidIdentityError(msg)

        return value.lower()
