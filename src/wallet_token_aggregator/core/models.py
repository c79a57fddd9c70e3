"""Data models for balances, token metadata, and aggregated tokens."""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

DEFAULT_DECIMALS = 18
DEFAULT_SYMBOL = "UNKNOWN"


def decode_hex_balance(value: str | None) -> int:
    """
    Decode a hex-encoded token quantity.

    Parameters
    ----------
    value : str | None
        Hex string such as ``"0x2540be400"``

    Returns
    -------
    int
        Decoded integer, 0 for empty or malformed input

    """
    if not value:
        return 0
    try:
        return int(value, 16)
    except (TypeError, ValueError):
        return 0


class RawBalanceEntry(BaseModel):
    """
    Token balance as reported by the balance provider.

    Attributes
    ----------
    contract_address : str
        Token contract address (any case)
    token_balance : str | None
        Raw balance in the token's smallest unit, hex encoded

    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    contract_address: str
    token_balance: str | None = None

    @property
    def raw_balance(self) -> int:
        """Decoded integer balance."""
        return decode_hex_balance(self.token_balance)


class TokenMetadata(BaseModel):
    """
    Descriptive token metadata.

    Attributes
    ----------
    decimals : int
        Number of decimal places (18 when unknown)
    symbol : str
        Token symbol ('UNKNOWN' when unknown)
    logo_url : str | None
        Logo URL, filled with a fallback by the enricher

    """

    decimals: int = Field(default=DEFAULT_DECIMALS, ge=0)
    symbol: str = DEFAULT_SYMBOL
    logo_url: str | None = None


class MetadataResult(BaseModel):
    """Outcome of a single metadata lookup in the enrichment fan-out."""

    contract_address: str
    metadata: TokenMetadata
    defaulted: bool = False


class AggregatedToken(BaseModel):
    """
    A priced token holding returned to the caller.

    Attributes
    ----------
    contract_address : str
        Lowercase token contract address
    balance : int
        Raw balance in the token's smallest unit
    decimals : int
        Number of decimal places
    symbol : str
        Token symbol
    logo_url : str | None
        Logo URL
    price : float
        USD price, 0 when no price source has data

    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    contract_address: str
    balance: int
    decimals: int
    symbol: str
    logo_url: str | None = None
    price: float = Field(default=0.0, ge=0)

    @property
    def amount(self) -> Decimal:
        """Human-scale balance (``balance / 10**decimals``)."""
        return Decimal(self.balance).scaleb(-self.decimals)

    @property
    def value(self) -> Decimal:
        """USD value of the holding."""
        return self.amount * Decimal(str(self.price))
