"""Pytest configuration and fakes for wallet-token-aggregator tests."""

import threading

import pytest

from wallet_token_aggregator.core import (
    BalanceFetcher,
    IdentityResolver,
    MetadataEnricher,
    MetadataLookupFailure,
    ProviderError,
    RawBalanceEntry,
    TokenAggregator,
    TokenMetadata,
)
from wallet_token_aggregator.pricing import TopTokenTable
from wallet_token_aggregator.rpc import PriceCache


class FakeClock:
    """Controllable epoch-seconds clock."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeProvider:
    """In-memory stand-in for the Alchemy provider."""

    def __init__(self) -> None:
        self.names: dict[str, str | None] = {}
        self.balances: dict[str, list[dict]] = {}
        self.metadata: dict[str, TokenMetadata] = {}
        self.failing_metadata: set[str] = set()
        self.balance_error: Exception | None = None
        self.metadata_calls: list[str] = []
        self._lock = threading.Lock()

    def resolve_name(self, name: str) -> str | None:
        return self.names.get(name)

    def get_token_balances(self, address: str) -> list[RawBalanceEntry]:
        if self.balance_error is not None:
            raise self.balance_error
        return [RawBalanceEntry.model_validate(item) for item in self.balances.get(address, [])]

    def get_token_metadata(self, contract_address: str) -> TokenMetadata:
        with self._lock:
            self.metadata_calls.append(contract_address)
        if contract_address in self.failing_metadata:
            msg = f"no metadata for {contract_address}"
            raise MetadataLookupFailure(msg)
        return self.metadata.get(contract_address, TokenMetadata())


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def price_cache(tmp_path, clock):
    return PriceCache(tmp_path / "prices.json", ttl=3600, clock=clock)


@pytest.fixture
def top_tokens():
    return TopTokenTable()


@pytest.fixture
def aggregator(provider, price_cache, top_tokens):
    return TokenAggregator(
        resolver=IdentityResolver(provider),
        balance_fetcher=BalanceFetcher(provider),
        enricher=MetadataEnricher(provider, max_workers=4),
        price_cache=price_cache,
        top_tokens=top_tokens,
    )


@pytest.fixture
def provider_error():
    return ProviderError("alchemy_getTokenBalances failed with HTTP 503")
