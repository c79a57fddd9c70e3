"""Tests for the bulk top-token price refresh."""

import json

import httpx
import pytest

from wallet_token_aggregator.core.errors import RefreshFailure
from wallet_token_aggregator.pricing.coingecko import CoinGeckoMarkets
from wallet_token_aggregator.pricing.refresh import PriceRefresher, TopTokenTable

USDC = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"
WETH = "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"


class FakeMarkets:
    """Market-data stand-in serving preset pages."""

    def __init__(self, pages, platforms=None, failing_pages=()):
        self.pages = pages
        self.platforms = platforms or {}
        self.failing_pages = set(failing_pages)
        self.requested_pages = []
        self.platform_calls = 0

    def get_markets_page(self, page, per_page=250):
        self.requested_pages.append(page)
        if page in self.failing_pages:
            msg = f"coins/markets page {page} failed with HTTP 429"
            raise RefreshFailure(msg)
        return self.pages.get(page, [])

    def get_platform_addresses(self, platform="ethereum"):
        self.platform_calls += 1
        return self.platforms


def market_row(coin_id, price, contract=None):
    row = {"id": coin_id, "symbol": coin_id[:4], "current_price": price}
    if contract is not None:
        row["platforms"] = {"ethereum": contract} if contract else {}
    return row


def test_refresh_populates_table_and_cache(price_cache, top_tokens):
    markets = FakeMarkets(
        {1: [market_row("usd-coin", 1.0, USDC), market_row("bitcoin", 60000.0, ""), market_row("weth", 3000.5, WETH)]}
    )
    refresher = PriceRefresher(markets, price_cache, top_tokens, top_n=3, per_page=3)

    assert refresher.refresh() is True

    assert top_tokens.snapshot() == {USDC.lower(): 1.0, WETH.lower(): 3000.5}
    assert price_cache.get(USDC) == 1.0
    assert price_cache.get(WETH) == 3000.5
    assert markets.platform_calls == 0

    persisted = json.loads(price_cache.path.read_text(encoding="utf-8"))
    assert set(persisted) == {USDC.lower(), WETH.lower()}


def test_refresh_fetches_all_pages_and_truncates(price_cache, top_tokens):
    markets = FakeMarkets(
        {
            1: [market_row(f"coin-{i}", float(i), f"0x{i:040x}") for i in range(1, 3)],
            2: [market_row(f"coin-{i}", float(i), f"0x{i:040x}") for i in range(3, 5)],
        }
    )
    refresher = PriceRefresher(markets, price_cache, top_tokens, top_n=3, per_page=2)

    refresher.refresh()

    assert sorted(markets.requested_pages) == [1, 2]
    assert len(top_tokens) == 3
    assert f"0x{4:040x}" not in top_tokens


def test_page_count():
    refresher = PriceRefresher(FakeMarkets({}), None, TopTokenTable(), top_n=500, per_page=250)
    assert refresher.page_count == 2

    refresher = PriceRefresher(FakeMarkets({}), None, TopTokenTable(), top_n=501, per_page=250)
    assert refresher.page_count == 3


def test_contract_from_platform_listing(price_cache, top_tokens):
    """Rows without platforms are resolved through the coin list."""
    markets = FakeMarkets(
        {1: [market_row("usd-coin", 1.0), market_row("bitcoin", 60000.0)]},
        platforms={"usd-coin": USDC.lower()},
    )
    refresher = PriceRefresher(markets, price_cache, top_tokens, top_n=2, per_page=2)

    refresher.refresh()

    assert markets.platform_calls == 1
    assert top_tokens.snapshot() == {USDC.lower(): 1.0}


def test_missing_price_recorded_as_zero(price_cache, top_tokens):
    markets = FakeMarkets({1: [market_row("usd-coin", None, USDC), market_row("weth", "abc", WETH)]})

    PriceRefresher(markets, price_cache, top_tokens, top_n=2, per_page=2).refresh()

    assert top_tokens.snapshot() == {USDC.lower(): 0.0}


def test_malformed_rows_are_skipped(price_cache, top_tokens):
    """Rows with unusable shapes are dropped instead of aborting the cycle."""
    markets = FakeMarkets(
        {
            1: [
                {"id": "numeric-contract", "current_price": 1.0, "platforms": {"ethereum": 123}},
                "not-a-row",
                {"id": ["list-id"], "current_price": 2.0},
                {"id": "list-platforms", "current_price": 3.0, "platforms": ["ethereum"]},
                market_row("usd-coin", 1.0, USDC),
            ]
        }
    )
    refresher = PriceRefresher(markets, price_cache, top_tokens, top_n=5, per_page=5)

    assert refresher.refresh() is True

    assert top_tokens.snapshot() == {USDC.lower(): 1.0}
    assert price_cache.get(USDC) == 1.0


def test_page_failure_aborts_without_partial_commit(price_cache, top_tokens, caplog):
    price_cache.put(USDC, 0.999)
    top_tokens.replace({USDC: 0.998})
    markets = FakeMarkets({1: [market_row("weth", 3000.0, WETH)]}, failing_pages={2})
    refresher = PriceRefresher(markets, price_cache, top_tokens, top_n=4, per_page=2)

    assert refresher.refresh() is False

    assert top_tokens.snapshot() == {USDC.lower(): 0.998}
    assert price_cache.get(USDC) == 0.999
    assert price_cache.get(WETH) is None
    assert not price_cache.path.exists()
    assert "Failed to fetch top tokens" in caplog.text


def test_refresh_prunes_expired_entries(price_cache, top_tokens, clock):
    price_cache.put("0xstale", 5.0)
    clock.advance(4000)
    markets = FakeMarkets({1: [market_row("usd-coin", 1.0, USDC)]})

    PriceRefresher(markets, price_cache, top_tokens, top_n=1, per_page=1).refresh()

    persisted = json.loads(price_cache.path.read_text(encoding="utf-8"))
    assert list(persisted) == [USDC.lower()]


def test_persist_failure_is_absorbed(tmp_path, clock, top_tokens, caplog):
    from wallet_token_aggregator.rpc.cache import PriceCache

    blocker = tmp_path / "not-a-dir"
    blocker.write_text("", encoding="utf-8")
    cache = PriceCache(blocker / "prices.json", clock=clock)
    markets = FakeMarkets({1: [market_row("usd-coin", 1.0, USDC)]})

    assert PriceRefresher(markets, cache, top_tokens, top_n=1, per_page=1).refresh() is True
    assert cache.get(USDC) == 1.0
    assert "Failed to persist price cache" in caplog.text


def test_start_background(price_cache, top_tokens):
    markets = FakeMarkets({1: [market_row("usd-coin", 1.0, USDC)]})
    refresher = PriceRefresher(markets, price_cache, top_tokens, top_n=1, per_page=1)

    thread = refresher.start_background()
    thread.join(timeout=5)

    assert not thread.is_alive()
    assert thread.daemon
    assert top_tokens.get(USDC) == 1.0


def test_top_token_table():
    table = TopTokenTable({USDC: 1.0})

    assert table.get(USDC.lower()) == 1.0
    assert USDC in table
    table.replace({WETH: 3000.0})
    assert table.get(USDC) is None
    assert table.get(WETH) == 3000.0


class TestCoinGeckoMarkets:
    """CoinGecko client against a mocked transport."""

    def make_client(self, handler):
        return CoinGeckoMarkets(
            base_url="https://cg.test/api/v3",
            client=httpx.Client(transport=httpx.MockTransport(handler)),
        )

    def test_markets_page_params(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json=[market_row("usd-coin", 1.0)])

        with self.make_client(handler) as client:
            rows = client.get_markets_page(2, per_page=250)

        assert rows[0]["id"] == "usd-coin"
        assert seen["path"] == "/api/v3/coins/markets"
        assert seen["params"] == {
            "vs_currency": "usd",
            "order": "market_cap_desc",
            "per_page": "250",
            "page": "2",
            "sparkline": "false",
        }

    def test_http_error_raises_refresh_failure(self):
        with self.make_client(lambda request: httpx.Response(429)) as client:
            with pytest.raises(RefreshFailure, match="429"):
                client.get_markets_page(1)

    def test_unexpected_payload(self):
        with self.make_client(lambda request: httpx.Response(200, json={"status": "error"})) as client:
            with pytest.raises(RefreshFailure):
                client.get_markets_page(1)

    def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with self.make_client(handler) as client:
            with pytest.raises(RefreshFailure, match="connection refused"):
                client.get_markets_page(1)

    def test_platform_addresses(self):
        coins = [
            {"id": "usd-coin", "platforms": {"ethereum": USDC, "base": "0xbase"}},
            {"id": "bitcoin", "platforms": {}},
            {"id": "base-only", "platforms": {"base": "0xbase"}},
        ]

        def handler(request):
            assert request.url.params["include_platform"] == "true"
            return httpx.Response(200, json=coins)

        with self.make_client(handler) as client:
            assert client.get_platform_addresses("ethereum") == {"usd-coin": USDC.lower()}

    def test_api_key_header(self):
        client = CoinGeckoMarkets(api_key="cg-key")
        try:
            assert client.client.headers["x-cg-demo-api-key"] == "cg-key"
        finally:
            client.close()

    def test_markets_page_drops_non_object_rows(self):
        payload = [market_row("usd-coin", 1.0), "garbage", None]

        with self.make_client(lambda request: httpx.Response(200, json=payload)) as client:
            assert [row["id"] for row in client.get_markets_page(1)] == ["usd-coin"]

    def test_platform_addresses_skip_malformed_coins(self):
        coins = [
            "garbage",
            {"id": "numeric", "platforms": {"ethereum": 123}},
            {"id": "listed", "platforms": ["ethereum"]},
            {"id": None, "platforms": {"ethereum": WETH}},
            {"id": "usd-coin", "platforms": {"ethereum": USDC}},
        ]

        with self.make_client(lambda request: httpx.Response(200, json=coins)) as client:
            assert client.get_platform_addresses("ethereum") == {"usd-coin": USDC.lower()}
