"""Tests for MarketFeed."""

import httpx
import pytest

from src.clients.market_feed import MarketFeed, market_from_payload


def make_feed(handler) -> MarketFeed:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="https://gamma.test")
    return MarketFeed("https://gamma.test", limit=10, http=http)


ROW = {
    "conditionId": "0xcond",
    "question": "Will it rain tomorrow?",
    "outcomePrices": "[\"0.62\", \"0.38\"]",
    "clobTokenIds": "[\"111\", \"222\"]",
    "volume24hr": 15000.5,
    "liquidity": "2500",
    "endDate": "2026-12-31T00:00:00Z",
    "active": True,
    "closed": False,
}


class TestMarketFromPayload:
    """Tests for market_from_payload."""

    def test_parses_encoded_lists(self):
        market = market_from_payload(ROW)

        assert market.market_id == "0xcond"
        assert market.yes_price == 0.62
        assert market.no_price == 0.38
        assert market.yes_token_id == "111"
        assert market.no_token_id == "222"
        assert market.liquidity == 2500.0
        assert market.end_date.year == 2026
        assert market.active is True

    def test_closed_market_inactive(self):
        assert market_from_payload({**ROW, "closed": True}).active is False

    def test_missing_prices_default(self):
        market = market_from_payload({"conditionId": "c", "outcomePrices": "not json"})

        assert market.yes_price == 0.5
        assert market.no_price == 0.5
        assert market.yes_token_id is None
        assert market.end_date is None


class TestMarketFeed:
    """Tests for MarketFeed.fetch_active_markets."""

    @pytest.mark.asyncio
    async def test_fetches_and_parses(self):
        def handler(request):
            assert request.url.path == "/markets"
            assert request.url.params["active"] == "true"
            assert request.url.params["closed"] == "false"
            assert request.url.params["limit"] == "10"
            assert request.url.params["order"] == "volume24hr"
            return httpx.Response(200, json=[ROW, {"question": "no id"}, {**ROW, "conditionId": "0xother"}])

        markets = await make_feed(handler).fetch_active_markets()

        assert [m.market_id for m in markets] == ["0xcond", "0xother"]

    @pytest.mark.asyncio
    async def test_skips_malformed_rows(self):
        bad = {**ROW, "outcomePrices": ["abc"]}
        markets = await make_feed(lambda request: httpx.Response(200, json=[bad, ROW])).fetch_active_markets()

        assert len(markets) == 1

    @pytest.mark.asyncio
    async def test_http_error_returns_empty(self):
        markets = await make_feed(lambda request: httpx.Response(503)).fetch_active_markets()

        assert markets == []

    @pytest.mark.asyncio
    async def test_unexpected_payload_returns_empty(self):
        markets = await make_feed(lambda request: httpx.Response(200, json={"error": "x"})).fetch_active_markets()

        assert markets == []
