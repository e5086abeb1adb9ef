"""Tests for RiskGateClient and ExecutionClient."""

import json

import httpx
import pytest

from src.auth.service_tokens import ServiceTokenManager
from src.clients.service_clients import ExecutionClient, RiskGateClient
from src.config.constants import AGENT_SERVICE
from src.execution.models import TradeExecutionRequest
from src.models.records import TradeStatus
from src.models.trading import Direction, PortfolioState, Side, TradeSignal

TOKENS = ServiceTokenManager("test-secret")


def make_http(handler, base_url: str) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url=base_url)


def make_signal() -> TradeSignal:
    return TradeSignal(
        market_id="m1",
        side=Side.YES,
        direction=Direction.BUY,
        confidence=0.7,
        position_size_usd=150.0,
        strategy_id="meta-allocator",
    )


class TestRiskGateClient:
    """Tests for RiskGateClient."""

    @pytest.mark.asyncio
    async def test_validate_trade(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["token"] = request.headers["Authorization"].removeprefix("Bearer ")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={
                "approved": True,
                "adjusted_size_usd": 120.0,
                "rejection_reasons": [],
                "warnings": ["VOLATILITY_ADJUSTED: size multiplied by 0.800"],
                "risk_metrics": {
                    "trade_to_capital_ratio": 0.015,
                    "market_exposure_ratio": 0.012,
                    "daily_drawdown_ratio": 0.0,
                    "volatility_adjustment": 0.8,
                },
            })

        client = RiskGateClient("http://risk", TOKENS, http=make_http(handler, "http://risk"))

        result = await client.validate_trade(make_signal(), PortfolioState())

        assert result.approved is True
        assert result.adjusted_size_usd == 120.0
        assert result.warning_codes == ["VOLATILITY_ADJUSTED"]
        assert result.risk_metrics.volatility_adjustment == 0.8
        assert seen["path"] == "/validate-trade"
        assert TOKENS.verify(seen["token"])["service"] == AGENT_SERVICE
        assert seen["body"]["signal"]["side"] == "YES"
        assert seen["body"]["portfolio"]["total_capital"] == 10000.0

    @pytest.mark.asyncio
    async def test_server_error_raises(self):
        client = RiskGateClient(
            "http://risk", TOKENS, http=make_http(lambda request: httpx.Response(500, text="boom"), "http://risk")
        )

        with pytest.raises(httpx.HTTPStatusError):
            await client.validate_trade(make_signal(), PortfolioState())

    @pytest.mark.asyncio
    async def test_risk_events_passes_limit(self):
        def handler(request):
            assert request.url.params["limit"] == "5"
            return httpx.Response(200, json=[{"id": "e1"}])

        client = RiskGateClient("http://risk", TOKENS, http=make_http(handler, "http://risk"))

        assert await client.get_risk_events(limit=5) == [{"id": "e1"}]


class TestExecutionClient:
    """Tests for ExecutionClient."""

    @pytest.mark.asyncio
    async def test_execute_trade(self):
        def handler(request):
            body = json.loads(request.content)
            assert body["size_usd"] == 50.0
            assert body["order_type"] == "MARKET"
            return httpx.Response(200, json={
                "success": True,
                "trade_id": "t1",
                "status": "FILLED",
                "tx_hash": "sim_abc",
                "filled_price": 0.51,
                "filled_size_usd": 48.0,
                "slippage": 20.0,
                "gas_used": 0,
                "error_message": None,
                "retry_count": 0,
            })

        client = ExecutionClient("http://exec", TOKENS, http=make_http(handler, "http://exec"))
        request = TradeExecutionRequest(
            market_id="m1", token_id="1", side=Side.YES, direction=Direction.BUY, size_usd=50.0
        )

        result = await client.execute_trade(request)

        assert result.success is True
        assert result.status == TradeStatus.FILLED
        assert result.filled_size_usd == 48.0

    @pytest.mark.asyncio
    async def test_missing_trade_is_none(self):
        client = ExecutionClient(
            "http://exec", TOKENS, http=make_http(lambda request: httpx.Response(404), "http://exec")
        )

        assert await client.get_trade("nope") is None
        assert await client.cancel_order("nope") is False

    @pytest.mark.asyncio
    async def test_cancel(self):
        def handler(request):
            assert request.method == "POST"
            assert request.url.path == "/cancel/t1"
            return httpx.Response(200, json={"trade_id": "t1", "cancelled": True})

        client = ExecutionClient("http://exec", TOKENS, http=make_http(handler, "http://exec"))

        assert await client.cancel_order("t1") is True

    @pytest.mark.asyncio
    async def test_execute_trade_uses_long_timeout(self):
        seen = {}

        def handler(request):
            seen[request.url.path] = request.extensions["timeout"]["read"]
            if request.url.path == "/execute-trade":
                return httpx.Response(200, json={"success": False, "trade_id": "t1", "status": "FAILED"})
            return httpx.Response(404)

        http = httpx.AsyncClient(
            transport=httpx.MockTransport(handler), base_url="http://exec", timeout=30.0
        )
        client = ExecutionClient("http://exec", TOKENS, http=http, execute_timeout=300.0)
        request = TradeExecutionRequest(
            market_id="m1", token_id="1", side=Side.YES, direction=Direction.BUY, size_usd=50.0
        )

        await client.execute_trade(request)
        await client.get_trade("t1")

        assert seen == {"/execute-trade": 300.0, "/trade/t1": 30.0}
