"""Tests for OrderExecutor."""

import random
import uuid
from unittest.mock import AsyncMock, Mock, patch

import pytest

from src.config.constants import SIMULATION_PRIVATE_KEY
from src.execution.clob_client import ClobClient
from src.execution.errors import OrderSubmissionError
from src.execution.models import TradeExecutionRequest
from src.execution.order_executor import OrderExecutor, token_id_to_int
from src.execution.polygon_client import PolygonClient
from src.execution.settings import ExecutionSettings
from src.execution.wallet import WalletService
from src.models.records import OrderType, TradeRecord, TradeStatus
from src.models.trading import Direction, Side
from src.portfolio.ledger import PortfolioLedger
from src.risk.drawdown_monitor import DrawdownMonitor
from src.storage.json_store import JsonFileStore


def make_request(**overrides) -> TradeExecutionRequest:
    """Create a test TradeExecutionRequest with sensible defaults."""
    data = {
        "market_id": "m1",
        "token_id": "12345",
        "side": Side.YES,
        "direction": Direction.BUY,
        "size_usd": 100.0,
        "strategy_id": "momentum",
    }
    data.update(overrides)
    return TradeExecutionRequest(**data)


def make_clob(price: float = 0.5, submissions=None) -> Mock:
    clob = Mock(spec=ClobClient)
    clob.get_market_price = AsyncMock(return_value=price)
    clob.post_order = AsyncMock(side_effect=submissions)
    clob.close = AsyncMock()
    return clob


def make_chain(matic_wei: int = 10**18, usdc: float = 1000.0) -> Mock:
    chain = Mock(spec=PolygonClient)
    chain.get_balance = AsyncMock(return_value=matic_wei)
    chain.get_usdc_balance = AsyncMock(return_value=usdc)
    chain.wait_for_confirmation = AsyncMock(return_value={"status": 1, "gasUsed": 21000})
    chain.close = AsyncMock()
    return chain


def make_live_executor(store, clob, chain, sleep=None) -> OrderExecutor:
    wallet = WalletService.load(SIMULATION_PRIVATE_KEY, simulation=False, chain=chain)
    return OrderExecutor(
        store,
        wallet,
        clob=clob,
        chain=chain,
        simulation=False,
        sleep=sleep or AsyncMock(),
    )


class TestTokenIdToInt:
    """Tests for token_id_to_int."""

    def test_decimal(self):
        assert token_id_to_int("12345") == 12345

    def test_hex(self):
        assert token_id_to_int("0x1f") == 31

    def test_other_strings_are_hashed(self):
        value = token_id_to_int("will-it-rain")

        assert value == token_id_to_int("will-it-rain")
        assert 0 <= value < 2**256


class TestSimulation:
    """Tests for simulated execution."""

    @pytest.mark.asyncio
    async def test_simulated_fill_within_bounds(self, tmp_path):
        """Test simulated fills are FILLED at 95-100% of the requested size."""
        store = JsonFileStore(tmp_path)
        executor = OrderExecutor(
            store, WalletService.load(None, simulation=True), simulation=True, rng=random.Random(3)
        )

        for _ in range(20):
            result = await executor.execute_trade(make_request())

            assert result.success is True
            assert result.status == TradeStatus.FILLED
            assert 95.0 <= result.filled_size_usd <= 100.0
            assert 0.0 <= result.slippage <= 50.0
            assert result.filled_price >= 0.5
            assert result.tx_hash.startswith("sim_")

    @pytest.mark.asyncio
    async def test_sell_fill_price_moves_down(self, tmp_path):
        executor = OrderExecutor(
            JsonFileStore(tmp_path), WalletService.load(None, simulation=True), rng=random.Random(5)
        )

        result = await executor.execute_trade(make_request(direction=Direction.SELL))

        assert result.filled_price <= 0.5

    @pytest.mark.asyncio
    async def test_fill_is_persisted(self, tmp_path):
        store = JsonFileStore(tmp_path)
        executor = OrderExecutor(store, WalletService.load(None, simulation=True))

        result = await executor.execute_trade(make_request())

        trade = await executor.get_trade(result.trade_id)
        assert trade.status == TradeStatus.FILLED
        assert trade.filled_size_usd == pytest.approx(result.filled_size_usd)
        assert trade.tx_hash == result.tx_hash
        assert trade.strategy_id == "momentum"
        assert trade.executed_at is not None

    @pytest.mark.asyncio
    async def test_fill_settles_into_ledger(self, tmp_path):
        store = JsonFileStore(tmp_path)
        ledger = PortfolioLedger(store, DrawdownMonitor(store))
        executor = OrderExecutor(store, WalletService.load(None, simulation=True), ledger=ledger)

        result = await executor.execute_trade(make_request())

        positions = await store.get_open_positions("m1")
        assert len(positions) == 1
        assert positions[0].size_usd == pytest.approx(result.filled_size_usd)

    @pytest.mark.asyncio
    async def test_slippage_ceiling_fails_trade(self, tmp_path):
        store = JsonFileStore(tmp_path)
        clob = make_clob(price=0.6)
        executor = OrderExecutor(store, WalletService.load(None, simulation=True), clob=clob)

        result = await executor.execute_trade(make_request(limit_price=0.5, max_slippage_bps=100))

        assert result.success is False
        assert result.status == TradeStatus.FAILED
        assert "Slippage" in result.error_message
        assert (await store.get_trade(result.trade_id)).status == TradeStatus.FAILED

    @pytest.mark.asyncio
    async def test_limit_orders_skip_slippage_check(self, tmp_path):
        executor = OrderExecutor(
            JsonFileStore(tmp_path), WalletService.load(None, simulation=True), clob=make_clob(price=0.6)
        )

        result = await executor.execute_trade(
            make_request(order_type=OrderType.LIMIT, limit_price=0.5, max_slippage_bps=10)
        )

        assert result.status == TradeStatus.FILLED

    @pytest.mark.asyncio
    async def test_wallet_info_in_simulation(self, tmp_path):
        wallet = WalletService.load(None, simulation=True)
        executor = OrderExecutor(JsonFileStore(tmp_path), wallet)

        info = await executor.get_wallet_info()

        assert info.address == wallet.address
        assert info.simulation is True
        assert info.matic_balance == 0.0


class TestLiveExecution:
    """Tests for venue submission with mocked clients."""

    @pytest.mark.asyncio
    async def test_retry_then_fill(self, tmp_path):
        store = JsonFileStore(tmp_path)
        clob = make_clob(submissions=[
            OrderSubmissionError("venue busy", status_code=503),
            {"tx_hash": "0xabc", "filled_price": 0.51, "filled_size": 100.0},
        ])
        chain = make_chain()
        sleep = AsyncMock()
        executor = make_live_executor(store, clob, chain, sleep)

        result = await executor.execute_trade(make_request())

        assert result.status == TradeStatus.FILLED
        assert result.retry_count == 1
        assert result.gas_used == 21000
        assert result.slippage == pytest.approx(100.0)
        sleep.assert_awaited_once_with(1.0)
        chain.wait_for_confirmation.assert_awaited_once()
        assert chain.wait_for_confirmation.await_args.args[0] == "0xabc"
        trade = await store.get_trade(result.trade_id)
        assert trade.retry_count == 1
        assert trade.filled_price == 0.51

    @pytest.mark.asyncio
    async def test_submitted_order_is_signed(self, tmp_path):
        clob = make_clob(submissions=[{"tx_hash": "order-1", "filled_price": None, "filled_size": None}])
        chain = make_chain()
        executor = make_live_executor(JsonFileStore(tmp_path), clob, chain)

        result = await executor.execute_trade(make_request(size_usd=25.0))

        order, signature, owner = clob.post_order.await_args.args
        assert order["tokenID"] == "12345"
        assert order["side"] == "0"
        assert order["size"] == "25000000"
        assert order["price"] == "500000"
        assert signature.startswith("0x") and len(signature) == 132
        assert owner == executor._wallet.address
        # Off-chain order ids are not confirmed on chain
        chain.wait_for_confirmation.assert_not_awaited()
        assert result.filled_price == 0.5
        assert result.filled_size_usd == 25.0

    @pytest.mark.asyncio
    async def test_exhausted_retries_fail_trade(self, tmp_path):
        store = JsonFileStore(tmp_path)
        clob = make_clob(submissions=OrderSubmissionError("down", status_code=500))
        sleep = AsyncMock()
        executor = make_live_executor(store, clob, make_chain(), sleep)

        result = await executor.execute_trade(make_request())

        assert result.status == TradeStatus.FAILED
        assert result.retry_count == 3
        assert clob.post_order.await_count == 4
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0, 4.0]
        trade = await store.get_trade(result.trade_id)
        assert trade.retry_count == 3
        assert trade.error_message == "down"

    @pytest.mark.asyncio
    async def test_insufficient_usdc_fails_before_submission(self, tmp_path):
        clob = make_clob()
        executor = make_live_executor(JsonFileStore(tmp_path), clob, make_chain(usdc=10.0))

        result = await executor.execute_trade(make_request())

        assert result.status == TradeStatus.FAILED
        assert "USDC" in result.error_message
        clob.post_order.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_insufficient_gas_fails(self, tmp_path):
        executor = make_live_executor(JsonFileStore(tmp_path), make_clob(), make_chain(matic_wei=0))

        result = await executor.execute_trade(make_request())

        assert result.status == TradeStatus.FAILED
        assert "MATIC" in result.error_message

    @pytest.mark.asyncio
    async def test_wallet_info_reads_balances(self, tmp_path):
        executor = make_live_executor(JsonFileStore(tmp_path), make_clob(), make_chain(matic_wei=2 * 10**18, usdc=55.5))

        info = await executor.get_wallet_info()

        assert info.matic_balance == 2.0
        assert info.usdc_balance == 55.5
        assert info.simulation is False

    @pytest.mark.asyncio
    async def test_close_destroys_wallet(self, tmp_path):
        clob = make_clob()
        chain = make_chain()
        executor = make_live_executor(JsonFileStore(tmp_path), clob, chain)

        await executor.close()

        clob.close.assert_awaited_once()
        chain.close.assert_awaited_once()
        assert executor._wallet.active is False


class TestCancel:
    """Tests for cancel_order."""

    @pytest.mark.asyncio
    async def test_cancel_pending_trade(self, tmp_path):
        store = JsonFileStore(tmp_path)
        await store.create_trade(TradeRecord(
            id="t1", market_id="m1", token_id="1", side=Side.YES,
            direction=Direction.BUY, size_usd=10.0, price=0.0,
        ))
        executor = OrderExecutor(store, WalletService.load(None, simulation=True))

        assert await executor.cancel_order("t1") is True
        assert await executor.cancel_order("t1") is False
        assert (await store.get_trade("t1")).status == TradeStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_cancel_unknown_trade(self, tmp_path):
        executor = OrderExecutor(JsonFileStore(tmp_path), WalletService.load(None, simulation=True))

        assert await executor.cancel_order("missing") is False

    @pytest.mark.asyncio
    async def test_cancel_mid_flight_is_not_resurrected(self, tmp_path):
        """Test a trade cancelled during execution stays CANCELLED."""
        store = JsonFileStore(tmp_path)
        trade_uuid = uuid.UUID(int=1)
        executor = OrderExecutor(store, WalletService.load(None, simulation=True), clob=make_clob())

        async def cancel_then_quote(token_id, side):
            await executor.cancel_order(str(trade_uuid))
            return 0.5

        executor._clob.get_market_price = AsyncMock(side_effect=cancel_then_quote)

        with patch("src.execution.order_executor.uuid.uuid4", return_value=trade_uuid):
            result = await executor.execute_trade(make_request())

        assert result.success is False
        assert result.status == TradeStatus.CANCELLED
        assert (await store.get_trade(str(trade_uuid))).status == TradeStatus.CANCELLED


class TestSettings:
    """Tests for ExecutionSettings wiring."""

    @pytest.mark.asyncio
    async def test_retry_budget_from_settings(self, tmp_path):
        settings = ExecutionSettings(max_retries=1, retry_base_delay_seconds=0.25)
        clob = make_clob(submissions=OrderSubmissionError("down"))
        sleep = AsyncMock()
        wallet = WalletService.load(SIMULATION_PRIVATE_KEY, simulation=False, chain=make_chain())
        executor = OrderExecutor(
            JsonFileStore(tmp_path), wallet, clob=clob, chain=make_chain(),
            settings=settings, simulation=False, sleep=sleep,
        )

        result = await executor.execute_trade(make_request())

        assert result.retry_count == 1
        assert clob.post_order.await_count == 2
        sleep.assert_awaited_once_with(0.25)
