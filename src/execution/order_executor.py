# src/execution/order_executor.py
"""Order execution engine: durable trade records driven through a retry loop."""
import logging
import random
import time
import uuid
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional

from web3 import Web3

from src.config.constants import POLYGON_CHAIN_ID
from src.execution.clob_client import ClobClient
from src.execution.errors import InsufficientBalanceError, SlippageExceededError
from src.execution.models import (
    FillReport,
    OrderPayload,
    TradeExecutionRequest,
    TradeExecutionResult,
    WalletInfo,
)
from src.execution.polygon_client import PolygonClient
from src.execution.retry import RetryPolicy, RetryRunner
from src.execution.settings import ExecutionSettings
from src.execution.wallet import WalletService
from src.models.records import OrderType, TradeRecord, TradeStatus
from src.models.trading import Direction
from src.portfolio.ledger import PortfolioLedger
from src.storage.base import TradingStore


logger = logging.getLogger(__name__)

PRICE_SCALE = 10**6
WEI_PER_MATIC = 10**18


def token_id_to_int(token_id: str) -> int:
    """Venue token ids are decimal or hex uint256; anything else is hashed."""
    try:
        if token_id.startswith("0x"):
            return int(token_id, 16)
        return int(token_id)
    except ValueError:
        return int.from_bytes(Web3.keccak(text=token_id), "big")


class OrderExecutor:
    """Executes approved trades against the venue, or simulates them.

    Every trade is persisted PENDING before any external call and always
    leaves execute_trade as FILLED, FAILED or CANCELLED. Final transitions
    are compare-and-set against PENDING so a cancelled trade is never
    resurrected by an attempt that was already in flight.
    """

    def __init__(
        self,
        store: TradingStore,
        wallet: WalletService,
        clob: Optional[ClobClient] = None,
        chain: Optional[PolygonClient] = None,
        ledger: Optional[PortfolioLedger] = None,
        settings: Optional[ExecutionSettings] = None,
        simulation: bool = True,
        chain_id: int = POLYGON_CHAIN_ID,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
        rng: Optional[random.Random] = None,
    ):
        """Initialize OrderExecutor.

        Args:
            store: Trade record persistence.
            wallet: Signer for venue orders.
            clob: Venue client; simulation falls back to the default price without it.
            chain: RPC client for confirmations. Required in live mode.
            ledger: Receives every FILLED trade for position accounting.
            settings: Retry, slippage and confirmation parameters.
            simulation: Skip pre-flight and venue calls and synthesize fills.
            chain_id: EIP-712 domain chain id.
            sleep: Backoff sleep, injectable for tests.
            rng: Random source for simulated fills.
        """
        self.settings = settings or ExecutionSettings()
        self.simulation = simulation
        self._store = store
        self._wallet = wallet
        self._clob = clob
        self._chain = chain
        self._ledger = ledger
        self._chain_id = chain_id
        self._rng = rng or random.Random()

        policy = RetryPolicy(
            max_retries=self.settings.max_retries,
            base_delay_seconds=self.settings.retry_base_delay_seconds,
        )
        self._runner = RetryRunner(policy, sleep=sleep) if sleep else RetryRunner(policy)

    async def execute_trade(self, request: TradeExecutionRequest) -> TradeExecutionResult:
        """Execute an approved trade.

        Steps:
        1. Persist a PENDING record
        2. Pre-flight balance checks (live only)
        3. Fetch the market price and enforce max_slippage_bps for market orders
        4. Sign, submit and confirm under the retry policy (or simulate)
        5. Transition to FILLED and settle into the ledger, or to FAILED

        Args:
            request: Trade approved by the risk gate.

        Returns:
            TradeExecutionResult; failures are reported, not raised.
        """
        trade = TradeRecord(
            id=str(uuid.uuid4()),
            market_id=request.market_id,
            token_id=request.token_id,
            side=request.side,
            direction=request.direction,
            size_usd=request.size_usd,
            price=request.limit_price or 0.0,
            order_type=request.order_type,
            strategy_id=request.strategy_id or None,
        )
        await self._store.create_trade(trade)
        logger.info(
            f"Trade {trade.id} created: {request.direction.value} {request.side.value} "
            f"{request.size_usd:.2f} USD in {request.market_id}"
        )

        retries = 0

        async def on_retry(retry: int, delay: float, error: Exception) -> None:
            nonlocal retries
            retries = retry
            await self._store.update_trade(trade.id, retry_count=retry)

        try:
            await self._preflight(request)

            market_price = await self._market_price(request)
            self._check_slippage(request, market_price)

            async def attempt(number: int) -> FillReport:
                if self.simulation:
                    return self._simulate_fill(request, market_price)
                return await self._place_order(request, market_price)

            fill = await self._runner.run(attempt, on_retry=on_retry)
        except Exception as e:
            return await self._fail(trade.id, e, retries)

        return await self._fill(trade.id, fill, retries)

    async def _preflight(self, request: TradeExecutionRequest) -> None:
        if self.simulation:
            return

        gas = await self._wallet.get_balance()
        if gas < self.settings.min_gas_balance_wei:
            raise InsufficientBalanceError("MATIC", gas / WEI_PER_MATIC, self.settings.min_gas_balance_wei / WEI_PER_MATIC)

        usdc = await self._wallet.get_usdc_balance()
        if usdc < request.size_usd:
            raise InsufficientBalanceError("USDC", usdc, request.size_usd)

        logger.info("Pre-flight checks passed")

    async def _market_price(self, request: TradeExecutionRequest) -> float:
        if self._clob is None:
            return self.settings.default_market_price
        return await self._clob.get_market_price(request.token_id, request.side)

    def _check_slippage(self, request: TradeExecutionRequest, market_price: float) -> None:
        if request.order_type != OrderType.MARKET or request.limit_price is None:
            return
        slippage_bps = abs(market_price - request.limit_price) * 10000
        if slippage_bps > request.max_slippage_bps:
            raise SlippageExceededError(slippage_bps, request.max_slippage_bps)

    def build_order(self, request: TradeExecutionRequest, price: float) -> OrderPayload:
        """Scale the request into the signed order struct."""
        now = time.time()
        return OrderPayload(
            token_id=token_id_to_int(request.token_id),
            side=0 if request.direction == Direction.BUY else 1,
            size=int(round(request.size_usd * PRICE_SCALE)),
            price=int(round(price * PRICE_SCALE)),
            nonce=int(now * 1000),
            expiration=int(now) + self.settings.order_expiration_seconds,
        )

    async def _place_order(self, request: TradeExecutionRequest, market_price: float) -> FillReport:
        expected_price = request.limit_price or market_price
        order = self.build_order(request, expected_price)
        signature = self._wallet.sign_order(order, self._chain_id)

        message = {key: str(value) for key, value in order.to_message().items()}
        submission = await self._clob.post_order(message, signature, self._wallet.address)
        tx_hash = submission["tx_hash"]

        gas_used = 0
        if tx_hash.startswith("0x"):
            receipt = await self._chain.wait_for_confirmation(
                tx_hash,
                confirmations=self.settings.min_confirmations,
                timeout=self.settings.confirmation_timeout_seconds,
                poll_interval=self.settings.confirmation_poll_seconds,
            )
            gas_used = int(receipt.get("gasUsed", 0))

        filled_price = float(submission.get("filled_price") or expected_price)
        filled_size = float(submission.get("filled_size") or request.size_usd)

        return FillReport(
            tx_hash=tx_hash,
            filled_price=filled_price,
            filled_size_usd=filled_size,
            slippage=abs(filled_price - expected_price) * 10000,
            gas_used=gas_used,
        )

    def _simulate_fill(self, request: TradeExecutionRequest, market_price: float) -> FillReport:
        slippage_bps = self._rng.uniform(0, self.settings.simulation_max_slippage_bps)
        if request.direction == Direction.BUY:
            filled_price = market_price * (1 + slippage_bps / 10000)
        else:
            filled_price = market_price * (1 - slippage_bps / 10000)

        fill_ratio = self._rng.uniform(self.settings.simulation_min_fill_ratio, 1.0)

        return FillReport(
            tx_hash=f"sim_{uuid.uuid4().hex[:16]}",
            filled_price=filled_price,
            filled_size_usd=request.size_usd * fill_ratio,
            slippage=slippage_bps,
            gas_used=0,
        )

    async def _fill(self, trade_id: str, fill: FillReport, retries: int) -> TradeExecutionResult:
        applied = await self._store.transition_trade(
            trade_id,
            TradeStatus.PENDING,
            TradeStatus.FILLED,
            tx_hash=fill.tx_hash,
            filled_price=fill.filled_price,
            filled_size_usd=fill.filled_size_usd,
            slippage=fill.slippage,
            gas_used=fill.gas_used,
            retry_count=retries,
            executed_at=datetime.now(),
        )
        if not applied:
            return await self._discarded(trade_id, retries)

        logger.info(
            f"Trade {trade_id} filled: {fill.filled_size_usd:.2f} USD @ {fill.filled_price:.4f} "
            f"({fill.slippage:.1f}bps) tx={fill.tx_hash}"
        )

        if self._ledger is not None:
            trade = await self._store.get_trade(trade_id)
            await self._ledger.apply_fill(trade)

        return TradeExecutionResult(
            success=True,
            trade_id=trade_id,
            status=TradeStatus.FILLED,
            tx_hash=fill.tx_hash,
            filled_price=fill.filled_price,
            filled_size_usd=fill.filled_size_usd,
            slippage=fill.slippage,
            gas_used=fill.gas_used,
            retry_count=retries,
        )

    async def _fail(self, trade_id: str, error: Exception, retries: int) -> TradeExecutionResult:
        message = str(error) or type(error).__name__
        applied = await self._store.transition_trade(
            trade_id,
            TradeStatus.PENDING,
            TradeStatus.FAILED,
            error_message=message,
            retry_count=retries,
        )
        if not applied:
            return await self._discarded(trade_id, retries)

        logger.error(f"Trade {trade_id} failed: {message}")
        return TradeExecutionResult(
            success=False,
            trade_id=trade_id,
            status=TradeStatus.FAILED,
            error_message=message,
            retry_count=retries,
        )

    async def _discarded(self, trade_id: str, retries: int) -> TradeExecutionResult:
        trade = await self._store.get_trade(trade_id)
        status = trade.status if trade else TradeStatus.CANCELLED
        logger.warning(f"Trade {trade_id} left PENDING during execution ({status.value}), result discarded")
        return TradeExecutionResult(
            success=False,
            trade_id=trade_id,
            status=status,
            error_message=f"Trade is {status.value}",
            retry_count=retries,
        )

    async def cancel_order(self, trade_id: str) -> bool:
        """Cancel a trade that is still PENDING.

        Returns:
            True if the trade moved to CANCELLED, False otherwise.
        """
        cancelled = await self._store.transition_trade(trade_id, TradeStatus.PENDING, TradeStatus.CANCELLED)
        if cancelled:
            logger.info(f"Trade {trade_id} cancelled")
        return cancelled

    async def get_trade(self, trade_id: str) -> Optional[TradeRecord]:
        return await self._store.get_trade(trade_id)

    async def get_wallet_info(self) -> WalletInfo:
        if self.simulation:
            return WalletInfo(address=self._wallet.address, matic_balance=0.0, usdc_balance=0.0, simulation=True)

        return WalletInfo(
            address=self._wallet.address,
            matic_balance=await self._wallet.get_balance() / WEI_PER_MATIC,
            usdc_balance=await self._wallet.get_usdc_balance(),
            simulation=False,
        )

    async def close(self) -> None:
        """Destroy the signer and release HTTP connections."""
        self._wallet.destroy()
        if self._clob is not None:
            await self._clob.close()
        if self._chain is not None:
            await self._chain.close()
