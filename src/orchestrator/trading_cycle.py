"""Trading cycle that wires strategies, consensus, risk and execution."""

import asyncio
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional, Protocol

from src.consensus.meta_allocator import MetaAllocator
from src.consensus.strategy import Strategy
from src.execution.models import TradeExecutionRequest, TradeExecutionResult
from src.models.trading import MarketSnapshot, PortfolioState, TradeSignal
from src.orchestrator.models import CycleResult, CycleState, CycleStatus, MarketOutcome
from src.orchestrator.settings import OrchestratorSettings
from src.portfolio.ledger import PortfolioLedger
from src.risk.models import RiskCheckResult
from src.storage.base import TradingStore


logger = logging.getLogger(__name__)


class RiskGate(Protocol):
    async def validate_trade(self, signal: TradeSignal, portfolio: PortfolioState) -> RiskCheckResult: ...


class TradeExecutor(Protocol):
    async def execute_trade(self, request: TradeExecutionRequest) -> TradeExecutionResult: ...


MarketSource = Callable[[], Awaitable[list[MarketSnapshot]]]


class TradingCycle:
    """Runs strategies -> consensus -> risk gate -> execution for a batch of markets.

    Only one cycle runs at a time. A trigger that arrives while a cycle is
    in flight returns a SKIPPED result immediately rather than queueing.
    """

    def __init__(
        self,
        strategies: list[Strategy],
        allocator: MetaAllocator,
        ledger: PortfolioLedger,
        risk_gate: RiskGate,
        executor: TradeExecutor,
        store: TradingStore,
        settings: Optional[OrchestratorSettings] = None,
        max_slippage_bps: int = 100,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self._strategies = strategies
        self._allocator = allocator
        self._ledger = ledger
        self._risk_gate = risk_gate
        self._executor = executor
        self._store = store
        self._settings = settings or OrchestratorSettings()
        self._max_slippage_bps = max_slippage_bps
        self._sleep = sleep
        self._enabled = self._settings.enabled

        self._in_flight = False
        self._state = CycleState.STOPPED
        self._last_reflection: Optional[datetime] = None

    @property
    def state(self) -> CycleState:
        return self._state

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def enabled(self) -> bool:
        return self._enabled

    def toggle(self) -> bool:
        """Pause or resume trading. Returns the new setting."""
        self._enabled = not self._enabled
        logger.info(f"Trading {'resumed' if self._enabled else 'paused'}")
        return self._enabled

    async def run_cycle(self, markets: list[MarketSnapshot]) -> CycleResult:
        """Run one cycle over the given markets.

        Args:
            markets: Active markets to evaluate, capped at max_markets_per_cycle.

        Returns:
            CycleResult with one MarketOutcome per evaluated market, or a
            SKIPPED, PAUSED or HALTED result with no markets.
        """
        if self._in_flight:
            logger.info("Trading cycle already in flight, skipping trigger")
            return CycleResult(status=CycleStatus.SKIPPED, reason="Cycle already in flight")

        if not self._enabled:
            logger.info("Trading paused, skipping cycle")
            return CycleResult(status=CycleStatus.PAUSED, reason="Trading paused")

        self._in_flight = True
        try:
            return await self._run(markets)
        finally:
            self._in_flight = False

    async def _run(self, markets: list[MarketSnapshot]) -> CycleResult:
        result = CycleResult(status=CycleStatus.COMPLETED)

        portfolio = await self._ledger.get_portfolio_state()
        if portfolio.kill_switch_active:
            logger.warning("Kill switch active, trading cycle halted")
            result.status = CycleStatus.HALTED
            result.reason = "Kill switch active"
            await self._record_snapshot()
            result.finished_at = datetime.now()
            return result

        await self._sync_weights()

        batch = [m for m in markets if m.active][: self._settings.max_markets_per_cycle]
        logger.info(f"Trading cycle started: {len(batch)} markets")

        for market in batch:
            try:
                outcome = await self._process_market(market)
            except Exception as e:
                logger.error(f"Market {market.market_id} failed: {e}")
                outcome = MarketOutcome(market_id=market.market_id, status="error", error=str(e))
            result.markets.append(outcome)

        await self._record_snapshot()
        result.finished_at = datetime.now()
        logger.info(
            f"Trading cycle finished: {len(result.markets)} markets, "
            f"{result.trades_executed} trades executed"
        )
        return result

    async def _record_snapshot(self) -> None:
        # Upserts today's row, so the last cycle of the day wins
        try:
            await self._ledger.record_daily_snapshot()
        except Exception as e:
            logger.error(f"Daily snapshot failed: {e}")

    async def _sync_weights(self) -> None:
        """Push persisted self-reflection weights into the strategies."""
        scores = {s.strategy_id: s for s in await self._store.get_active_strategy_scores()}
        for strategy in self._strategies:
            score = scores.get(strategy.strategy_id)
            if score is not None:
                strategy.set_weight(score.weight)

    async def _collect_signals(self, market: MarketSnapshot, portfolio: PortfolioState) -> list[TradeSignal]:
        timeout = self._settings.strategy_timeout_seconds

        async def run(strategy: Strategy) -> Optional[TradeSignal]:
            try:
                return await asyncio.wait_for(strategy.analyze(market, portfolio), timeout)
            except Exception as e:
                logger.warning(f"Strategy {strategy.strategy_id} failed on {market.market_id}: {e}")
                return None

        results = await asyncio.gather(*(run(s) for s in self._strategies))
        return [signal for signal in results if signal is not None]

    async def _process_market(self, market: MarketSnapshot) -> MarketOutcome:
        # Fresh snapshot per decision so sizing sees fills from earlier markets
        portfolio = await self._ledger.get_portfolio_state()
        signals = await self._collect_signals(market, portfolio)

        consensus = await self._allocator.build_consensus(signals, market, portfolio)
        decision = await self._allocator.record_decision(consensus)
        outcome = MarketOutcome(
            market_id=market.market_id,
            status="no_trade",
            signals=len(signals),
            decision_id=decision.id,
        )
        if not consensus.should_trade:
            return outcome

        signal = consensus.to_signal()
        check = await self._risk_gate.validate_trade(signal, portfolio)
        await self._store.update_decision(decision.id, approved=check.approved)
        outcome.approved = check.approved
        if not check.approved:
            outcome.status = "rejected"
            outcome.reasons = check.rejection_reasons
            logger.info(f"Risk gate rejected {market.market_id}: {'; '.join(check.rejection_reasons)}")
            return outcome

        request = TradeExecutionRequest(
            market_id=market.market_id,
            token_id=market.token_for(consensus.side) or market.market_id,
            side=consensus.side,
            direction=consensus.direction,
            size_usd=check.adjusted_size_usd,
            max_slippage_bps=self._max_slippage_bps,
            strategy_id=",".join(consensus.strategy_ids),
            confidence=consensus.aggregate_confidence,
            reasoning=consensus.reasoning,
        )
        execution = await self._executor.execute_trade(request)
        await self._store.update_decision(decision.id, executed=execution.success)

        outcome.trade_id = execution.trade_id
        outcome.executed = execution.success
        outcome.size_usd = execution.filled_size_usd or 0.0
        outcome.status = "executed" if execution.success else "failed"
        if not execution.success:
            outcome.error = execution.error_message
        return outcome

    async def run_reflection(self) -> dict[str, float]:
        """Re-weight strategies from recent decisions and push the weights."""
        weights = await self._allocator.self_reflect()
        for strategy in self._strategies:
            if strategy.strategy_id in weights:
                strategy.set_weight(weights[strategy.strategy_id])
        self._last_reflection = datetime.now()
        return weights

    def _reflection_due(self) -> bool:
        if self._last_reflection is None:
            return False
        elapsed = (datetime.now() - self._last_reflection).total_seconds()
        return elapsed >= self._settings.reflection_interval_hours * 3600

    async def run_forever(self, market_source: MarketSource, interval: Optional[float] = None) -> None:
        """Trigger a cycle every interval seconds until stop() is called."""
        interval = interval or self._settings.cycle_interval_seconds
        self._state = CycleState.RUNNING
        self._last_reflection = datetime.now()
        logger.info(f"Trading loop started (every {interval}s)")

        try:
            while self._state == CycleState.RUNNING:
                try:
                    markets = await market_source()
                    await self.run_cycle(markets)
                    if self._reflection_due():
                        await self.run_reflection()
                except Exception as e:
                    logger.error(f"Trading cycle error: {e}")
                await self._sleep(interval)
        finally:
            self._state = CycleState.STOPPED
            logger.info("Trading loop stopped")

    def stop(self) -> None:
        if self._state == CycleState.RUNNING:
            self._state = CycleState.STOPPING
