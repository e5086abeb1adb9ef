"""Settlement of fills into positions and the portfolio snapshot."""

import asyncio
import logging
import uuid
from datetime import date, datetime

from src.models.records import DailySnapshot, TradeRecord, TradeStatus
from src.models.trading import Direction, PortfolioState, PositionState, PositionStatus
from src.risk.drawdown_monitor import DrawdownMonitor
from src.risk.models import DrawdownState
from src.storage.base import TradingStore


logger = logging.getLogger(__name__)

# Positions smaller than this are treated as closed
DUST_USD = 0.01


class PortfolioLedger:
    """Only writer of the portfolio row and positions.

    Sizes are USD notionals at entry cost. A BUY fill opens or averages into
    the (market, side) position and moves capital from available to deployed.
    A SELL fill releases cost basis, realizes P&L at the fill price and
    credits the proceeds, so available + deployed stays equal to total.
    """

    def __init__(
        self,
        store: TradingStore,
        drawdown_monitor: DrawdownMonitor,
        initial_capital: float = 10000.0,
    ):
        self._store = store
        self._drawdown = drawdown_monitor
        self._initial_capital = initial_capital
        self._lock = asyncio.Lock()

    async def _load_portfolio(self) -> PortfolioState:
        portfolio = await self._store.get_portfolio()
        if portfolio is None:
            portfolio = PortfolioState(
                total_capital=self._initial_capital,
                available_capital=self._initial_capital,
                high_water_mark=self._initial_capital,
            )
        return portfolio

    async def get_portfolio_state(self) -> PortfolioState:
        """Build the snapshot the risk gate judges trades against."""
        portfolio = await self._load_portfolio()
        positions = await self._store.get_open_positions()
        pnl, pnl_percent = await self._drawdown.get_daily_pnl(portfolio.total_capital)
        state = self._drawdown.classify(abs(pnl_percent))

        return portfolio.model_copy(
            update={
                "positions": positions,
                "daily_pnl": pnl,
                "daily_pnl_percent": pnl_percent,
                "kill_switch_active": await self._store.is_kill_switch_active(),
                "capital_preservation": state != DrawdownState.NORMAL,
                "updated_at": datetime.now(),
            }
        )

    async def apply_fill(self, trade: TradeRecord) -> PositionState | None:
        """Settle a FILLED trade.

        Args:
            trade: Filled trade with filled_price and filled_size_usd set.

        Returns:
            The position after settlement, or None if a SELL had nothing to close.
        """
        if trade.status != TradeStatus.FILLED or not trade.filled_size_usd or not trade.filled_price:
            raise ValueError(f"Trade {trade.id} is not a settled fill")

        async with self._lock:
            portfolio = await self._load_portfolio()
            existing = [
                p for p in await self._store.get_open_positions(trade.market_id)
                if p.side == trade.side
            ]
            position = existing[0] if existing else None

            if trade.direction == Direction.BUY:
                position = self._apply_buy(portfolio, position, trade)
            else:
                if position is None:
                    logger.warning(f"SELL fill {trade.id} has no open {trade.side.value} position in {trade.market_id}")
                    return None
                pnl = self._apply_sell(portfolio, position, trade)
                await self._store.update_trade(trade.id, realized_pnl=pnl)

            portfolio.updated_at = datetime.now()
            await self._store.save_position(position)
            await self._store.save_portfolio(portfolio)

        return position

    def _apply_buy(
        self,
        portfolio: PortfolioState,
        position: PositionState | None,
        trade: TradeRecord,
    ) -> PositionState:
        filled = trade.filled_size_usd
        price = trade.filled_price

        if position is None:
            position = PositionState(
                id=str(uuid.uuid4()),
                market_id=trade.market_id,
                side=trade.side,
                size_usd=filled,
                avg_entry_price=price,
                current_price=price,
            )
        else:
            shares = position.size_usd / position.avg_entry_price + filled / price
            position.size_usd += filled
            position.avg_entry_price = position.size_usd / shares
            position.current_price = price

        portfolio.available_capital -= filled
        portfolio.deployed_capital += filled
        logger.info(f"Opened {filled:.2f} USD {trade.side.value} in {trade.market_id} @ {price:.4f}")
        return position

    def _apply_sell(
        self,
        portfolio: PortfolioState,
        position: PositionState,
        trade: TradeRecord,
    ) -> float:
        cost_basis = min(trade.filled_size_usd, position.size_usd)
        shares = cost_basis / position.avg_entry_price
        proceeds = shares * trade.filled_price
        pnl = proceeds - cost_basis

        position.size_usd -= cost_basis
        position.realized_pnl += pnl
        position.current_price = trade.filled_price
        if position.size_usd < DUST_USD:
            position.size_usd = 0.0
            position.status = PositionStatus.CLOSED
            position.closed_at = datetime.now()

        portfolio.deployed_capital = max(0.0, portfolio.deployed_capital - cost_basis)
        portfolio.available_capital += proceeds
        portfolio.total_capital += pnl
        portfolio.total_pnl += pnl
        portfolio.high_water_mark = max(portfolio.high_water_mark, portfolio.total_capital)
        if portfolio.high_water_mark > 0:
            drawdown = (portfolio.high_water_mark - portfolio.total_capital) / portfolio.high_water_mark
            portfolio.max_drawdown = max(portfolio.max_drawdown, drawdown)

        logger.info(
            f"Closed {cost_basis:.2f} USD {trade.side.value} in {trade.market_id} "
            f"@ {trade.filled_price:.4f}, realized {pnl:+.2f}"
        )
        return pnl

    async def record_daily_snapshot(self, day: date | None = None) -> DailySnapshot:
        """Persist today's figures for Monte Carlo history."""
        portfolio = await self.get_portfolio_state()
        day = day or date.today()
        start_of_day = datetime.combine(day, datetime.min.time())
        trades = await self._store.get_filled_trades(since=start_of_day)

        snapshot = DailySnapshot(
            date=day,
            portfolio_value=portfolio.total_capital,
            daily_pnl=portfolio.daily_pnl,
            daily_pnl_percent=portfolio.daily_pnl_percent,
            trade_count=len(trades),
        )
        await self._store.record_daily_snapshot(snapshot)
        return snapshot
