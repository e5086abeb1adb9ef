"""Daily drawdown classification and kill-switch ownership."""

import logging
import uuid
from datetime import datetime
from typing import Callable

from src.models.records import RiskEvent, RiskEventType, RiskSeverity
from src.models.trading import PortfolioState
from src.risk.models import DrawdownCheck, DrawdownState
from src.risk.settings import RiskSettings
from src.storage.base import TradingStore


logger = logging.getLogger(__name__)


class DrawdownMonitor:
    """Classifies daily P&L against the preservation and kill-switch bands.

    State is recomputed on every check:
        NORMAL -> CAPITAL_PRESERVATION (|daily P&L %| >= capital_preservation_drawdown)
               -> KILL_SWITCH (|daily P&L %| >= kill_switch_drawdown)

    The kill switch itself is persisted in the store and is only ever cleared
    by reset_kill_switch(). Favorable P&L never clears it.
    """

    def __init__(
        self,
        store: TradingStore,
        settings: RiskSettings | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._store = store
        self._settings = settings or RiskSettings()
        self._clock = clock

    def classify(self, drawdown: float) -> DrawdownState:
        if drawdown >= self._settings.kill_switch_drawdown:
            return DrawdownState.KILL_SWITCH
        if drawdown >= self._settings.capital_preservation_drawdown:
            return DrawdownState.CAPITAL_PRESERVATION
        return DrawdownState.NORMAL

    def check_drawdown(self, portfolio: PortfolioState) -> DrawdownCheck:
        """Classify the portfolio's daily P&L percent."""
        drawdown = abs(portfolio.daily_pnl_percent)
        state = self.classify(drawdown)
        return DrawdownCheck(
            state=state,
            current_drawdown=drawdown,
            kill_switch=state == DrawdownState.KILL_SWITCH,
            capital_preservation=state != DrawdownState.NORMAL,
        )

    async def get_daily_pnl(self, total_capital: float | None = None) -> tuple[float, float]:
        """Realized P&L of today's filled trades.

        Args:
            total_capital: Capital to express the P&L against. Defaults to the
                persisted portfolio, then to the configured default capital.

        Returns:
            Tuple of (pnl, pnl_percent) where pnl_percent is a fraction.
        """
        now = self._clock()
        start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
        trades = await self._store.get_filled_trades(since=start_of_day)
        pnl = sum(t.realized_pnl or 0.0 for t in trades)

        if total_capital is None:
            portfolio = await self._store.get_portfolio()
            total_capital = portfolio.total_capital if portfolio else self._settings.default_total_capital

        pnl_percent = pnl / total_capital if total_capital > 0 else 0.0
        return pnl, pnl_percent

    async def is_kill_switch_active(self) -> bool:
        return await self._store.is_kill_switch_active()

    async def activate_kill_switch(self, reason: str, details: dict | None = None) -> None:
        """Halt all trading and record a CRITICAL risk event."""
        await self._store.set_kill_switch(True)
        await self._store.record_risk_event(
            RiskEvent(
                id=str(uuid.uuid4()),
                event_type=RiskEventType.KILL_SWITCH,
                severity=RiskSeverity.CRITICAL,
                message=reason,
                details=details or {},
                created_at=self._clock(),
            )
        )
        logger.critical(f"KILL SWITCH ACTIVATED: {reason}")

    async def reset_kill_switch(self, actor: str = "admin") -> None:
        """Clear the kill switch. Administrative action only."""
        await self._store.set_kill_switch(False)
        resolved = await self._store.resolve_risk_events(RiskEventType.KILL_SWITCH)
        now = self._clock()
        await self._store.record_risk_event(
            RiskEvent(
                id=str(uuid.uuid4()),
                event_type=RiskEventType.KILL_SWITCH,
                severity=RiskSeverity.HIGH,
                message=f"Kill switch manually reset by {actor}",
                details={"resolved_events": resolved},
                resolved=True,
                created_at=now,
                resolved_at=now,
            )
        )
        logger.warning(f"Kill switch reset by {actor}")
