# src/storage/base.py
"""Storage contract shared by the consensus, risk and execution services."""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from src.models.records import (
    DailySnapshot,
    DecisionRecord,
    RiskEvent,
    RiskEventType,
    StrategyScore,
    TradeRecord,
    TradeStatus,
)
from src.models.trading import PortfolioState, PositionState


class TradingStore(ABC):
    """Abstract persistence for every durable table of the system.

    Components receive a store in their constructor and never reach for
    module-level state, so tests can hand them a throwaway instance.
    """

    # Strategy scores

    @abstractmethod
    async def get_active_strategy_scores(self) -> list[StrategyScore]:
        """Return score rows for active strategies."""
        pass

    @abstractmethod
    async def get_strategy_score(self, strategy_id: str) -> Optional[StrategyScore]:
        """Return the score row for one strategy, or None."""
        pass

    @abstractmethod
    async def save_strategy_score(self, score: StrategyScore) -> None:
        """Insert or replace a score row."""
        pass

    # Consensus decisions

    @abstractmethod
    async def record_decision(self, decision: DecisionRecord) -> None:
        """Append a consensus decision."""
        pass

    @abstractmethod
    async def update_decision(self, decision_id: str, **fields) -> Optional[DecisionRecord]:
        """Update fields of a decision. Returns the updated row or None."""
        pass

    @abstractmethod
    async def get_decisions_since(self, since: datetime, limit: int) -> list[DecisionRecord]:
        """Return decisions created at or after since, newest first."""
        pass

    # Kill switch

    @abstractmethod
    async def is_kill_switch_active(self) -> bool:
        """Return the persisted kill-switch flag."""
        pass

    @abstractmethod
    async def set_kill_switch(self, active: bool) -> None:
        """Persist the kill-switch flag."""
        pass

    # Risk events

    @abstractmethod
    async def record_risk_event(self, event: RiskEvent) -> None:
        """Append a risk event."""
        pass

    @abstractmethod
    async def get_risk_events(self, limit: int = 50) -> list[RiskEvent]:
        """Return the most recent risk events, newest first."""
        pass

    @abstractmethod
    async def resolve_risk_events(self, event_type: RiskEventType) -> int:
        """Mark unresolved events of a type as resolved. Returns the count."""
        pass

    # Positions

    @abstractmethod
    async def get_open_positions(self, market_id: Optional[str] = None) -> list[PositionState]:
        """Return open positions, optionally for one market."""
        pass

    @abstractmethod
    async def save_position(self, position: PositionState) -> None:
        """Insert or replace a position."""
        pass

    # Trades

    @abstractmethod
    async def create_trade(self, trade: TradeRecord) -> None:
        """Insert a new trade record."""
        pass

    @abstractmethod
    async def get_trade(self, trade_id: str) -> Optional[TradeRecord]:
        """Return a trade record or None."""
        pass

    @abstractmethod
    async def update_trade(self, trade_id: str, **fields) -> Optional[TradeRecord]:
        """Update non-status fields of a trade. Returns the updated record or None."""
        pass

    @abstractmethod
    async def transition_trade(
        self,
        trade_id: str,
        expected: TradeStatus,
        new: TradeStatus,
        **fields,
    ) -> bool:
        """Compare-and-set a trade status.

        Applies the transition and fields only if the current status equals
        expected. Returns True if the transition was applied.
        """
        pass

    @abstractmethod
    async def get_filled_trades(
        self,
        since: Optional[datetime] = None,
        market_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[TradeRecord]:
        """Return FILLED trades, newest first."""
        pass

    # Portfolio

    @abstractmethod
    async def get_portfolio(self) -> Optional[PortfolioState]:
        """Return the persisted portfolio row (positions not included)."""
        pass

    @abstractmethod
    async def save_portfolio(self, portfolio: PortfolioState) -> None:
        """Persist the portfolio row."""
        pass

    @abstractmethod
    async def record_daily_snapshot(self, snapshot: DailySnapshot) -> None:
        """Insert or replace the snapshot for snapshot.date."""
        pass

    @abstractmethod
    async def get_daily_snapshots(self, limit: int) -> list[DailySnapshot]:
        """Return the most recent daily snapshots, oldest first."""
        pass
