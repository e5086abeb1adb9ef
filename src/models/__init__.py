"""Models package for the consensus trading system."""

from src.models.records import (
    DailySnapshot,
    DecisionRecord,
    OrderType,
    RiskEvent,
    RiskEventType,
    RiskSeverity,
    StrategyScore,
    TradeRecord,
    TradeStatus,
)
from src.models.trading import (
    Direction,
    MarketSnapshot,
    PortfolioState,
    PositionState,
    PositionStatus,
    Side,
    TradeSignal,
)

__all__ = [
    "DailySnapshot",
    "DecisionRecord",
    "Direction",
    "MarketSnapshot",
    "OrderType",
    "PortfolioState",
    "PositionState",
    "PositionStatus",
    "RiskEvent",
    "RiskEventType",
    "RiskSeverity",
    "Side",
    "StrategyScore",
    "TradeRecord",
    "TradeSignal",
    "TradeStatus",
]
