"""Data models for the trading cycle."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class CycleState(Enum):
    """State of the scheduler loop."""

    STOPPED = "stopped"
    RUNNING = "running"
    STOPPING = "stopping"


class CycleStatus(str, Enum):
    """How one run_cycle call ended."""

    COMPLETED = "completed"
    SKIPPED = "skipped"
    HALTED = "halted"
    PAUSED = "paused"


@dataclass
class MarketOutcome:
    """What happened to one market within a cycle."""

    market_id: str
    status: str
    signals: int = 0
    decision_id: Optional[str] = None
    approved: Optional[bool] = None
    trade_id: Optional[str] = None
    executed: bool = False
    size_usd: float = 0.0
    reasons: list[str] = field(default_factory=list)
    error: Optional[str] = None


@dataclass
class CycleResult:
    """Result of one trading cycle."""

    status: CycleStatus
    markets: list[MarketOutcome] = field(default_factory=list)
    started_at: datetime = field(default_factory=datetime.now)
    finished_at: Optional[datetime] = None
    reason: Optional[str] = None

    @property
    def trades_executed(self) -> int:
        return sum(1 for m in self.markets if m.executed)
