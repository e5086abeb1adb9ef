# src/models/trading.py
"""Shared trading vocabulary exchanged between the agent, risk and execution services."""
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Side(str, Enum):
    YES = "YES"
    NO = "NO"


class Direction(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class PositionStatus(str, Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


class TradeSignal(BaseModel):
    """Opinion emitted by one strategy for one market in one cycle.

    Signals are frozen once built; the consensus engine only reads them.
    """

    model_config = ConfigDict(frozen=True)

    market_id: str
    side: Side
    direction: Direction
    confidence: float = Field(ge=0.0, le=1.0)
    position_size_usd: float = Field(ge=0.0)
    strategy_id: str
    reasoning: str = ""
    created_at: datetime = Field(default_factory=datetime.now)


class MarketSnapshot(BaseModel):
    """Binary prediction market as seen at the start of a cycle."""

    market_id: str
    question: str = ""
    yes_price: float = Field(default=0.5, ge=0.0, le=1.0)
    no_price: float = Field(default=0.5, ge=0.0, le=1.0)
    yes_token_id: Optional[str] = None
    no_token_id: Optional[str] = None
    volume_24h: float = 0.0
    liquidity: float = 0.0
    end_date: Optional[datetime] = None
    active: bool = True

    def token_for(self, side: Side) -> Optional[str]:
        """Return the outcome token id for a side."""
        return self.yes_token_id if side == Side.YES else self.no_token_id

    def price_for(self, side: Side) -> float:
        """Return the current price for a side."""
        return self.yes_price if side == Side.YES else self.no_price


class PositionState(BaseModel):
    """One open (or closed) exposure in a market."""

    id: str
    market_id: str
    side: Side
    size_usd: float = Field(ge=0.0)
    avg_entry_price: float = Field(ge=0.0)
    current_price: float = Field(default=0.0, ge=0.0)
    unrealized_pnl: float = 0.0
    realized_pnl: float = 0.0
    status: PositionStatus = PositionStatus.OPEN
    opened_at: datetime = Field(default_factory=datetime.now)
    closed_at: Optional[datetime] = None


class PortfolioState(BaseModel):
    """Authoritative capital snapshot read by the risk gate on every check.

    available_capital + deployed_capital is kept equal to total_capital by
    the portfolio ledger, which is the only writer.
    """

    total_capital: float = Field(default=10000.0, ge=0.0)
    available_capital: float = 10000.0
    deployed_capital: float = Field(default=0.0, ge=0.0)
    total_pnl: float = 0.0
    daily_pnl: float = 0.0
    daily_pnl_percent: float = 0.0
    high_water_mark: float = 10000.0
    max_drawdown: float = Field(default=0.0, ge=0.0)
    kill_switch_active: bool = False
    capital_preservation: bool = False
    positions: list[PositionState] = Field(default_factory=list)
    updated_at: datetime = Field(default_factory=datetime.now)

    @property
    def open_positions(self) -> list[PositionState]:
        """Return only positions still open."""
        return [p for p in self.positions if p.status == PositionStatus.OPEN]
