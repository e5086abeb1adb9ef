# src/models/records.py
"""Persisted rows owned by the store."""
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Optional

from src.models.trading import Direction, Side


class TradeStatus(str, Enum):
    PENDING = "PENDING"
    SUBMITTED = "SUBMITTED"
    FILLED = "FILLED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        """Return True if no transition may leave this status."""
        return self in (TradeStatus.FILLED, TradeStatus.FAILED, TradeStatus.CANCELLED)


class OrderType(str, Enum):
    MARKET = "MARKET"
    LIMIT = "LIMIT"


class RiskEventType(str, Enum):
    KILL_SWITCH = "KILL_SWITCH"
    DRAWDOWN_WARNING = "DRAWDOWN_WARNING"
    EXPOSURE_LIMIT = "EXPOSURE_LIMIT"
    SIZE_REJECT = "SIZE_REJECT"
    VOLATILITY_HALT = "VOLATILITY_HALT"


class RiskSeverity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


@dataclass
class TradeRecord:
    """Trade owned end to end by the order executor.

    Attributes:
        id: Unique trade identifier.
        market_id: Market the order targets.
        token_id: Outcome token being bought or sold.
        side: YES or NO outcome.
        direction: BUY or SELL.
        size_usd: Requested notional in USDC.
        price: Limit price, 0 for market orders without a limit.
        order_type: MARKET or LIMIT.
        status: Current lifecycle status.
        retry_count: Number of retries performed so far.
        tx_hash: Settlement transaction hash once filled.
        filled_price: Average fill price.
        filled_size_usd: Notional actually filled.
        slippage: Fill price deviation from the expected price, in basis points.
        gas_used: Gas consumed by the settlement transaction.
        error_message: Last error when the trade failed.
        realized_pnl: P&L realized by this fill (SELL fills only).
        strategy_id: Strategy credited with the trade, if known.
        created_at: When the record was created.
        updated_at: Last mutation time.
        executed_at: When the fill was confirmed.
    """

    id: str
    market_id: str
    token_id: str
    side: Side
    direction: Direction
    size_usd: float
    price: float
    order_type: OrderType = OrderType.MARKET
    status: TradeStatus = TradeStatus.PENDING
    retry_count: int = 0
    tx_hash: Optional[str] = None
    filled_price: Optional[float] = None
    filled_size_usd: Optional[float] = None
    slippage: Optional[float] = None
    gas_used: Optional[int] = None
    error_message: Optional[str] = None
    realized_pnl: Optional[float] = None
    strategy_id: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)
    executed_at: Optional[datetime] = None


@dataclass
class StrategyScore:
    """Durable score row for one strategy.

    Attributes:
        strategy_id: Strategy identity.
        weight: Multiplier adjusted by self-reflection, within [0.1, 2.0].
        win_rate: Posterior mean of the Beta prior.
        total_trades: Resolved trades beyond the pseudo-count of the default prior.
        total_pnl: Cumulative P&L attributed to the strategy.
        active: Inactive strategies are ignored when loading priors.
        updated_at: Last mutation time.
    """

    strategy_id: str
    weight: float = 1.0
    win_rate: float = 0.5
    total_trades: int = 0
    total_pnl: float = 0.0
    active: bool = True
    updated_at: datetime = field(default_factory=datetime.now)


@dataclass
class DecisionRecord:
    """Consensus outcome for one market, later marked approved/executed."""

    id: str
    market_id: str
    strategy_ids: list[str]
    should_trade: bool
    side: Side
    direction: Direction
    confidence: float
    position_size_usd: float
    consensus_method: str
    reasoning: str = ""
    approved: Optional[bool] = None
    executed: bool = False
    created_at: datetime = field(default_factory=datetime.now)


@dataclass
class RiskEvent:
    """Audit row for rejections and circuit-breaker transitions."""

    id: str
    event_type: RiskEventType
    severity: RiskSeverity
    message: str
    details: dict = field(default_factory=dict)
    resolved: bool = False
    created_at: datetime = field(default_factory=datetime.now)
    resolved_at: Optional[datetime] = None


@dataclass
class DailySnapshot:
    """End-of-day portfolio figures, the input to Monte Carlo history."""

    date: date
    portfolio_value: float
    daily_pnl: float
    daily_pnl_percent: float
    trade_count: int = 0
