"""Data models for the risk gate."""

from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel, Field

from src.models.trading import PortfolioState, TradeSignal


class RejectionCode(str, Enum):
    """Reasons a trade is refused. Each is reported as "<CODE>: <detail>"."""

    KILL_SWITCH_ACTIVE = "KILL_SWITCH_ACTIVE"
    CONFIDENCE_TOO_LOW = "CONFIDENCE_TOO_LOW"
    MARKET_EXPOSURE_EXCEEDED = "MARKET_EXPOSURE_EXCEEDED"
    DAILY_DRAWDOWN_BREACH = "DAILY_DRAWDOWN_BREACH"
    INSUFFICIENT_CAPITAL = "INSUFFICIENT_CAPITAL"
    TRADE_TOO_SMALL = "TRADE_TOO_SMALL"
    MAX_POSITIONS_REACHED = "MAX_POSITIONS_REACHED"


class RiskWarningCode(str, Enum):
    """Non-blocking adjustments applied to a trade's size."""

    TRADE_SIZE_CAPPED = "TRADE_SIZE_CAPPED"
    SIZE_REDUCED_FOR_EXPOSURE = "SIZE_REDUCED_FOR_EXPOSURE"
    CAPITAL_PRESERVATION = "CAPITAL_PRESERVATION"
    VOLATILITY_ADJUSTED = "VOLATILITY_ADJUSTED"
    SIZE_REDUCED_FOR_CAPITAL = "SIZE_REDUCED_FOR_CAPITAL"


class DrawdownState(str, Enum):
    NORMAL = "NORMAL"
    CAPITAL_PRESERVATION = "CAPITAL_PRESERVATION"
    KILL_SWITCH = "KILL_SWITCH"


class RiskCheckRequest(BaseModel):
    """A proposed trade and the portfolio snapshot it is judged against."""

    signal: TradeSignal
    portfolio: PortfolioState


@dataclass
class RiskMetrics:
    """Ratios used in a risk decision.

    Attributes:
        trade_to_capital_ratio: Proposed size / total capital.
        market_exposure_ratio: (Current market exposure + adjusted size) / total capital.
        daily_drawdown_ratio: |daily P&L %| at decision time.
        volatility_adjustment: Multiplier applied by the volatility adjuster.
    """

    trade_to_capital_ratio: float = 0.0
    market_exposure_ratio: float = 0.0
    daily_drawdown_ratio: float = 0.0
    volatility_adjustment: float = 1.0


@dataclass
class RiskCheckResult:
    """Result of the risk gate for a proposed trade.

    Attributes:
        approved: True iff rejection_reasons is empty.
        adjusted_size_usd: Final size floored to cents (0 if rejected).
        rejection_reasons: Ordered "<CODE>: <detail>" rejection strings.
        warnings: Ordered "<CODE>: <detail>" warning strings.
        risk_metrics: Ratios used in the decision.
    """

    approved: bool
    adjusted_size_usd: float
    rejection_reasons: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    risk_metrics: RiskMetrics = field(default_factory=RiskMetrics)

    @property
    def rejection_codes(self) -> list[str]:
        return [reason.split(":", 1)[0] for reason in self.rejection_reasons]

    @property
    def warning_codes(self) -> list[str]:
        return [warning.split(":", 1)[0] for warning in self.warnings]


@dataclass
class DrawdownCheck:
    """Drawdown classification for the current day."""

    state: DrawdownState
    current_drawdown: float
    kill_switch: bool
    capital_preservation: bool


@dataclass
class PortfolioRisk:
    """Portfolio-wide risk summary."""

    total_exposure: float
    market_exposures: dict[str, float]
    daily_pnl: float
    daily_pnl_percent: float
    drawdown_state: DrawdownState
    kill_switch_active: bool
    open_positions: int


class MonteCarloConfig(BaseModel):
    """Parameters for one Monte Carlo run."""

    simulations: int = Field(default=10000, ge=1, le=100_000)
    horizon_days: int = Field(default=30, ge=1, le=365)
    confidence_level: float = Field(default=0.95, gt=0.0, lt=1.0)


@dataclass
class MonteCarloResult:
    """Projected distribution of portfolio value.

    Attributes:
        var: Value-at-Risk, loss at the (1 - confidence) quantile of final values.
        cvar: Conditional VaR, mean loss across the tail beyond VaR.
        expected_return: Mean final value / starting value - 1.
        worst_case: Largest loss across paths.
        best_case: Largest gain across paths.
        percentiles: Final values at p5, p25, p50, p75, p95.
        simulations: Number of paths.
        horizon_days: Days compounded per path.
        confidence_level: Confidence used for VaR/CVaR.
        fallback: True when history was too short and fixed figures were used.
    """

    var: float
    cvar: float
    expected_return: float
    worst_case: float
    best_case: float
    percentiles: dict[str, float]
    simulations: int
    horizon_days: int
    confidence_level: float
    fallback: bool = False
