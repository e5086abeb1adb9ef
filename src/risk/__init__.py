"""Risk gate: position sizing, exposure, drawdown and volatility controls."""

from src.risk.drawdown_monitor import DrawdownMonitor
from src.risk.exposure_tracker import ExposureTracker
from src.risk.models import (
    DrawdownCheck,
    DrawdownState,
    MonteCarloConfig,
    MonteCarloResult,
    PortfolioRisk,
    RejectionCode,
    RiskCheckRequest,
    RiskCheckResult,
    RiskMetrics,
    RiskWarningCode,
)
from src.risk.monte_carlo import MonteCarloSimulator
from src.risk.position_sizer import PositionSizer
from src.risk.settings import MonteCarloSettings, RiskSettings
from src.risk.volatility_adjuster import VolatilityAdjuster

__all__ = [
    "DrawdownCheck",
    "DrawdownMonitor",
    "DrawdownState",
    "ExposureTracker",
    "MonteCarloConfig",
    "MonteCarloResult",
    "MonteCarloSettings",
    "MonteCarloSimulator",
    "PortfolioRisk",
    "PositionSizer",
    "RejectionCode",
    "RiskCheckRequest",
    "RiskCheckResult",
    "RiskMetrics",
    "RiskSettings",
    "RiskWarningCode",
    "VolatilityAdjuster",
]
