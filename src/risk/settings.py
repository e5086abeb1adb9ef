"""Configuration for the risk gate."""

from pydantic import BaseModel, Field


class RiskSettings(BaseModel):
    """Settings for the position sizer and its trackers."""

    max_single_trade_percent: float = Field(default=0.02, gt=0, le=1.0)
    max_market_exposure_percent: float = Field(default=0.10, gt=0, le=1.0)
    kill_switch_drawdown: float = Field(default=0.03, gt=0, le=1.0)
    capital_preservation_drawdown: float = Field(default=0.015, gt=0, le=1.0)
    capital_preservation_factor: float = Field(default=0.5, gt=0, le=1.0)
    min_confidence: float = Field(default=0.55, ge=0.0, le=1.0)
    min_trade_usd: float = Field(default=1.0, ge=0)
    max_open_positions: int = Field(default=20, gt=0)
    capital_buffer: float = Field(default=0.95, gt=0, le=1.0)
    default_total_capital: float = Field(default=10000.0, gt=0)

    # Volatility adjuster
    volatility_lookback: int = Field(default=50, ge=2)
    volatility_min_samples: int = Field(default=5, ge=2)
    volatility_cache_ttl_seconds: float = Field(default=300.0, ge=0)
    default_volatility: float = Field(default=0.05, ge=0)


class MonteCarloSettings(BaseModel):
    """Default parameters for the Monte Carlo simulator."""

    simulations: int = Field(default=10000, ge=1, le=100_000)
    horizon_days: int = Field(default=30, ge=1, le=365)
    confidence_level: float = Field(default=0.95, gt=0.0, lt=1.0)
    history_days: int = Field(default=252, ge=1)
    min_history: int = Field(default=10, ge=2)
