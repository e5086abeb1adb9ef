"""Configuration for the trading cycle."""

from pydantic import BaseModel, Field


class OrchestratorSettings(BaseModel):
    """Settings for TradingCycle."""

    # Starting value of the trading switch; /toggle flips it at runtime
    enabled: bool = True
    cycle_interval_seconds: int = Field(default=60, ge=1)
    reflection_interval_hours: float = Field(default=24.0, gt=0)
    max_markets_per_cycle: int = Field(default=50, ge=1)
    strategy_timeout_seconds: float = Field(default=30.0, gt=0)
