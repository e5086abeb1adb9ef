"""Configuration for order execution."""

from pydantic import BaseModel, Field


class ExecutionSettings(BaseModel):
    """Settings for OrderExecutor."""

    max_retries: int = Field(default=3, ge=0, le=10)
    retry_base_delay_seconds: float = Field(default=1.0, ge=0)
    max_slippage_bps: int = Field(default=100, ge=0, le=10000)
    confirmation_timeout_seconds: float = Field(default=60.0, gt=0)
    confirmation_poll_seconds: float = Field(default=2.0, gt=0)
    min_confirmations: int = Field(default=2, ge=1)
    min_gas_balance_wei: int = Field(default=10**16, ge=0)
    order_expiration_seconds: int = Field(default=3600, gt=0)
    default_market_price: float = Field(default=0.5, gt=0, lt=1.0)
    simulation_max_slippage_bps: int = Field(default=50, ge=0)
    simulation_min_fill_ratio: float = Field(default=0.95, gt=0, le=1.0)
