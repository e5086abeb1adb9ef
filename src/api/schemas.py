# src/api/schemas.py
"""Request bodies that have no domain model of their own."""
from typing import Literal, Optional

from pydantic import BaseModel, Field

from src.risk.models import MonteCarloConfig


class MonteCarloRequest(BaseModel):
    portfolio_value: float = Field(gt=0)
    config: Optional[MonteCarloConfig] = None


class KillSwitchRequest(BaseModel):
    action: Literal["activate", "reset"]
    reason: str = "Manual activation"
