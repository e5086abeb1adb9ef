"""Orchestrator module for the trading cycle."""

from src.orchestrator.models import CycleResult, CycleState, CycleStatus, MarketOutcome
from src.orchestrator.settings import OrchestratorSettings
from src.orchestrator.trading_cycle import TradingCycle

__all__ = [
    "CycleResult",
    "CycleState",
    "CycleStatus",
    "MarketOutcome",
    "OrchestratorSettings",
    "TradingCycle",
]
