"""Persistence layer for trades, positions, priors and risk state."""

from src.storage.base import TradingStore
from src.storage.json_store import JsonFileStore

__all__ = ["JsonFileStore", "TradingStore"]
