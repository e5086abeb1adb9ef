"""Volatility-based position size multiplier."""

import logging
import time
from dataclasses import dataclass
from typing import Callable

import numpy as np

from src.risk.settings import RiskSettings
from src.storage.base import TradingStore


logger = logging.getLogger(__name__)


@dataclass
class _CachedVolatility:
    volatility: float
    multiplier: float
    computed_at: float


class VolatilityAdjuster:
    """Maps recent fill-price volatility of a market to a size multiplier.

    Volatility is the population standard deviation of simple returns over
    the last volatility_lookback filled-trade prices. The multiplier is a
    monotone step function:

        volatility < 0.02  -> 1.0
        volatility < 0.05  -> 0.8
        volatility < 0.10  -> 0.6
        volatility < 0.20  -> 0.4
        otherwise          -> 0.3

    Results are cached per market for volatility_cache_ttl_seconds. Two
    concurrent misses may both recompute; the last write wins.
    """

    BANDS = ((0.02, 1.0), (0.05, 0.8), (0.10, 0.6), (0.20, 0.4))
    FLOOR_MULTIPLIER = 0.3

    def __init__(
        self,
        store: TradingStore,
        settings: RiskSettings | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._store = store
        self._settings = settings or RiskSettings()
        self._clock = clock
        self._cache: dict[str, _CachedVolatility] = {}

    @classmethod
    def multiplier_for(cls, volatility: float) -> float:
        for upper, multiplier in cls.BANDS:
            if volatility < upper:
                return multiplier
        return cls.FLOOR_MULTIPLIER

    async def get_volatility_multiplier(self, market_id: str) -> float:
        """Return the size multiplier for a market, from cache when fresh."""
        cached = self._cache.get(market_id)
        now = self._clock()
        if cached and now - cached.computed_at < self._settings.volatility_cache_ttl_seconds:
            return cached.multiplier

        volatility = await self.calculate_volatility(market_id)
        multiplier = self.multiplier_for(volatility)
        self._cache[market_id] = _CachedVolatility(
            volatility=volatility,
            multiplier=multiplier,
            computed_at=now,
        )
        logger.debug(f"Volatility for {market_id}: {volatility:.4f} -> multiplier {multiplier}")
        return multiplier

    async def calculate_volatility(self, market_id: str) -> float:
        """Population std of returns between consecutive filled-trade prices.

        Falls back to default_volatility when fewer than
        volatility_min_samples priced fills exist.
        """
        trades = await self._store.get_filled_trades(
            market_id=market_id,
            limit=self._settings.volatility_lookback,
        )
        # Store returns newest first
        prices = [t.filled_price for t in reversed(trades) if t.filled_price]

        if len(prices) < self._settings.volatility_min_samples:
            return self._settings.default_volatility

        series = np.asarray(prices, dtype=float)
        returns = np.diff(series) / series[:-1]
        return float(np.std(returns))

    def clear_cache(self, market_id: str | None = None) -> None:
        """Drop one market's cached value, or all of them."""
        if market_id is None:
            self._cache.clear()
        else:
            self._cache.pop(market_id, None)
