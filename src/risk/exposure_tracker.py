"""Per-market exposure from persisted open positions."""

from src.storage.base import TradingStore


class ExposureTracker:
    """Sums open position size per market. Holds no state of its own."""

    def __init__(self, store: TradingStore):
        self._store = store

    async def get_market_exposure(self, market_id: str) -> float:
        """Return total open size in USD for one market."""
        positions = await self._store.get_open_positions(market_id)
        return sum(p.size_usd for p in positions)

    async def get_all_exposures(self) -> dict[str, float]:
        """Return open size in USD keyed by market."""
        exposures: dict[str, float] = {}
        for position in await self._store.get_open_positions():
            exposures[position.market_id] = exposures.get(position.market_id, 0.0) + position.size_usd
        return exposures

    async def get_total_exposure(self) -> float:
        """Return open size in USD across all markets."""
        positions = await self._store.get_open_positions()
        return sum(p.size_usd for p in positions)

    async def count_open_positions(self) -> int:
        return len(await self._store.get_open_positions())
