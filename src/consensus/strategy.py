"""Capability interface implemented by trading strategies."""

from typing import Any, Optional, Protocol, runtime_checkable

from src.models.trading import MarketSnapshot, PortfolioState, TradeSignal


@runtime_checkable
class Strategy(Protocol):
    """Anything that can vote on a market.

    The consensus engine and trading cycle depend only on this interface,
    never on concrete strategy classes.
    """

    @property
    def strategy_id(self) -> str:
        ...

    async def analyze(
        self,
        market: MarketSnapshot,
        portfolio: PortfolioState,
        external_signals: Optional[dict[str, Any]] = None,
    ) -> Optional[TradeSignal]:
        """Return a signal for the market, or None to abstain."""
        ...

    def get_weight(self) -> float:
        ...

    def set_weight(self, weight: float) -> None:
        ...
