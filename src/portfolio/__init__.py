"""Portfolio settlement and snapshots."""

from src.portfolio.ledger import PortfolioLedger

__all__ = ["PortfolioLedger"]
