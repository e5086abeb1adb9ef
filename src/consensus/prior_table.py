# src/consensus/prior_table.py
"""Bayesian prior table backed by persisted strategy scores."""
import logging
from datetime import datetime

from src.consensus.models import BetaPrior
from src.models.records import StrategyScore
from src.storage.base import TradingStore


logger = logging.getLogger(__name__)


class PriorTable:
    """Owns the per-strategy Beta priors.

    The in-memory table is a cache of the strategy score rows: refresh()
    rebuilds it from the store, and record_outcome() writes through.

    Score rows persist (win_rate, total_trades) rather than (alpha, beta).
    The default prior contributes default_alpha + default_beta pseudo-trades,
    which are subtracted from total_trades on write and added back on read.
    """

    def __init__(
        self,
        store: TradingStore,
        default_alpha: float = 2.0,
        default_beta: float = 2.0,
    ):
        self._store = store
        self._default_alpha = default_alpha
        self._default_beta = default_beta
        self._priors: dict[str, BetaPrior] = {}

    @property
    def pseudo_trades(self) -> float:
        return self._default_alpha + self._default_beta

    def default_prior(self) -> BetaPrior:
        return BetaPrior(alpha=self._default_alpha, beta=self._default_beta)

    def get(self, strategy_id: str) -> BetaPrior | None:
        """Return the prior for a strategy, or None if it has none yet."""
        return self._priors.get(strategy_id)

    def get_or_default(self, strategy_id: str) -> BetaPrior:
        return self._priors.get(strategy_id) or self.default_prior()

    def set(self, strategy_id: str, prior: BetaPrior) -> None:
        self._priors[strategy_id] = prior

    def weight(self, strategy_id: str) -> float:
        """Vote weight: prior mean, or 1.0 for strategies without a prior."""
        prior = self._priors.get(strategy_id)
        if prior is None:
            return 1.0
        return prior.mean

    def prior_from_score(self, score: StrategyScore) -> BetaPrior:
        """Rebuild (alpha, beta) from a persisted score row."""
        samples = score.total_trades + self.pseudo_trades
        return BetaPrior(
            alpha=max(1.0, score.win_rate * samples),
            beta=max(1.0, (1.0 - score.win_rate) * samples),
        )

    async def refresh(self) -> None:
        """Reload priors for all active strategies from the store."""
        scores = await self._store.get_active_strategy_scores()
        for score in scores:
            self._priors[score.strategy_id] = self.prior_from_score(score)
        logger.debug(f"Loaded priors for {len(scores)} strategies")

    async def record_outcome(self, strategy_id: str, success: bool, pnl: float = 0.0) -> BetaPrior:
        """Apply one resolved trade to a strategy's prior and persist it.

        Args:
            strategy_id: Strategy credited with the trade.
            success: True for a win (alpha += 1), False for a loss (beta += 1).
            pnl: Realized P&L added to the strategy's running total.

        Returns:
            The updated prior.
        """
        current = self.get_or_default(strategy_id)
        prior = BetaPrior(
            alpha=current.alpha + (1 if success else 0),
            beta=current.beta + (0 if success else 1),
        )
        self._priors[strategy_id] = prior

        score = await self._store.get_strategy_score(strategy_id)
        if score is None:
            score = StrategyScore(strategy_id=strategy_id)
        score.win_rate = prior.mean
        score.total_trades = max(0, round(prior.strength - self.pseudo_trades))
        score.total_pnl += pnl
        score.updated_at = datetime.now()
        await self._store.save_strategy_score(score)

        logger.info(
            f"Prior updated for {strategy_id}: alpha={prior.alpha:.1f} "
            f"beta={prior.beta:.1f} win_rate={prior.mean:.3f}"
        )
        return prior
