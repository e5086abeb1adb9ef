"""Monte Carlo projection of portfolio value for VaR/CVaR."""

import asyncio
import logging

import numpy as np

from src.risk.models import MonteCarloConfig, MonteCarloResult
from src.risk.settings import MonteCarloSettings
from src.storage.base import TradingStore


logger = logging.getLogger(__name__)


class MonteCarloSimulator:
    """Simulates compounded daily returns drawn from a fitted normal.

    Daily returns are historical daily P&L / portfolio value ratios from the
    store's daily snapshots. Normal draws use the Box-Muller transform on the
    injected numpy Generator so runs are reproducible with a seeded generator.
    """

    PERCENTILES = {"p5": 0.05, "p25": 0.25, "p50": 0.50, "p75": 0.75, "p95": 0.95}

    def __init__(
        self,
        store: TradingStore,
        settings: MonteCarloSettings | None = None,
        rng: np.random.Generator | None = None,
    ):
        self._store = store
        self._settings = settings or MonteCarloSettings()
        self._rng = rng or np.random.default_rng()

    async def get_historical_returns(self) -> list[float]:
        snapshots = await self._store.get_daily_snapshots(self._settings.history_days)
        return [s.daily_pnl / s.portfolio_value for s in snapshots if s.portfolio_value > 0]

    async def simulate(
        self,
        portfolio_value: float,
        config: MonteCarloConfig | None = None,
    ) -> MonteCarloResult:
        """Run the simulation.

        Args:
            portfolio_value: Starting portfolio value in USD.
            config: Simulation count, horizon and confidence. Defaults to settings.

        Returns:
            MonteCarloResult. Fixed illustrative figures are returned when
            fewer than min_history daily returns exist.
        """
        if config is None:
            config = MonteCarloConfig(
                simulations=self._settings.simulations,
                horizon_days=self._settings.horizon_days,
                confidence_level=self._settings.confidence_level,
            )

        returns = await self.get_historical_returns()
        if len(returns) < self._settings.min_history:
            logger.info(f"Only {len(returns)} daily returns available, using default risk figures")
            return self.default_result(portfolio_value, config)

        history = np.asarray(returns, dtype=float)
        # CPU-bound, keep it off the event loop
        result = await asyncio.to_thread(
            self._run,
            portfolio_value,
            float(history.mean()),
            float(history.std()),
            config,
        )
        logger.info(
            f"Monte Carlo complete: expected={result.expected_return * 100:.2f}% "
            f"VaR=${result.var:.2f} CVaR=${result.cvar:.2f}"
        )
        return result

    def _run(self, portfolio_value: float, mean: float, std: float, config: MonteCarloConfig) -> MonteCarloResult:
        final_values = self._simulate_paths(
            portfolio_value,
            mean=mean,
            std=std,
            simulations=config.simulations,
            horizon_days=config.horizon_days,
        )
        return self._summarize(portfolio_value, np.sort(final_values), config)

    def _normal(self, mean: float, std: float, size: int) -> np.ndarray:
        """Box-Muller draws from Normal(mean, std)."""
        # 1 - U keeps u1 in (0, 1] so log(u1) is finite
        u1 = 1.0 - self._rng.random(size)
        u2 = self._rng.random(size)
        z = np.sqrt(-2.0 * np.log(u1)) * np.cos(2.0 * np.pi * u2)
        return mean + z * std

    def _simulate_paths(
        self,
        portfolio_value: float,
        mean: float,
        std: float,
        simulations: int,
        horizon_days: int,
    ) -> np.ndarray:
        values = np.full(simulations, portfolio_value, dtype=float)
        for _ in range(horizon_days):
            values *= 1.0 + self._normal(mean, std, simulations)
        return values

    def _summarize(
        self,
        portfolio_value: float,
        final_values: np.ndarray,
        config: MonteCarloConfig,
    ) -> MonteCarloResult:
        n = len(final_values)

        var_index = min(int(np.floor(n * (1 - config.confidence_level))), n - 1)
        value_at_risk = portfolio_value - final_values[var_index]

        tail = final_values[:var_index]
        conditional_var = portfolio_value - tail.mean() if len(tail) > 0 else value_at_risk

        percentiles = {
            name: float(final_values[min(int(np.floor(n * p)), n - 1)])
            for name, p in self.PERCENTILES.items()
        }

        expected_return = 0.0
        if portfolio_value > 0:
            expected_return = float((final_values.mean() - portfolio_value) / portfolio_value)

        return MonteCarloResult(
            var=float(value_at_risk),
            cvar=float(conditional_var),
            expected_return=expected_return,
            worst_case=float(portfolio_value - final_values[0]),
            best_case=float(final_values[-1] - portfolio_value),
            percentiles=percentiles,
            simulations=config.simulations,
            horizon_days=config.horizon_days,
            confidence_level=config.confidence_level,
        )

    def default_result(self, portfolio_value: float, config: MonteCarloConfig) -> MonteCarloResult:
        return MonteCarloResult(
            var=portfolio_value * 0.05,
            cvar=portfolio_value * 0.08,
            expected_return=0.0,
            worst_case=portfolio_value * 0.15,
            best_case=portfolio_value * 0.10,
            percentiles={
                "p5": portfolio_value * 0.85,
                "p25": portfolio_value * 0.95,
                "p50": portfolio_value,
                "p75": portfolio_value * 1.05,
                "p95": portfolio_value * 1.12,
            },
            simulations=config.simulations,
            horizon_days=config.horizon_days,
            confidence_level=config.confidence_level,
            fallback=True,
        )
