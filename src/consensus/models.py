"""Data models for the consensus engine."""

from dataclasses import dataclass, field
from enum import Enum

from src.models.trading import Direction, Side, TradeSignal


class ConsensusMethod(str, Enum):
    """How a consensus decision was reached."""

    WEIGHTED_AVERAGE = "WEIGHTED_AVERAGE"
    PRIORITY_OVERRIDE = "PRIORITY_OVERRIDE"


@dataclass
class BetaPrior:
    """Beta(alpha, beta) belief about a strategy's win probability."""

    alpha: float
    beta: float

    @property
    def mean(self) -> float:
        """Posterior mean alpha / (alpha + beta)."""
        return self.alpha / (self.alpha + self.beta)

    @property
    def strength(self) -> float:
        """Total pseudo-count alpha + beta."""
        return self.alpha + self.beta


@dataclass
class StrategyVote:
    """A signal paired with its strategy's current Bayesian weight."""

    signal: TradeSignal
    weight: float

    @property
    def strategy_id(self) -> str:
        return self.signal.strategy_id


@dataclass
class ConsensusResult:
    """Single decision for one market.

    Attributes:
        market_id: Market the decision applies to.
        should_trade: Whether the decision should be sent to the risk gate.
        side: Winning outcome side.
        direction: BUY or SELL.
        aggregate_confidence: Confidence after Bayesian blending, in [0, 1].
        position_size_usd: Proposed notional (0 when should_trade is False).
        reasoning: Human-readable summary.
        consensus_method: How the decision was reached.
        votes: Votes that produced the decision.
        consensus_gap: Normalized score gap between sides (BUY consensus only).
    """

    market_id: str
    should_trade: bool
    side: Side
    direction: Direction
    aggregate_confidence: float
    position_size_usd: float
    reasoning: str
    consensus_method: ConsensusMethod
    votes: list[StrategyVote] = field(default_factory=list)
    consensus_gap: float = 0.0

    @property
    def strategy_ids(self) -> list[str]:
        """Strategies that voted, in vote order."""
        return [v.strategy_id for v in self.votes]

    def to_signal(self, strategy_id: str = "meta-allocator") -> TradeSignal:
        """Express the decision as a TradeSignal for the risk gate."""
        return TradeSignal(
            market_id=self.market_id,
            side=self.side,
            direction=self.direction,
            confidence=self.aggregate_confidence,
            position_size_usd=self.position_size_usd,
            strategy_id=strategy_id,
            reasoning=self.reasoning,
        )
