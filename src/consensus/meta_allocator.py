# src/consensus/meta_allocator.py
"""Meta-allocator that turns strategy signals into one decision per market."""
import logging
import uuid
from datetime import datetime, timedelta

from src.consensus.models import ConsensusMethod, ConsensusResult, StrategyVote
from src.consensus.prior_table import PriorTable
from src.consensus.settings import ConsensusSettings
from src.models.records import DecisionRecord, StrategyScore
from src.models.trading import Direction, MarketSnapshot, PortfolioState, Side, TradeSignal
from src.storage.base import TradingStore


logger = logging.getLogger(__name__)


class MetaAllocator:
    """Aggregates weighted strategy votes with Bayesian-adjusted confidence.

    Pipeline for build_consensus:
    1. No signals: no-trade result
    2. Any SELL signal: priority override, exits are never diluted by a vote
    3. Score each side of the BUY votes by confidence x weight
    4. Blend the winning confidence with the voters' combined prior
    5. Halve confidence when the gap between sides is weak
    6. Size as the weight-weighted mean of the winning side's proposals
    7. Trade only above the confidence and size floors

    The prior table is refreshed from the store at the start of every call.
    update_priors() and self_reflect() are its only writers.
    """

    def __init__(
        self,
        store: TradingStore,
        settings: ConsensusSettings | None = None,
        prior_table: PriorTable | None = None,
    ):
        self._store = store
        self._settings = settings or ConsensusSettings()
        self._priors = prior_table or PriorTable(
            store,
            default_alpha=self._settings.default_alpha,
            default_beta=self._settings.default_beta,
        )

    @property
    def priors(self) -> PriorTable:
        return self._priors

    def get_weight(self, strategy_id: str) -> float:
        """Return the current vote weight of a strategy."""
        return self._priors.weight(strategy_id)

    async def build_consensus(
        self,
        signals: list[TradeSignal],
        market: MarketSnapshot,
        portfolio: PortfolioState | None = None,
    ) -> ConsensusResult:
        """Build a consensus decision for one market.

        Args:
            signals: Signals emitted by strategies for this market.
            market: Market being decided.
            portfolio: Portfolio snapshot (informational).

        Returns:
            ConsensusResult. position_size_usd is 0 whenever should_trade is False.
        """
        await self._priors.refresh()

        if not signals:
            return ConsensusResult(
                market_id=market.market_id,
                should_trade=False,
                side=Side.YES,
                direction=Direction.BUY,
                aggregate_confidence=0.0,
                position_size_usd=0.0,
                reasoning="No signals from any strategy",
                consensus_method=ConsensusMethod.WEIGHTED_AVERAGE,
            )

        votes = [StrategyVote(signal=s, weight=self._priors.weight(s.strategy_id)) for s in signals]

        sell_votes = [v for v in votes if v.signal.direction == Direction.SELL]
        if sell_votes:
            return self._priority_override(market, sell_votes, votes)

        return self._weighted_consensus(market, votes)

    def _priority_override(
        self,
        market: MarketSnapshot,
        sell_votes: list[StrategyVote],
        votes: list[StrategyVote],
    ) -> ConsensusResult:
        """Exit on the strongest SELL. Ties go to the earliest signal."""
        lead = max(sell_votes, key=lambda v: v.signal.confidence)
        signal = lead.signal

        logger.info(
            f"SELL prioritized for {market.market_id} from {signal.strategy_id} "
            f"({len(sell_votes)} sell / {len(votes)} total)"
        )

        return ConsensusResult(
            market_id=market.market_id,
            should_trade=True,
            side=signal.side,
            direction=Direction.SELL,
            aggregate_confidence=signal.confidence,
            position_size_usd=signal.position_size_usd,
            reasoning=f"PRIORITY SELL from {signal.strategy_id}: {signal.reasoning}",
            consensus_method=ConsensusMethod.PRIORITY_OVERRIDE,
            votes=votes,
        )

    def _weighted_consensus(
        self,
        market: MarketSnapshot,
        votes: list[StrategyVote],
    ) -> ConsensusResult:
        yes_votes = [v for v in votes if v.signal.side == Side.YES]
        no_votes = [v for v in votes if v.signal.side == Side.NO]

        yes_score = sum(v.signal.confidence * v.weight for v in yes_votes)
        no_score = sum(v.signal.confidence * v.weight for v in no_votes)
        total_weight = sum(v.weight for v in votes)

        side = Side.YES if yes_score >= no_score else Side.NO
        winning_score = max(yes_score, no_score)
        losing_score = min(yes_score, no_score)

        if total_weight > 0:
            consensus_gap = (winning_score - losing_score) / total_weight
            raw_confidence = winning_score / total_weight
        else:
            consensus_gap = 0.0
            raw_confidence = 0.0

        confidence = self._bayesian_update(raw_confidence, [v.strategy_id for v in votes])

        if consensus_gap < self._settings.weak_gap_threshold:
            confidence *= self._settings.weak_gap_penalty

        winning_votes = yes_votes if side == Side.YES else no_votes
        winning_weight = sum(v.weight for v in winning_votes)
        size_usd = sum(v.signal.position_size_usd * v.weight for v in winning_votes) / max(
            winning_weight, 0.01
        )

        should_trade = (
            confidence >= self._settings.min_confidence
            and size_usd >= self._settings.min_trade_usd
        )

        reasoning = self._build_reasoning(votes, side, confidence, consensus_gap)

        logger.info(
            f"Consensus for {market.market_id}: side={side.value} "
            f"confidence={confidence:.3f} gap={consensus_gap:.3f} "
            f"yes={len(yes_votes)} no={len(no_votes)} trade={should_trade}"
        )

        return ConsensusResult(
            market_id=market.market_id,
            should_trade=should_trade,
            side=side,
            direction=Direction.BUY,
            aggregate_confidence=confidence,
            position_size_usd=size_usd if should_trade else 0.0,
            reasoning=reasoning,
            consensus_method=ConsensusMethod.WEIGHTED_AVERAGE,
            votes=votes,
            consensus_gap=consensus_gap,
        )

    def _bayesian_update(self, confidence: float, strategy_ids: list[str]) -> float:
        """Blend raw confidence with the combined prior of the voters.

        The weight given to new evidence is min(1, evidence_scale / (sum alpha + sum beta)),
        so strategies with long histories pull the result toward their prior.
        """
        total_alpha = 0.0
        total_beta = 0.0
        for strategy_id in strategy_ids:
            prior = self._priors.get_or_default(strategy_id)
            total_alpha += prior.alpha
            total_beta += prior.beta

        prior_strength = total_alpha + total_beta
        if prior_strength <= 0:
            return min(1.0, max(0.0, confidence))

        prior_mean = total_alpha / prior_strength
        evidence_weight = min(1.0, self._settings.evidence_scale / prior_strength)
        posterior = prior_mean * (1 - evidence_weight) + confidence * evidence_weight

        return min(1.0, max(0.0, posterior))

    def _build_reasoning(
        self,
        votes: list[StrategyVote],
        side: Side,
        confidence: float,
        gap: float,
    ) -> str:
        lines = [f"Meta-allocator consensus: {side.value} @ {confidence * 100:.1f}% (gap {gap * 100:.1f}%)"]
        for vote in votes:
            signal = vote.signal
            lines.append(
                f"  {signal.strategy_id}: {signal.side.value} "
                f"conf={signal.confidence:.2f} weight={vote.weight:.2f}"
            )
        return "\n".join(lines)

    async def record_decision(self, result: ConsensusResult) -> DecisionRecord:
        """Persist a consensus outcome for later self-reflection."""
        decision = DecisionRecord(
            id=str(uuid.uuid4()),
            market_id=result.market_id,
            strategy_ids=result.strategy_ids,
            should_trade=result.should_trade,
            side=result.side,
            direction=result.direction,
            confidence=result.aggregate_confidence,
            position_size_usd=result.position_size_usd,
            consensus_method=result.consensus_method.value,
            reasoning=result.reasoning,
        )
        await self._store.record_decision(decision)
        return decision

    async def update_priors(self, strategy_id: str, success: bool, pnl: float = 0.0) -> None:
        """Update a strategy's Beta prior after a trade resolves."""
        await self._priors.record_outcome(strategy_id, success, pnl)

    async def self_reflect(self) -> dict[str, float]:
        """Blend each strategy's prior-mean weight toward its recent decision accuracy.

        A decision counts as correct when it was approved by the risk gate
        and executed. Strategies with fewer than reflection_min_decisions
        recent decisions are left unchanged.

        Returns:
            Mapping of strategy_id to its new weight, for adjusted strategies only.
        """
        settings = self._settings
        since = datetime.now() - timedelta(days=settings.reflection_window_days)
        decisions = await self._store.get_decisions_since(since, settings.reflection_decision_limit)
        await self._priors.refresh()

        totals: dict[str, int] = {}
        correct: dict[str, int] = {}
        for decision in decisions:
            hit = bool(decision.approved) and decision.executed
            for strategy_id in decision.strategy_ids:
                totals[strategy_id] = totals.get(strategy_id, 0) + 1
                if hit:
                    correct[strategy_id] = correct.get(strategy_id, 0) + 1

        adjusted: dict[str, float] = {}
        for strategy_id, total in totals.items():
            if total < settings.reflection_min_decisions:
                continue

            accuracy = correct.get(strategy_id, 0) / total
            score = await self._store.get_strategy_score(strategy_id)
            if score is None:
                score = StrategyScore(strategy_id=strategy_id)

            prior_weight = self._priors.weight(strategy_id)
            blended = prior_weight * settings.reflection_decay + accuracy * (1 - settings.reflection_decay)
            score.weight = min(settings.max_weight, max(settings.min_weight, blended))
            await self._store.save_strategy_score(score)
            adjusted[strategy_id] = score.weight

            logger.info(
                f"Self-reflection {strategy_id}: accuracy={accuracy:.2f} "
                f"weight={score.weight:.3f} over {total} decisions"
            )

        return adjusted
