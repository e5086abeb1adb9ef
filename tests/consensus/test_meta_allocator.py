# tests/consensus/test_meta_allocator.py
"""Tests for MetaAllocator."""
import random
import uuid

import pytest

from src.consensus.meta_allocator import MetaAllocator
from src.consensus.models import BetaPrior, ConsensusMethod
from src.consensus.settings import ConsensusSettings
from src.models.records import DecisionRecord, StrategyScore
from src.models.trading import Direction, MarketSnapshot, Side, TradeSignal
from src.storage.json_store import JsonFileStore


def make_signal(
    strategy_id: str = "momentum",
    side: Side = Side.YES,
    direction: Direction = Direction.BUY,
    confidence: float = 0.8,
    size: float = 100.0,
    market_id: str = "m1",
) -> TradeSignal:
    """Create a test TradeSignal with sensible defaults."""
    return TradeSignal(
        market_id=market_id,
        side=side,
        direction=direction,
        confidence=confidence,
        position_size_usd=size,
        strategy_id=strategy_id,
        reasoning=f"{strategy_id} says {side.value}",
    )


def make_market(market_id: str = "m1") -> MarketSnapshot:
    return MarketSnapshot(market_id=market_id, question="Will it happen?", yes_price=0.6, no_price=0.4)


def make_decision(strategy_ids: list[str], approved: bool, executed: bool) -> DecisionRecord:
    return DecisionRecord(
        id=str(uuid.uuid4()),
        market_id="m1",
        strategy_ids=strategy_ids,
        should_trade=True,
        side=Side.YES,
        direction=Direction.BUY,
        confidence=0.7,
        position_size_usd=50.0,
        consensus_method=ConsensusMethod.WEIGHTED_AVERAGE.value,
        approved=approved,
        executed=executed,
    )


class TestBuildConsensus:
    """Tests for weighted consensus."""

    @pytest.mark.asyncio
    async def test_no_signals_means_no_trade(self, tmp_path):
        allocator = MetaAllocator(JsonFileStore(tmp_path))

        result = await allocator.build_consensus([], make_market())

        assert result.should_trade is False
        assert result.position_size_usd == 0.0
        assert result.aggregate_confidence == 0.0

    @pytest.mark.asyncio
    async def test_two_sided_vote_scores_and_gap(self, tmp_path):
        """Test YES conf .8 weight 1.0 against NO conf .6 weight 0.5."""
        allocator = MetaAllocator(JsonFileStore(tmp_path))
        allocator.priors.set("contrarian", BetaPrior(alpha=1.0, beta=1.0))

        result = await allocator.build_consensus(
            [
                make_signal("momentum", Side.YES, confidence=0.8),
                make_signal("contrarian", Side.NO, confidence=0.6),
            ],
            make_market(),
        )

        assert result.side == Side.YES
        assert result.consensus_method == ConsensusMethod.WEIGHTED_AVERAGE
        assert result.consensus_gap == pytest.approx(0.5 / 1.5)
        # Combined prior is weak, so evidence dominates and no gap penalty applies
        assert result.aggregate_confidence == pytest.approx(0.8 / 1.5)
        assert result.should_trade is False
        assert result.position_size_usd == 0.0

    @pytest.mark.asyncio
    async def test_confident_single_vote_trades(self, tmp_path):
        allocator = MetaAllocator(JsonFileStore(tmp_path))

        result = await allocator.build_consensus([make_signal(confidence=0.9, size=120.0)], make_market())

        assert result.should_trade is True
        assert result.direction == Direction.BUY
        assert result.aggregate_confidence == pytest.approx(0.9)
        assert result.position_size_usd == pytest.approx(120.0)

    @pytest.mark.asyncio
    async def test_weak_gap_halves_confidence(self, tmp_path):
        allocator = MetaAllocator(JsonFileStore(tmp_path))

        result = await allocator.build_consensus(
            [
                make_signal("a", Side.YES, confidence=0.8),
                make_signal("b", Side.NO, confidence=0.75),
            ],
            make_market(),
        )

        assert result.consensus_gap == pytest.approx(0.025)
        assert result.aggregate_confidence == pytest.approx(0.4 * 0.5)
        assert result.should_trade is False

    @pytest.mark.asyncio
    async def test_strong_prior_pulls_confidence_toward_history(self, tmp_path):
        """Test a long history dominates one confident vote."""
        store = JsonFileStore(tmp_path)
        await store.save_strategy_score(StrategyScore(strategy_id="veteran", win_rate=0.5, total_trades=96))
        allocator = MetaAllocator(store)

        result = await allocator.build_consensus([make_signal("veteran", confidence=0.9)], make_market())

        # prior Beta(50, 50): evidence weight 10 / 100
        assert result.aggregate_confidence == pytest.approx(0.5 * 0.9 + 0.9 * 0.1)
        assert result.votes[0].weight == pytest.approx(0.5)

    @pytest.mark.asyncio
    async def test_confidence_always_within_unit_interval(self, tmp_path):
        """Test aggregate confidence is clamped for arbitrary vote mixes."""
        allocator = MetaAllocator(JsonFileStore(tmp_path))
        rng = random.Random(7)
        for i in range(20):
            allocator.priors.set(f"s{i}", BetaPrior(alpha=rng.uniform(1, 50), beta=rng.uniform(1, 50)))

        for _ in range(200):
            signals = [
                make_signal(
                    f"s{rng.randrange(20)}",
                    rng.choice([Side.YES, Side.NO]),
                    confidence=rng.random(),
                    size=rng.uniform(0, 500),
                )
                for _ in range(rng.randint(1, 6))
            ]
            result = await allocator.build_consensus(signals, make_market())
            assert 0.0 <= result.aggregate_confidence <= 1.0


class TestSellOverride:
    """Tests for SELL priority override."""

    @pytest.mark.asyncio
    async def test_sell_overrides_buy_majority(self, tmp_path):
        allocator = MetaAllocator(JsonFileStore(tmp_path))

        result = await allocator.build_consensus(
            [
                make_signal("a", Side.YES, confidence=0.95, size=300.0),
                make_signal("b", Side.YES, confidence=0.9, size=300.0),
                make_signal("exit", Side.NO, Direction.SELL, confidence=0.3, size=40.0),
            ],
            make_market(),
        )

        assert result.should_trade is True
        assert result.direction == Direction.SELL
        assert result.side == Side.NO
        assert result.position_size_usd == 40.0
        assert result.aggregate_confidence == 0.3
        assert result.consensus_method == ConsensusMethod.PRIORITY_OVERRIDE

    @pytest.mark.asyncio
    async def test_strongest_sell_wins(self, tmp_path):
        allocator = MetaAllocator(JsonFileStore(tmp_path))

        result = await allocator.build_consensus(
            [
                make_signal("weak", Side.YES, Direction.SELL, confidence=0.4, size=10.0),
                make_signal("strong", Side.NO, Direction.SELL, confidence=0.7, size=20.0),
            ],
            make_market(),
        )

        assert result.side == Side.NO
        assert result.position_size_usd == 20.0

    @pytest.mark.asyncio
    async def test_sell_tie_goes_to_first_signal(self, tmp_path):
        allocator = MetaAllocator(JsonFileStore(tmp_path))

        result = await allocator.build_consensus(
            [
                make_signal("first", Side.YES, Direction.SELL, confidence=0.6, size=10.0),
                make_signal("second", Side.NO, Direction.SELL, confidence=0.6, size=20.0),
            ],
            make_market(),
        )

        assert result.side == Side.YES
        assert result.position_size_usd == 10.0

    @pytest.mark.asyncio
    async def test_any_sell_in_random_mix_is_selected(self, tmp_path):
        allocator = MetaAllocator(JsonFileStore(tmp_path))
        rng = random.Random(11)

        for _ in range(100):
            signals = [
                make_signal(
                    f"s{i}",
                    rng.choice([Side.YES, Side.NO]),
                    rng.choice([Direction.BUY, Direction.SELL]),
                    confidence=rng.random(),
                    size=rng.uniform(1, 200),
                )
                for i in range(rng.randint(1, 6))
            ]
            sells = [s for s in signals if s.direction == Direction.SELL]
            if not sells:
                continue

            result = await allocator.build_consensus(signals, make_market())

            lead = max(sells, key=lambda s: s.confidence)
            assert result.direction == Direction.SELL
            assert result.side == lead.side
            assert result.position_size_usd == lead.position_size_usd


class TestLearning:
    """Tests for prior updates, decision logging and self-reflection."""

    @pytest.mark.asyncio
    async def test_update_priors_persists_win(self, tmp_path):
        store = JsonFileStore(tmp_path)
        allocator = MetaAllocator(store)

        await allocator.update_priors("momentum", success=True, pnl=12.5)

        score = await store.get_strategy_score("momentum")
        assert score.win_rate == pytest.approx(0.6)
        assert score.total_trades == 1
        assert score.total_pnl == pytest.approx(12.5)
        assert allocator.get_weight("momentum") == pytest.approx(0.6)

    @pytest.mark.asyncio
    async def test_update_priors_survives_reload(self, tmp_path):
        store = JsonFileStore(tmp_path)
        await MetaAllocator(store).update_priors("momentum", success=False)

        fresh = MetaAllocator(store)
        await fresh.priors.refresh()

        prior = fresh.priors.get("momentum")
        assert prior.alpha == pytest.approx(2.0)
        assert prior.beta == pytest.approx(3.0)

    @pytest.mark.asyncio
    async def test_record_decision(self, tmp_path):
        store = JsonFileStore(tmp_path)
        allocator = MetaAllocator(store)
        result = await allocator.build_consensus([make_signal(confidence=0.9)], make_market())

        decision = await allocator.record_decision(result)

        stored = await store.get_decisions_since(decision.created_at, limit=10)
        assert [d.id for d in stored] == [decision.id]
        assert stored[0].strategy_ids == ["momentum"]
        assert stored[0].approved is None

    @pytest.mark.asyncio
    async def test_self_reflect_blends_accuracy(self, tmp_path):
        store = JsonFileStore(tmp_path)
        for hit in (True, True, True, True, False):
            await store.record_decision(make_decision(["a"], approved=hit, executed=hit))
        await store.record_decision(make_decision(["b"], approved=True, executed=True))
        allocator = MetaAllocator(store)

        weights = await allocator.self_reflect()

        assert weights == {"a": pytest.approx(1.0 * 0.8 + 0.8 * 0.2)}
        score = await store.get_strategy_score("a")
        assert score.weight == pytest.approx(0.96)
        assert await store.get_strategy_score("b") is None

    @pytest.mark.asyncio
    async def test_self_reflect_clamps_weight(self, tmp_path):
        store = JsonFileStore(tmp_path)
        await store.save_strategy_score(StrategyScore(strategy_id="a", weight=0.1))
        for _ in range(5):
            await store.record_decision(make_decision(["a"], approved=False, executed=False))
        allocator = MetaAllocator(store, ConsensusSettings(min_weight=0.5))

        weights = await allocator.self_reflect()

        # prior mean 0.5 * 0.8 + 0 = 0.4, lifted to the floor
        assert weights["a"] == pytest.approx(0.5)

    @pytest.mark.asyncio
    async def test_self_reflect_starts_from_prior_mean(self, tmp_path):
        store = JsonFileStore(tmp_path)
        await MetaAllocator(store).update_priors("a", success=True)
        await store.save_strategy_score(
            StrategyScore(strategy_id="a", weight=1.9, win_rate=0.6, total_trades=1)
        )
        for _ in range(5):
            await store.record_decision(make_decision(["a"], approved=True, executed=True))
        allocator = MetaAllocator(store)

        weights = await allocator.self_reflect()

        assert weights["a"] == pytest.approx(0.6 * 0.8 + 1.0 * 0.2)
