"""Consensus engine: Bayesian-weighted aggregation of strategy votes."""

from src.consensus.meta_allocator import MetaAllocator
from src.consensus.models import BetaPrior, ConsensusMethod, ConsensusResult, StrategyVote
from src.consensus.prior_table import PriorTable
from src.consensus.settings import ConsensusSettings
from src.consensus.strategy import Strategy

__all__ = [
    "BetaPrior",
    "ConsensusMethod",
    "ConsensusResult",
    "ConsensusSettings",
    "MetaAllocator",
    "PriorTable",
    "Strategy",
    "StrategyVote",
]
