"""Configuration for the consensus engine."""

from pydantic import BaseModel, Field


class ConsensusSettings(BaseModel):
    """Settings for MetaAllocator."""

    min_confidence: float = Field(default=0.55, ge=0.0, le=1.0)
    min_trade_usd: float = Field(default=1.0, ge=0.0)
    weak_gap_threshold: float = Field(default=0.1, ge=0.0, le=1.0)
    weak_gap_penalty: float = Field(default=0.5, gt=0.0, le=1.0)

    # Bayesian priors
    default_alpha: float = Field(default=2.0, gt=0)
    default_beta: float = Field(default=2.0, gt=0)
    evidence_scale: float = Field(default=10.0, gt=0)

    # Self-reflection
    reflection_window_days: int = Field(default=7, ge=1)
    reflection_decision_limit: int = Field(default=100, ge=1)
    reflection_min_decisions: int = Field(default=5, ge=1)
    reflection_decay: float = Field(default=0.8, ge=0.0, le=1.0)
    min_weight: float = Field(default=0.1, gt=0)
    max_weight: float = Field(default=2.0, gt=0)
