"""Data models for comparison selection and rating updates."""

import math
import warnings
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator

from bestthing.errors import ConfigurationInconsistencyWarning
from bestthing.logging import get_logger
from bestthing.models import Comparison, Item

log = get_logger(__name__)

FACTOR_WEIGHT_TOLERANCE = 1e-6


class Configuration(BaseModel):
    """Snapshot of every tunable used while serving or scoring a comparison.

    Frozen so a request works against exactly one snapshot from start to end.
    """
    model_config = ConfigDict(frozen=True)

    # Selection
    familiarity_weight: float = Field(default=0.2, ge=0.0, le=1.0)
    cooldown_period: int = Field(default=55, ge=0)
    items_needing_votes_confidence_threshold: float = Field(default=0.8, ge=0.0, le=1.0)
    items_needing_votes_comparison_threshold: int = Field(default=20, gt=0)

    # Elo
    initial_rating: float = 1500.0
    base_k_factor: float = Field(default=32.0, ge=0.0)
    high_confidence_k: float = Field(default=16.0, ge=0.0)
    medium_confidence_k: float = Field(default=24.0, ge=0.0)
    low_confidence_k: float = Field(default=32.0, ge=0.0)
    high_confidence_threshold: float = Field(default=0.8, ge=0.0, le=1.0)
    medium_confidence_threshold: float = Field(default=0.33, ge=0.0, le=1.0)
    upset_threshold: float = Field(default=200.0, ge=0.0)

    # Familiarity
    min_comparisons_for_confidence: int = Field(default=30, gt=0)
    comparison_saturation_point: int = Field(default=50, gt=0)
    recency_decay_days: int = Field(default=30, gt=0)
    comparison_factor_weight: float = Field(default=0.40, ge=0.0)
    win_rate_factor_weight: float = Field(default=0.25, ge=0.0)
    recency_factor_weight: float = Field(default=0.20, ge=0.0)
    engagement_factor_weight: float = Field(default=0.15, ge=0.0)

    # Diversity
    diversity_filtering_enabled: bool = True
    diversity_penalty_strength: float = Field(default=0.8, ge=0.0, le=1.0)
    diversity_lookback_count: int = Field(default=20, ge=0)

    @model_validator(mode="after")
    def _check_thresholds(self) -> "Configuration":
        if self.high_confidence_threshold <= self.medium_confidence_threshold:
            raise ValueError(
                "high_confidence_threshold must be greater than medium_confidence_threshold"
            )

        total = self.factor_weight_sum
        if not math.isclose(total, 1.0, abs_tol=FACTOR_WEIGHT_TOLERANCE):
            log.warning("configuration_inconsistency", factor_weight_sum=total)
            warnings.warn(
                f"Familiarity factor weights sum to {total:.4f}, expected 1.0; "
                "scores will be clamped",
                ConfigurationInconsistencyWarning,
                stacklevel=2,
            )
        return self

    @property
    def factor_weight_sum(self) -> float:
        return (
            self.comparison_factor_weight
            + self.win_rate_factor_weight
            + self.recency_factor_weight
            + self.engagement_factor_weight
        )

    @property
    def needs_votes_cutoff(self) -> float:
        """Upper bound of the needs-votes band on the [0, 1) selection draw.

        The non-familiarity remainder is split evenly between needs-votes
        and random selection.
        """
        return self.familiarity_weight + (1.0 - self.familiarity_weight) / 2.0

    def selection_shares(self) -> dict[str, float]:
        """Probability of each selection mode, as previewed in the admin settings."""
        variety = 1.0 - self.familiarity_weight
        return {
            SelectionMode.FAMILIARITY.value: self.familiarity_weight,
            SelectionMode.NEEDS_VOTES.value: variety * 0.5,
            SelectionMode.RANDOM.value: variety * 0.5,
        }


class SelectionMode(str, Enum):
    FAMILIARITY = "familiarity"
    NEEDS_VOTES = "needs_votes"
    RANDOM = "random"

    def __str__(self) -> str:
        return self.value


class ComparisonState(str, Enum):
    """Lifecycle of a single served comparison."""
    PRESENTED = "presented"
    RESOLVED = "resolved"
    SKIPPED = "skipped"

    def __str__(self) -> str:
        return self.value


class ComparisonPair(BaseModel):
    """Two items presented to a voter."""
    item1: Item
    item2: Item
    mode: SelectionMode
    state: ComparisonState = ComparisonState.PRESENTED


class VoteOutcome(BaseModel):
    """Result of resolving a presented comparison."""
    item1: Item
    item2: Item
    comparison: Comparison
    was_upset: bool = False
    state: ComparisonState

    @property
    def new_ratings(self) -> dict[str, float]:
        return {"item1": self.item1.elo_rating, "item2": self.item2.elo_rating}
