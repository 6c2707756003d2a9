from datetime import datetime
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field, model_validator

if TYPE_CHECKING:
    from bestthing.matchup.models import Configuration


class ItemMetrics(BaseModel):
    """Leaderboard extras maintained alongside the rating."""
    peak_rating: float | None = None
    peak_rating_at: datetime | None = None
    current_win_streak: int = Field(default=0, ge=0)
    current_loss_streak: int = Field(default=0, ge=0)
    longest_win_streak: int = Field(default=0, ge=0)
    upset_win_count: int = Field(default=0, ge=0)
    first_vote_at: datetime | None = None


class Item(BaseModel):
    """A Wikipedia-derived thing that can be compared head-to-head.

    Items without an image are kept in the catalog but are never offered
    for comparison.
    """
    id: int
    title: str
    image_url: str | None = None
    description: str | None = None
    elo_rating: float = 1500.0
    comparison_count: int = Field(default=0, ge=0)
    wins: int = Field(default=0, ge=0)
    losses: int = Field(default=0, ge=0)
    last_compared_at: datetime | None = None
    skip_count: int = Field(default=0, ge=0)
    metrics: ItemMetrics = Field(default_factory=ItemMetrics)

    @property
    def is_eligible(self) -> bool:
        return bool(self.image_url)


class Comparison(BaseModel):
    """One resolved comparison; winner_id is None for a skip."""
    id: int
    item1_id: int
    item2_id: int
    winner_id: int | None = None
    created_at: datetime
    user_id: int | None = None
    session_id: str | None = None
    was_upset: bool = False
    rating_difference: float | None = None  # absolute pre-vote gap

    @property
    def is_skip(self) -> bool:
        return self.winner_id is None

    @property
    def item_ids(self) -> tuple[int, int]:
        return (self.item1_id, self.item2_id)


class ItemFilter(BaseModel):
    """Optional narrowing for eligible item lookups.

    A confidence bound needs the confidence denominator from the active
    Configuration; use `needing_votes` to build one from a snapshot.
    """
    max_comparisons: int | None = None  # exclusive
    max_confidence: float | None = None  # exclusive
    min_comparisons_for_confidence: int | None = Field(default=None, gt=0)
    exclude_ids: set[int] = Field(default_factory=set)

    @model_validator(mode="after")
    def _check_confidence_bound(self) -> "ItemFilter":
        if self.max_confidence is not None and self.min_comparisons_for_confidence is None:
            raise ValueError("max_confidence requires min_comparisons_for_confidence")
        return self

    @classmethod
    def needing_votes(cls, config: "Configuration", **kwargs) -> "ItemFilter":
        """Items whose ratings are still unsettled under `config`."""
        return cls(
            max_comparisons=config.items_needing_votes_comparison_threshold,
            max_confidence=config.items_needing_votes_confidence_threshold,
            min_comparisons_for_confidence=config.min_comparisons_for_confidence,
            **kwargs,
        )

    def matches(self, item: Item) -> bool:
        if item.id in self.exclude_ids:
            return False
        if self.max_comparisons is not None and item.comparison_count >= self.max_comparisons:
            return False
        if self.max_confidence is not None:
            confidence = min(1.0, item.comparison_count / self.min_comparisons_for_confidence)
            if confidence >= self.max_confidence:
                return False
        return True
