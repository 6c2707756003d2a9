"""Errors raised by the comparison core."""


class BestThingError(Exception):
    """Base class for comparison core errors."""


class InsufficientItemsError(BestThingError):
    """Fewer than two comparison-eligible items exist."""

    def __init__(self, available: int):
        self.available = available
        super().__init__(f"Not enough items to compare (eligible: {available})")


class StaleComparisonError(BestThingError):
    """One or both presented items vanished or became ineligible before the vote."""

    def __init__(self, missing_ids: list[int]):
        self.missing_ids = missing_ids
        super().__init__(
            f"Comparison is stale; items no longer available: {missing_ids}"
        )


class InvalidWinnerError(BestThingError):
    """The submitted winner is not one of the two presented items."""

    def __init__(self, winner_id: int, item1_id: int, item2_id: int):
        self.winner_id = winner_id
        self.item1_id = item1_id
        self.item2_id = item2_id
        super().__init__(
            f"Winner {winner_id} must be one of the two items ({item1_id}, {item2_id})"
        )


class ConfigurationInconsistencyWarning(UserWarning):
    """Familiarity factor weights do not sum to 1.0."""
