"""Event hooks for observing the comparison core.

The orchestrator reports what it did through an EventHandler so telemetry,
live dashboards and tests can listen without the core knowing about them.
"""

from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from bestthing.matchup.models import ComparisonPair, VoteOutcome


class EventHandler(Protocol):
    """Protocol for handlers that receive comparison events."""

    def on_comparison_served(
        self,
        pair: "ComparisonPair",
        **kwargs: Any
    ) -> None:
        """Called when a pair has been chosen for a voter.

        Args:
            pair: The presented pair and the mode that produced it
            **kwargs: Additional context
        """
        ...

    def on_vote_recorded(
        self,
        outcome: "VoteOutcome",
        **kwargs: Any
    ) -> None:
        """Called after a decided vote has been committed.

        Args:
            outcome: Updated items and the appended comparison
            **kwargs: Additional context
        """
        ...

    def on_skip_recorded(
        self,
        outcome: "VoteOutcome",
        **kwargs: Any
    ) -> None:
        """Called after a skip has been committed."""
        ...

    def on_upset(
        self,
        outcome: "VoteOutcome",
        rating_difference: float,
        **kwargs: Any
    ) -> None:
        """Called when the lower-rated item won by more than the upset threshold.

        Args:
            outcome: The committed vote
            rating_difference: Pre-vote rating gap between the two items
            **kwargs: Additional context
        """
        ...


class NullEventHandler:
    """Event handler that ignores everything."""

    def on_comparison_served(self, *args: Any, **kwargs: Any) -> None:
        pass

    def on_vote_recorded(self, *args: Any, **kwargs: Any) -> None:
        pass

    def on_skip_recorded(self, *args: Any, **kwargs: Any) -> None:
        pass

    def on_upset(self, *args: Any, **kwargs: Any) -> None:
        pass
