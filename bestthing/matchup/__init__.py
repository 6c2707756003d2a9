"""Comparison selection and Elo rating engine."""

from bestthing.matchup.models import (
    ComparisonPair,
    ComparisonState,
    Configuration,
    SelectionMode,
    VoteOutcome,
)
from bestthing.matchup.orchestrator import ComparisonOrchestrator
from bestthing.matchup.pairing import SelectionPolicy

__all__ = [
    "ComparisonOrchestrator",
    "ComparisonPair",
    "ComparisonState",
    "Configuration",
    "SelectionMode",
    "SelectionPolicy",
    "VoteOutcome",
]
