"""Title similarity groups for diversity filtering.

Catalogs seeded from Wikipedia tend to contain long runs of near-identical
entries ("3rd Battalion", "5th Battalion", ...). Grouping titles lets the
selector avoid showing the same kind of thing over and over.
"""

import re
from collections.abc import Iterable

from bestthing.models import Comparison, Item

_MILITARY_UNITS = r"Battalion|Division|Regiment|Infantry|Brigade|Corps|Army|Squadron|Company|Platoon"
_MILITARY_PATTERN = re.compile(rf"\d+(st|nd|rd|th)?\s+({_MILITARY_UNITS})", re.IGNORECASE)
_MILITARY_WORD = re.compile(rf"\b({_MILITARY_UNITS})\b", re.IGNORECASE)

_TRANSPORT_PATTERN = re.compile(
    r"\b(Station|Airport|Railway Station|Train Station|Metro Station|Bus Station"
    r"|Rail Station|Subway Station|Terminal|Depot)\b",
    re.IGNORECASE,
)
_BUILDING_PATTERN = re.compile(
    r"\b(Building|Tower|Center|Centre|Plaza|Complex|Hall|House|Mansion|Palace"
    r"|Castle|Monument|Memorial)\b",
    re.IGNORECASE,
)
_GEO_PATTERN = re.compile(
    r",\s*([A-Z][a-z]+(?:\s+[A-Z][a-z]+)*)$|\(([A-Z][a-z]+(?:\s+[A-Z][a-z]+)*)\)$"
)

COMMON_LOCATIONS = [
    "New York", "New York City", "NYC", "London", "Paris", "Tokyo", "Berlin",
    "Moscow", "Sydney", "Melbourne", "Toronto", "Vancouver",
]

# (comparisons ago, base penalty); anything older carries no penalty
PENALTY_STEPS = [(5, 0.2), (10, 0.4), (15, 0.6), (20, 0.8)]


def similarity_group(title: str | None) -> str | None:
    """Return a coarse group id such as "military_battalion", or None."""
    if not title:
        return None

    title = title.strip()

    if _MILITARY_PATTERN.search(title):
        match = _MILITARY_WORD.search(title)
        if match:
            return f"military_{match.group(1).lower()}"

    match = _TRANSPORT_PATTERN.search(title)
    if match:
        word = match.group(1).lower()
        if "station" in word:
            return "transportation_station"
        if "airport" in word:
            return "transportation_airport"
        return "transportation_terminal"

    match = _BUILDING_PATTERN.search(title)
    if match:
        return f"building_{match.group(1).lower()}"

    match = _GEO_PATTERN.search(title)
    if match:
        location = (match.group(1) or match.group(2) or "").strip()
        if any(loc.lower() in location.lower() for loc in COMMON_LOCATIONS):
            return "geographic_" + re.sub(r"\s+", "_", location.lower())

    return None


def diversity_penalty(comparisons_ago: int | None, penalty_strength: float = 0.8) -> float:
    """Weight multiplier in (0, 1] for a group last seen `comparisons_ago` comparisons back.

    A strength of 0 disables the penalty; 1 applies the base penalty in full.
    """
    if comparisons_ago is None:
        return 1.0

    for limit, base in PENALTY_STEPS:
        if comparisons_ago <= limit:
            return base + (1.0 - base) * (1.0 - penalty_strength)
    return 1.0


def recent_group_positions(
    recent: Iterable[Comparison],
    items_by_id: dict[int, Item],
) -> dict[str, int]:
    """Map each similarity group to how many comparisons ago it last appeared.

    `recent` must be ordered newest first; the newest comparison is 1 ago.
    """
    positions: dict[str, int] = {}
    for offset, comparison in enumerate(recent, 1):
        for item_id in comparison.item_ids:
            item = items_by_id.get(item_id)
            if item is None:
                continue
            group = similarity_group(item.title)
            if group is not None:
                positions.setdefault(group, offset)
    return positions
