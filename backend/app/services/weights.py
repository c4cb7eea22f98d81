"""
Dimension weight allocation.

Weights always sum to 1.0. RICH pairs use the base weights, SPARSE pairs
only trust review-derived signals, and MODERATE pairs hand the weight of
any behavioural dimension that lacks data to the dimensions that remain.
"""

from dataclasses import dataclass

from app.services.richness import RichnessMode

STUFF_OVERLAP = "stuff_overlap"
ROUTINES_SIMILARITY = "routines_similarity"
JOURNEY_ALIGNMENT = "journey_alignment"
RATING_PATTERNS = "rating_patterns"
CATEGORY_PREFERENCES = "category_preferences"

DIMENSIONS = (
    STUFF_OVERLAP,
    ROUTINES_SIMILARITY,
    JOURNEY_ALIGNMENT,
    RATING_PATTERNS,
    CATEGORY_PREFERENCES,
)

BASE_WEIGHTS = {
    STUFF_OVERLAP: 0.30,
    ROUTINES_SIMILARITY: 0.20,
    JOURNEY_ALIGNMENT: 0.20,
    RATING_PATTERNS: 0.15,
    CATEGORY_PREFERENCES: 0.15,
}

SPARSE_WEIGHTS = {
    STUFF_OVERLAP: 0.0,
    ROUTINES_SIMILARITY: 0.0,
    JOURNEY_ALIGNMENT: 0.0,
    RATING_PATTERNS: 0.60,
    CATEGORY_PREFERENCES: 0.40,
}


@dataclass(frozen=True)
class DataAvailability:
    """Whether both users of a pair have data for each dimension."""

    has_stuff: bool = False
    has_routines: bool = False
    has_journeys: bool = False
    has_ratings: bool = True
    has_categories: bool = True

    @classmethod
    def for_pair(cls, counts_a, counts_b) -> "DataAvailability":
        return cls(
            has_stuff=counts_a.stuff_count > 0 and counts_b.stuff_count > 0,
            has_routines=counts_a.routines_count > 0 and counts_b.routines_count > 0,
            has_journeys=counts_a.journeys_count > 0 and counts_b.journeys_count > 0,
        )


def allocate_weights(mode: RichnessMode, availability: DataAvailability) -> dict[str, float]:
    if mode == RichnessMode.RICH:
        return dict(BASE_WEIGHTS)

    if mode == RichnessMode.SPARSE:
        return dict(SPARSE_WEIGHTS)

    weights = dict(BASE_WEIGHTS)
    active = [RATING_PATTERNS, CATEGORY_PREFERENCES]
    pool = 0.0

    for dimension, available in (
        (ROUTINES_SIMILARITY, availability.has_routines),
        (JOURNEY_ALIGNMENT, availability.has_journeys),
        (STUFF_OVERLAP, availability.has_stuff),
    ):
        if available:
            active.append(dimension)
        else:
            pool += weights[dimension]
            weights[dimension] = 0.0

    share = pool / len(active)
    for dimension in active:
        weights[dimension] += share

    return weights


def redistribute_failed(weights: dict[str, float], failed: str) -> dict[str, float]:
    """
    Move a failed dimension's weight evenly onto the other weighted dimensions.

    Used only when rating-correlation failures are configured to redistribute;
    the default is to score the failed dimension as 0 and keep its weight.
    """
    pool = weights.get(failed, 0.0)
    remaining = [d for d, w in weights.items() if d != failed and w > 0]
    if pool == 0 or not remaining:
        return dict(weights)

    adjusted = dict(weights)
    adjusted[failed] = 0.0
    share = pool / len(remaining)
    for dimension in remaining:
        adjusted[dimension] += share
    return adjusted
