"""
Data-richness classification.

Two independent tests share the same three tiers:

* profile richness: how much behavioural data a single user has, used by the
  similarity calculator (a pair is only as rich as its poorer member);
* context richness: how much journey evidence a single recommendation
  request found, used by the transition recommender.
"""

from dataclasses import asdict, dataclass
from enum import Enum

from app.services.gateway import LifestyleGateway

# Profile thresholds
RICH_MIN_STUFF = 20
RICH_MIN_JOURNEYS = 5
RICH_MIN_ROUTINES = 1
MODERATE_MIN_STUFF = 5
MODERATE_MIN_REVIEWS = 5

# Recommendation-context thresholds
CONTEXT_RICH_MIN_SIMILAR_USERS = 5
CONTEXT_RICH_MIN_JOURNEYS = 10
CONTEXT_MODERATE_MIN_SIMILAR_USERS = 2
CONTEXT_MODERATE_MIN_JOURNEYS = 3
CONTEXT_MODERATE_MIN_CONSENSUS = 5


class RichnessMode(str, Enum):
    SPARSE = "SPARSE"
    MODERATE = "MODERATE"
    RICH = "RICH"

    @property
    def rank(self) -> int:
        return _RANKS[self]


_RANKS = {RichnessMode.SPARSE: 0, RichnessMode.MODERATE: 1, RichnessMode.RICH: 2}


def min_richness(a: RichnessMode, b: RichnessMode) -> RichnessMode:
    """The poorer of two tiers."""
    return a if a.rank <= b.rank else b


@dataclass(frozen=True)
class UserDataCounts:
    stuff_count: int = 0
    journeys_count: int = 0
    routines_count: int = 0
    reviews_count: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass(frozen=True)
class RichnessClassification:
    mode: RichnessMode
    counts: UserDataCounts


def classify_counts(counts: UserDataCounts) -> RichnessMode:
    if (
        counts.stuff_count >= RICH_MIN_STUFF
        and counts.journeys_count >= RICH_MIN_JOURNEYS
        and counts.routines_count >= RICH_MIN_ROUTINES
    ):
        return RichnessMode.RICH

    if counts.stuff_count >= MODERATE_MIN_STUFF or counts.reviews_count >= MODERATE_MIN_REVIEWS:
        return RichnessMode.MODERATE

    return RichnessMode.SPARSE


def fetch_user_counts(gateway: LifestyleGateway, user_id: str) -> UserDataCounts:
    """Four count-only queries. A failing count reads as zero."""
    return UserDataCounts(
        stuff_count=gateway.read_or(0, gateway.count_stuff, user_id, description="count user_stuff"),
        journeys_count=gateway.read_or(0, gateway.count_journeys, user_id, description="count journeys"),
        routines_count=gateway.read_or(0, gateway.count_routines, user_id, description="count routines"),
        reviews_count=gateway.read_or(0, gateway.count_reviews, user_id, description="count reviews"),
    )


def classify_user(gateway: LifestyleGateway, user_id: str) -> RichnessClassification:
    """Classify a user from live counts; nothing is cached between calls."""
    counts = fetch_user_counts(gateway, user_id)
    return RichnessClassification(mode=classify_counts(counts), counts=counts)


@dataclass(frozen=True)
class ContextRichness:
    """Richness of one recommendation request, with the counts behind it."""

    mode: RichnessMode
    similar_users_count: int
    total_journeys: int
    entity_specific_journeys: int
    global_consensus_count: int


def classify_context(
    similar_users_count: int,
    total_journeys: int,
    entity_specific_journeys: int,
    global_consensus_count: int,
) -> ContextRichness:
    if (
        similar_users_count >= CONTEXT_RICH_MIN_SIMILAR_USERS
        and total_journeys >= CONTEXT_RICH_MIN_JOURNEYS
    ):
        mode = RichnessMode.RICH
    elif (
        similar_users_count >= CONTEXT_MODERATE_MIN_SIMILAR_USERS
        or total_journeys >= CONTEXT_MODERATE_MIN_JOURNEYS
        or global_consensus_count >= CONTEXT_MODERATE_MIN_CONSENSUS
    ):
        mode = RichnessMode.MODERATE
    else:
        mode = RichnessMode.SPARSE

    return ContextRichness(
        mode=mode,
        similar_users_count=similar_users_count,
        total_journeys=total_journeys,
        entity_specific_journeys=entity_specific_journeys,
        global_consensus_count=global_consensus_count,
    )
