"""
Pairwise dimension scorers.

Each scorer is a pure function over two users' already-fetched rows and
returns a score in [0, 1] together with the detail stored alongside the
similarity row for later narration. Rating patterns live in
``rating_correlation`` since they are delegated to an injected routine.
"""

from collections import Counter, defaultdict
from dataclasses import dataclass, field
from typing import Iterable, Sequence

import numpy as np

# Stuff overlap bonuses
STATUS_MATCH_BONUS = 0.10
SENTIMENT_MATCH_BONUS = 0.05
SENTIMENT_MATCH_TOLERANCE = 2

# Routine bonuses
FREQUENCY_MATCH_BONUS = 0.10
STEP_ENTITY_BONUS = 0.05
STEP_ENTITY_BONUS_CAP = 0.2

# Journey alignment
IDENTICAL_JOURNEY_WEIGHT = 0.3
DIVERGENT_PATH_WEIGHT = 0.1
TRANSITION_TYPE_WEIGHT = 0.2


@dataclass
class StuffOverlap:
    score: float = 0.0
    common_entities: list[str] = field(default_factory=list)
    common_categories: list[str] = field(default_factory=list)

    def to_detail(self) -> dict:
        return {
            "score": self.score,
            "common_entities": self.common_entities,
            "common_categories": self.common_categories,
        }


@dataclass
class RoutinesSimilarity:
    score: float = 0.0
    common_categories: list[str] = field(default_factory=list)

    def to_detail(self) -> dict:
        return {"score": self.score, "common_categories": self.common_categories}


@dataclass
class JourneyAlignment:
    score: float = 0.0
    identical_journeys: int = 0
    divergent_paths: int = 0

    def to_detail(self) -> dict:
        return {
            "score": self.score,
            "identical_journeys": self.identical_journeys,
            "divergent_paths": self.divergent_paths,
        }


def _ordered_unique(values: Iterable) -> list:
    return list(dict.fromkeys(values))


def score_stuff_overlap(stuff_a: Sequence, stuff_b: Sequence) -> StuffOverlap:
    """
    Jaccard similarity of tracked entities plus per-item agreement bonuses.

    Items need ``entity_id``, ``status``, ``sentiment_score`` and ``category``.
    """
    items_a = {item.entity_id: item for item in stuff_a}
    items_b = {item.entity_id: item for item in stuff_b}

    union = set(items_a) | set(items_b)
    if not union:
        return StuffOverlap()

    common = [entity_id for entity_id in items_a if entity_id in items_b]
    jaccard = len(common) / len(union)

    status_bonus = 0.0
    sentiment_bonus = 0.0
    for entity_id in common:
        a, b = items_a[entity_id], items_b[entity_id]
        if a.status == b.status:
            status_bonus += STATUS_MATCH_BONUS
        # Unknown sentiment counts as neutral
        if abs((a.sentiment_score or 0) - (b.sentiment_score or 0)) <= SENTIMENT_MATCH_TOLERANCE:
            sentiment_bonus += SENTIMENT_MATCH_BONUS

    categories_b = {item.category for item in stuff_b if item.category}
    common_categories = _ordered_unique(
        item.category for item in stuff_a if item.category and item.category in categories_b
    )

    return StuffOverlap(
        score=min(1.0, jaccard + status_bonus + sentiment_bonus),
        common_entities=common,
        common_categories=common_categories,
    )


def _step_entities(routines: Sequence) -> set[str]:
    entities = set()
    for routine in routines:
        for step in routine.steps or []:
            if isinstance(step, dict) and step.get("entity_id"):
                entities.add(step["entity_id"])
    return entities


def score_routines(routines_a: Sequence, routines_b: Sequence) -> RoutinesSimilarity:
    """Routine category overlap with frequency and shared-step bonuses."""
    if not routines_a or not routines_b:
        return RoutinesSimilarity()

    categories_a = _ordered_unique(r.category for r in routines_a)
    categories_b = set(r.category for r in routines_b)
    common = [c for c in categories_a if c in categories_b]
    if not common:
        return RoutinesSimilarity()

    score = len(common) / max(len(categories_a), len(categories_b))

    # The first routine of each category is the one compared
    first_a: dict[str, object] = {}
    first_b: dict[str, object] = {}
    for routine in routines_a:
        first_a.setdefault(routine.category, routine)
    for routine in routines_b:
        first_b.setdefault(routine.category, routine)

    for category in common:
        if first_a[category].frequency == first_b[category].frequency:
            score += FREQUENCY_MATCH_BONUS

    shared_steps = _step_entities(routines_a) & _step_entities(routines_b)
    score += min(STEP_ENTITY_BONUS_CAP, STEP_ENTITY_BONUS * len(shared_steps))

    return RoutinesSimilarity(score=min(1.0, score), common_categories=common)


def _destinations_by_origin(journeys: Sequence) -> dict[str, set[str]]:
    graph: dict[str, set[str]] = defaultdict(set)
    for journey in journeys:
        graph[journey.from_entity_id].add(journey.to_entity_id)
    return graph


def score_journey_alignment(journeys_a: Sequence, journeys_b: Sequence) -> JourneyAlignment:
    """
    Compare two users' transition graphs.

    For origins both users moved away from, a shared destination is an
    identical journey and a destination only one of them chose is a
    divergent path. Transition-type habits add up to 0.2.
    """
    if not journeys_a or not journeys_b:
        return JourneyAlignment()

    graph_a = _destinations_by_origin(journeys_a)
    graph_b = _destinations_by_origin(journeys_b)

    identical = 0
    divergent = 0
    for origin in graph_a.keys() & graph_b.keys():
        destinations_a, destinations_b = graph_a[origin], graph_b[origin]
        identical += len(destinations_a & destinations_b)
        # Both sides count: a destination only B chose diverges as much as one only A chose
        divergent += len(destinations_a ^ destinations_b)

    types_a = Counter(j.transition_type for j in journeys_a)
    types_b = Counter(j.transition_type for j in journeys_b)
    all_types = types_a.keys() | types_b.keys()
    type_similarity = sum(
        min(types_a[t], types_b[t]) / max(types_a[t], types_b[t], 1) for t in all_types
    ) / (len(all_types) or 1)

    score = (
        identical * IDENTICAL_JOURNEY_WEIGHT
        + divergent * DIVERGENT_PATH_WEIGHT
        + type_similarity * TRANSITION_TYPE_WEIGHT
    )
    return JourneyAlignment(score=min(1.0, score), identical_journeys=identical, divergent_paths=divergent)


def score_category_preferences(categories_a: Iterable[str], categories_b: Iterable[str]) -> float:
    """Cosine similarity of the two users' normalised category frequency vectors."""
    counts_a = Counter(c for c in categories_a if c)
    counts_b = Counter(c for c in categories_b if c)
    if not counts_a or not counts_b:
        return 0.0

    vocabulary = sorted(counts_a.keys() | counts_b.keys())
    vec_a = np.array([counts_a[c] for c in vocabulary], dtype=float)
    vec_b = np.array([counts_b[c] for c in vocabulary], dtype=float)
    vec_a /= vec_a.sum()
    vec_b /= vec_b.sum()

    magnitude = np.linalg.norm(vec_a) * np.linalg.norm(vec_b)
    if magnitude == 0:
        return 0.0
    return float(min(1.0, np.dot(vec_a, vec_b) / magnitude))
