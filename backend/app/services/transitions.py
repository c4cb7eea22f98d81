"""
Personalised journey-transition recommendations.

Reads persisted lifestyle similarities, the requesting user's tracked
items, similar users' journeys and the global consensus table, then:

1. Classifies how much evidence this request has (RICH/MODERATE/SPARSE)
2. Scores each journey for relevance to the user and weights it by the
   author's similarity and the journey's confidence
3. Groups journeys by (from, to) pair, keeping every contributor
4. Boosts groups corroborated by global consensus (× sqrt(count))
5. Ranks by relevance (0.1 tie band), then weighted score
6. Backfills from global consensus when personal results run short
7. Narrates each result according to the richness mode

This module never computes similarity itself.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from functools import cmp_to_key
from typing import Sequence

from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.logging import get_context_logger, new_run_id
from app.models.journey import TRANSITION_TYPES
from app.schemas.transition import (
    EntitySummary,
    TransitionMetadata,
    TransitionRecommendation,
    TransitionResponse,
    TransitionStory,
)
from app.services.gateway import LifestyleGateway
from app.services.richness import ContextRichness, RichnessMode, classify_context

settings = get_settings()

# Relevance components
TRACKED_ORIGIN_BONUS = 0.3
UNHAPPY_WITH_ORIGIN_BONUS = 0.2
QUERY_CATEGORY_BONUS = 0.2
OWN_CATEGORY_BONUS = 0.15
SIMILARITY_RELEVANCE_WEIGHT = 0.2
RECENT_30_DAYS_BONUS = 0.1
RECENT_90_DAYS_BONUS = 0.05

DEFAULT_SIMILARITY = 0.1  # author not among the user's stored similar users
DEFAULT_CONFIDENCE = 0.5
RELEVANCE_TIE_BAND = 0.1
MAX_LIFESTYLE_FACTORS = 3

CONFIDENCE_BY_MODE = {
    RichnessMode.RICH: "high",
    RichnessMode.MODERATE: "medium",
    RichnessMode.SPARSE: "low",
}

UNKNOWN_ENTITY = {"name": "Unknown", "type": "others", "image_url": None}


class EntityDetailsCache:
    """
    Entity display details memoised for a single recommendation computation.

    One instance per request; never shared between requests.
    """

    def __init__(self, gateway: LifestyleGateway):
        self.gateway = gateway
        self._cache: dict[str, EntitySummary] = {}
        self.lookups = 0

    def get(self, entity_id: str) -> EntitySummary:
        if entity_id in self._cache:
            return self._cache[entity_id]

        self.lookups += 1
        entity = self.gateway.read_or(None, self.gateway.get_entity, entity_id, description="entity details")
        if entity is None:
            summary = EntitySummary(id=entity_id, **UNKNOWN_ENTITY)
        else:
            summary = EntitySummary(
                id=entity.id, name=entity.name, type=entity.type or "others", image_url=entity.image_url
            )
        self._cache[entity_id] = summary
        return summary


def compute_relevance_score(
    journey,
    user_stuff: dict,
    similarity_score: float,
    query_category: str | None = None,
    now: datetime | None = None,
) -> float:
    """
    How applicable one journey is to the requesting user right now.

    Not capped at 1: the components add up to about 1.15 at most.
    """
    now = now or datetime.utcnow()
    score = 0.0

    item = user_stuff.get(journey.from_entity_id)
    if item is not None:
        score += TRACKED_ORIGIN_BONUS
        if item.sentiment_score is not None and item.sentiment_score <= 0:
            score += UNHAPPY_WITH_ORIGIN_BONUS

    if query_category and journey.category == query_category:
        score += QUERY_CATEGORY_BONUS
    elif item is not None and item.category and journey.category == item.category:
        score += OWN_CATEGORY_BONUS

    score += (similarity_score or 0.0) * SIMILARITY_RELEVANCE_WEIGHT

    if journey.created_at is not None:
        age_days = (now - journey.created_at).total_seconds() / 86400
        if age_days < 30:
            score += RECENT_30_DAYS_BONUS
        elif age_days < 90:
            score += RECENT_90_DAYS_BONUS

    return score


def lifestyle_factors(similar_user) -> list[str]:
    """Shared routine and stuff categories recorded on a similarity row."""
    if similar_user is None:
        return []

    factors = []
    routines = similar_user.routines_similarity or {}
    stuff = similar_user.stuff_overlap or {}
    factors.extend(f"{c} routine" for c in routines.get("common_categories") or [])
    factors.extend(stuff.get("common_categories") or [])
    return factors[:MAX_LIFESTYLE_FACTORS]


@dataclass
class Contributor:
    user_id: str
    similarity_score: float
    weighted_score: float


@dataclass
class JourneyGroup:
    """All journeys for one (from, to) pair, fanned in from their authors."""

    from_entity_id: str
    to_entity_id: str
    transition_type: str
    total_score: float = 0.0
    relevance_score: float = 0.0
    best_evidence: str | None = None
    sentiment_before_total: float = 0.0
    sentiment_before_count: int = 0
    sentiment_after_total: float = 0.0
    sentiment_after_count: int = 0
    lifestyle_factors: list[str] = field(default_factory=list)
    contributors: list[Contributor] = field(default_factory=list)

    @property
    def key(self) -> tuple[str, str]:
        return (self.from_entity_id, self.to_entity_id)

    @property
    def journey_count(self) -> int:
        return len(self.contributors)

    @property
    def contributing_users(self) -> int:
        return len({c.user_id for c in self.contributors})

    @property
    def avg_sentiment_before(self) -> float | None:
        if not self.sentiment_before_count:
            return None
        return self.sentiment_before_total / self.sentiment_before_count

    @property
    def avg_sentiment_after(self) -> float | None:
        if not self.sentiment_after_count:
            return None
        return self.sentiment_after_total / self.sentiment_after_count

    def add(self, journey, similarity_score: float, weighted_score: float, relevance: float, factors: list[str]):
        self.total_score += weighted_score
        self.relevance_score = max(self.relevance_score, relevance)
        if journey.from_sentiment is not None:
            self.sentiment_before_total += journey.from_sentiment
            self.sentiment_before_count += 1
        if journey.to_sentiment is not None:
            self.sentiment_after_total += journey.to_sentiment
            self.sentiment_after_count += 1
        if not self.best_evidence and journey.evidence_text:
            self.best_evidence = journey.evidence_text
        for factor in factors:
            if factor not in self.lifestyle_factors:
                self.lifestyle_factors.append(factor)
        self.contributors.append(Contributor(journey.user_id, similarity_score, weighted_score))


def group_journeys(
    journeys: Sequence,
    similar_users: dict,
    user_stuff: dict,
    query_category: str | None = None,
    now: datetime | None = None,
) -> dict[tuple[str, str], JourneyGroup]:
    """
    Fan journeys in by (from, to) pair.

    Each journey contributes ``similarity × confidence × (1 + relevance)``.
    """
    groups: dict[tuple[str, str], JourneyGroup] = {}

    for journey in journeys:
        similar_user = similar_users.get(journey.user_id)
        similarity_score = similar_user.overall_score if similar_user else DEFAULT_SIMILARITY
        confidence = journey.confidence if journey.confidence is not None else DEFAULT_CONFIDENCE

        relevance = compute_relevance_score(journey, user_stuff, similarity_score, query_category, now)
        weighted = similarity_score * confidence * (1 + relevance)

        key = (journey.from_entity_id, journey.to_entity_id)
        group = groups.get(key)
        if group is None:
            group = JourneyGroup(
                from_entity_id=journey.from_entity_id,
                to_entity_id=journey.to_entity_id,
                transition_type=journey.transition_type,
                relevance_score=relevance,
            )
            groups[key] = group
        group.add(journey, similarity_score, weighted, relevance, lifestyle_factors(similar_user))

    return groups


def index_relationships(relationships: Sequence) -> dict[tuple[str, str], object]:
    """First (highest-consensus) relationship per (from, to) pair."""
    index: dict[tuple[str, str], object] = {}
    for rel in relationships:
        index.setdefault((rel.entity_a_id, rel.entity_b_id), rel)
    return index


def consensus_multiplier(consensus_count: int | None) -> float:
    return math.sqrt(max(consensus_count or 1, 1))


def apply_consensus_boost(groups: dict[tuple[str, str], JourneyGroup], relationships_by_pair: dict) -> None:
    for key, group in groups.items():
        rel = relationships_by_pair.get(key)
        if rel is not None:
            group.total_score *= consensus_multiplier(rel.consensus_count)


def _compare_groups(a: JourneyGroup, b: JourneyGroup) -> int:
    relevance_diff = b.relevance_score - a.relevance_score
    if abs(relevance_diff) > RELEVANCE_TIE_BAND:
        return 1 if relevance_diff > 0 else -1
    score_diff = b.total_score - a.total_score
    if score_diff > 0:
        return 1
    if score_diff < 0:
        return -1
    return 0


def rank_groups(groups: Sequence[JourneyGroup], limit: int) -> list[JourneyGroup]:
    """Relevance first (differences within 0.1 count as ties), then weighted score."""
    return sorted(groups, key=cmp_to_key(_compare_groups))[:limit]


def format_sentiment_change(before: float | None, after: float | None) -> str | None:
    if before is None or after is None:
        return None
    change = round(after - before, 1)
    if change > 0:
        return f"+{change:g} improvement"
    if change < 0:
        return f"{change:g} change"
    return "Similar satisfaction"


def build_story(
    mode: RichnessMode,
    from_name: str,
    to_name: str,
    transition_type: str,
    similar_user_count: int,
    sentiment_before: float | None = None,
    sentiment_after: float | None = None,
    evidence_text: str | None = None,
    factors: Sequence[str] = (),
) -> TransitionStory:
    if mode == RichnessMode.RICH:
        if transition_type == "upgrade":
            headline = f"{similar_user_count} people like you upgraded to {to_name}"
        elif transition_type == "alternative":
            headline = f"{similar_user_count} similar users also tried {to_name}"
        else:
            headline = f"Users who have {from_name} often pair it with {to_name}"

        if factors:
            description = f"Users with similar {' and '.join(factors[:2])} made this switch"
        else:
            description = "People with similar taste made this change"

    elif mode == RichnessMode.MODERATE:
        if transition_type == "upgrade":
            headline = f"Users upgraded to {to_name}"
        elif transition_type == "alternative":
            headline = f"{to_name} is a popular alternative"
        else:
            headline = f"Often used together with {to_name}"
        description = "Based on user journeys and preferences"

    else:
        if transition_type == "upgrade":
            headline = f"Popular upgrade: {to_name}"
        elif transition_type == "alternative":
            headline = f"Alternative option: {to_name}"
        else:
            headline = f"Frequently paired with {to_name}"
        description = "Based on community patterns"

    return TransitionStory(
        headline=headline,
        description=description,
        sentiment_change=format_sentiment_change(sentiment_before, sentiment_after),
        evidence_quote=evidence_text if mode == RichnessMode.RICH else None,
    )


class TransitionRecommender:
    """Builds ranked, narrated transition recommendations for one user."""

    def __init__(self, db: Session, now: datetime | None = None):
        self.gateway = LifestyleGateway(db)
        self.now = now
        self.log = get_context_logger(__name__, run_id=new_run_id())

    def recommend(
        self,
        user_id: str,
        entity_id: str | None = None,
        transition_type: str | None = None,
        limit: int | None = None,
        category: str | None = None,
    ) -> TransitionResponse:
        limit = limit or settings.TRANSITIONS_DEFAULT_LIMIT
        gw = self.gateway
        self.log.info(
            f"Request: user={user_id}, entity={entity_id or 'none'}, "
            f"type={transition_type or 'all'}, limit={limit}"
        )

        similar_rows = gw.read_or(
            [],
            gw.get_similar_users,
            user_id,
            settings.TRANSITIONS_MIN_SIMILARITY,
            settings.TRANSITIONS_SIMILAR_USERS_LIMIT,
            description="similar users",
        )
        similar_users = {row.user_b_id: row for row in similar_rows}

        stuff_rows = gw.read_or([], gw.get_stuff, user_id, description="user stuff")
        user_stuff = {item.entity_id: item for item in stuff_rows}
        tracked_ids = list(user_stuff)

        journeys = gw.read_or(
            [],
            gw.find_journeys,
            user_ids=list(similar_users),
            from_entity_id=entity_id,
            from_entity_ids=tracked_ids,
            transition_type=transition_type,
            limit=settings.TRANSITIONS_JOURNEY_LIMIT,
            description="journeys",
        )
        relationships = gw.read_or(
            [],
            gw.find_relationships,
            entity_a_id=entity_id,
            entity_a_ids=tracked_ids,
            relationship_type=transition_type,
            limit=settings.TRANSITIONS_RELATIONSHIP_LIMIT,
            description="global relationships",
        )
        journeys, relationships = self._drop_unknown_types(journeys, relationships)

        entity_specific = (
            sum(1 for j in journeys if j.from_entity_id == entity_id) if entity_id else len(journeys)
        )
        richness = classify_context(len(similar_users), len(journeys), entity_specific, len(relationships))
        self.log.info(
            f"Found {len(similar_users)} similar users, {len(journeys)} journeys, "
            f"{len(relationships)} global relationships: mode {richness.mode.value}"
        )

        entities = EntityDetailsCache(gw)
        relationships_by_pair = index_relationships(relationships)
        recommendations: list[TransitionRecommendation] = []

        if richness.mode != RichnessMode.SPARSE:
            groups = group_journeys(journeys, similar_users, user_stuff, category, self.now)
            apply_consensus_boost(groups, relationships_by_pair)
            for group in rank_groups(list(groups.values()), limit):
                recommendations.append(self._personal(group, richness, entities, relationships_by_pair))

        if len(recommendations) < limit:
            self._backfill(recommendations, relationships, entities, limit)

        self.log.info(f"Returning {len(recommendations)} recommendations in {richness.mode.value} mode")
        return TransitionResponse(
            recommendations=recommendations,
            metadata=self._metadata(richness, entity_id),
        )

    def _drop_unknown_types(self, journeys: Sequence, relationships: Sequence) -> tuple[list, list]:
        """Skip stored rows whose type the response cannot represent."""
        known_journeys = [j for j in journeys if j.transition_type in TRANSITION_TYPES]
        known_relationships = [r for r in relationships if r.relationship_type in TRANSITION_TYPES]
        skipped = len(journeys) - len(known_journeys) + len(relationships) - len(known_relationships)
        if skipped:
            self.log.warning(f"Skipped {skipped} journey/relationship rows with an unknown transition type")
        return known_journeys, known_relationships

    def _personal(
        self,
        group: JourneyGroup,
        richness: ContextRichness,
        entities: EntityDetailsCache,
        relationships_by_pair: dict,
    ) -> TransitionRecommendation:
        from_entity = entities.get(group.from_entity_id)
        to_entity = entities.get(group.to_entity_id)
        rel = relationships_by_pair.get(group.key)

        return TransitionRecommendation(
            id=f"{group.from_entity_id}-{group.to_entity_id}",
            from_entity=from_entity,
            to_entity=to_entity,
            transition_type=group.transition_type,
            weighted_score=group.total_score,
            relevance_score=group.relevance_score,
            story=build_story(
                richness.mode,
                from_entity.name,
                to_entity.name,
                group.transition_type,
                group.contributing_users,
                group.avg_sentiment_before,
                group.avg_sentiment_after,
                group.best_evidence,
                group.lifestyle_factors,
            ),
            confidence=CONFIDENCE_BY_MODE[richness.mode],
            consensus_count=(rel.consensus_count if rel is not None and rel.consensus_count else group.journey_count),
        )

    def _backfill(
        self,
        recommendations: list[TransitionRecommendation],
        relationships: Sequence,
        entities: EntityDetailsCache,
        limit: int,
    ) -> None:
        """Append global-consensus pairs not already present until ``limit`` is reached."""
        seen = {(r.from_entity.id, r.to_entity.id) for r in recommendations}

        for rel in relationships:
            if len(recommendations) >= limit:
                break
            key = (rel.entity_a_id, rel.entity_b_id)
            if key in seen:
                continue

            from_entity = entities.get(rel.entity_a_id)
            to_entity = entities.get(rel.entity_b_id)
            count = rel.consensus_count or 1
            avg_confidence = rel.avg_confidence if rel.avg_confidence is not None else DEFAULT_CONFIDENCE

            recommendations.append(
                TransitionRecommendation(
                    id=f"{rel.entity_a_id}-{rel.entity_b_id}",
                    from_entity=from_entity,
                    to_entity=to_entity,
                    transition_type=rel.relationship_type,
                    weighted_score=avg_confidence * consensus_multiplier(count),
                    relevance_score=0.0,
                    story=build_story(
                        RichnessMode.SPARSE,
                        from_entity.name,
                        to_entity.name,
                        rel.relationship_type,
                        count,
                    ),
                    confidence="low",
                    consensus_count=count,
                )
            )
            seen.add(key)

    @staticmethod
    def _metadata(richness: ContextRichness, entity_id: str | None) -> TransitionMetadata:
        return TransitionMetadata(
            richness_mode=richness.mode.value,
            similar_users_found=richness.similar_users_count,
            journeys_analyzed=richness.total_journeys,
            global_relationships_available=richness.global_consensus_count,
            entity_specific=bool(entity_id),
        )


def get_personalized_transitions(
    db: Session,
    user_id: str,
    entity_id: str | None = None,
    transition_type: str | None = None,
    limit: int | None = None,
    category: str | None = None,
) -> TransitionResponse:
    """Convenience wrapper creating a fresh recommender (and entity cache) per call."""
    return TransitionRecommender(db).recommend(
        user_id,
        entity_id=entity_id,
        transition_type=transition_type,
        limit=limit,
        category=category,
    )
