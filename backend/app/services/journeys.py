"""
Journey recording and consensus tracking.

A user's journey is stored once per (user, from, to). Every newly stored
journey is folded into the global ``product_relationships`` consensus for
its (from, to, type): the count goes up by one and ``avg_confidence`` is
kept as a running mean.
"""

import math
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session

from app.core.logging import get_logger
from app.models.journey import ProductRelationship, UserEntityJourney
from app.services.gateway import LifestyleGateway

logger = get_logger(__name__)

MAX_SENTIMENT = 5
UPGRADE_SENTIMENT_GAIN = 2


def rating_to_sentiment(rating: int) -> int:
    """Map a 1-5 rating onto the signed sentiment scale, halves rounded up (4 -> 3, 2 -> -2)."""
    return math.floor((rating - 3) * 2.5 + 0.5)


@dataclass
class RecordedJourney:
    journey_created: bool
    consensus_count: int
    avg_confidence: float


def record_journey(
    db: Session,
    user_id: str,
    from_entity_id: str,
    to_entity_id: str,
    transition_type: str,
    confidence: float = 0.5,
    evidence_text: str | None = None,
    category: str | None = None,
    rating: int | None = None,
) -> RecordedJourney:
    """
    Store a journey and update the global consensus for its entity pair.

    A journey the user already has is left untouched and does not count
    towards consensus a second time.
    """
    gateway = LifestyleGateway(db)

    existing = gateway.find_user_journey(user_id, from_entity_id, to_entity_id)
    rel = gateway.find_relationship(from_entity_id, to_entity_id, transition_type)

    if existing is not None:
        logger.info(f"Journey {from_entity_id} -> {to_entity_id} already recorded for {user_id}")
        return RecordedJourney(
            journey_created=False,
            consensus_count=rel.consensus_count if rel else 0,
            avg_confidence=(rel.avg_confidence or 0.0) if rel else 0.0,
        )

    from_sentiment = to_sentiment = None
    if rating is not None:
        from_sentiment = rating_to_sentiment(rating)
        to_sentiment = (
            min(from_sentiment + UPGRADE_SENTIMENT_GAIN, MAX_SENTIMENT)
            if transition_type == "upgrade"
            else from_sentiment
        )

    db.add(
        UserEntityJourney(
            user_id=user_id,
            from_entity_id=from_entity_id,
            to_entity_id=to_entity_id,
            transition_type=transition_type,
            from_sentiment=from_sentiment,
            to_sentiment=to_sentiment,
            confidence=confidence,
            evidence_text=evidence_text,
            category=category,
        )
    )

    if rel is None:
        rel = ProductRelationship(
            entity_a_id=from_entity_id,
            entity_b_id=to_entity_id,
            relationship_type=transition_type,
            consensus_count=1,
            avg_confidence=confidence,
            evidence_text=evidence_text,
        )
        db.add(rel)
    else:
        current_count = rel.consensus_count or 1
        current_avg = rel.avg_confidence if rel.avg_confidence is not None else 0.5
        rel.consensus_count = current_count + 1
        rel.avg_confidence = (current_avg * current_count + confidence) / rel.consensus_count
        rel.last_confirmed_at = datetime.utcnow()

    db.commit()
    logger.info(
        f"Recorded journey {from_entity_id} -> {to_entity_id} ({transition_type}); "
        f"consensus {rel.consensus_count}, avg confidence {rel.avg_confidence:.2f}"
    )
    return RecordedJourney(
        journey_created=True,
        consensus_count=rel.consensus_count,
        avg_confidence=rel.avg_confidence,
    )
