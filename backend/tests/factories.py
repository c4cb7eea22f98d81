"""Row builders shared by the engine tests."""

from sqlalchemy.orm import Session

from app.models.entity import Entity
from app.models.journey import ProductRelationship, UserEntityJourney
from app.models.review import Review
from app.models.similarity import UserSimilarity
from app.models.stuff import UserRoutine, UserStuff
from app.models.user import Profile


def add_stuff(db: Session, user: Profile, entities: list[Entity], status: str = "currently_using",
              sentiment: int | None = 3, category: str | None = "skincare") -> None:
    for entity in entities:
        db.add(UserStuff(user_id=user.id, entity_id=entity.id, status=status,
                         sentiment_score=sentiment, category=category))
    db.commit()


def add_reviews(db: Session, user: Profile, entities: list[Entity], rating: int = 4,
                category: str | None = "skincare") -> None:
    for entity in entities:
        db.add(Review(user_id=user.id, entity_id=entity.id, rating=rating, category=category))
    db.commit()


def add_routine(db: Session, user: Profile, category: str = "morning", frequency: str = "daily",
                steps: list | None = None) -> None:
    db.add(UserRoutine(user_id=user.id, category=category, frequency=frequency, steps=steps or []))
    db.commit()


def add_journey(db: Session, user: Profile, from_entity: Entity, to_entity: Entity,
                transition_type: str = "upgrade", confidence: float = 0.8, **kwargs) -> UserEntityJourney:
    journey = UserEntityJourney(
        user_id=user.id,
        from_entity_id=from_entity.id,
        to_entity_id=to_entity.id,
        transition_type=transition_type,
        confidence=confidence,
        **kwargs,
    )
    db.add(journey)
    db.commit()
    return journey


def add_similarity(db: Session, user: Profile, other: Profile, score: float, **kwargs) -> UserSimilarity:
    row = UserSimilarity(
        user_a_id=user.id,
        user_b_id=other.id,
        similarity_type="lifestyle",
        similarity_score=score,
        overall_score=score,
        **kwargs,
    )
    db.add(row)
    db.commit()
    return row


def add_relationship(db: Session, from_entity: Entity, to_entity: Entity, count: int,
                     relationship_type: str = "upgrade", avg_confidence: float = 0.6) -> ProductRelationship:
    rel = ProductRelationship(
        entity_a_id=from_entity.id,
        entity_b_id=to_entity.id,
        relationship_type=relationship_type,
        consensus_count=count,
        avg_confidence=avg_confidence,
    )
    db.add(rel)
    db.commit()
    return rel
