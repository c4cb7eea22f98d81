"""
Persistence gateway for the lifestyle engine.

Thin query layer over the platform tables: filtered reads, count-only
queries, and the handful of writes the engine performs. No scoring logic
lives here.
"""

from datetime import datetime
from typing import Any, Callable, Iterable, TypeVar

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.logging import get_logger
from app.models.entity import Entity
from app.models.journey import ProductRelationship, UserEntityJourney
from app.models.review import Review
from app.models.similarity import UserSimilarity
from app.models.stuff import UserRoutine, UserStuff
from app.models.user import Profile

logger = get_logger(__name__)

T = TypeVar("T")


class LifestyleGateway:
    """Read/write access to the tables the similarity and transition engines use."""

    def __init__(self, db: Session):
        self.db = db

    def read_or(self, default: T, fn: Callable[..., T], *args: Any, description: str = "", **kwargs: Any) -> T:
        """
        Run a read, falling back to ``default`` when the database errors.

        The session is rolled back so later reads in the same run still work.
        """
        try:
            return fn(*args, **kwargs)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning(
                f"Read failed ({description or fn.__name__}), using default: {e}",
                extra={"extra_fields": {"read": description or fn.__name__}},
            )
            return default

    # ---- counts -------------------------------------------------------

    def _count(self, model, user_id: str) -> int:
        stmt = select(func.count(model.id)).where(model.user_id == user_id)
        return self.db.execute(stmt).scalar_one() or 0

    def count_stuff(self, user_id: str) -> int:
        return self._count(UserStuff, user_id)

    def count_journeys(self, user_id: str) -> int:
        return self._count(UserEntityJourney, user_id)

    def count_routines(self, user_id: str) -> int:
        return self._count(UserRoutine, user_id)

    def count_reviews(self, user_id: str) -> int:
        return self._count(Review, user_id)

    # ---- per-user reads ----------------------------------------------

    def get_stuff(self, user_id: str) -> list[UserStuff]:
        return list(self.db.scalars(select(UserStuff).where(UserStuff.user_id == user_id)))

    def get_routines(self, user_id: str) -> list[UserRoutine]:
        return list(self.db.scalars(select(UserRoutine).where(UserRoutine.user_id == user_id)))

    def get_journeys(self, user_id: str) -> list[UserEntityJourney]:
        return list(
            self.db.scalars(select(UserEntityJourney).where(UserEntityJourney.user_id == user_id))
        )

    def get_categories(self, user_id: str) -> list[str]:
        """Categories from the user's reviews followed by their tracked items, nulls dropped."""
        review_categories = self.db.scalars(
            select(Review.category).where(Review.user_id == user_id, Review.category.is_not(None))
        )
        stuff_categories = self.db.scalars(
            select(UserStuff.category).where(UserStuff.user_id == user_id, UserStuff.category.is_not(None))
        )
        return [c for c in review_categories if c] + [c for c in stuff_categories if c]

    def get_ratings(self, user_id: str) -> dict[str, float]:
        """All positive ratings for a user as {entity_id: rating}."""
        rows = self.db.execute(
            select(Review.entity_id, Review.rating).where(Review.user_id == user_id, Review.rating > 0)
        ).all()
        return {entity_id: float(rating) for entity_id, rating in rows}

    # ---- similarity rows ---------------------------------------------

    def get_candidate_user_ids(self, user_id: str, pool_size: int) -> list[str]:
        stmt = select(Profile.id).where(Profile.id != user_id).order_by(Profile.created_at).limit(pool_size)
        return list(self.db.scalars(stmt))

    def get_all_user_ids(self) -> list[str]:
        return list(self.db.scalars(select(Profile.id).order_by(Profile.created_at)))

    def get_fresh_similarity_ids(self, user_id: str, since: datetime, similarity_type: str = "lifestyle") -> set[str]:
        """IDs of users whose stored similarity with ``user_id`` was calculated after ``since``."""
        stmt = select(UserSimilarity.user_b_id).where(
            UserSimilarity.user_a_id == user_id,
            UserSimilarity.similarity_type == similarity_type,
            UserSimilarity.last_calculated >= since,
        )
        return set(self.db.scalars(stmt))

    def upsert_similarity(self, values: dict[str, Any]) -> UserSimilarity:
        """
        Insert or overwrite the row keyed by (user_a_id, user_b_id, similarity_type).

        Commits immediately so each pair is an independent write.
        """
        existing = self.db.scalars(
            select(UserSimilarity).where(
                UserSimilarity.user_a_id == values["user_a_id"],
                UserSimilarity.user_b_id == values["user_b_id"],
                UserSimilarity.similarity_type == values["similarity_type"],
            )
        ).first()

        if existing is None:
            row = UserSimilarity(**values)
            self.db.add(row)
        else:
            row = existing
            for key, value in values.items():
                setattr(row, key, value)

        self.db.commit()
        return row

    def get_similar_users(self, user_id: str, min_score: float, limit: int) -> list[UserSimilarity]:
        stmt = (
            select(UserSimilarity)
            .where(
                UserSimilarity.user_a_id == user_id,
                UserSimilarity.overall_score > min_score,
            )
            .order_by(UserSimilarity.overall_score.desc())
            .limit(limit)
        )
        return list(self.db.scalars(stmt))

    # ---- transition graph --------------------------------------------

    def find_journeys(
        self,
        user_ids: Iterable[str] | None = None,
        from_entity_id: str | None = None,
        from_entity_ids: Iterable[str] | None = None,
        transition_type: str | None = None,
        limit: int = 100,
    ) -> list[UserEntityJourney]:
        stmt = select(UserEntityJourney)
        if user_ids:
            stmt = stmt.where(UserEntityJourney.user_id.in_(list(user_ids)))
        if from_entity_id:
            stmt = stmt.where(UserEntityJourney.from_entity_id == from_entity_id)
        elif from_entity_ids:
            stmt = stmt.where(UserEntityJourney.from_entity_id.in_(list(from_entity_ids)))
        if transition_type:
            stmt = stmt.where(UserEntityJourney.transition_type == transition_type)
        stmt = stmt.order_by(UserEntityJourney.confidence.desc(), UserEntityJourney.created_at.desc()).limit(limit)
        return list(self.db.scalars(stmt))

    def find_relationships(
        self,
        entity_a_id: str | None = None,
        entity_a_ids: Iterable[str] | None = None,
        relationship_type: str | None = None,
        limit: int = 50,
    ) -> list[ProductRelationship]:
        stmt = select(ProductRelationship).where(ProductRelationship.consensus_count > 0)
        if entity_a_id:
            stmt = stmt.where(ProductRelationship.entity_a_id == entity_a_id)
        elif entity_a_ids:
            stmt = stmt.where(ProductRelationship.entity_a_id.in_(list(entity_a_ids)))
        if relationship_type:
            stmt = stmt.where(ProductRelationship.relationship_type == relationship_type)
        stmt = stmt.order_by(ProductRelationship.consensus_count.desc()).limit(limit)
        return list(self.db.scalars(stmt))

    def get_entity(self, entity_id: str) -> Entity | None:
        return self.db.get(Entity, entity_id)

    # ---- journey recording -------------------------------------------

    def find_user_journey(self, user_id: str, from_entity_id: str, to_entity_id: str) -> UserEntityJourney | None:
        return self.db.scalars(
            select(UserEntityJourney).where(
                UserEntityJourney.user_id == user_id,
                UserEntityJourney.from_entity_id == from_entity_id,
                UserEntityJourney.to_entity_id == to_entity_id,
            )
        ).first()

    def find_relationship(self, entity_a_id: str, entity_b_id: str, relationship_type: str) -> ProductRelationship | None:
        return self.db.scalars(
            select(ProductRelationship).where(
                ProductRelationship.entity_a_id == entity_a_id,
                ProductRelationship.entity_b_id == entity_b_id,
                ProductRelationship.relationship_type == relationship_type,
            )
        ).first()
