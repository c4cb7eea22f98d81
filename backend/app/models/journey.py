"""
Entity-to-entity transition data.

``UserEntityJourney`` rows are per user and intentionally duplicated across
users for the same (from, to) pair; ``ProductRelationship`` is the
population-level aggregate of those pairs.
"""

from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base
from app.models.base import new_id

TRANSITION_TYPES = ("upgrade", "alternative", "complementary")


class UserEntityJourney(Base):
    """One user's observed move from one entity to another."""

    __tablename__ = "user_entity_journeys"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(ForeignKey("profiles.id"), index=True)
    from_entity_id: Mapped[str] = mapped_column(ForeignKey("entities.id"), index=True)
    to_entity_id: Mapped[str] = mapped_column(ForeignKey("entities.id"), index=True)

    transition_type: Mapped[str] = mapped_column(String(20), index=True)
    from_sentiment: Mapped[int | None] = mapped_column(Integer)
    to_sentiment: Mapped[int | None] = mapped_column(Integer)
    confidence: Mapped[float | None] = mapped_column(Float)  # 0-1
    evidence_text: Mapped[str | None] = mapped_column(Text)
    category: Mapped[str | None] = mapped_column(String(100))

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)

    def __repr__(self) -> str:
        return f"<UserEntityJourney {self.from_entity_id} -> {self.to_entity_id} ({self.transition_type})>"


class ProductRelationship(Base):
    """Cross-user consensus for an entity pair and relationship type."""

    __tablename__ = "product_relationships"
    __table_args__ = (
        UniqueConstraint(
            "entity_a_id", "entity_b_id", "relationship_type", name="uq_product_relationship"
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    entity_a_id: Mapped[str] = mapped_column(ForeignKey("entities.id"), index=True)
    entity_b_id: Mapped[str] = mapped_column(ForeignKey("entities.id"), index=True)
    relationship_type: Mapped[str] = mapped_column(String(20), index=True)

    consensus_count: Mapped[int] = mapped_column(Integer, default=1, index=True)
    avg_confidence: Mapped[float | None] = mapped_column(Float)
    evidence_text: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    last_confirmed_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    def __repr__(self) -> str:
        return (
            f"<ProductRelationship {self.entity_a_id} -> {self.entity_b_id} "
            f"{self.relationship_type} x{self.consensus_count}>"
        )
