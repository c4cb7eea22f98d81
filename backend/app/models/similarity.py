from datetime import datetime

from sqlalchemy import JSON, DateTime, Float, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base
from app.models.base import new_id


class UserSimilarity(Base):
    """Latest similarity calculation for an ordered user pair. No history is kept."""

    __tablename__ = "user_similarities"
    __table_args__ = (
        UniqueConstraint(
            "user_a_id", "user_b_id", "similarity_type", name="unique_user_pair_similarity"
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_a_id: Mapped[str] = mapped_column(ForeignKey("profiles.id"), index=True)
    user_b_id: Mapped[str] = mapped_column(ForeignKey("profiles.id"), index=True)
    similarity_type: Mapped[str] = mapped_column(String(20), default="lifestyle")

    # Scores
    similarity_score: Mapped[float] = mapped_column(Float, default=0.0)
    overall_score: Mapped[float] = mapped_column(Float, default=0.0, index=True)
    lifestyle_score: Mapped[float] = mapped_column(Float, default=0.0)
    category_overlap: Mapped[float] = mapped_column(Float, default=0.0)
    journey_alignment: Mapped[float] = mapped_column(Float, default=0.0)

    # Explainability payloads
    stuff_overlap: Mapped[dict | None] = mapped_column(JSON)  # {score, common_entities, common_categories}
    routines_similarity: Mapped[dict | None] = mapped_column(JSON)  # {score, common_categories}
    calculation_metadata: Mapped[dict | None] = mapped_column(JSON)  # tiers, weights_used, scores

    last_calculated: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
