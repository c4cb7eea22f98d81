"""
Per-user inventory ("my stuff") and routines.

Both are written by user actions elsewhere on the platform; the engine only
reads them.
"""

from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base
from app.models.base import new_id


class UserStuff(Base):
    """An entity a user tracks, with their status and sentiment towards it."""

    __tablename__ = "user_stuff"
    __table_args__ = (UniqueConstraint("user_id", "entity_id", name="unique_user_stuff_entity"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(ForeignKey("profiles.id"), index=True)
    entity_id: Mapped[str] = mapped_column(ForeignKey("entities.id"), index=True)

    status: Mapped[str] = mapped_column(String(50))  # currently_using, wishlist, used_before, stopped...
    sentiment_score: Mapped[int | None] = mapped_column(Integer)  # signed, roughly -5..5
    category: Mapped[str | None] = mapped_column(String(100))

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class UserRoutine(Base):
    """A recurring routine; steps may reference entities via ``entity_id``."""

    __tablename__ = "user_routines"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(ForeignKey("profiles.id"), index=True)

    category: Mapped[str] = mapped_column(String(100))
    frequency: Mapped[str | None] = mapped_column(String(50))  # daily, weekly...
    steps: Mapped[list | None] = mapped_column(JSON, default=list)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
