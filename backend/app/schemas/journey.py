from pydantic import BaseModel, Field

from app.schemas.base import CamelModel
from app.schemas.transition import TransitionType


class JourneyCreate(CamelModel):
    user_id: str
    from_entity_id: str
    to_entity_id: str
    transition_type: TransitionType
    confidence: float = Field(0.5, ge=0, le=1)
    evidence_text: str | None = None
    category: str | None = None
    rating: int | None = Field(None, ge=1, le=5)  # Rating of the origin entity


class JourneyRecorded(BaseModel):
    journey_created: bool
    consensus_count: int
    avg_confidence: float
