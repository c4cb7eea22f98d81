from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.schemas.journey import JourneyCreate, JourneyRecorded
from app.services.journeys import record_journey

router = APIRouter()


@router.post("", response_model=JourneyRecorded, status_code=status.HTTP_201_CREATED)
def create_journey(journey: JourneyCreate, db: Session = Depends(get_db)):
    """
    Record that a user moved from one entity to another.

    Also counts the move towards the global consensus for that entity pair.
    """
    result = record_journey(
        db,
        user_id=journey.user_id,
        from_entity_id=journey.from_entity_id,
        to_entity_id=journey.to_entity_id,
        transition_type=journey.transition_type,
        confidence=journey.confidence,
        evidence_text=journey.evidence_text,
        category=journey.category,
        rating=journey.rating,
    )
    return JourneyRecorded(
        journey_created=result.journey_created,
        consensus_count=result.consensus_count,
        avg_confidence=result.avg_confidence,
    )
