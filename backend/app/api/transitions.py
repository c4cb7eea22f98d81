from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.logging import get_logger
from app.schemas.transition import TransitionRequest, TransitionResponse
from app.services.transitions import get_personalized_transitions

router = APIRouter()
logger = get_logger(__name__)


def _recommend(db: Session, request: TransitionRequest):
    if not request.user_id:
        return JSONResponse(status_code=400, content={"error": "userId is required"})

    try:
        return get_personalized_transitions(
            db,
            user_id=request.user_id,
            entity_id=request.entity_id,
            transition_type=request.transition_type,
            limit=request.limit,
            category=request.category,
        )
    except Exception as e:
        logger.error(f"Transition recommendations failed for {request.user_id}", exc_info=True)
        return JSONResponse(status_code=500, content={"error": str(e)})


@router.post("", response_model=TransitionResponse)
def get_transitions(request: TransitionRequest, db: Session = Depends(get_db)):
    """
    Get personalised "people like you moved from X to Y" recommendations.

    ``metadata.richness_mode`` explains how much data backed the result set.
    """
    return _recommend(db, request)


@router.get("/my-stuff", response_model=TransitionResponse)
def get_transitions_for_my_stuff(
    user_id: str = Query(..., alias="userId"),
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db),
):
    """Recommendations starting from anything the user currently tracks."""
    return _recommend(db, TransitionRequest(user_id=user_id, limit=limit))


@router.get("/entity/{entity_id}", response_model=TransitionResponse)
def get_transitions_for_entity(
    entity_id: str,
    user_id: str = Query(..., alias="userId"),
    limit: int = Query(5, ge=1, le=50),
    db: Session = Depends(get_db),
):
    """Recommendations for moving on from one specific entity."""
    return _recommend(db, TransitionRequest(user_id=user_id, entity_id=entity_id, limit=limit))


@router.get("/upgrades", response_model=TransitionResponse)
def get_upgrade_suggestions(
    user_id: str = Query(..., alias="userId"),
    limit: int = Query(5, ge=1, le=50),
    db: Session = Depends(get_db),
):
    """Upgrade transitions only."""
    return _recommend(db, TransitionRequest(user_id=user_id, transition_type="upgrade", limit=limit))


@router.get("/alternatives", response_model=TransitionResponse)
def get_alternative_suggestions(
    user_id: str = Query(..., alias="userId"),
    limit: int = Query(5, ge=1, le=50),
    db: Session = Depends(get_db),
):
    """Alternative transitions only."""
    return _recommend(db, TransitionRequest(user_id=user_id, transition_type="alternative", limit=limit))


@router.get("/complementary", response_model=TransitionResponse)
def get_complementary_suggestions(
    user_id: str = Query(..., alias="userId"),
    limit: int = Query(5, ge=1, le=50),
    db: Session = Depends(get_db),
):
    """Complementary pairings only."""
    return _recommend(db, TransitionRequest(user_id=user_id, transition_type="complementary", limit=limit))
