from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.database import get_db
from app.core.logging import get_logger
from app.schemas.similarity import SimilarityRequest, SimilarityResponse, SimilaritySummary, UserCounts
from app.services.similarity import calculate_lifestyle_similarity

router = APIRouter()
logger = get_logger(__name__)
settings = get_settings()


@router.post("/calculate", response_model=SimilarityResponse)
def calculate_similarity(request: SimilarityRequest, db: Session = Depends(get_db)):
    """
    Recalculate lifestyle similarity between a user and candidate users.

    Results are upserted into the similarity table; the response summarises
    the run and the strongest matches.
    """
    if not request.user_id:
        return JSONResponse(status_code=400, content={"success": False, "error": "userId is required"})

    try:
        run = calculate_lifestyle_similarity(
            db,
            user_id=request.user_id,
            limit=request.limit,
            force_recalculate=request.force_recalculate,
        )
    except Exception as e:
        logger.error(f"Similarity calculation failed for {request.user_id}", exc_info=True)
        return JSONResponse(status_code=500, content={"success": False, "error": str(e)})

    return SimilarityResponse(
        success=True,
        similarities_calculated=len(run.saved),
        processed_users=run.processed_users,
        user_mode=run.user_mode.value,
        user_counts=UserCounts(**run.user_counts),
        top_similarities=[
            SimilaritySummary(
                candidate_id=pair.candidate_id,
                overall_score=pair.overall_score,
                lifestyle_score=pair.lifestyle_score,
                mode=pair.effective_mode.value,
            )
            for pair in run.top(settings.SIMILARITY_TOP_RESULTS)
        ],
    )
