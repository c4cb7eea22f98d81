from fastapi import APIRouter

from app.api import journeys, similarity, transitions

router = APIRouter()

router.include_router(similarity.router, prefix="/similarity", tags=["similarity"])
router.include_router(transitions.router, prefix="/transitions", tags=["transitions"])
router.include_router(journeys.router, prefix="/journeys", tags=["journeys"])
