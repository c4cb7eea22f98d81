from pydantic import Field

from app.schemas.base import CamelModel


class SimilarityRequest(CamelModel):
    user_id: str | None = None
    limit: int = Field(20, ge=1, le=100)
    force_recalculate: bool = False


class UserCounts(CamelModel):
    stuff_count: int = 0
    journeys_count: int = 0
    routines_count: int = 0
    reviews_count: int = 0


class SimilaritySummary(CamelModel):
    candidate_id: str
    overall_score: float
    lifestyle_score: float
    mode: str


class SimilarityResponse(CamelModel):
    success: bool = True
    similarities_calculated: int
    processed_users: int
    user_mode: str
    user_counts: UserCounts
    top_similarities: list[SimilaritySummary] = []
