from typing import Literal

from pydantic import BaseModel, Field

from app.schemas.base import CamelModel

TransitionType = Literal["upgrade", "alternative", "complementary"]
ConfidenceLabel = Literal["high", "medium", "low"]
RichnessLabel = Literal["RICH", "MODERATE", "SPARSE"]


class TransitionRequest(CamelModel):
    user_id: str | None = None
    entity_id: str | None = None
    transition_type: TransitionType | None = None
    category: str | None = None  # Boosts journeys in this category
    limit: int = Field(10, ge=1, le=50)


class EntitySummary(BaseModel):
    id: str
    name: str
    type: str
    image_url: str | None = None


class TransitionStory(BaseModel):
    headline: str
    description: str
    sentiment_change: str | None = None
    evidence_quote: str | None = None


class TransitionRecommendation(BaseModel):
    id: str
    from_entity: EntitySummary
    to_entity: EntitySummary
    transition_type: TransitionType
    weighted_score: float
    relevance_score: float
    story: TransitionStory
    confidence: ConfidenceLabel
    consensus_count: int


class TransitionMetadata(BaseModel):
    """Why a result set looks the way it does."""

    richness_mode: RichnessLabel
    similar_users_found: int = 0
    journeys_analyzed: int = 0
    global_relationships_available: int = 0
    entity_specific: bool = False


class TransitionResponse(BaseModel):
    recommendations: list[TransitionRecommendation] = []
    metadata: TransitionMetadata
