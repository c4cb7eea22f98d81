from app.schemas.journey import JourneyCreate, JourneyRecorded
from app.schemas.similarity import SimilarityRequest, SimilarityResponse, SimilaritySummary, UserCounts
from app.schemas.transition import (
    EntitySummary,
    TransitionMetadata,
    TransitionRecommendation,
    TransitionRequest,
    TransitionResponse,
    TransitionStory,
)

__all__ = [
    "SimilarityRequest",
    "SimilarityResponse",
    "SimilaritySummary",
    "UserCounts",
    "TransitionRequest",
    "TransitionResponse",
    "TransitionRecommendation",
    "TransitionMetadata",
    "TransitionStory",
    "EntitySummary",
    "JourneyCreate",
    "JourneyRecorded",
]
