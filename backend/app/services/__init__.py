from app.services.gateway import LifestyleGateway
from app.services.journeys import RecordedJourney, rating_to_sentiment, record_journey
from app.services.rating_correlation import PearsonRatingCorrelation, RatingCorrelation
from app.services.richness import (
    ContextRichness,
    RichnessClassification,
    RichnessMode,
    UserDataCounts,
    classify_context,
    classify_counts,
    classify_user,
    min_richness,
)
from app.services.similarity import (
    LifestyleSimilarityCalculator,
    PairSimilarity,
    SimilarityRun,
    calculate_all_similarities,
    calculate_lifestyle_similarity,
)
from app.services.transitions import (
    EntityDetailsCache,
    TransitionRecommender,
    get_personalized_transitions,
)
from app.services.weights import DataAvailability, allocate_weights, redistribute_failed

__all__ = [
    "LifestyleGateway",
    # Richness
    "RichnessMode",
    "UserDataCounts",
    "RichnessClassification",
    "ContextRichness",
    "classify_counts",
    "classify_user",
    "classify_context",
    "min_richness",
    # Weights
    "DataAvailability",
    "allocate_weights",
    "redistribute_failed",
    # Similarity
    "RatingCorrelation",
    "PearsonRatingCorrelation",
    "LifestyleSimilarityCalculator",
    "PairSimilarity",
    "SimilarityRun",
    "calculate_lifestyle_similarity",
    "calculate_all_similarities",
    # Transitions
    "EntityDetailsCache",
    "TransitionRecommender",
    "get_personalized_transitions",
    # Journeys
    "RecordedJourney",
    "record_journey",
    "rating_to_sentiment",
]
