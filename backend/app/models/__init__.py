from app.models.entity import Entity
from app.models.journey import TRANSITION_TYPES, ProductRelationship, UserEntityJourney
from app.models.review import Review
from app.models.similarity import UserSimilarity
from app.models.stuff import UserRoutine, UserStuff
from app.models.user import Profile

__all__ = [
    "Profile",
    "Entity",
    "UserStuff",
    "UserRoutine",
    "Review",
    "UserEntityJourney",
    "ProductRelationship",
    "UserSimilarity",
    "TRANSITION_TYPES",
]
