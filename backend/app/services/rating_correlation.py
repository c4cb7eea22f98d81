"""
Rating-pattern correlation between two users.

The similarity calculator treats this as an opaque capability: anything
callable as ``correlation(user_a_id, user_b_id) -> float`` in [0, 1] can be
injected. The default implementation is a Pearson correlation over the
entities both users reviewed, with significance weighting:

    adjusted = pearson * (overlap / (overlap + shrinkage))

Negative correlations carry no lifestyle affinity and are clamped to 0.
"""

import math
from typing import Protocol

import numpy as np
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.services.gateway import LifestyleGateway

settings = get_settings()


class RatingCorrelation(Protocol):
    def __call__(self, user_a_id: str, user_b_id: str) -> float: ...


class PearsonRatingCorrelation:
    """Significance-weighted Pearson correlation over shared review ratings."""

    def __init__(
        self,
        db: Session,
        min_overlap: int | None = None,
        shrinkage_factor: int | None = None,
    ):
        self.gateway = LifestyleGateway(db)
        self.min_overlap = min_overlap or settings.RATING_MIN_OVERLAP
        self.shrinkage_factor = shrinkage_factor or settings.RATING_SHRINKAGE_FACTOR

    def __call__(self, user_a_id: str, user_b_id: str) -> float:
        ratings_a = self.gateway.get_ratings(user_a_id)
        ratings_b = self.gateway.get_ratings(user_b_id)

        overlap = set(ratings_a) & set(ratings_b)
        if len(overlap) < self.min_overlap:
            return 0.0

        raw = self._pearson_correlation(ratings_a, ratings_b, overlap)
        if raw is None or math.isnan(raw):
            return 0.0

        adjusted = raw * (len(overlap) / (len(overlap) + self.shrinkage_factor))
        return max(0.0, min(1.0, adjusted))

    @staticmethod
    def _pearson_correlation(
        ratings_a: dict[str, float],
        ratings_b: dict[str, float],
        overlap: set[str],
    ) -> float | None:
        """
        Pearson correlation on overlapping entities.

        Returns:
            Correlation coefficient (-1 to 1), or None if undefined
        """
        if not overlap:
            return None

        keys = sorted(overlap)
        vals_a = np.array([ratings_a[k] for k in keys])
        vals_b = np.array([ratings_b[k] for k in keys])

        centered_a = vals_a - vals_a.mean()
        centered_b = vals_b - vals_b.mean()

        denominator = math.sqrt(float((centered_a**2).sum())) * math.sqrt(float((centered_b**2).sum()))
        if denominator == 0:
            return None

        return float((centered_a * centered_b).sum()) / denominator
