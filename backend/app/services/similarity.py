"""
Lifestyle similarity calculation.

For a target user and a bounded pool of candidates:

1. Classify both users' data richness; the pair uses the poorer tier
2. Work out which behavioural dimensions both users have data for
3. Allocate dimension weights for that tier and availability
4. Score only the dimensions with non-zero weight
5. overall = Σ weight × score, lifestyle = 0.5 × routines + 0.5 × categories
6. Upsert pairs scoring above the storage threshold

A failing candidate or a failing write is logged and skipped; the batch
carries on.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.logging import get_context_logger, new_run_id
from app.services import dimensions
from app.services.gateway import LifestyleGateway
from app.services.rating_correlation import PearsonRatingCorrelation, RatingCorrelation
from app.services.richness import (
    RichnessClassification,
    RichnessMode,
    classify_user,
    min_richness,
)
from app.services.weights import (
    CATEGORY_PREFERENCES,
    DIMENSIONS,
    JOURNEY_ALIGNMENT,
    RATING_PATTERNS,
    ROUTINES_SIMILARITY,
    STUFF_OVERLAP,
    DataAvailability,
    allocate_weights,
    redistribute_failed,
)

settings = get_settings()

SIMILARITY_TYPE = "lifestyle"
LIFESTYLE_ROUTINES_WEIGHT = 0.5
LIFESTYLE_CATEGORY_WEIGHT = 0.5


@dataclass
class PairSimilarity:
    """Result of comparing the target user with one candidate."""

    user_id: str
    candidate_id: str
    richness_a: RichnessMode
    richness_b: RichnessMode
    effective_mode: RichnessMode
    weights: dict[str, float]
    scores: dict[str, float]
    details: dict[str, dict] = field(default_factory=dict)
    rating_failed: bool = False

    @property
    def overall_score(self) -> float:
        return sum(self.weights[d] * self.scores.get(d, 0.0) for d in DIMENSIONS)

    @property
    def lifestyle_score(self) -> float:
        return (
            self.scores.get(ROUTINES_SIMILARITY, 0.0) * LIFESTYLE_ROUTINES_WEIGHT
            + self.scores.get(CATEGORY_PREFERENCES, 0.0) * LIFESTYLE_CATEGORY_WEIGHT
        )

    def to_row(self, calculated_at: datetime) -> dict:
        overall = self.overall_score
        return {
            "user_a_id": self.user_id,
            "user_b_id": self.candidate_id,
            "similarity_type": SIMILARITY_TYPE,
            "similarity_score": overall,
            "overall_score": overall,
            "lifestyle_score": self.lifestyle_score,
            "category_overlap": self.scores.get(CATEGORY_PREFERENCES, 0.0),
            "journey_alignment": self.scores.get(JOURNEY_ALIGNMENT, 0.0),
            "stuff_overlap": self.details.get(STUFF_OVERLAP) or dimensions.StuffOverlap().to_detail(),
            "routines_similarity": self.details.get(ROUTINES_SIMILARITY)
            or dimensions.RoutinesSimilarity().to_detail(),
            "calculation_metadata": {
                "richness_a": self.richness_a.value,
                "richness_b": self.richness_b.value,
                "effective_mode": self.effective_mode.value,
                "weights_used": dict(self.weights),
                "scores": dict(self.scores),
                "rating_failed": self.rating_failed,
                "calculated_at": calculated_at.isoformat(),
            },
            "last_calculated": calculated_at,
        }


@dataclass
class SimilarityRun:
    """Summary of one calculation run for a target user."""

    user_id: str
    user_mode: RichnessMode
    user_counts: dict[str, int]
    processed_users: int = 0
    saved: list[PairSimilarity] = field(default_factory=list)
    skipped_fresh: int = 0
    failed: int = 0

    def top(self, n: int) -> list[PairSimilarity]:
        return sorted(self.saved, key=lambda p: p.overall_score, reverse=True)[:n]


class LifestyleSimilarityCalculator:
    """
    Scores a user's affinity with candidate users across five weighted dimensions.

    ``rating_correlation`` is injected so tests (and alternative backends) can
    replace the Pearson default. ``rating_failure_mode`` controls what a
    failed correlation call does to the weights: ``"zero"`` keeps them and
    scores the dimension 0, ``"redistribute"`` hands its weight to the
    other active dimensions.
    """

    def __init__(
        self,
        db: Session,
        rating_correlation: RatingCorrelation | None = None,
        rating_failure_mode: str | None = None,
        candidate_pool: int | None = None,
        min_score: float | None = None,
        rating_delay_ms: int | None = None,
    ):
        self.db = db
        self.gateway = LifestyleGateway(db)
        self.rating_correlation = rating_correlation or PearsonRatingCorrelation(db)
        self.rating_failure_mode = rating_failure_mode or settings.RATING_FAILURE_MODE
        self.candidate_pool = candidate_pool or settings.SIMILARITY_CANDIDATE_POOL
        self.min_score = settings.SIMILARITY_MIN_SCORE if min_score is None else min_score
        self.rating_delay_ms = (
            settings.RATING_CORRELATION_DELAY_MS if rating_delay_ms is None else rating_delay_ms
        )
        self.log = get_context_logger(__name__, run_id=new_run_id())

    def calculate_for_user(
        self,
        user_id: str,
        limit: int | None = None,
        force_recalculate: bool = False,
    ) -> SimilarityRun:
        """
        Compare ``user_id`` against up to ``limit`` candidates and persist the results.

        Raises:
            SQLAlchemyError: if the candidate pool itself cannot be read
        """
        limit = limit or settings.SIMILARITY_DEFAULT_LIMIT
        user = classify_user(self.gateway, user_id)
        self.log.info(
            f"Calculating similarities for {user_id}: mode={user.mode.value}, limit={limit}",
            extra={"extra_fields": {"user_id": user_id, **user.counts.to_dict()}},
        )

        run = SimilarityRun(user_id=user_id, user_mode=user.mode, user_counts=user.counts.to_dict())

        candidates = self.gateway.get_candidate_user_ids(user_id, self.candidate_pool)
        if not candidates:
            self.log.info("No candidate users found")
            return run

        fresh: set[str] = set()
        if not force_recalculate and settings.SIMILARITY_REFRESH_HOURS > 0:
            since = datetime.utcnow() - timedelta(hours=settings.SIMILARITY_REFRESH_HOURS)
            fresh = self.gateway.read_or(
                set(),
                self.gateway.get_fresh_similarity_ids,
                user_id,
                since,
                description="fresh similarity rows",
            )

        for candidate_id in candidates:
            if run.processed_users >= limit:
                break
            if candidate_id in fresh:
                run.skipped_fresh += 1
                continue

            run.processed_users += 1
            try:
                pair = self.compare(user, user_id, candidate_id)
            except Exception:
                run.failed += 1
                self.db.rollback()
                self.log.error(f"Similarity failed for {user_id} <-> {candidate_id}", exc_info=True)
                continue

            if pair.overall_score <= self.min_score:
                continue

            if self.save(pair):
                run.saved.append(pair)

        self.log.info(
            f"Completed: {len(run.saved)} similarities saved, "
            f"{run.processed_users} processed, {run.skipped_fresh} fresh, {run.failed} failed"
        )
        return run

    def compare(self, user: RichnessClassification, user_id: str, candidate_id: str) -> PairSimilarity:
        """Score one pair. Only dimensions with non-zero weight are computed."""
        candidate = classify_user(self.gateway, candidate_id)
        effective = min_richness(user.mode, candidate.mode)
        availability = DataAvailability.for_pair(user.counts, candidate.counts)
        weights = allocate_weights(effective, availability)

        self.log.debug(f"Comparing {user_id} <-> {candidate_id}, mode: {effective.value}")

        pair = PairSimilarity(
            user_id=user_id,
            candidate_id=candidate_id,
            richness_a=user.mode,
            richness_b=candidate.mode,
            effective_mode=effective,
            weights=weights,
            scores={},
        )

        if weights[STUFF_OVERLAP] > 0:
            result = self._read_dimension(
                STUFF_OVERLAP,
                lambda: dimensions.score_stuff_overlap(
                    self.gateway.get_stuff(user_id), self.gateway.get_stuff(candidate_id)
                ),
                dimensions.StuffOverlap(),
            )
            pair.scores[STUFF_OVERLAP] = result.score
            pair.details[STUFF_OVERLAP] = result.to_detail()

        if weights[ROUTINES_SIMILARITY] > 0:
            result = self._read_dimension(
                ROUTINES_SIMILARITY,
                lambda: dimensions.score_routines(
                    self.gateway.get_routines(user_id), self.gateway.get_routines(candidate_id)
                ),
                dimensions.RoutinesSimilarity(),
            )
            pair.scores[ROUTINES_SIMILARITY] = result.score
            pair.details[ROUTINES_SIMILARITY] = result.to_detail()

        if weights[JOURNEY_ALIGNMENT] > 0:
            result = self._read_dimension(
                JOURNEY_ALIGNMENT,
                lambda: dimensions.score_journey_alignment(
                    self.gateway.get_journeys(user_id), self.gateway.get_journeys(candidate_id)
                ),
                dimensions.JourneyAlignment(),
            )
            pair.scores[JOURNEY_ALIGNMENT] = result.score
            pair.details[JOURNEY_ALIGNMENT] = result.to_detail()

        if weights[RATING_PATTERNS] > 0:
            pair.scores[RATING_PATTERNS] = self._rating_patterns(pair)

        if weights[CATEGORY_PREFERENCES] > 0:
            pair.scores[CATEGORY_PREFERENCES] = self._read_dimension(
                CATEGORY_PREFERENCES,
                lambda: dimensions.score_category_preferences(
                    self.gateway.get_categories(user_id), self.gateway.get_categories(candidate_id)
                ),
                0.0,
            )

        return pair

    def _read_dimension(self, name: str, compute: Callable, default):
        try:
            return compute()
        except SQLAlchemyError as e:
            self.db.rollback()
            self.log.warning(f"Dimension {name} unavailable, scoring 0: {e}")
            return default

    def _rating_patterns(self, pair: PairSimilarity) -> float:
        try:
            score = float(self.rating_correlation(pair.user_id, pair.candidate_id) or 0.0)
        except Exception as e:
            self.db.rollback()
            self.log.warning(
                f"Rating correlation failed for {pair.user_id} <-> {pair.candidate_id}: {e}"
            )
            pair.rating_failed = True
            if self.rating_failure_mode == "redistribute":
                pair.weights = redistribute_failed(pair.weights, RATING_PATTERNS)
            return 0.0
        finally:
            if self.rating_delay_ms > 0:
                time.sleep(self.rating_delay_ms / 1000)

        return max(0.0, min(1.0, score))

    def save(self, pair: PairSimilarity) -> bool:
        """Upsert one pair. Returns False (after logging) if the write fails."""
        try:
            self.gateway.upsert_similarity(pair.to_row(datetime.utcnow()))
        except SQLAlchemyError:
            self.db.rollback()
            self.log.error(
                f"Error upserting similarity {pair.user_id} <-> {pair.candidate_id}", exc_info=True
            )
            return False
        return True


def calculate_lifestyle_similarity(
    db: Session,
    user_id: str,
    limit: int | None = None,
    force_recalculate: bool = False,
    rating_correlation: RatingCorrelation | None = None,
) -> SimilarityRun:
    """
    Compute and save lifestyle similarities for a single user.

    Args:
        db: Database session
        user_id: User to compute similarities for
        limit: Maximum number of candidates processed
        force_recalculate: Recompute pairs whose stored row is still fresh
        rating_correlation: Override for the rating-pattern capability

    Returns:
        Summary of the run
    """
    calculator = LifestyleSimilarityCalculator(db, rating_correlation=rating_correlation)
    return calculator.calculate_for_user(user_id, limit=limit, force_recalculate=force_recalculate)


def calculate_all_similarities(db: Session, progress_callback=None) -> dict:
    """
    Refresh lifestyle similarities for every profile (batch job).

    Args:
        db: Database session
        progress_callback: Optional function(current, total) for progress updates

    Returns:
        Statistics dict
    """
    gateway = LifestyleGateway(db)
    user_ids = gateway.get_all_user_ids()
    calculator = LifestyleSimilarityCalculator(db)

    stats = {"users_processed": 0, "similarities_computed": 0, "users_failed": 0}
    total = len(user_ids)

    for i, user_id in enumerate(user_ids):
        if progress_callback:
            progress_callback(i + 1, total)
        try:
            run = calculator.calculate_for_user(user_id, limit=calculator.candidate_pool)
        except SQLAlchemyError:
            db.rollback()
            calculator.log.error(f"Similarity run failed for {user_id}", exc_info=True)
            stats["users_failed"] += 1
            continue
        stats["users_processed"] += 1
        stats["similarities_computed"] += len(run.saved)

    return stats
