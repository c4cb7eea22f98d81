"""Tests for lifestyle similarity calculation."""

import pytest
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from app.models.similarity import UserSimilarity
from app.services.rating_correlation import PearsonRatingCorrelation
from app.services.richness import RichnessMode
from app.services.similarity import (
    LifestyleSimilarityCalculator,
    calculate_all_similarities,
    calculate_lifestyle_similarity,
)
from app.services.weights import DIMENSIONS, RATING_PATTERNS
from tests.factories import add_reviews, add_routine, add_stuff


def constant_correlation(value: float):
    def correlation(user_a_id: str, user_b_id: str) -> float:
        return value

    return correlation


def failing_correlation(user_a_id: str, user_b_id: str) -> float:
    raise ConnectionError("correlation service unavailable")


def stored_rows(db, user_id):
    return list(db.scalars(select(UserSimilarity).where(UserSimilarity.user_a_id == user_id)))


@pytest.fixture
def sparse_pair(db, make_profile, make_entities):
    """Two users with a couple of same-category reviews and nothing else."""
    user = make_profile()
    other = make_profile()
    entities = make_entities(2)
    add_reviews(db, user, entities)
    add_reviews(db, other, entities)
    return user, other


class TestPearsonCorrelation:
    """Test the default rating-pattern correlation."""

    def test_perfect_positive_correlation(self):
        ratings = {"a": 5.0, "b": 4.0, "c": 3.0, "d": 2.0}
        correlation = PearsonRatingCorrelation._pearson_correlation(ratings, dict(ratings), set(ratings))
        assert correlation == pytest.approx(1.0, abs=0.001)

    def test_perfect_negative_correlation(self):
        user_ratings = {"a": 5.0, "b": 4.0, "c": 3.0}
        neighbor_ratings = {"a": 3.0, "b": 4.0, "c": 5.0}
        correlation = PearsonRatingCorrelation._pearson_correlation(
            user_ratings, neighbor_ratings, set(user_ratings)
        )
        assert correlation == pytest.approx(-1.0, abs=0.001)

    def test_constant_ratings_are_undefined(self):
        user_ratings = {"a": 5.0, "b": 1.0}
        neighbor_ratings = {"a": 3.0, "b": 3.0}
        assert PearsonRatingCorrelation._pearson_correlation(
            user_ratings, neighbor_ratings, set(user_ratings)
        ) is None

    def test_significance_weighting_from_database(self, db, make_profile, make_entities):
        """Three shared ratings in perfect agreement: 1.0 × 3 / (3 + 5)."""
        user = make_profile()
        other = make_profile()
        entities = make_entities(3)
        for entity, rating in zip(entities, [5, 3, 1]):
            add_reviews(db, user, [entity], rating=rating)
            add_reviews(db, other, [entity], rating=rating)

        correlation = PearsonRatingCorrelation(db, min_overlap=2, shrinkage_factor=5)

        assert correlation(user.id, other.id) == pytest.approx(0.375)

    def test_negative_correlation_clamped_to_zero(self, db, make_profile, make_entities):
        user = make_profile()
        other = make_profile()
        entities = make_entities(3)
        for entity, (a, b) in zip(entities, [(5, 1), (3, 3), (1, 5)]):
            add_reviews(db, user, [entity], rating=a)
            add_reviews(db, other, [entity], rating=b)

        assert PearsonRatingCorrelation(db)(user.id, other.id) == 0.0

    def test_too_little_overlap(self, db, make_profile, make_entities):
        user = make_profile()
        other = make_profile()
        entities = make_entities(1)
        add_reviews(db, user, entities)
        add_reviews(db, other, entities)

        assert PearsonRatingCorrelation(db, min_overlap=2)(user.id, other.id) == 0.0


class TestSimilarityCalculator:
    """Test the weighted aggregation and persistence."""

    def test_sparse_pair_score(self, db, sparse_pair):
        """SPARSE weights: 0.6 × rating + 0.4 × category cosine."""
        user, other = sparse_pair

        run = calculate_lifestyle_similarity(db, user.id, rating_correlation=constant_correlation(0.5))

        assert run.user_mode == RichnessMode.SPARSE
        assert run.processed_users == 1
        assert len(run.saved) == 1
        pair = run.saved[0]
        assert pair.effective_mode == RichnessMode.SPARSE
        assert pair.overall_score == pytest.approx(0.6 * 0.5 + 0.4 * 1.0)
        assert pair.lifestyle_score == pytest.approx(0.5)

    def test_row_metadata_explains_score(self, db, sparse_pair):
        """Stored overall score equals the dot product of the stored weights and scores."""
        user, other = sparse_pair

        calculate_lifestyle_similarity(db, user.id, rating_correlation=constant_correlation(0.5))

        rows = stored_rows(db, user.id)
        assert len(rows) == 1
        row = rows[0]
        metadata = row.calculation_metadata
        assert row.user_b_id == other.id
        assert row.similarity_type == "lifestyle"
        assert metadata["effective_mode"] == "SPARSE"
        assert metadata["richness_a"] == "SPARSE"
        assert metadata["rating_failed"] is False
        recomputed = sum(
            metadata["weights_used"][d] * metadata["scores"].get(d, 0.0) for d in DIMENSIONS
        )
        assert row.overall_score == pytest.approx(recomputed)
        assert row.stuff_overlap == {"score": 0.0, "common_entities": [], "common_categories": []}

    def test_deterministic(self, db, sparse_pair):
        user, _ = sparse_pair
        first = calculate_lifestyle_similarity(
            db, user.id, rating_correlation=constant_correlation(0.3), force_recalculate=True
        )
        second = calculate_lifestyle_similarity(
            db, user.id, rating_correlation=constant_correlation(0.3), force_recalculate=True
        )

        assert first.saved[0].overall_score == second.saved[0].overall_score

    def test_moderate_pair_uses_stuff_overlap(self, db, make_profile, make_entities):
        user = make_profile()
        other = make_profile()
        entities = make_entities(6)
        add_stuff(db, user, entities[:5])
        add_stuff(db, other, entities[1:6])
        add_routine(db, user)

        run = calculate_lifestyle_similarity(db, user.id, rating_correlation=constant_correlation(0.0))

        pair = run.saved[0]
        assert pair.effective_mode == RichnessMode.MODERATE
        assert pair.weights["routines_similarity"] == 0
        assert sum(pair.weights.values()) == pytest.approx(1.0)
        # 4 of 6 shared, all with matching status and sentiment
        assert pair.scores["stuff_overlap"] == 1.0
        assert pair.details["stuff_overlap"]["common_categories"] == ["skincare"]

    def test_upsert_overwrites_previous_row(self, db, sparse_pair):
        user, _ = sparse_pair

        calculate_lifestyle_similarity(db, user.id, rating_correlation=constant_correlation(0.2))
        calculate_lifestyle_similarity(
            db, user.id, rating_correlation=constant_correlation(0.9), force_recalculate=True
        )

        rows = stored_rows(db, user.id)
        assert len(rows) == 1
        assert rows[0].overall_score == pytest.approx(0.6 * 0.9 + 0.4)

    def test_fresh_rows_are_skipped(self, db, sparse_pair):
        user, _ = sparse_pair

        calculate_lifestyle_similarity(db, user.id, rating_correlation=constant_correlation(0.5))
        run = calculate_lifestyle_similarity(db, user.id, rating_correlation=constant_correlation(0.5))

        assert run.skipped_fresh == 1
        assert run.processed_users == 0
        assert run.saved == []

    def test_low_scores_are_not_stored(self, db, make_profile):
        user = make_profile()
        make_profile()

        run = calculate_lifestyle_similarity(db, user.id, rating_correlation=constant_correlation(0.0))

        assert run.processed_users == 1
        assert run.saved == []
        assert stored_rows(db, user.id) == []

    def test_limit_caps_processed_candidates(self, db, make_profile):
        user = make_profile()
        for _ in range(4):
            make_profile()

        run = calculate_lifestyle_similarity(db, user.id, limit=2, rating_correlation=constant_correlation(1.0))

        assert run.processed_users == 2
        assert len(run.saved) == 2


class TestFailureHandling:
    """Failures degrade the result instead of aborting the batch."""

    def test_rating_failure_scores_zero_and_keeps_weights(self, db, sparse_pair):
        user, _ = sparse_pair
        calculator = LifestyleSimilarityCalculator(
            db, rating_correlation=failing_correlation, rating_failure_mode="zero"
        )

        run = calculator.calculate_for_user(user.id)

        pair = run.saved[0]
        assert pair.rating_failed is True
        assert pair.scores[RATING_PATTERNS] == 0.0
        assert pair.weights[RATING_PATTERNS] == pytest.approx(0.6)
        assert pair.overall_score == pytest.approx(0.4)

    def test_rating_failure_can_redistribute(self, db, sparse_pair):
        user, _ = sparse_pair
        calculator = LifestyleSimilarityCalculator(
            db, rating_correlation=failing_correlation, rating_failure_mode="redistribute"
        )

        run = calculator.calculate_for_user(user.id)

        pair = run.saved[0]
        assert pair.weights[RATING_PATTERNS] == 0.0
        assert pair.weights["category_preferences"] == pytest.approx(1.0)
        assert pair.overall_score == pytest.approx(1.0)
        row = stored_rows(db, user.id)[0]
        assert row.calculation_metadata["weights_used"][RATING_PATTERNS] == 0.0
        assert row.calculation_metadata["rating_failed"] is True

    def test_candidate_failure_does_not_abort(self, db, make_profile, make_entities):
        user = make_profile()
        bad = make_profile()
        good = make_profile()
        calculator = LifestyleSimilarityCalculator(db, rating_correlation=constant_correlation(1.0))
        compare = calculator.compare

        def flaky(classification, user_id, candidate_id):
            if candidate_id == bad.id:
                raise RuntimeError("boom")
            return compare(classification, user_id, candidate_id)

        calculator.compare = flaky

        run = calculator.calculate_for_user(user.id)

        assert run.failed == 1
        assert [p.candidate_id for p in run.saved] == [good.id]

    def test_write_failure_does_not_block_other_rows(self, db, make_profile):
        user = make_profile()
        first = make_profile()
        second = make_profile()
        calculator = LifestyleSimilarityCalculator(db, rating_correlation=constant_correlation(1.0))
        upsert = calculator.gateway.upsert_similarity

        def flaky_upsert(values):
            if values["user_b_id"] == first.id:
                raise SQLAlchemyError("deadlock detected")
            return upsert(values)

        calculator.gateway.upsert_similarity = flaky_upsert

        run = calculator.calculate_for_user(user.id)

        assert [p.candidate_id for p in run.saved] == [second.id]
        assert [r.user_b_id for r in stored_rows(db, user.id)] == [second.id]

    def test_dimension_read_failure_scores_zero(self, db, sparse_pair):
        user, _ = sparse_pair
        calculator = LifestyleSimilarityCalculator(db, rating_correlation=constant_correlation(0.5))

        def broken(user_id):
            raise SQLAlchemyError("statement timeout")

        calculator.gateway.get_categories = broken

        run = calculator.calculate_for_user(user.id)

        assert run.saved[0].scores["category_preferences"] == 0.0
        assert run.saved[0].overall_score == pytest.approx(0.3)


class TestBatchRefresh:
    """Test the all-users batch job."""

    def test_every_profile_is_processed(self, db, make_profile):
        make_profile()
        make_profile()
        make_profile()
        progress = []

        stats = calculate_all_similarities(db, progress_callback=lambda i, n: progress.append((i, n)))

        assert stats["users_processed"] == 3
        assert stats["users_failed"] == 0
        assert progress == [(1, 3), (2, 3), (3, 3)]
