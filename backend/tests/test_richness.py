"""Tests for data-richness classification."""

import pytest
from sqlalchemy.exc import SQLAlchemyError

from app.services.gateway import LifestyleGateway
from app.services.richness import (
    RichnessMode,
    UserDataCounts,
    classify_context,
    classify_counts,
    classify_user,
    min_richness,
)
from tests.factories import add_journey, add_reviews, add_routine, add_stuff


class TestProfileRichness:
    """Test the per-user tiers."""

    def test_exact_rich_boundary(self):
        """stuff=20, journeys=5, routines=1 is the smallest RICH profile."""
        counts = UserDataCounts(stuff_count=20, journeys_count=5, routines_count=1)
        assert classify_counts(counts) == RichnessMode.RICH

    @pytest.mark.parametrize(
        "counts",
        [
            UserDataCounts(stuff_count=19, journeys_count=5, routines_count=1),
            UserDataCounts(stuff_count=20, journeys_count=4, routines_count=1),
            UserDataCounts(stuff_count=20, journeys_count=5, routines_count=0),
        ],
    )
    def test_one_below_rich_drops_to_moderate(self, counts):
        """Enough stuff for MODERATE, so any single shortfall lands there."""
        assert classify_counts(counts) == RichnessMode.MODERATE

    def test_reviews_alone_reach_moderate(self):
        assert classify_counts(UserDataCounts(reviews_count=5)) == RichnessMode.MODERATE

    def test_sparse_below_both_moderate_thresholds(self):
        counts = UserDataCounts(stuff_count=4, journeys_count=10, routines_count=3, reviews_count=4)
        assert classify_counts(counts) == RichnessMode.SPARSE

    def test_empty_profile_is_sparse(self):
        assert classify_counts(UserDataCounts()) == RichnessMode.SPARSE


class TestMinimumRule:
    """A pair is only as rich as its poorer member."""

    def test_rich_with_sparse(self):
        assert min_richness(RichnessMode.RICH, RichnessMode.SPARSE) == RichnessMode.SPARSE
        assert min_richness(RichnessMode.SPARSE, RichnessMode.RICH) == RichnessMode.SPARSE

    def test_rich_with_moderate(self):
        assert min_richness(RichnessMode.RICH, RichnessMode.MODERATE) == RichnessMode.MODERATE

    def test_same_tier(self):
        assert min_richness(RichnessMode.RICH, RichnessMode.RICH) == RichnessMode.RICH


class TestClassifyUser:
    """Test classification from live counts."""

    def test_counts_from_database(self, db, make_profile, make_entities):
        user = make_profile()
        other = make_profile()
        entities = make_entities(25)
        add_stuff(db, user, entities)
        add_reviews(db, user, entities[:3])
        add_routine(db, user, "morning")
        add_routine(db, user, "evening")
        for i in range(6):
            add_journey(db, user, entities[i], entities[i + 1])

        result = classify_user(LifestyleGateway(db), user.id)

        assert result.mode == RichnessMode.RICH
        assert result.counts == UserDataCounts(
            stuff_count=25, journeys_count=6, routines_count=2, reviews_count=3
        )
        assert classify_user(LifestyleGateway(db), other.id).mode == RichnessMode.SPARSE

    def test_failed_count_reads_as_zero(self, db, make_profile, make_entities):
        """A count query error degrades the tier instead of raising."""
        user = make_profile()
        add_stuff(db, user, make_entities(6))
        gateway = LifestyleGateway(db)

        def broken(user_id):
            raise SQLAlchemyError("connection reset")

        gateway.count_stuff = broken

        result = classify_user(gateway, user.id)

        assert result.counts.stuff_count == 0
        assert result.mode == RichnessMode.SPARSE


class TestContextRichness:
    """Test the per-request tiers used by the recommender."""

    def test_rich_needs_users_and_journeys(self):
        assert classify_context(5, 10, 0, 0).mode == RichnessMode.RICH
        assert classify_context(5, 9, 0, 0).mode == RichnessMode.MODERATE
        assert classify_context(4, 50, 0, 0).mode == RichnessMode.MODERATE

    def test_moderate_on_any_signal(self):
        assert classify_context(2, 0, 0, 0).mode == RichnessMode.MODERATE
        assert classify_context(0, 3, 0, 0).mode == RichnessMode.MODERATE
        assert classify_context(0, 0, 0, 5).mode == RichnessMode.MODERATE

    def test_sparse(self):
        result = classify_context(1, 2, 1, 4)
        assert result.mode == RichnessMode.SPARSE
        assert result.similar_users_count == 1
        assert result.total_journeys == 2
        assert result.entity_specific_journeys == 1
        assert result.global_consensus_count == 4
