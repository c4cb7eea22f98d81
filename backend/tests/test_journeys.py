"""Tests for journey recording and consensus tracking."""

import pytest
from sqlalchemy import select

from app.models.journey import ProductRelationship, UserEntityJourney
from app.services.journeys import rating_to_sentiment, record_journey


class TestRatingToSentiment:
    @pytest.mark.parametrize("rating, sentiment", [(1, -5), (2, -2), (3, 0), (4, 3), (5, 5)])
    def test_scale(self, rating, sentiment):
        assert rating_to_sentiment(rating) == sentiment


class TestRecordJourney:
    """Test journey storage and the consensus running average."""

    def test_first_journey_creates_consensus(self, db, make_profile, make_entities):
        user = make_profile()
        origin, target = make_entities(2)

        result = record_journey(db, user.id, origin.id, target.id, "upgrade", confidence=0.8, rating=2)

        assert result.journey_created is True
        assert result.consensus_count == 1
        assert result.avg_confidence == pytest.approx(0.8)
        journey = db.scalars(select(UserEntityJourney)).one()
        assert journey.from_sentiment == -2
        assert journey.to_sentiment == 0

    def test_upgrade_sentiment_is_capped(self, db, make_profile, make_entities):
        user = make_profile()
        origin, target = make_entities(2)

        record_journey(db, user.id, origin.id, target.id, "upgrade", rating=5)

        journey = db.scalars(select(UserEntityJourney)).one()
        assert journey.to_sentiment == 5

    def test_four_star_upgrade_rounds_half_up(self, db, make_profile, make_entities):
        user = make_profile()
        origin, target = make_entities(2)

        record_journey(db, user.id, origin.id, target.id, "upgrade", rating=4)

        journey = db.scalars(select(UserEntityJourney)).one()
        assert journey.from_sentiment == 3
        assert journey.to_sentiment == 5

    def test_alternative_keeps_sentiment(self, db, make_profile, make_entities):
        user = make_profile()
        origin, target = make_entities(2)

        record_journey(db, user.id, origin.id, target.id, "alternative", rating=4)

        journey = db.scalars(select(UserEntityJourney)).one()
        assert journey.from_sentiment == journey.to_sentiment == 3

    def test_other_users_increment_running_average(self, db, make_profile, make_entities):
        origin, target = make_entities(2)

        record_journey(db, make_profile().id, origin.id, target.id, "upgrade", confidence=0.9)
        result = record_journey(db, make_profile().id, origin.id, target.id, "upgrade", confidence=0.3)

        assert result.consensus_count == 2
        assert result.avg_confidence == pytest.approx(0.6)
        assert len(db.scalars(select(UserEntityJourney)).all()) == 2
        assert len(db.scalars(select(ProductRelationship)).all()) == 1

    def test_repeat_journey_is_not_counted_twice(self, db, make_profile, make_entities):
        user = make_profile()
        origin, target = make_entities(2)

        record_journey(db, user.id, origin.id, target.id, "upgrade", confidence=0.9)
        result = record_journey(db, user.id, origin.id, target.id, "upgrade", confidence=0.1)

        assert result.journey_created is False
        assert result.consensus_count == 1
        assert result.avg_confidence == pytest.approx(0.9)

    def test_types_are_tracked_separately(self, db, make_profile, make_entities):
        origin, target = make_entities(2)

        record_journey(db, make_profile().id, origin.id, target.id, "upgrade")
        result = record_journey(db, make_profile().id, origin.id, target.id, "complementary")

        assert result.consensus_count == 1
        assert len(db.scalars(select(ProductRelationship)).all()) == 2
