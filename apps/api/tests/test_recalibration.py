"""
Tests for the Recalibration Service

Catch-up credit for this week's missed days: max(5, days * 2) points, each
missed day credited at most once.
"""
from datetime import date

import pytest

from models import CATEGORY_RECALIBRATION, ChakraActivation
from services.activation_ledger import activate, insert_activation
from services.energy_errors import EnergyValidationError
from services.energy_points import get_profile
from services.recalibration import (
    NoRecalibrationNeeded,
    RecalibrationSuccess,
    activated_weekdays,
    missed_days,
    recalibrate,
    recalibration_points,
)

from fixtures.energy_fixtures import SATURDAY, SUNDAY, THURSDAY, count_recalibrations

REFLECTION = "I drifted this week, but I am ready to return to my practice."


class TestMissedDays:
    def test_thursday_with_sunday_and_monday(self):
        assert missed_days({0, 1}, THURSDAY, include_today=False) == [2, 3]

    def test_including_today(self):
        assert missed_days({0, 1}, THURSDAY, include_today=True) == [2, 3, 4]

    def test_sunday_has_nothing_to_miss(self):
        assert missed_days(set(), SUNDAY, include_today=False) == []

    def test_full_week_activated(self):
        assert missed_days(range(7), SATURDAY, include_today=True) == []

    def test_default_excludes_today(self):
        assert missed_days({0, 1}, THURSDAY) == [2, 3]


class TestRecalibrationPoints:
    @pytest.mark.parametrize("days,points", [(1, 5), (2, 5), (3, 6), (6, 12)])
    def test_points(self, days, points):
        assert recalibration_points(days) == points


class TestRecalibrate:
    def test_two_missed_days(self, db_session, user_id):
        """{0, 1} activated, today is Thursday: days 2 and 3 are recalibrated for 5 points"""
        outcome = recalibrate(db_session, user_id, {0, 1}, REFLECTION, now=THURSDAY)

        assert isinstance(outcome, RecalibrationSuccess)
        assert not outcome.none_needed
        assert outcome.recalibrated_days == (2, 3)
        assert outcome.points == 5
        assert outcome.energy_points == 5
        assert outcome.new_streak == 5
        assert count_recalibrations(db_session, user_id) == 2

    def test_rows_carry_the_missed_dates(self, db_session, user_id):
        recalibrate(db_session, user_id, {0, 1}, REFLECTION, now=THURSDAY)

        rows = db_session.query(ChakraActivation).filter(
            ChakraActivation.user_id == user_id,
        ).order_by(ChakraActivation.activity_date).all()
        assert [(r.chakra_index, r.activity_date) for r in rows] == [
            (2, date(2026, 10, 20)),
            (3, date(2026, 10, 21)),
        ]
        assert all(r.category == CATEGORY_RECALIBRATION for r in rows)
        assert all(r.reflection_text == REFLECTION for r in rows)

    def test_repeat_is_idempotent(self, db_session, user_id):
        recalibrate(db_session, user_id, {0, 1}, REFLECTION, now=THURSDAY)
        outcome = recalibrate(db_session, user_id, {0, 1}, REFLECTION, now=THURSDAY)

        assert isinstance(outcome, NoRecalibrationNeeded)
        assert outcome.none_needed
        assert count_recalibrations(db_session, user_id) == 2
        assert get_profile(db_session, user_id).energy_points == 5

    def test_partial_retry_only_credits_new_days(self, db_session, user_id):
        """A call that died after writing day 2 is finished by the retry"""
        insert_activation(db_session, ChakraActivation(
            user_id=user_id,
            chakra_index=2,
            category=CATEGORY_RECALIBRATION,
            completed_at=THURSDAY,
            activity_date=date(2026, 10, 20),
            points_awarded=0,
            reflection_text=REFLECTION,
        ))

        outcome = recalibrate(db_session, user_id, {0, 1}, REFLECTION, now=THURSDAY)

        assert outcome.recalibrated_days == (3,)
        assert outcome.points == 5
        assert count_recalibrations(db_session, user_id) == 2

    def test_nothing_missed(self, db_session, user_id):
        outcome = recalibrate(db_session, user_id, {0, 1, 2, 3}, REFLECTION, now=THURSDAY)

        assert isinstance(outcome, NoRecalibrationNeeded)
        assert outcome.activated_days == (0, 1, 2, 3)
        assert count_recalibrations(db_session, user_id) == 0
        assert get_profile(db_session, user_id) is None

    def test_sunday_needs_nothing(self, db_session, user_id):
        assert recalibrate(db_session, user_id, set(), REFLECTION, now=SUNDAY).none_needed

    def test_six_missed_days(self, db_session, user_id):
        outcome = recalibrate(db_session, user_id, set(), REFLECTION, now=SATURDAY)

        assert outcome.recalibrated_days == (0, 1, 2, 3, 4, 5)
        assert outcome.points == 12
        assert outcome.new_streak == 7

    def test_include_today(self, db_session, user_id):
        outcome = recalibrate(db_session, user_id, {0, 1}, REFLECTION, now=THURSDAY, include_today=True)
        assert outcome.recalibrated_days == (2, 3, 4)
        assert outcome.points == 6

    def test_streak_cached_on_profile(self, db_session, user_id):
        recalibrate(db_session, user_id, {0, 1}, REFLECTION, now=THURSDAY)
        profile = get_profile(db_session, user_id)
        assert profile.current_streak == 5
        assert profile.longest_streak == 5

    def test_next_week_can_recalibrate_again(self, db_session, user_id):
        recalibrate(db_session, user_id, {0, 1}, REFLECTION, now=THURSDAY)
        next_thursday = THURSDAY.replace(day=29)
        outcome = recalibrate(db_session, user_id, {0, 1}, REFLECTION, now=next_thursday)

        assert outcome.recalibrated_days == (2, 3)
        assert count_recalibrations(db_session, user_id) == 4


class TestValidation:
    @pytest.mark.parametrize("text", [None, "", "   "])
    def test_reflection_required(self, db_session, user_id, text):
        with pytest.raises(EnergyValidationError) as exc_info:
            recalibrate(db_session, user_id, {0}, text, now=THURSDAY)
        assert exc_info.value.field == "reflection_text"

    @pytest.mark.parametrize("days", [{7}, {-1}, {0, 9}])
    def test_weekday_out_of_range(self, db_session, user_id, days):
        with pytest.raises(EnergyValidationError):
            recalibrate(db_session, user_id, days, REFLECTION, now=THURSDAY)
        assert count_recalibrations(db_session, user_id) == 0

    @pytest.mark.parametrize("days", [{0, "1"}, ["2", 3], {True}, [0, 1.0], [None]])
    def test_weekday_wrong_type(self, db_session, user_id, days):
        """Mixed or non-integer weekdays are a validation error, not a crash"""
        with pytest.raises(EnergyValidationError) as exc_info:
            recalibrate(db_session, user_id, days, REFLECTION, now=THURSDAY)
        assert exc_info.value.field == "activated_days"
        assert count_recalibrations(db_session, user_id) == 0


class TestActivatedWeekdays:
    def test_reads_this_week_from_the_ledger(self, db_session, user_id):
        activate(db_session, user_id, 5, now=SUNDAY)
        activate(db_session, user_id, 3, now=SUNDAY.replace(day=19))
        # Last week does not count
        activate(db_session, user_id, 2, now=SUNDAY.replace(day=17))

        assert activated_weekdays(db_session, user_id, THURSDAY) == (0, 1)

    def test_recalibrated_days_count_as_covered(self, db_session, user_id):
        recalibrate(db_session, user_id, {0, 1}, REFLECTION, now=THURSDAY)
        assert activated_weekdays(db_session, user_id, THURSDAY) == (2, 3)
