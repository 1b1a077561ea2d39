"""
Tests for engine events

Subscribers hear about activations, reflections and recalibrations; a failing
subscriber never undoes the write that triggered it.
"""
import pytest

from core.events import (
    EVENT_CHAKRA_ACTIVATED,
    EVENT_CHAKRA_RECALIBRATED,
    EVENT_REFLECTION_SUBMITTED,
    emit,
    subscribe,
    unsubscribe,
)
from services import progress_engine
from services.energy_points import get_profile

from fixtures.energy_fixtures import THURSDAY


@pytest.fixture
def received():
    events = []

    def handler(**kwargs):
        events.append(kwargs)

    yield events, handler


def _listen(event_name, handler):
    subscribe(event_name, handler)
    return lambda: unsubscribe(event_name, handler)


class TestEmitter:
    def test_emit_without_subscribers(self):
        emit("nothing.listens")

    def test_subscribe_and_unsubscribe(self, received):
        events, handler = received
        subscribe("test.event", handler)
        emit("test.event", value=1)
        unsubscribe("test.event", handler)
        emit("test.event", value=2)

        assert events == [{"value": 1}]

    def test_failing_handler_is_contained(self, received):
        events, handler = received

        def broken(**kwargs):
            raise RuntimeError("subscriber bug")

        subscribe("test.event", broken)
        subscribe("test.event", handler)
        try:
            emit("test.event", value=3)
        finally:
            unsubscribe("test.event", broken)
            unsubscribe("test.event", handler)

        assert events == [{"value": 3}]


class TestEngineEvents:
    def test_activation_event(self, db_session, user_id, received):
        events, handler = received
        stop = _listen(EVENT_CHAKRA_ACTIVATED, handler)
        try:
            progress_engine.activate_chakra(db_session, user_id, 2, now=THURSDAY)
            progress_engine.activate_chakra(db_session, user_id, 2, now=THURSDAY)
        finally:
            stop()

        assert events == [{"user_id": str(user_id), "chakra_index": 2, "points": 20}]

    def test_reflection_event(self, db_session, user_id, received):
        events, handler = received
        stop = _listen(EVENT_REFLECTION_SUBMITTED, handler)
        try:
            result = progress_engine.submit_reflection(
                db_session, user_id, "I feel calm and grateful for this quiet morning.", now=THURSDAY,
            )
        finally:
            stop()

        assert len(events) == 1
        assert events[0]["points"] == result.points_earned
        assert events[0]["chakras"] == list(result.activated_chakras)

    def test_recalibration_event(self, db_session, user_id, received):
        events, handler = received
        stop = _listen(EVENT_CHAKRA_RECALIBRATED, handler)
        try:
            progress_engine.recalibrate_missed_days(db_session, user_id, "Catching up.", now=THURSDAY)
        finally:
            stop()

        assert events == [{"user_id": str(user_id), "days": [0, 1, 2, 3], "points": 8}]

    def test_broken_subscriber_keeps_the_credit(self, db_session, user_id):
        def broken(**kwargs):
            raise RuntimeError("subscriber bug")

        stop = _listen(EVENT_CHAKRA_ACTIVATED, broken)
        try:
            outcome = progress_engine.activate_chakra(db_session, user_id, 1, now=THURSDAY)
        finally:
            stop()

        assert outcome.points == 15
        assert get_profile(db_session, user_id).energy_points == 15
