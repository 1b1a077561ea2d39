"""
Energy Router

POST /v1/energy/reflections                       submit a reflection
GET  /v1/energy/reflections                       reflection history
POST /v1/energy/chakras/{chakra_index}/activate   activate one chakra for today
POST /v1/energy/recalibrate                       catch up this week's missed days
GET  /v1/energy/progress                          streak, points, today's chakras

"Already activated" and "nothing to recalibrate" are normal 200 responses.
Validation problems are 422; a store outage is 503 and safe to retry.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, Query
from sqlalchemy.orm import Session

from core.database import get_db
from core.auth import get_current_user
from models import UserProfile
from schemas import (
    ChakraActivateResponse,
    ProgressResponse,
    RecalibrateRequest,
    RecalibrateResponse,
    ReflectionEntryResponse,
    ReflectionSubmit,
    ReflectionSubmitResponse,
)
from services import progress_engine
from services.energy_errors import translate_store_errors

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/energy", tags=["energy"])


def _commit(db: Session, user_id) -> None:
    """Commit before responding: a failed commit must reach the client as a retryable 503."""
    with translate_store_errors(user_id, "commit"):
        db.commit()


@router.post("/reflections", response_model=ReflectionSubmitResponse)
def submit_reflection(
    payload: ReflectionSubmit,
    idempotency_key: Optional[str] = Header(default=None, alias="Idempotency-Key"),
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Score a reflection and credit its energy points.

    Send the same Idempotency-Key when retrying a submission whose outcome is
    unknown; the original result comes back and nothing is credited twice.
    """
    result = progress_engine.submit_reflection(
        db, current_user.user_id, payload.text, submission_key=idempotency_key,
    )
    _commit(db, current_user.user_id)
    return ReflectionSubmitResponse(
        points_earned=result.points_earned,
        depth_category=result.depth_category,
        feedback_message=result.feedback_message,
        activated_chakras=list(result.activated_chakras),
        newly_activated_chakras=list(result.newly_activated_chakras),
        themes=list(result.themes),
        emotional_depth=result.emotional_depth,
        self_awareness=result.self_awareness,
        new_streak=result.new_streak,
        energy_points=result.energy_points,
        replayed=result.replayed,
    )


@router.get("/reflections", response_model=List[ReflectionEntryResponse])
def get_reflections(
    limit: Optional[int] = Query(default=None, ge=1, le=500),
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Most recent reflections first. The reflection text itself is not stored."""
    return progress_engine.list_reflections(db, current_user.user_id, limit=limit)


@router.post("/chakras/{chakra_index}/activate", response_model=ChakraActivateResponse)
def activate_chakra(
    chakra_index: int,
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Activate one chakra for today. Repeating the call the same day is harmless."""
    outcome = progress_engine.activate_chakra(db, current_user.user_id, chakra_index)
    _commit(db, current_user.user_id)
    if outcome.already_activated:
        return ChakraActivateResponse(
            chakra_index=outcome.chakra_index,
            chakra_name=outcome.chakra_name,
            already_activated=True,
            activated_chakras=list(outcome.activated_chakras),
        )
    return ChakraActivateResponse(
        chakra_index=outcome.chakra_index,
        chakra_name=outcome.chakra_name,
        already_activated=False,
        points_earned=outcome.points,
        new_streak=outcome.new_streak,
        energy_points=outcome.energy_points,
        activated_chakras=list(outcome.activated_chakras),
    )


@router.post("/recalibrate", response_model=RecalibrateResponse)
def recalibrate(
    payload: RecalibrateRequest,
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Credit this week's missed days, once each."""
    outcome = progress_engine.recalibrate_missed_days(db, current_user.user_id, payload.reflection_text)
    _commit(db, current_user.user_id)
    if outcome.none_needed:
        return RecalibrateResponse(none_needed=True)
    return RecalibrateResponse(
        recalibrated_days=list(outcome.recalibrated_days),
        points_earned=outcome.points,
        new_streak=outcome.new_streak,
        energy_points=outcome.energy_points,
    )


@router.get("/progress", response_model=ProgressResponse)
def get_progress(
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    state = progress_engine.get_progress(db, current_user.user_id)
    return ProgressResponse(
        activated_today=list(state.activated_today),
        activated_this_week=list(state.activated_this_week),
        current_streak=state.current_streak,
        longest_streak=state.longest_streak,
        energy_points=state.energy_points,
        is_at_risk=state.is_at_risk,
        message=state.message,
        celebration=state.celebration,
    )
