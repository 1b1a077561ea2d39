"""
Progress & Energy Engine

The operations the app calls:

    submit_reflection         reflection text -> points, depth feedback, chakras
    activate_chakra           one chakra, once per day
    recalibrate_missed_days   catch-up credit for this week's missed days
    get_progress              derived progress state
    list_reflections          recent reflection history

Each call works inside the caller's session/transaction. Validation happens
before any store access.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple
from uuid import UUID
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.config import settings
from core.events import emit, EVENT_REFLECTION_SUBMITTED
from models import ReflectionEntry
from services.activation_ledger import (
    ActivationOutcome,
    activate,
    activated_chakras_on,
    list_activations,
    record_activation,
    refresh_streak,
    validate_user_id,
)
from services.chakra_streaks import compute_streak
from services.energy_calendar import ensure_aware, local_day, utc_now
from services.energy_errors import EnergyValidationError, translate_store_errors
from services.energy_points import get_or_create_profile, increment_user_points
from services.energy_rewards import map_to_reward
from services.recalibration import RecalibrationOutcome, activated_weekdays, recalibrate
from services.reflection_scoring import analyze, count_words, depth_category, depth_feedback

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReflectionResult:
    points_earned: int
    depth_category: str
    feedback_message: str
    activated_chakras: Tuple[int, ...]
    newly_activated_chakras: Tuple[int, ...]
    themes: Tuple[str, ...]
    emotional_depth: float
    self_awareness: float
    new_streak: int
    energy_points: int
    replayed: bool = False  # Same submission key seen before; nothing new was credited


@dataclass(frozen=True)
class ProgressState:
    activated_today: Tuple[int, ...]
    activated_this_week: Tuple[int, ...]
    current_streak: int
    longest_streak: int
    energy_points: int
    is_at_risk: bool
    message: str
    celebration: Optional[str]


def validate_reflection_text(text: Optional[str]) -> str:
    if text is None:
        raise EnergyValidationError("Reflection text is required", field="text")
    minimum = settings.REFLECTION_MIN_LENGTH
    if len(text.strip()) < minimum:
        raise EnergyValidationError(
            f"Please share a little more (at least {minimum} characters)",
            field="text",
        )
    return text


def _replay(db: Session, entry: ReflectionEntry) -> ReflectionResult:
    profile = get_or_create_profile(db, entry.user_id)
    return ReflectionResult(
        points_earned=entry.points_earned,
        depth_category=entry.depth_category,
        feedback_message=depth_feedback(entry.emotional_depth),
        activated_chakras=tuple(entry.chakras_activated or []),
        newly_activated_chakras=(),
        themes=tuple(entry.themes or []),
        emotional_depth=entry.emotional_depth,
        self_awareness=entry.self_awareness,
        new_streak=profile.current_streak,
        energy_points=profile.energy_points,
        replayed=True,
    )


def _find_submission(db: Session, user_id: UUID, submission_key: str) -> Optional[ReflectionEntry]:
    with translate_store_errors(user_id, "find_submission"):
        return db.query(ReflectionEntry).filter(
            ReflectionEntry.user_id == user_id,
            ReflectionEntry.submission_key == submission_key,
        ).first()


def submit_reflection(
    db: Session,
    user_id,
    text: str,
    now: Optional[datetime] = None,
    submission_key: Optional[str] = None,
) -> ReflectionResult:
    """
    Score a reflection, credit its points and activate the chakras it touches.

    Chakras already activated today are left alone; the reflection's own
    points are credited once per submission. A repeated submission_key
    returns the original result without crediting again.
    """
    user_id = validate_user_id(user_id)
    text = validate_reflection_text(text)
    now = ensure_aware(now or utc_now())

    if submission_key:
        existing = _find_submission(db, user_id, submission_key)
        if existing is not None:
            return _replay(db, existing)

    analysis = analyze(text)
    reward = map_to_reward(
        analysis,
        floor=settings.REFLECTION_POINTS_FLOOR,
        cap=settings.REFLECTION_POINTS_CAP,
    )
    category = depth_category(analysis.emotional_depth)

    entry = ReflectionEntry(
        user_id=user_id,
        submission_key=submission_key or None,
        created_at=now,
        word_count=count_words(text),
        dominant_theme=analysis.dominant_theme,
        themes=list(analysis.themes),
        emotional_depth=analysis.emotional_depth,
        self_awareness=analysis.self_awareness,
        depth_category=category,
        points_earned=reward.points,
        chakras_activated=list(reward.activated_chakras),
    )
    with translate_store_errors(user_id, "insert_reflection"):
        try:
            with db.begin_nested():
                db.add(entry)
                db.flush()
        except IntegrityError:
            # Concurrent retry with the same submission key won the insert.
            return _replay(db, _find_submission(db, user_id, submission_key))

    newly_activated = tuple(
        index for index in reward.activated_chakras
        if record_activation(db, user_id, index, now) is not None
    )

    energy_points = increment_user_points(db, user_id, reward.points)
    streak = refresh_streak(db, user_id, now)

    logger.info(
        f"Reflection scored for {user_id}: {category}, +{reward.points} points",
        extra={"extra_fields": {
            "user_id": str(user_id),
            "emotional_depth": analysis.emotional_depth,
            "self_awareness": analysis.self_awareness,
            "themes": list(analysis.themes),
            "points": reward.points,
            "newly_activated_chakras": list(newly_activated),
        }},
    )
    emit(
        EVENT_REFLECTION_SUBMITTED,
        user_id=str(user_id),
        points=reward.points,
        chakras=list(reward.activated_chakras),
    )

    return ReflectionResult(
        points_earned=reward.points,
        depth_category=category,
        feedback_message=depth_feedback(analysis.emotional_depth),
        activated_chakras=reward.activated_chakras,
        newly_activated_chakras=newly_activated,
        themes=analysis.themes,
        emotional_depth=analysis.emotional_depth,
        self_awareness=analysis.self_awareness,
        new_streak=streak.current,
        energy_points=energy_points,
    )


def activate_chakra(db: Session, user_id, chakra_index, now: Optional[datetime] = None) -> ActivationOutcome:
    """Direct activation (no reflection): 10 + index * 5 points, once per day."""
    return activate(db, user_id, chakra_index, now=now)


def recalibrate_missed_days(
    db: Session,
    user_id,
    reflection_text: str,
    now: Optional[datetime] = None,
) -> RecalibrationOutcome:
    """Recalibrate this week's gaps, reading what is already covered from the ledger."""
    user_id = validate_user_id(user_id)
    if reflection_text is None or not reflection_text.strip():
        raise EnergyValidationError("A reflection is required to recalibrate", field="reflection_text")
    now = ensure_aware(now or utc_now())
    return recalibrate(db, user_id, activated_weekdays(db, user_id, now), reflection_text, now=now)


def get_progress(db: Session, user_id, now: Optional[datetime] = None) -> ProgressState:
    """Progress derived from the ledger; only energy_points comes from the profile."""
    user_id = validate_user_id(user_id)
    now = ensure_aware(now or utc_now())
    profile = get_or_create_profile(db, user_id)
    streak = compute_streak(list_activations(db, user_id), now)

    return ProgressState(
        activated_today=activated_chakras_on(db, user_id, local_day(now)),
        activated_this_week=activated_weekdays(db, user_id, now),
        current_streak=streak.current,
        longest_streak=max(streak.longest, profile.longest_streak or 0),
        energy_points=profile.energy_points,
        is_at_risk=streak.is_at_risk,
        message=streak.message,
        celebration=streak.celebration,
    )


def list_reflections(db: Session, user_id, limit: Optional[int] = None) -> List[ReflectionEntry]:
    user_id = validate_user_id(user_id)
    limit = limit or settings.REFLECTION_HISTORY_LIMIT
    with translate_store_errors(user_id, "list_reflections"):
        return db.query(ReflectionEntry).filter(
            ReflectionEntry.user_id == user_id,
        ).order_by(ReflectionEntry.created_at.desc()).limit(limit).all()
