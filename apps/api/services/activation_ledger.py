"""
Activation Ledger

Append-only record of chakra activations: at most one row per
(user, chakra, calendar day, category).

Idempotency lives in the database, not in this module. A read before the
insert is only a fast path; two concurrent requests can both pass it. The
insert runs in a SAVEPOINT and a unique-constraint violation is reported as
AlreadyActivatedToday, with no points awarded. Every write is therefore safe
to repeat after a timeout of unknown outcome.
"""

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime
from typing import List, Optional, Tuple, Union
from uuid import UUID
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.events import emit, EVENT_CHAKRA_ACTIVATED
from models import ChakraActivation, CATEGORY_ACTIVATION, ACTIVATION_CATEGORIES
from services.chakra_streaks import StreakInfo, cache_streak, compute_streak
from services.energy_calendar import ensure_aware, local_day, utc_now
from services.energy_errors import EnergyValidationError, LedgerInvariantError, translate_store_errors
from services.energy_points import increment_user_points
from services.energy_rewards import (
    chakra_activation_points,
    chakra_name,
    is_valid_chakra_index,
    map_to_reward,
)
from services.reflection_scoring import EmotionalAnalysis

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Outcomes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ActivationSuccess:
    chakra_index: int
    chakra_name: str
    points: int
    new_streak: int
    energy_points: int
    activated_chakras: Tuple[int, ...]  # Everything activated today, this one included

    already_activated = False


@dataclass(frozen=True)
class AlreadyActivatedToday:
    chakra_index: int
    chakra_name: str
    activated_chakras: Tuple[int, ...]

    already_activated = True


ActivationOutcome = Union[ActivationSuccess, AlreadyActivatedToday]


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def validate_user_id(user_id) -> UUID:
    if user_id is None or user_id == "":
        raise EnergyValidationError("User id is required", field="user_id")
    if isinstance(user_id, UUID):
        return user_id
    try:
        return UUID(str(user_id))
    except ValueError:
        raise EnergyValidationError(f"Invalid user id: {user_id}", field="user_id")


def validate_chakra_index(chakra_index) -> int:
    if not is_valid_chakra_index(chakra_index):
        raise EnergyValidationError(
            f"Chakra index must be an integer between 0 and 6, got {chakra_index!r}",
            field="chakra_index",
        )
    return chakra_index


# ---------------------------------------------------------------------------
# Store operations
# ---------------------------------------------------------------------------

def find_activation(
    db: Session,
    user_id: UUID,
    chakra_index: int,
    day: date,
    category: str = CATEGORY_ACTIVATION,
) -> Optional[ChakraActivation]:
    with translate_store_errors(user_id, "find_activation"):
        return db.query(ChakraActivation).filter(
            ChakraActivation.user_id == user_id,
            ChakraActivation.chakra_index == chakra_index,
            ChakraActivation.activity_date == day,
            ChakraActivation.category == category,
        ).first()


def insert_activation(db: Session, record: ChakraActivation) -> bool:
    """
    Insert one ledger row. Returns False if the key already exists.

    Only the SAVEPOINT is rolled back on conflict; the caller's transaction
    and anything else it wrote stay intact.
    """
    with translate_store_errors(record.user_id, "insert_activation"):
        try:
            with db.begin_nested():
                db.add(record)
                db.flush()
        except IntegrityError:
            logger.info(
                "Activation already recorded",
                extra={"extra_fields": {
                    "user_id": str(record.user_id),
                    "chakra_index": record.chakra_index,
                    "activity_date": record.activity_date.isoformat(),
                    "category": record.category,
                }},
            )
            return False
    return True


def check_ledger_invariants(records: List[ChakraActivation]) -> List[LedgerInvariantError]:
    """Duplicate keys in a set of ledger rows. Empty when the store is healthy."""
    grouped = defaultdict(list)
    for r in records:
        grouped[(r.user_id, r.chakra_index, r.activity_date, r.category)].append(r)
    return [
        LedgerInvariantError(key, [str(r.id) for r in rows])
        for key, rows in grouped.items()
        if len(rows) > 1
    ]


def list_activations(
    db: Session,
    user_id: UUID,
    category: Optional[str] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> List[ChakraActivation]:
    """Ledger rows for a user, oldest first. start and end are inclusive days."""
    if category is not None and category not in ACTIVATION_CATEGORIES:
        raise EnergyValidationError(f"Unknown activation category: {category}", field="category")

    with translate_store_errors(user_id, "list_activations"):
        query = db.query(ChakraActivation).filter(ChakraActivation.user_id == user_id)
        if category is not None:
            query = query.filter(ChakraActivation.category == category)
        if start is not None:
            query = query.filter(ChakraActivation.activity_date >= start)
        if end is not None:
            query = query.filter(ChakraActivation.activity_date <= end)
        records = query.order_by(ChakraActivation.activity_date, ChakraActivation.completed_at).all()

    for violation in check_ledger_invariants(records):
        logger.critical(
            f"Ledger invariant violated: {violation}",
            extra={"extra_fields": {
                "user_id": str(user_id),
                "key": [str(part) for part in violation.key],
                "record_ids": violation.record_ids,
            }},
        )
    return records


def activated_chakras_on(db: Session, user_id: UUID, day: date) -> Tuple[int, ...]:
    """Chakras with an activation on ``day``, in activation order."""
    records = list_activations(db, user_id, category=CATEGORY_ACTIVATION, start=day, end=day)
    ordered: List[int] = []
    for r in records:
        if r.chakra_index not in ordered:
            ordered.append(r.chakra_index)
    return tuple(ordered)


def refresh_streak(db: Session, user_id: UUID, now: datetime) -> StreakInfo:
    """Recompute the streak from the ledger and update the profile cache."""
    streak = compute_streak(list_activations(db, user_id), now)
    cache_streak(db, user_id, streak.current, streak.longest, now)
    return streak


def record_activation(
    db: Session,
    user_id: UUID,
    chakra_index: int,
    now: datetime,
    points: int = 0,
) -> Optional[ChakraActivation]:
    """Write today's activation row. None when this chakra was already activated today."""
    record = ChakraActivation(
        user_id=user_id,
        chakra_index=chakra_index,
        category=CATEGORY_ACTIVATION,
        completed_at=now,
        activity_date=local_day(now),
        points_awarded=points,
    )
    if not insert_activation(db, record):
        return None
    return record


# ---------------------------------------------------------------------------
# Activation
# ---------------------------------------------------------------------------

def activate(
    db: Session,
    user_id,
    chakra_index,
    now: Optional[datetime] = None,
    analysis: Optional[EmotionalAnalysis] = None,
) -> ActivationOutcome:
    """
    Activate one chakra for the calendar day containing ``now``.

    Points come from the reflection reward when an analysis is supplied,
    otherwise from the per-chakra formula 10 + index * 5.
    """
    user_id = validate_user_id(user_id)
    chakra_index = validate_chakra_index(chakra_index)
    now = ensure_aware(now or utc_now())
    today = local_day(now)

    if find_activation(db, user_id, chakra_index, today) is not None:
        return AlreadyActivatedToday(
            chakra_index=chakra_index,
            chakra_name=chakra_name(chakra_index),
            activated_chakras=activated_chakras_on(db, user_id, today),
        )

    if analysis is not None:
        points = map_to_reward(analysis).points
    else:
        points = chakra_activation_points(chakra_index)

    if record_activation(db, user_id, chakra_index, now, points=points) is None:
        # Lost the race to a concurrent request for the same key.
        return AlreadyActivatedToday(
            chakra_index=chakra_index,
            chakra_name=chakra_name(chakra_index),
            activated_chakras=activated_chakras_on(db, user_id, today),
        )

    energy_points = increment_user_points(db, user_id, points)
    streak = refresh_streak(db, user_id, now)

    logger.info(
        f"Chakra {chakra_index} activated for {user_id}: +{points} points",
        extra={"extra_fields": {
            "user_id": str(user_id),
            "chakra_index": chakra_index,
            "points": points,
            "streak": streak.current,
        }},
    )
    emit(EVENT_CHAKRA_ACTIVATED, user_id=str(user_id), chakra_index=chakra_index, points=points)

    return ActivationSuccess(
        chakra_index=chakra_index,
        chakra_name=chakra_name(chakra_index),
        points=points,
        new_streak=streak.current,
        energy_points=energy_points,
        activated_chakras=activated_chakras_on(db, user_id, today),
    )
