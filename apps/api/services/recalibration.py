"""
Recalibration Service

Catch-up credit for days of the current week that were missed.

Weekday indices double as chakra slots (Sunday=0 .. Saturday=6): a missed
Tuesday is recorded as a recalibration of chakra 2. Each row also carries the
missed calendar date, so the unique key (user, slot, date, category) allows
exactly one recalibration per missed day and a new one next week.

The catch-up range is Sunday through today inclusive when
RECALIBRATION_INCLUDES_TODAY=True. The default departs from that and stops
at yesterday, leaving today open for a regular activation.

Points:     max(5, newly_recalibrated_days * 2)
New streak: max(weekday(today) + 1, |activated ∪ recalibrated|)

Recalibrated days count as covered in the streak projection
(services.chakra_streaks), so the streak reported here survives the next
activation.

The per-day writes are independent and individually idempotent. A call that
dies halfway can simply be retried: days already written are skipped and are
not rewarded again.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Tuple, Union
from uuid import UUID
import logging

from sqlalchemy.orm import Session

from core.config import settings
from core.events import emit, EVENT_CHAKRA_RECALIBRATED
from models import ChakraActivation, CATEGORY_RECALIBRATION
from services.activation_ledger import find_activation, insert_activation, list_activations, validate_user_id
from services.chakra_streaks import cache_streak
from services.energy_calendar import date_for_weekday, ensure_aware, local_day, utc_now, week_start, weekday_index
from services.energy_errors import EnergyValidationError
from services.energy_points import increment_user_points

logger = logging.getLogger(__name__)

MIN_RECALIBRATION_POINTS = 5
POINTS_PER_RECALIBRATED_DAY = 2


@dataclass(frozen=True)
class RecalibrationSuccess:
    recalibrated_days: Tuple[int, ...]
    points: int
    new_streak: int
    energy_points: int

    none_needed = False


@dataclass(frozen=True)
class NoRecalibrationNeeded:
    activated_days: Tuple[int, ...]

    none_needed = True


RecalibrationOutcome = Union[RecalibrationSuccess, NoRecalibrationNeeded]


def missed_days(
    activated_days: Iterable[int],
    now: datetime,
    include_today: Optional[bool] = None,
) -> List[int]:
    """Weekday indices from Sunday through today that have no activation."""
    if include_today is None:
        include_today = settings.RECALIBRATION_INCLUDES_TODAY
    today_index = weekday_index(local_day(now))
    last = today_index if include_today else today_index - 1
    activated = set(activated_days)
    return [day for day in range(0, last + 1) if day not in activated]


def activated_weekdays(db: Session, user_id: UUID, now: datetime) -> Tuple[int, ...]:
    """
    Weekdays of the current week already covered in the ledger, by either an
    activation or an earlier recalibration.
    """
    today = local_day(now)
    records = list_activations(db, user_id, start=week_start(today), end=today)
    return tuple(sorted({weekday_index(r.activity_date) for r in records}))


def recalibration_points(recalibrated_count: int) -> int:
    return max(MIN_RECALIBRATION_POINTS, recalibrated_count * POINTS_PER_RECALIBRATED_DAY)


def recalibrate(
    db: Session,
    user_id,
    activated_days: Iterable[int],
    reflection_text: str,
    now: Optional[datetime] = None,
    include_today: Optional[bool] = None,
) -> RecalibrationOutcome:
    """Credit every missed day of this week once, at the reduced catch-up rate."""
    user_id = validate_user_id(user_id)
    if reflection_text is None or not reflection_text.strip():
        raise EnergyValidationError("A reflection is required to recalibrate", field="reflection_text")

    now = ensure_aware(now or utc_now())
    today = local_day(now)
    days = list(activated_days)
    for day in days:
        if not isinstance(day, int) or isinstance(day, bool) or not 0 <= day <= 6:
            raise EnergyValidationError(
                f"Weekday index must be an integer between 0 and 6, got {day!r}",
                field="activated_days",
            )
    activated = tuple(sorted(set(days)))

    missed = missed_days(activated, now, include_today=include_today)
    if not missed:
        return NoRecalibrationNeeded(activated_days=activated)

    recalibrated: List[int] = []
    for day in missed:
        missed_date = date_for_weekday(today, day)
        if find_activation(db, user_id, day, missed_date, category=CATEGORY_RECALIBRATION) is not None:
            logger.debug(f"Day {day} already recalibrated for {user_id}")
            continue

        record = ChakraActivation(
            user_id=user_id,
            chakra_index=day,
            category=CATEGORY_RECALIBRATION,
            completed_at=now,
            activity_date=missed_date,
            reflection_text=reflection_text,
        )
        if insert_activation(db, record):
            recalibrated.append(day)

    if not recalibrated:
        # Every missed day was recalibrated by an earlier (or concurrent) call.
        return NoRecalibrationNeeded(activated_days=activated)

    points = recalibration_points(len(recalibrated))
    energy_points = increment_user_points(db, user_id, points)
    new_streak = max(weekday_index(today) + 1, len(set(activated) | set(recalibrated)))
    cache_streak(db, user_id, new_streak, new_streak, now)

    logger.info(
        f"Recalibrated {len(recalibrated)} day(s) for {user_id}: +{points} points",
        extra={"extra_fields": {
            "user_id": str(user_id),
            "recalibrated_days": recalibrated,
            "points": points,
            "new_streak": new_streak,
        }},
    )
    emit(EVENT_CHAKRA_RECALIBRATED, user_id=str(user_id), days=list(recalibrated), points=points)

    return RecalibrationSuccess(
        recalibrated_days=tuple(recalibrated),
        points=points,
        new_streak=new_streak,
        energy_points=energy_points,
    )
