"""
Chakra Streak Service

"Show up every day."

A day counts toward the streak if the ledger covers it: at least one chakra
activation, or a recalibration that credited that day after the fact.
Streaks are a projection of the activation ledger: compute_streak can be
re-run over the full record history at any time and does not trust the
cached counters on the profile.
"""

from typing import Iterable, Optional, List
from dataclasses import dataclass
from datetime import datetime, timedelta, date
from uuid import UUID
import logging

from sqlalchemy import case
from sqlalchemy.orm import Session

from models import UserProfile
from services.energy_calendar import local_day
from services.energy_errors import translate_store_errors
from services.energy_points import get_or_create_profile

logger = logging.getLogger(__name__)


@dataclass
class StreakInfo:
    """Current streak information"""
    current: int
    longest: int
    last_active_date: Optional[date]
    is_at_risk: bool  # Nothing activated yet today, but yesterday was active
    message: str
    celebration: Optional[str]  # Special message for milestones


# Streak milestones with celebrations
STREAK_MILESTONES = {
    3: "Three days in a row. The habit is forming.",
    7: "A full week of practice! Every energy center has had its day.",
    14: "Two weeks strong. Your energy is finding its rhythm.",
    21: "Twenty-one days. This is becoming part of who you are.",
    30: "A month of daily practice. Deeply aligned.",
    60: "Sixty days! Your consistency is radiant.",
    100: "One hundred days. Mastery looks like this.",
}


def activation_days(records: Iterable) -> List[date]:
    """Distinct days covered by an activation or a recalibration, ascending."""
    return sorted({r.activity_date for r in records})


def _run_ending_at(days: set, end: date) -> int:
    run = 0
    check_day = end
    while check_day in days:
        run += 1
        check_day -= timedelta(days=1)
    return run


def longest_run(days: List[date]) -> int:
    longest = 0
    run = 0
    previous = None
    for day in days:
        if previous is not None and day - previous == timedelta(days=1):
            run += 1
        else:
            run = 1
        longest = max(longest, run)
        previous = day
    return longest


def compute_streak(records: Iterable, now: datetime) -> StreakInfo:
    """
    Current and longest streak from the full record history.

    current counts consecutive covered days ending today; an uncovered day
    breaks the run. longest is the best run ever observed.
    """
    days = activation_days(records)
    day_set = set(days)
    today = local_day(now)

    current = _run_ending_at(day_set, today)
    pending = _run_ending_at(day_set, today - timedelta(days=1)) if current == 0 else 0
    longest = max(longest_run(days), current)
    is_at_risk = pending > 0

    if current == 0 and not is_at_risk:
        message = "Start a new streak! Activate a chakra today."
    elif is_at_risk:
        message = f"Your {pending}-day streak is waiting. Activate a chakra today to keep it alive."
    else:
        message = f"{current} day{'s' if current != 1 else ''} in a row. Keep your energy flowing!"

    return StreakInfo(
        current=current,
        longest=longest,
        last_active_date=days[-1] if days else None,
        is_at_risk=is_at_risk,
        message=message,
        celebration=STREAK_MILESTONES.get(current),
    )


def cache_streak(db: Session, user_id: UUID, current: int, longest: int, now: datetime) -> None:
    """
    Write streak counters to the profile cache.

    The cached longest never goes down. It is raised in the UPDATE itself
    (no read-compare-write), so concurrent writers cannot lower it.
    """
    profile = get_or_create_profile(db, user_id)
    best = max(current, longest)
    with translate_store_errors(user_id, "cache_streak"):
        db.query(UserProfile).filter(UserProfile.user_id == user_id).update(
            {
                UserProfile.current_streak: current,
                UserProfile.longest_streak: case(
                    (UserProfile.longest_streak < best, best),
                    else_=UserProfile.longest_streak,
                ),
                UserProfile.last_streak_update: now,
            },
            synchronize_session=False,
        )
    db.expire(profile, ["current_streak", "longest_streak", "last_streak_update"])
