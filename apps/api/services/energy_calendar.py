"""
Calendar helpers for the energy engine.

Every "day" the engine reasons about (activation window, streak day,
recalibration week) is a calendar day in one reference zone,
settings.ENGINE_TIMEZONE (UTC by default). Weeks start on Sunday and
weekday indices run Sunday=0 .. Saturday=6, matching the chakra slots.
"""
from datetime import date, datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from core.config import settings


def engine_timezone(name: Optional[str] = None):
    name = name or settings.ENGINE_TIMEZONE
    if name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_aware(moment: datetime) -> datetime:
    """Naive datetimes are treated as UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def local_day(moment: datetime) -> date:
    return ensure_aware(moment).astimezone(engine_timezone()).date()


def weekday_index(day: date) -> int:
    """Sunday=0 .. Saturday=6."""
    return (day.weekday() + 1) % 7


def week_start(day: date) -> date:
    return day - timedelta(days=weekday_index(day))


def date_for_weekday(day: date, index: int) -> date:
    """Calendar date of weekday ``index`` in the week containing ``day``."""
    return week_start(day) + timedelta(days=index)
