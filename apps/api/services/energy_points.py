"""
Energy points on the user-profile aggregate.

The engine never caches or owns the running total. All changes go through
increment_user_points, a single UPDATE ... SET energy_points = energy_points + delta,
which is atomic at the row regardless of how many requests race on it.
"""

from typing import Optional
from uuid import UUID
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models import UserProfile
from services.energy_errors import EnergyValidationError, translate_store_errors

logger = logging.getLogger(__name__)


def get_profile(db: Session, user_id: UUID) -> Optional[UserProfile]:
    with translate_store_errors(user_id, "get_profile"):
        return db.query(UserProfile).filter(UserProfile.user_id == user_id).first()


def get_or_create_profile(db: Session, user_id: UUID) -> UserProfile:
    """
    Fetch the profile, provisioning an empty one on first use.

    Two first requests can race here; the loser's insert hits the primary key
    and it reads the winner's row instead.
    """
    profile = get_profile(db, user_id)
    if profile is not None:
        return profile

    with translate_store_errors(user_id, "create_profile"):
        try:
            with db.begin_nested():
                profile = UserProfile(user_id=user_id, energy_points=0, current_streak=0, longest_streak=0)
                db.add(profile)
                db.flush()
            logger.info(f"Provisioned energy profile for user {user_id}")
            return profile
        except IntegrityError:
            return db.query(UserProfile).filter(UserProfile.user_id == user_id).one()


def increment_user_points(db: Session, user_id: UUID, delta: int) -> int:
    """Add delta to the user's energy points and return the new total."""
    if delta < 0:
        raise EnergyValidationError("Energy points only increase", field="delta")

    get_or_create_profile(db, user_id)
    with translate_store_errors(user_id, "increment_user_points"):
        db.query(UserProfile).filter(UserProfile.user_id == user_id).update(
            {UserProfile.energy_points: UserProfile.energy_points + delta},
            synchronize_session="evaluate",
        )
        new_total = db.query(UserProfile.energy_points).filter(UserProfile.user_id == user_id).scalar()

    logger.debug(f"Energy points for {user_id}: +{delta} -> {new_total}")
    return int(new_total or 0)
