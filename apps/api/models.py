from sqlalchemy import Column, Integer, CheckConstraint, Float, Date, DateTime, Text, Index, UniqueConstraint, JSON, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from core.database import Base
import uuid

# JSONB on Postgres, plain JSON elsewhere (tests run on SQLite).
JSONType = JSON().with_variant(JSONB, "postgresql")

CATEGORY_ACTIVATION = "activation"
CATEGORY_RECALIBRATION = "recalibration"
ACTIVATION_CATEGORIES = (CATEGORY_ACTIVATION, CATEGORY_RECALIBRATION)


class UserProfile(Base):
    """
    User-profile aggregate for the energy engine.

    energy_points is only ever changed through an atomic increment.
    The streak columns are a cache of the ledger projection, never the source of truth.
    """
    __tablename__ = "energy_profile"

    user_id = Column(Uuid(as_uuid=True), primary_key=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    energy_points = Column(Integer, nullable=False, default=0, server_default="0")

    # --- STREAK CACHE ---
    current_streak = Column(Integer, nullable=False, default=0, server_default="0")
    longest_streak = Column(Integer, nullable=False, default=0, server_default="0")
    last_streak_update = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint("energy_points >= 0", name="ck_energy_profile_points_non_negative"),
    )


class ChakraActivation(Base):
    """
    Append-only ledger of chakra activations.

    One row per (user, chakra, credited day, category). The unique constraint is
    what makes activation and recalibration idempotent under concurrency:
    a second insert for the same key fails instead of double-crediting.

    For recalibration rows chakra_index carries the weekday (Sunday=0) of the
    missed day and activity_date is that missed calendar day.
    """
    __tablename__ = "chakra_activation"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), nullable=False)
    chakra_index = Column(Integer, nullable=False)
    category = Column(Text, nullable=False, default=CATEGORY_ACTIVATION)
    completed_at = Column(DateTime(timezone=True), nullable=False)
    activity_date = Column(Date, nullable=False)  # Calendar day credited, in ENGINE_TIMEZONE
    points_awarded = Column(Integer, nullable=False, default=0)
    reflection_text = Column(Text, nullable=True)  # Recalibration only

    __table_args__ = (
        UniqueConstraint(
            "user_id", "chakra_index", "activity_date", "category",
            name="uq_chakra_activation_user_chakra_day_category",
        ),
        CheckConstraint("chakra_index >= 0 AND chakra_index <= 6", name="ck_chakra_activation_index_range"),
        CheckConstraint(
            "category IN ('activation', 'recalibration')",
            name="ck_chakra_activation_category_enum",
        ),
        Index("ix_chakra_activation_user_date", "user_id", "activity_date"),
    )

    def __repr__(self) -> str:
        return (
            f"<ChakraActivation user={self.user_id} chakra={self.chakra_index} "
            f"day={self.activity_date} category={self.category}>"
        )


class ReflectionEntry(Base):
    """
    Derived record of a submitted reflection.

    The reflection text itself is not kept; only what the scorer derived from it.
    submission_key lets a client retry a submission without being credited twice.
    """
    __tablename__ = "energy_reflection"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    submission_key = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    word_count = Column(Integer, nullable=False, default=0)
    dominant_theme = Column(Text, nullable=True)
    themes = Column(JSONType, nullable=False, default=list)
    emotional_depth = Column(Float, nullable=False)
    self_awareness = Column(Float, nullable=False)
    depth_category = Column(Text, nullable=False)
    points_earned = Column(Integer, nullable=False)
    chakras_activated = Column(JSONType, nullable=False, default=list)

    __table_args__ = (
        UniqueConstraint("user_id", "submission_key", name="uq_energy_reflection_user_submission_key"),
    )
