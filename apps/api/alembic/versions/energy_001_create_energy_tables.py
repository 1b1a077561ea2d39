"""Create energy engine tables

Revision ID: energy_001
Revises:
Create Date: 2026-10-19

energy_profile      user-profile aggregate (points counter, streak cache)
chakra_activation   append-only activation ledger, unique per
                    (user, chakra, day, category)
energy_reflection   derived reflection records (no raw text)
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB


# revision identifiers, used by Alembic.
revision: str = 'energy_001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSONType = sa.JSON().with_variant(JSONB, "postgresql")


def upgrade() -> None:
    op.create_table(
        'energy_profile',
        sa.Column('user_id', sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('energy_points', sa.Integer(), server_default='0', nullable=False),
        sa.Column('current_streak', sa.Integer(), server_default='0', nullable=False),
        sa.Column('longest_streak', sa.Integer(), server_default='0', nullable=False),
        sa.Column('last_streak_update', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint('energy_points >= 0', name='ck_energy_profile_points_non_negative'),
    )

    op.create_table(
        'chakra_activation',
        sa.Column('id', sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column('user_id', sa.Uuid(as_uuid=True), nullable=False),
        sa.Column('chakra_index', sa.Integer(), nullable=False),
        sa.Column('category', sa.Text(), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('activity_date', sa.Date(), nullable=False),
        sa.Column('points_awarded', sa.Integer(), nullable=False),
        sa.Column('reflection_text', sa.Text(), nullable=True),
        sa.UniqueConstraint(
            'user_id', 'chakra_index', 'activity_date', 'category',
            name='uq_chakra_activation_user_chakra_day_category',
        ),
        sa.CheckConstraint('chakra_index >= 0 AND chakra_index <= 6', name='ck_chakra_activation_index_range'),
        sa.CheckConstraint("category IN ('activation', 'recalibration')", name='ck_chakra_activation_category_enum'),
    )
    op.create_index('ix_chakra_activation_user_date', 'chakra_activation', ['user_id', 'activity_date'])

    op.create_table(
        'energy_reflection',
        sa.Column('id', sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column('user_id', sa.Uuid(as_uuid=True), nullable=False),
        sa.Column('submission_key', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('word_count', sa.Integer(), nullable=False),
        sa.Column('dominant_theme', sa.Text(), nullable=True),
        sa.Column('themes', JSONType, nullable=False),
        sa.Column('emotional_depth', sa.Float(), nullable=False),
        sa.Column('self_awareness', sa.Float(), nullable=False),
        sa.Column('depth_category', sa.Text(), nullable=False),
        sa.Column('points_earned', sa.Integer(), nullable=False),
        sa.Column('chakras_activated', JSONType, nullable=False),
        sa.UniqueConstraint('user_id', 'submission_key', name='uq_energy_reflection_user_submission_key'),
    )
    op.create_index('ix_energy_reflection_user_id', 'energy_reflection', ['user_id'])


def downgrade() -> None:
    op.drop_index('ix_energy_reflection_user_id', table_name='energy_reflection')
    op.drop_table('energy_reflection')
    op.drop_index('ix_chakra_activation_user_date', table_name='chakra_activation')
    op.drop_table('chakra_activation')
    op.drop_table('energy_profile')
