"""goals and steps

Revision ID: 0001
Revises:
Create Date: 2026-10-17 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- ENUM types ---
    goal_type_enum = sa.Enum(
        "habit", "progressive_mastery", "standard", name="goal_type_enum"
    )
    goal_type_enum.create(op.get_bind(), checkfirst=True)

    goal_status_enum = sa.Enum(
        "active", "completed", "archived", name="goal_status_enum"
    )
    goal_status_enum.create(op.get_bind(), checkfirst=True)

    step_type_enum = sa.Enum(
        "habit", "action", "milestone", "scaffolding", name="step_type_enum"
    )
    step_type_enum.create(op.get_bind(), checkfirst=True)

    step_status_enum = sa.Enum(
        "not_started", "in_progress", "done", "skipped", name="step_status_enum"
    )
    step_status_enum.create(op.get_bind(), checkfirst=True)

    # --- goals ---
    op.create_table(
        "goals",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("owner_id", sa.String(64), nullable=False),
        sa.Column("created_by", sa.String(64), nullable=True),
        sa.Column("title", sa.String(256), nullable=False),
        sa.Column("category", sa.String(64), nullable=False, server_default="general"),
        sa.Column("goal_type", sa.Enum(
            "habit", "progressive_mastery", "standard",
            name="goal_type_enum", create_type=False,
        ), nullable=False),
        sa.Column("status", sa.Enum(
            "active", "completed", "archived",
            name="goal_status_enum", create_type=False,
        ), nullable=False),
        sa.Column("frequency_per_week", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("duration_weeks", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("planned_steps_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("planned_milestones_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("planned_scaffold_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_possible_points", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("earned_points", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("streak_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("longest_streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_completed_date", sa.Date(), nullable=True),
        sa.Column(
            "metadata", sa.Text(), nullable=True,
            comment="JSON-encoded dict: skill_assessment, smart_start, teaching_helper, current_phase",
        ),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_goals_id", "goals", ["id"])
    op.create_index("ix_goals_owner_id", "goals", ["owner_id"])
    op.create_index("ix_goals_status", "goals", ["status"])

    # --- steps ---
    op.create_table(
        "steps",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("goal_id", sa.Integer(), nullable=False),
        sa.Column("order_index", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("title", sa.String(256), nullable=False),
        sa.Column("step_type", sa.Enum(
            "habit", "action", "milestone", "scaffolding",
            name="step_type_enum", create_type=False,
        ), nullable=False),
        sa.Column("is_required", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("status", sa.Enum(
            "not_started", "in_progress", "done", "skipped",
            name="step_status_enum", create_type=False,
        ), nullable=False),
        sa.Column("points_awarded", sa.Integer(), nullable=True),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completion_streak", sa.Integer(), nullable=True),
        sa.Column("skip_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "skip_reasons", sa.Text(), nullable=True,
            comment="JSON array of skip records: skipped_at, reason, custom_note, streak_at_risk",
        ),
        sa.Column("last_skipped_date", sa.Date(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["goal_id"], ["goals.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_steps_id", "steps", ["id"])
    op.create_index("ix_steps_goal_id", "steps", ["goal_id"])
    op.create_index("ix_steps_status", "steps", ["status"])


def downgrade() -> None:
    op.drop_table("steps")
    op.drop_table("goals")
    sa.Enum(name="step_status_enum").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="step_type_enum").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="goal_status_enum").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="goal_type_enum").drop(op.get_bind(), checkfirst=True)
