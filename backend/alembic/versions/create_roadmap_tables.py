"""Create learners, roadmaps and study_sessions tables

Revision ID: create_roadmap_tables
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "create_roadmap_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "learners",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("username", sa.String(), nullable=True, unique=True),
        sa.Column("email", sa.String(), nullable=True, unique=True),
        sa.Column("study_days_of_week", sa.JSON(), nullable=False),
        sa.Column("current_level", sa.String(), nullable=True),
        sa.Column("competency_profile", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("last_active_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "roadmaps",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("learner_id", sa.Integer(), sa.ForeignKey("learners.id"), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("user_prompt", sa.Text(), nullable=True),
        sa.Column("current_level", sa.String(), nullable=True),
        sa.Column("current_score", sa.Integer(), nullable=True),
        sa.Column("target_score", sa.Integer(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("total_weeks", sa.Integer(), nullable=False),
        sa.Column("study_days_per_week", sa.Integer(), nullable=False),
        sa.Column("study_time_per_day", sa.Integer(), nullable=False),
        sa.Column("learning_strategy", sa.JSON(), nullable=True),
        sa.Column("phase_summary", sa.JSON(), nullable=False),
        sa.Column("weekly_focuses", sa.JSON(), nullable=False),
        sa.Column("active_week_number", sa.Integer(), nullable=False),
        sa.Column("sessions_completed", sa.Integer(), nullable=False),
        sa.Column("total_sessions", sa.Integer(), nullable=False),
        sa.Column("overall_progress", sa.Integer(), nullable=False),
        sa.Column("last_recalibrated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("recalibration_count", sa.Integer(), nullable=False),
        sa.Column("revision", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_roadmaps_learner_id", "roadmaps", ["learner_id"])
    op.create_index("ix_roadmaps_status", "roadmaps", ["status"])

    op.create_table(
        "study_sessions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("learner_id", sa.Integer(), sa.ForeignKey("learners.id"), nullable=False),
        sa.Column("roadmap_id", sa.Integer(), sa.ForeignKey("roadmaps.id"), nullable=False),
        sa.Column("scheduled_date", sa.Date(), nullable=False),
        sa.Column("week_number", sa.Integer(), nullable=False),
        sa.Column("day_number", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("target_skills", sa.JSON(), nullable=False),
        sa.Column("target_domains", sa.JSON(), nullable=False),
        sa.Column("target_weaknesses", sa.JSON(), nullable=False),
        sa.Column("catch_up", sa.JSON(), nullable=False),
        sa.Column("plan_items", sa.JSON(), nullable=False),
        sa.Column("total_estimated_time", sa.Integer(), nullable=False),
        sa.Column("total_time_spent", sa.Integer(), nullable=False),
        sa.Column("progress", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("revision", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        # One session per learner per calendar day
        sa.UniqueConstraint(
            "learner_id", "scheduled_date", name="uq_study_session_learner_date"
        ),
    )
    op.create_index("ix_study_sessions_learner_id", "study_sessions", ["learner_id"])
    op.create_index("ix_study_sessions_roadmap_id", "study_sessions", ["roadmap_id"])


def downgrade() -> None:
    op.drop_index("ix_study_sessions_roadmap_id", table_name="study_sessions")
    op.drop_index("ix_study_sessions_learner_id", table_name="study_sessions")
    op.drop_table("study_sessions")
    op.drop_index("ix_roadmaps_status", table_name="roadmaps")
    op.drop_index("ix_roadmaps_learner_id", table_name="roadmaps")
    op.drop_table("roadmaps")
    op.drop_table("learners")
