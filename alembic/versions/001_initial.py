"""Initial schema: caregiver profiles, conversation sessions, conversation turns.

Revision ID: 001
Revises:
Create Date: 2026-10-16

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# Keep in sync with careprofile.domain.PROFILE_FIELDS
PROFILE_FIELD_COLUMNS = (
    "location",
    "languages",
    "care_types",
    "hourly_rate",
    "qualifications",
    "start_date",
    "general_availability",
    "years_of_experience",
    "weekly_hours",
    "preferred_age_groups",
    "responsibilities",
    "commute_distance",
    "commute_type",
    "will_drive_children",
    "accessibility_needs",
    "dietary_preferences",
    "additional_child_rate",
    "payroll_required",
    "benefits_required",
    "profile_picture_url",
)


def upgrade() -> None:
    op.create_table(
        "caregiver_profiles",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="in_progress"),
        *[sa.Column(name, sa.Text(), nullable=True) for name in PROFILE_FIELD_COLUMNS],
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        "conversation_sessions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "profile_id",
            sa.String(36),
            sa.ForeignKey("caregiver_profiles.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("last_updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
    )
    op.create_index("ix_conversation_sessions_profile_id", "conversation_sessions", ["profile_id"])
    op.create_index("ix_conversation_sessions_status", "conversation_sessions", ["status"])
    # At most one active session per profile
    op.create_index(
        "uq_conversation_sessions_profile_active",
        "conversation_sessions",
        ["profile_id"],
        unique=True,
        postgresql_where=sa.text("status = 'active'"),
        sqlite_where=sa.text("status = 'active'"),
    )

    op.create_table(
        "conversation_turns",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "session_id",
            sa.String(36),
            sa.ForeignKey("conversation_sessions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("user_message", sa.Text(), nullable=False),
        sa.Column("agent_response", sa.Text(), nullable=False),
        sa.Column("raw_model_output", sa.Text(), nullable=False),
        sa.Column("extracted_data", sa.JSON(), nullable=True),
        sa.Column("extracted_fields", sa.JSON(), nullable=True),
    )
    op.create_index("ix_conversation_turns_session_id", "conversation_turns", ["session_id"])
    op.create_index("ix_conversation_turns_timestamp", "conversation_turns", ["timestamp"])


def downgrade() -> None:
    op.drop_index("ix_conversation_turns_timestamp", table_name="conversation_turns")
    op.drop_index("ix_conversation_turns_session_id", table_name="conversation_turns")
    op.drop_table("conversation_turns")
    op.drop_index("uq_conversation_sessions_profile_active", table_name="conversation_sessions")
    op.drop_index("ix_conversation_sessions_status", table_name="conversation_sessions")
    op.drop_index("ix_conversation_sessions_profile_id", table_name="conversation_sessions")
    op.drop_table("conversation_sessions")
    op.drop_table("caregiver_profiles")
