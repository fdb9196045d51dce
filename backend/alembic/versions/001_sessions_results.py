"""sessions, results and player configs

Revision ID: 001
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None

session_status = sa.Enum("ACTIVE", "EXPIRED", "COMPLETED", "CANCELLED", name="session_status")


def upgrade() -> None:
    op.create_table(
        "sessions",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("student_id", sa.String(length=255), nullable=False),
        sa.Column("assessment_id", sa.String(length=255), nullable=False),
        sa.Column("external_session_id", sa.String(length=36), nullable=False),
        sa.Column("status", session_status, nullable=False, server_default="ACTIVE"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_sessions_student_id", "sessions", ["student_id"], unique=False)
    op.create_index("ix_sessions_assessment_id", "sessions", ["assessment_id"], unique=False)
    op.create_index("ix_sessions_external_session_id", "sessions", ["external_session_id"], unique=True)
    op.create_index("ix_sessions_expires_at", "sessions", ["expires_at"], unique=False)
    op.create_index("ix_sessions_student_created", "sessions", ["student_id", "created_at"], unique=False)
    op.create_index("ix_sessions_student_expires", "sessions", ["student_id", "expires_at"], unique=False)

    op.create_table(
        "results",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "session_id",
            sa.String(length=36),
            sa.ForeignKey("sessions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("response", sa.JSON(none_as_null=True), nullable=False),
        sa.Column("score", sa.Float(), nullable=True),
        sa.Column("time_spent", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_results_session_id", "results", ["session_id"], unique=False)

    op.create_table(
        "player_configs",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("endpoint", sa.String(length=255), nullable=False),
        sa.Column("expires_minutes", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_player_configs_created_at", "player_configs", ["created_at"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_player_configs_created_at", table_name="player_configs")
    op.drop_table("player_configs")
    op.drop_index("ix_results_session_id", table_name="results")
    op.drop_table("results")
    op.drop_index("ix_sessions_student_expires", table_name="sessions")
    op.drop_index("ix_sessions_student_created", table_name="sessions")
    op.drop_index("ix_sessions_expires_at", table_name="sessions")
    op.drop_index("ix_sessions_external_session_id", table_name="sessions")
    op.drop_index("ix_sessions_assessment_id", table_name="sessions")
    op.drop_index("ix_sessions_student_id", table_name="sessions")
    op.drop_table("sessions")
    session_status.drop(op.get_bind(), checkfirst=True)
