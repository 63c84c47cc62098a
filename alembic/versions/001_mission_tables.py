"""mission tables - missions and merge-written phase snapshots

Revision ID: 001_mission_tables
Revises: None
Create Date: 2026-10-16
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001_mission_tables"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "missions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(128)),
        sa.Column("profile", sa.JSON(), nullable=False),
        sa.Column("current_phase", sa.String(20), nullable=False, server_default="discovery"),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("created_at", sa.DateTime()),
        sa.Column("updated_at", sa.DateTime()),
    )
    op.create_index("ix_missions_user_id", "missions", ["user_id"])

    op.create_table(
        "phase_snapshots",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "mission_id",
            sa.String(36),
            sa.ForeignKey("missions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("phase_id", sa.String(20), nullable=False),
        sa.Column("data", sa.JSON(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_updated", sa.DateTime()),
        sa.Column("completed_at", sa.DateTime()),
    )
    op.create_index(
        "ix_phase_snapshots_mission_phase",
        "phase_snapshots",
        ["mission_id", "phase_id"],
        unique=True,
    )


def downgrade() -> None:
    op.drop_index("ix_phase_snapshots_mission_phase", table_name="phase_snapshots")
    op.drop_table("phase_snapshots")
    op.drop_index("ix_missions_user_id", table_name="missions")
    op.drop_table("missions")
