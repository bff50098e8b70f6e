"""initial_tramitation_schema

Creates the tramitation core tables:
  - team_members         — role rosters
  - process_records      — funding requests and their (role, status) state
  - process_artifacts    — existence records for attached documents
  - tramitation_history  — append-only audit trail of committed transitions
  - notifications        — rejection notices for actors

Revision ID: 3f1c2a9b7d10
Revises:
Create Date: 2026-10-19 09:12:40.118204
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3f1c2a9b7d10'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "team_members",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False, server_default=""),
        sa.Column("role", sa.String(length=30), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=False, server_default="10"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_team_members_role", "team_members", ["role"])

    op.create_table(
        "process_records",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("protocol_number", sa.String(length=50), nullable=False),
        sa.Column("value", sa.Numeric(14, 2), nullable=False),
        sa.Column("current_role", sa.String(length=30), nullable=False,
                  comment="REQUESTER | UNIT_MANAGER | TECHNICAL_ANALYSIS | FINANCE_OFFICE | LEGAL_OFFICE | HR_OFFICE"),
        sa.Column("status", sa.String(length=60), nullable=False),
        sa.Column("assigned_to", sa.String(length=64), nullable=True,
                  comment="Team member of current_role working the process"),
        sa.Column("requester_id", sa.String(length=64), nullable=False),
        sa.Column("beneficiary_id", sa.String(length=64), nullable=True,
                  comment="Person receiving the funds when different from the requester"),
        sa.Column("initial_role", sa.String(length=30), nullable=False),
        sa.Column("initial_status", sa.String(length=60), nullable=False),
        sa.Column("priority", sa.String(length=20), nullable=False, server_default="NORMAL",
                  comment="NORMAL | HIGH | CRITICAL"),
        sa.Column("sla_deadline", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["assigned_to"], ["team_members.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("protocol_number"),
    )
    op.create_index("ix_process_role_status", "process_records", ["current_role", "status"])
    op.create_index("ix_process_role_assignee", "process_records", ["current_role", "assigned_to"])
    op.create_index("ix_process_records_assigned_to", "process_records", ["assigned_to"])
    op.create_index("ix_process_records_requester_id", "process_records", ["requester_id"])

    op.create_table(
        "process_artifacts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("process_id", sa.Integer(), nullable=False),
        sa.Column("kind", sa.String(length=60), nullable=False),
        sa.Column("created_by", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["process_id"], ["process_records.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_artifact_process_kind", "process_artifacts", ["process_id", "kind"])

    op.create_table(
        "tramitation_history",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("process_id", sa.Integer(), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False,
                  comment="1-based position in the process history"),
        sa.Column("from_role", sa.String(length=30), nullable=False),
        sa.Column("to_role", sa.String(length=30), nullable=False),
        sa.Column("previous_status", sa.String(length=60), nullable=False),
        sa.Column("new_status", sa.String(length=60), nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("actor_id", sa.String(length=64), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["process_id"], ["process_records.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("process_id", "sequence", name="uq_history_process_sequence"),
    )
    op.create_index("ix_tramitation_history_process_id", "tramitation_history", ["process_id"])
    op.create_index("idx_history_roles", "tramitation_history", ["from_role", "to_role"])
    op.create_index("idx_history_actor", "tramitation_history", ["actor_id"])
    op.create_index("idx_history_ts", "tramitation_history", ["timestamp"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("recipient", sa.String(length=64), nullable=False, comment="Actor id"),
        sa.Column("title", sa.String(length=300), nullable=False),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("severity", sa.String(length=20), nullable=True),
        sa.Column("kind", sa.String(length=40), nullable=True),
        sa.Column("process_id", sa.Integer(), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=True),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_notifications_recipient", "notifications", ["recipient"])
    op.create_index("ix_notifications_process_id", "notifications", ["process_id"])


def downgrade():
    op.drop_table("notifications")
    op.drop_table("tramitation_history")
    op.drop_table("process_artifacts")
    op.drop_table("process_records")
    op.drop_table("team_members")
