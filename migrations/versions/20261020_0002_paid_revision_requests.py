"""paid revision requests booked against projects

Revision ID: 20261020_0002
Revises: 20261019_0001
Create Date: 2026-10-20 00:00:01
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "20261020_0002"
down_revision = "20261019_0001"
branch_labels = None
depends_on = None

revision_status = postgresql.ENUM(
    "PENDING", "IN_PROGRESS", "DELIVERED", "REJECTED", name="revisionstatus", create_type=False
)


def upgrade() -> None:
    revision_status.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "paid_revision_requests",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("project_id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("details", sa.Text(), nullable=True),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("status", revision_status, nullable=False),
        sa.Column("session_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("session_duration_minutes", sa.Integer(), nullable=True),
        sa.Column("session_notes", sa.Text(), nullable=True),
        sa.Column("session_links", sa.JSON(), nullable=False),
        sa.Column("payment_proof_ref", sa.String(length=2048), nullable=True),
        sa.Column("client_proposed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("client_proposed_duration_minutes", sa.Integer(), nullable=True),
        sa.Column("client_proposed_note", sa.Text(), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["created_by_id"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_paid_revision_requests_project_status",
        "paid_revision_requests",
        ["project_id", "status"],
    )


def downgrade() -> None:
    op.drop_index("idx_paid_revision_requests_project_status", table_name="paid_revision_requests")
    op.drop_table("paid_revision_requests")
    revision_status.drop(op.get_bind(), checkfirst=True)
