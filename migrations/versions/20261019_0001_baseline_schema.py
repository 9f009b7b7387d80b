"""baseline orderflow schema: quotes, orders, projects, ledgers, referrals

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 00:00:01
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None

# Enum types are created once up front; several tables share projectstatus.
user_role = postgresql.ENUM("ADMIN", "PARTNER", "CLIENT", name="userrole", create_type=False)
request_status = postgresql.ENUM(
    "NEW", "REVIEWED", "CONVERTED_TO_ORDER", "REJECTED", name="requeststatus", create_type=False
)
quote_status = postgresql.ENUM("DRAFT", "SENT", "ACCEPTED", "REJECTED", name="quotestatus", create_type=False)
order_status = postgresql.ENUM(
    "PENDING", "IN_PROGRESS", "DELIVERED", "CANCELLED", name="orderstatus", create_type=False
)
project_status = postgresql.ENUM(
    "REQUIREMENTS", "DESIGN", "DEV", "QA", "DELIVERED", name="projectstatus", create_type=False
)
phase_status = postgresql.ENUM(
    "PENDING", "IN_PROGRESS", "COMPLETED", "BLOCKED", name="phasestatus", create_type=False
)
milestone_status = postgresql.ENUM(
    "PENDING", "UNDER_REVIEW", "APPROVED", "REJECTED", name="milestonestatus", create_type=False
)
change_request_status = postgresql.ENUM(
    "PENDING", "ACCEPTED", "REJECTED", name="changerequeststatus", create_type=False
)
referral_status = postgresql.ENUM("PENDING", "EARNED", "PAID_OUT", name="referralstatus", create_type=False)

ALL_ENUMS = (
    user_role,
    request_status,
    quote_status,
    order_status,
    project_status,
    phase_status,
    milestone_status,
    change_request_status,
    referral_status,
)


def _audit_columns() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    for enum_type in ALL_ENUMS:
        enum_type.create(bind, checkfirst=True)

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("role", user_role, nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=True),
        sa.Column("referral_code", sa.String(length=32), nullable=True),
        sa.Column("referred_by_id", sa.Integer(), nullable=True),
        sa.Column("referral_commission_rate", sa.Numeric(5, 4), nullable=False),
        *_audit_columns(),
        sa.ForeignKeyConstraint(["referred_by_id"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
        sa.UniqueConstraint("referral_code"),
    )
    op.create_index("idx_users_role", "users", ["role"])

    op.create_table(
        "project_requests",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("details", sa.Text(), nullable=True),
        sa.Column("status", request_status, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=True),
        *_audit_columns(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_project_requests_status", "project_requests", ["status"])

    op.create_table(
        "quotes",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("request_id", sa.Integer(), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("scope", sa.Text(), nullable=False),
        sa.Column("status", quote_status, nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("archived_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("token_hash", sa.String(length=80), nullable=True),
        *_audit_columns(),
        sa.ForeignKeyConstraint(["request_id"], ["project_requests.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_quotes_status_expires", "quotes", ["status", "expires_at"])
    op.create_index("idx_quotes_token_hash", "quotes", ["token_hash"])

    op.create_table(
        "quote_plans",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("quote_id", sa.Integer(), nullable=False),
        sa.Column("service_ref", sa.String(length=120), nullable=True),
        sa.Column("project_title", sa.String(length=255), nullable=True),
        sa.Column("project_description", sa.Text(), nullable=True),
        sa.Column("delivery_estimate", sa.String(length=255), nullable=True),
        sa.Column("timeline", sa.String(length=255), nullable=True),
        sa.Column("payment_notes", sa.Text(), nullable=True),
        *_audit_columns(),
        sa.ForeignKeyConstraint(["quote_id"], ["quotes.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("quote_id"),
    )

    op.create_table(
        "quote_plan_phases",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("plan_id", sa.Integer(), nullable=False),
        sa.Column("key", sa.String(length=64), nullable=False),
        sa.Column("group", project_status, nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("order_index", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["plan_id"], ["quote_plans.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("plan_id", "key", name="uq_quote_plan_phases_plan_key"),
    )

    op.create_table(
        "quote_plan_payments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("plan_id", sa.Integer(), nullable=False),
        sa.Column("label", sa.String(length=255), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("before_phase_key", sa.String(length=64), nullable=True),
        sa.ForeignKeyConstraint(["plan_id"], ["quote_plans.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "orders",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("quote_id", sa.Integer(), nullable=True),
        sa.Column("service_ref", sa.String(length=120), nullable=True),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("status", order_status, nullable=False),
        sa.Column("archived_at", sa.DateTime(timezone=True), nullable=True),
        *_audit_columns(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["quote_id"], ["quotes.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("quote_id"),
    )
    op.create_index("idx_orders_user_status", "orders", ["user_id", "status"])

    op.create_table(
        "projects",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("order_id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", project_status, nullable=False),
        *_audit_columns(),
        sa.ForeignKeyConstraint(["order_id"], ["orders.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_projects_order_id", "projects", ["order_id"])

    op.create_table(
        "project_phases",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("project_id", sa.Integer(), nullable=False),
        sa.Column("group", project_status, nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", phase_status, nullable=False),
        sa.Column("order_index", sa.Integer(), nullable=False),
        *_audit_columns(),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("project_id", "order_index", name="uq_project_phases_project_order"),
    )
    op.create_index("idx_project_phases_project_group", "project_phases", ["project_id", "group"])

    op.create_table(
        "change_requests",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("project_id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("status", change_request_status, nullable=False),
        sa.Column("created_by_id", sa.Integer(), nullable=True),
        sa.Column("decided_at", sa.DateTime(timezone=True), nullable=True),
        *_audit_columns(),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["created_by_id"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_change_requests_project_id", "change_requests", ["project_id"])

    op.create_table(
        "milestone_payments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("project_id", sa.Integer(), nullable=False),
        sa.Column("label", sa.String(length=255), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("status", milestone_status, nullable=False),
        sa.Column("proof_ref", sa.String(length=1024), nullable=True),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("gate_phase_id", sa.Integer(), nullable=True),
        sa.Column("change_request_id", sa.Integer(), nullable=True),
        sa.Column("reviewed_by_id", sa.Integer(), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("archived_at", sa.DateTime(timezone=True), nullable=True),
        *_audit_columns(),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["gate_phase_id"], ["project_phases.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["change_request_id"], ["change_requests.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["reviewed_by_id"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("change_request_id"),
    )
    op.create_index("idx_milestone_payments_project_status", "milestone_payments", ["project_id", "status"])

    op.create_table(
        "referral_tracking",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("referrer_id", sa.Integer(), nullable=False),
        sa.Column("referred_user_id", sa.Integer(), nullable=True),
        sa.Column("order_id", sa.Integer(), nullable=True),
        sa.Column("commission_rate", sa.Numeric(5, 4), nullable=False),
        sa.Column("commission_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("commission_paid_out", sa.Numeric(12, 2), nullable=False),
        sa.Column("status", referral_status, nullable=False),
        *_audit_columns(),
        sa.CheckConstraint("commission_paid_out <= commission_amount", name="ck_referral_paid_out_le_amount"),
        sa.ForeignKeyConstraint(["referrer_id"], ["users.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["referred_user_id"], ["users.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["order_id"], ["orders.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("order_id"),
    )
    op.create_index("idx_referral_tracking_referrer", "referral_tracking", ["referrer_id"])

    op.create_table(
        "portfolio_drafts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("project_id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("slug", sa.String(length=320), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("project_type", sa.String(length=120), nullable=True),
        sa.Column("locale", sa.String(length=8), nullable=False),
        sa.Column("is_published", sa.Boolean(), nullable=False),
        *_audit_columns(),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("project_id"),
        sa.UniqueConstraint("slug"),
    )

    op.create_table(
        "audit_entries",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("actor_id", sa.Integer(), nullable=True),
        sa.Column("action", sa.String(length=64), nullable=False),
        sa.Column("target_type", sa.String(length=40), nullable=False),
        sa.Column("target_id", sa.Integer(), nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
        *_audit_columns(),
        sa.ForeignKeyConstraint(["actor_id"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_audit_entries_target", "audit_entries", ["target_type", "target_id"])


def downgrade() -> None:
    op.drop_index("idx_audit_entries_target", table_name="audit_entries")
    op.drop_table("audit_entries")
    op.drop_table("portfolio_drafts")
    op.drop_index("idx_referral_tracking_referrer", table_name="referral_tracking")
    op.drop_table("referral_tracking")
    op.drop_index("idx_milestone_payments_project_status", table_name="milestone_payments")
    op.drop_table("milestone_payments")
    op.drop_index("ix_change_requests_project_id", table_name="change_requests")
    op.drop_table("change_requests")
    op.drop_index("idx_project_phases_project_group", table_name="project_phases")
    op.drop_table("project_phases")
    op.drop_index("ix_projects_order_id", table_name="projects")
    op.drop_table("projects")
    op.drop_index("idx_orders_user_status", table_name="orders")
    op.drop_table("orders")
    op.drop_table("quote_plan_payments")
    op.drop_table("quote_plan_phases")
    op.drop_table("quote_plans")
    op.drop_index("idx_quotes_token_hash", table_name="quotes")
    op.drop_index("idx_quotes_status_expires", table_name="quotes")
    op.drop_table("quotes")
    op.drop_index("idx_project_requests_status", table_name="project_requests")
    op.drop_table("project_requests")
    op.drop_index("idx_users_role", table_name="users")
    op.drop_table("users")

    bind = op.get_bind()
    for enum_type in reversed(ALL_ENUMS):
        enum_type.drop(bind, checkfirst=True)
