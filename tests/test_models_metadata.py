from __future__ import annotations

import re
from pathlib import Path

from orderflow.models import Base

EXPECTED_TABLES = {
    "users",
    "project_requests",
    "quotes",
    "quote_plans",
    "quote_plan_phases",
    "quote_plan_payments",
    "orders",
    "projects",
    "project_phases",
    "milestone_payments",
    "change_requests",
    "referral_tracking",
    "portfolio_drafts",
    "audit_entries",
    "paid_revision_requests",
}

MIGRATIONS = Path(__file__).resolve().parents[1] / "migrations" / "versions"


def _unique_columns(table_name: str) -> set[str]:
    table = Base.metadata.tables[table_name]
    return {column.name for column in table.columns if column.unique}


def test_metadata_declares_every_table():
    assert set(Base.metadata.tables) == EXPECTED_TABLES


def test_one_row_per_source_is_enforced_by_unique_keys():
    assert "quote_id" in _unique_columns("orders")
    assert "order_id" in _unique_columns("referral_tracking")
    assert "project_id" in _unique_columns("portfolio_drafts")
    assert "change_request_id" in _unique_columns("milestone_payments")
    assert "referral_code" in _unique_columns("users")


def test_phase_order_is_unique_per_project():
    table = Base.metadata.tables["project_phases"]
    constraints = {tuple(c.name for c in constraint.columns) for constraint in table.constraints if constraint.name}
    assert ("project_id", "order_index") in constraints


def test_migrations_create_every_table():
    source = "\n".join(path.read_text() for path in MIGRATIONS.glob("*.py"))
    created = set(re.findall(r'op\.create_table\(\s*"([a-z_]+)"', source))
    assert created == EXPECTED_TABLES


def test_project_request_reaches_its_order_through_the_quote():
    assert "order_id" not in Base.metadata.tables["project_requests"].columns
    assert "quote_id" in Base.metadata.tables["orders"].columns
