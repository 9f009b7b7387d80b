"""Paid revision request model module."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import JSON, DateTime, Enum, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from orderflow.models.base import AuditMixin, Base
from orderflow.models.enums import RevisionStatus


class PaidRevisionRequest(Base, AuditMixin):
    """A priced revision session booked against a project."""

    __tablename__ = "paid_revision_requests"
    __table_args__ = (Index("idx_paid_revision_requests_project_status", "project_id", "status"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    project_id: Mapped[int] = mapped_column(ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    details: Mapped[str | None] = mapped_column(Text)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    status: Mapped[RevisionStatus] = mapped_column(
        Enum(RevisionStatus), default=RevisionStatus.PENDING, nullable=False
    )
    session_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    session_duration_minutes: Mapped[int | None] = mapped_column(Integer)
    session_notes: Mapped[str | None] = mapped_column(Text)
    session_links: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    payment_proof_ref: Mapped[str | None] = mapped_column(String(2048))
    client_proposed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    client_proposed_duration_minutes: Mapped[int | None] = mapped_column(Integer)
    client_proposed_note: Mapped[str | None] = mapped_column(Text)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_by_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))

    project = relationship("Project", back_populates="revisions")
