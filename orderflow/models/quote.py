"""Quote and typed quote plan model module."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, Enum, ForeignKey, Index, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from orderflow.models.base import AuditMixin, Base, as_utc, utcnow
from orderflow.models.enums import ProjectStatus, QuoteStatus


class Quote(Base, AuditMixin):
    __tablename__ = "quotes"
    __table_args__ = (
        Index("idx_quotes_status_expires", "status", "expires_at"),
        Index("idx_quotes_token_hash", "token_hash"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    request_id: Mapped[int] = mapped_column(ForeignKey("project_requests.id", ondelete="RESTRICT"), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="USD", nullable=False)
    scope: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[QuoteStatus] = mapped_column(Enum(QuoteStatus), default=QuoteStatus.DRAFT, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    accepted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    archived_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    token_hash: Mapped[str | None] = mapped_column(String(80))

    request = relationship("ProjectRequest", back_populates="quotes")
    plan = relationship("QuotePlan", back_populates="quote", uselist=False, cascade="all, delete-orphan")
    order = relationship("Order", back_populates="quote", uselist=False)

    def is_expired(self, now: datetime | None = None) -> bool:
        return as_utc(self.expires_at) <= (now or utcnow())

    @property
    def is_archived(self) -> bool:
        return self.archived_at is not None


class QuotePlan(Base, AuditMixin):
    """Project metadata proposed alongside a quote and seeded on acceptance."""

    __tablename__ = "quote_plans"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    quote_id: Mapped[int] = mapped_column(ForeignKey("quotes.id", ondelete="CASCADE"), unique=True, nullable=False)
    service_ref: Mapped[str | None] = mapped_column(String(120))
    project_title: Mapped[str | None] = mapped_column(String(255))
    project_description: Mapped[str | None] = mapped_column(Text)
    delivery_estimate: Mapped[str | None] = mapped_column(String(255))
    timeline: Mapped[str | None] = mapped_column(String(255))
    payment_notes: Mapped[str | None] = mapped_column(Text)

    quote = relationship("Quote", back_populates="plan")
    phases = relationship(
        "QuotePlanPhase", cascade="all, delete-orphan", order_by="QuotePlanPhase.order_index"
    )
    payments = relationship("QuotePlanPayment", cascade="all, delete-orphan", order_by="QuotePlanPayment.id")


class QuotePlanPhase(Base):
    __tablename__ = "quote_plan_phases"
    __table_args__ = (UniqueConstraint("plan_id", "key", name="uq_quote_plan_phases_plan_key"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    plan_id: Mapped[int] = mapped_column(ForeignKey("quote_plans.id", ondelete="CASCADE"), nullable=False)
    key: Mapped[str] = mapped_column(String(64), nullable=False)
    group: Mapped[ProjectStatus] = mapped_column(Enum(ProjectStatus), default=ProjectStatus.REQUIREMENTS, nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    due_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    order_index: Mapped[int] = mapped_column(Integer, default=0, nullable=False)


class QuotePlanPayment(Base):
    __tablename__ = "quote_plan_payments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    plan_id: Mapped[int] = mapped_column(ForeignKey("quote_plans.id", ondelete="CASCADE"), nullable=False)
    label: Mapped[str] = mapped_column(String(255), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    due_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    before_phase_key: Mapped[str | None] = mapped_column(String(64))
