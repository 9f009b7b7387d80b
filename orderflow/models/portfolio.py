"""Portfolio draft model module."""

from __future__ import annotations

from sqlalchemy import Boolean, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from orderflow.models.base import AuditMixin, Base


class PortfolioDraft(Base, AuditMixin):
    """Unpublished showcase entry created once when a project is delivered."""

    __tablename__ = "portfolio_drafts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    project_id: Mapped[int] = mapped_column(ForeignKey("projects.id", ondelete="CASCADE"), unique=True, nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    project_type: Mapped[str | None] = mapped_column(String(120))
    locale: Mapped[str] = mapped_column(String(8), default="en", nullable=False)
    is_published: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
