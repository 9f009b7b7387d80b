"""Inbound project request model module."""

from __future__ import annotations

from sqlalchemy import Enum, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from orderflow.models.base import AuditMixin, Base
from orderflow.models.enums import RequestStatus


class ProjectRequest(Base, AuditMixin):
    __tablename__ = "project_requests"
    __table_args__ = (Index("idx_project_requests_status", "status"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    details: Mapped[str | None] = mapped_column(Text)
    status: Mapped[RequestStatus] = mapped_column(Enum(RequestStatus), default=RequestStatus.NEW, nullable=False)
    user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))

    user = relationship("User")
    quotes = relationship("Quote", back_populates="request")
