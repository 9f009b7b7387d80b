"""Project and project phase model module."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from orderflow.models.base import AuditMixin, Base
from orderflow.models.enums import PhaseStatus, ProjectStatus


class Project(Base, AuditMixin):
    __tablename__ = "projects"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    order_id: Mapped[int] = mapped_column(ForeignKey("orders.id", ondelete="RESTRICT"), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    status: Mapped[ProjectStatus] = mapped_column(Enum(ProjectStatus), default=ProjectStatus.REQUIREMENTS, nullable=False)

    order = relationship("Order", back_populates="projects")
    phases = relationship("ProjectPhase", back_populates="project", order_by="ProjectPhase.order_index")
    milestone_payments = relationship("MilestonePayment", back_populates="project", order_by="MilestonePayment.id")
    change_requests = relationship("ChangeRequest", back_populates="project", order_by="ChangeRequest.id")
    revisions = relationship("PaidRevisionRequest", back_populates="project", order_by="PaidRevisionRequest.id")


class ProjectPhase(Base, AuditMixin):
    __tablename__ = "project_phases"
    __table_args__ = (
        UniqueConstraint("project_id", "order_index", name="uq_project_phases_project_order"),
        Index("idx_project_phases_project_group", "project_id", "group"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    project_id: Mapped[int] = mapped_column(ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    group: Mapped[ProjectStatus] = mapped_column(Enum(ProjectStatus), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    due_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    status: Mapped[PhaseStatus] = mapped_column(Enum(PhaseStatus), default=PhaseStatus.PENDING, nullable=False)
    order_index: Mapped[int] = mapped_column(Integer, nullable=False)

    project = relationship("Project", back_populates="phases")
