"""SQLAlchemy model package for the Orderflow schema."""

from orderflow.models.audit import AuditEntry
from orderflow.models.base import Base
from orderflow.models.change_request import ChangeRequest
from orderflow.models.enums import (
    ChangeRequestStatus,
    MilestoneStatus,
    OrderStatus,
    PhaseStatus,
    ProjectStatus,
    QuoteStatus,
    ReferralStatus,
    RequestStatus,
    RevisionStatus,
    UserRole,
)
from orderflow.models.milestone import MilestonePayment
from orderflow.models.order import Order
from orderflow.models.portfolio import PortfolioDraft
from orderflow.models.project import Project, ProjectPhase
from orderflow.models.project_request import ProjectRequest
from orderflow.models.quote import Quote, QuotePlan, QuotePlanPayment, QuotePlanPhase
from orderflow.models.referral import ReferralTracking
from orderflow.models.revision import PaidRevisionRequest
from orderflow.models.user import User

__all__ = [
    "AuditEntry",
    "Base",
    "ChangeRequest",
    "ChangeRequestStatus",
    "MilestonePayment",
    "MilestoneStatus",
    "Order",
    "OrderStatus",
    "PaidRevisionRequest",
    "PhaseStatus",
    "PortfolioDraft",
    "Project",
    "ProjectPhase",
    "ProjectRequest",
    "ProjectStatus",
    "Quote",
    "QuotePlan",
    "QuotePlanPayment",
    "QuotePlanPhase",
    "QuoteStatus",
    "ReferralStatus",
    "ReferralTracking",
    "RequestStatus",
    "RevisionStatus",
    "User",
    "UserRole",
]
