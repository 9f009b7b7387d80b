"""Canonical enum values for the Orderflow schema."""

from __future__ import annotations

import enum


class UserRole(str, enum.Enum):
    ADMIN = "admin"
    PARTNER = "partner"
    CLIENT = "client"


STAFF_ROLES = frozenset({UserRole.ADMIN, UserRole.PARTNER})


class RequestStatus(str, enum.Enum):
    NEW = "NEW"
    REVIEWED = "REVIEWED"
    CONVERTED_TO_ORDER = "CONVERTED_TO_ORDER"
    REJECTED = "REJECTED"


class QuoteStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    SENT = "SENT"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


class OrderStatus(str, enum.Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class ProjectStatus(str, enum.Enum):
    """Lifecycle stages; declaration order is the delivery order."""

    REQUIREMENTS = "REQUIREMENTS"
    DESIGN = "DESIGN"
    DEV = "DEV"
    QA = "QA"
    DELIVERED = "DELIVERED"


LIFECYCLE_ORDER: tuple[ProjectStatus, ...] = tuple(ProjectStatus)


class PhaseStatus(str, enum.Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    BLOCKED = "BLOCKED"


class MilestoneStatus(str, enum.Enum):
    PENDING = "PENDING"
    UNDER_REVIEW = "UNDER_REVIEW"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class ChangeRequestStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


class ReferralStatus(str, enum.Enum):
    PENDING = "PENDING"
    EARNED = "EARNED"
    PAID_OUT = "PAID_OUT"


class RevisionStatus(str, enum.Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    DELIVERED = "DELIVERED"
    REJECTED = "REJECTED"
