"""Canonical state transition helpers for ledger entities."""

from __future__ import annotations

from enum import Enum

from orderflow.core.exceptions import ConflictError
from orderflow.models.enums import ChangeRequestStatus, MilestoneStatus, QuoteStatus, RevisionStatus


class InvalidTransitionError(ConflictError):
    """Raised when a disallowed state transition is attempted."""


class StateMachine:
    """Transition table keyed by the current state."""

    def __init__(self, name: str, transitions: dict[Enum, set[Enum]]) -> None:
        self.name = name
        self._transitions = transitions

    def can_transition(self, current: Enum, target: Enum) -> bool:
        return target in self._transitions.get(current, set())

    def assert_transition(self, current: Enum, target: Enum) -> None:
        if not self.can_transition(current=current, target=target):
            raise InvalidTransitionError(
                f"{self.name} transition not allowed: {current.value} -> {target.value}",
                field="status",
            )


QUOTE_MACHINE = StateMachine(
    "Quote",
    {
        QuoteStatus.DRAFT: {QuoteStatus.SENT, QuoteStatus.ACCEPTED, QuoteStatus.REJECTED},
        QuoteStatus.SENT: {QuoteStatus.SENT, QuoteStatus.ACCEPTED, QuoteStatus.REJECTED},
    },
)

MILESTONE_MACHINE = StateMachine(
    "Milestone payment",
    {
        MilestoneStatus.PENDING: {MilestoneStatus.UNDER_REVIEW},
        MilestoneStatus.UNDER_REVIEW: {MilestoneStatus.APPROVED, MilestoneStatus.REJECTED},
        MilestoneStatus.REJECTED: {MilestoneStatus.UNDER_REVIEW},
    },
)

CHANGE_REQUEST_MACHINE = StateMachine(
    "Change request",
    {
        ChangeRequestStatus.PENDING: {ChangeRequestStatus.ACCEPTED, ChangeRequestStatus.REJECTED},
    },
)

REVISION_MACHINE = StateMachine(
    "Paid revision",
    {
        RevisionStatus.PENDING: {RevisionStatus.IN_PROGRESS, RevisionStatus.REJECTED},
        RevisionStatus.IN_PROGRESS: {RevisionStatus.DELIVERED, RevisionStatus.REJECTED},
    },
)
