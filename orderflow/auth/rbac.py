"""Role-based authorization helpers."""

from __future__ import annotations

from dataclasses import dataclass

from orderflow.core.exceptions import AuthorizationError
from orderflow.models.enums import STAFF_ROLES, UserRole

# Scope strings are kept explicit for endpoint-level declarations.
ROLE_SCOPES: dict[str, set[str]] = {
    "admin": {
        "*",
    },
    "partner": {
        "quotes.manage",
        "quotes.respond",
        "quotes.read",
        "projects.manage",
        "projects.read",
        "payments.submit",
        "payments.review",
        "payments.read",
        "changes.propose",
        "changes.decide",
        "revisions.request",
        "orders.manage",
        "orders.read",
        "referrals.read",
        "referrals.payout",
        "referrals.admin",
    },
    "client": {
        "quotes.respond",
        "quotes.read",
        "projects.read",
        "payments.submit",
        "payments.read",
        "changes.propose",
        "revisions.request",
        "orders.place",
        "orders.read",
        "referrals.read",
        "referrals.payout",
    },
}


@dataclass(frozen=True)
class Actor:
    """The authenticated user on whose behalf a service operation runs."""

    user_id: int
    role: UserRole

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    @classmethod
    def from_role_name(cls, user_id: int, role: str) -> "Actor":
        return cls(user_id=int(user_id), role=UserRole(role.lower()))


def require_staff(actor: Actor | None, action: str = "perform this action") -> Actor:
    """Raise unless the actor is ADMIN or PARTNER."""
    if actor is None or not actor.is_staff:
        raise AuthorizationError(f"Only staff may {action}.")
    return actor


def get_scopes_for_role(role: str) -> set[str]:
    """Return scopes granted to a role."""
    return ROLE_SCOPES.get(role.lower(), set())


def has_scopes(role: str, required_scopes: list[str] | set[str] | tuple[str, ...]) -> bool:
    """Check if role includes every required scope."""
    granted = get_scopes_for_role(role)
    if "*" in granted:
        return True
    return set(required_scopes).issubset(granted)


def require_scopes(role: str, required_scopes: list[str] | set[str] | tuple[str, ...]) -> None:
    """Raise when a role lacks required scopes."""
    if has_scopes(role=role, required_scopes=required_scopes):
        return
    missing = sorted(set(required_scopes) - get_scopes_for_role(role))
    raise AuthorizationError(f"Missing required scopes: {', '.join(missing)}")
