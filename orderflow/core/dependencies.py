"""Dependency providers for API handlers and background workers."""

from __future__ import annotations

from collections.abc import Generator
from dataclasses import dataclass
from typing import Any

from sqlalchemy.orm import Session

from orderflow.auth.jwt import decode_jwt
from orderflow.auth.rbac import Actor
from orderflow.core.config import Config, get_config
from orderflow.core.exceptions import AuthenticationError
from orderflow.database.db import get_db
from orderflow.models.enums import UserRole


@dataclass(frozen=True)
class CurrentUser:
    user_id: int
    role: str
    permissions_version: int
    claims: dict[str, Any]

    @property
    def actor(self) -> Actor:
        return Actor.from_role_name(self.user_id, self.role)


def get_settings() -> Config:
    """Return validated application configuration."""
    return get_config()


def get_db_session() -> Generator[Session, None, None]:
    """Yield SQLAlchemy session for dependency injection."""
    yield from get_db()


def get_current_user(token: str, settings: Config | None = None) -> CurrentUser:
    """Resolve current user from an access token."""
    cfg = settings or get_settings()
    claims = decode_jwt(token=token, secret=cfg.JWT_SECRET)
    if claims.get("token_use", "access") != "access":
        raise AuthenticationError("Token is not an access token.")

    try:
        role = str(claims["role"]).lower()
        UserRole(role)
        permissions_version = int(claims.get("permissions_version", 1))
        user = CurrentUser(
            user_id=int(claims["sub"]),
            role=role,
            permissions_version=permissions_version,
            claims=claims,
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise AuthenticationError("Invalid auth claims.") from exc

    if permissions_version != cfg.JWT_PERMISSIONS_VERSION:
        raise AuthenticationError("Token permissions are outdated.")
    return user
