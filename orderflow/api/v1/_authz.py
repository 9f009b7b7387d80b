"""Shared authorization and error-mapping helpers for API v1 route modules."""

from __future__ import annotations

from fastapi import HTTPException, status

from orderflow.auth.rbac import Actor, require_scopes
from orderflow.core.config import get_config
from orderflow.core.dependencies import CurrentUser, get_current_user
from orderflow.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    InvalidOrExpiredTokenError,
    NotFoundError,
    OrderflowError,
    ValidationError,
)


def _extract_bearer_token(authorization: str | None) -> str:
    if authorization is None or not authorization.strip():
        raise AuthenticationError("Authorization header is required.")
    parts = authorization.strip().split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise AuthenticationError("Authorization header must use Bearer token.")
    return parts[1].strip()


def authorize(authorization: str | None, scopes: list[str]) -> CurrentUser:
    token = _extract_bearer_token(authorization)
    user = get_current_user(token=token, settings=get_config())
    require_scopes(user.role, scopes)
    return user


def require_actor(authorization: str | None, scopes: list[str]) -> Actor:
    """Authorize the bearer token and return the acting user, or raise ``HTTPException``."""
    try:
        return authorize(authorization=authorization, scopes=scopes).actor
    except (AuthenticationError, AuthorizationError) as exc:
        code, detail = map_auth_error(exc)
        raise HTTPException(status_code=code, detail=detail) from exc


def optional_actor(authorization: str | None, scopes: list[str]) -> Actor | None:
    """Like :func:`require_actor`, but an absent header means an anonymous caller."""
    if authorization is None or not authorization.strip():
        return None
    return require_actor(authorization, scopes)


def map_auth_error(exc: Exception) -> tuple[int, str]:
    if isinstance(exc, AuthenticationError):
        return 401, str(exc)
    if isinstance(exc, AuthorizationError):
        return 403, str(exc)
    return 401, "Unauthorized."


def to_http_exception(exc: OrderflowError) -> HTTPException:
    """Translate a domain error into the matching HTTP status."""
    if isinstance(exc, InvalidOrExpiredTokenError):
        code = status.HTTP_400_BAD_REQUEST
    elif isinstance(exc, ValidationError):
        code = status.HTTP_400_BAD_REQUEST
    elif isinstance(exc, AuthenticationError):
        code = status.HTTP_401_UNAUTHORIZED
    elif isinstance(exc, AuthorizationError):
        code = status.HTTP_403_FORBIDDEN
    elif isinstance(exc, NotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, ConflictError):
        code = status.HTTP_409_CONFLICT
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    detail: dict[str, str | None] = {
        "error_code": exc.__class__.__name__,
        "detail": exc.message or str(exc),
        "field": exc.field,
    }
    return HTTPException(status_code=code, detail=detail)
