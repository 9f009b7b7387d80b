"""Auth endpoints for API v1."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, status

from orderflow.auth.jwt import create_token_pair, decode_jwt
from orderflow.core.config import get_config
from orderflow.core.exceptions import AuthenticationError
from orderflow.schemas.auth import LoginRequest, RefreshRequest, TokenResponse
from orderflow.services.auth_service import AuthService

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=TokenResponse)
def login(payload: LoginRequest) -> TokenResponse:
    try:
        with AuthService() as service:
            result = service.authenticate(
                credential=payload.credential,
                email=payload.email,
                referral_code=payload.referral_code,
            )
            tokens = service.issue_tokens(result)
            user_id, role = result.user.id, result.user.role.value
    except AuthenticationError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc

    return TokenResponse(
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        token_type=tokens.token_type,
        user_id=user_id,
        role=role,
        quote_id=result.quote_id,
    )


@router.post("/refresh", response_model=TokenResponse)
def refresh(payload: RefreshRequest) -> TokenResponse:
    cfg = get_config()
    try:
        claims = decode_jwt(payload.refresh_token, secret=cfg.JWT_SECRET)
    except AuthenticationError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc

    if claims.get("token_use") != "refresh":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token is not a refresh token.")

    quote_id = claims.get("quote_id")
    tokens = create_token_pair(
        user_id=int(claims["sub"]),
        role=str(claims["role"]),
        secret=cfg.JWT_SECRET,
        permissions_version=int(claims.get("permissions_version", cfg.JWT_PERMISSIONS_VERSION)),
        access_ttl_minutes=cfg.JWT_ACCESS_TTL_MINUTES,
        refresh_ttl_days=cfg.JWT_REFRESH_TTL_DAYS,
        quote_id=int(quote_id) if quote_id is not None else None,
    )
    return TokenResponse(
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        token_type=tokens.token_type,
        user_id=int(claims["sub"]),
        role=str(claims["role"]),
        quote_id=int(quote_id) if quote_id is not None else None,
    )
