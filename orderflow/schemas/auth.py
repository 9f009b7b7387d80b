"""Auth schema module."""

from __future__ import annotations

from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    """Either ``email`` + ``credential`` (password) or a bare quote token as ``credential``."""

    credential: str = Field(min_length=1, max_length=256)
    email: str | None = Field(default=None, max_length=320)
    referral_code: str | None = Field(default=None, max_length=32)


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user_id: int | None = None
    role: str | None = None
    quote_id: int | None = None


class RefreshRequest(BaseModel):
    refresh_token: str


class TokenClaims(BaseModel):
    sub: str
    role: str
    permissions_version: int = 1
    exp: int
    iat: int
    jti: str
    token_use: str
    quote_id: int | None = None
