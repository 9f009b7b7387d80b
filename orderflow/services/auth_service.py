"""Credential authentication: e-mail + password, or a one-time quote token."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from orderflow.auth.jwt import TokenPair, create_token_pair
from orderflow.core.config import get_config
from orderflow.core.exceptions import InvalidCredentialsError, InvalidOrExpiredTokenError
from orderflow.core.security import verify_password
from orderflow.models import User, UserRole
from orderflow.services.base_service import BaseService
from orderflow.services.quote_service import QuoteService
from orderflow.utils.text import normalize_email

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthResult:
    user: User
    quote_id: int | None = None


class AuthService(BaseService):
    """Resolve a presented credential to a user.

    Every failure raises the same :class:`InvalidCredentialsError`, so callers
    cannot tell a wrong password from an unknown e-mail or a dead token.
    """

    def authenticate(self, credential: str, email: str | None = None, referral_code: str | None = None) -> AuthResult:
        if not credential or not credential.strip():
            raise InvalidCredentialsError("Invalid credentials.")
        if email:
            return self._authenticate_password(email, credential)
        return self._authenticate_quote_token(credential, referral_code)

    def _authenticate_password(self, email: str, password: str) -> AuthResult:
        user = self.db.query(User).filter(User.email == normalize_email(email)).first()
        pepper = get_config().PASSWORD_PEPPER
        if user is None or not user.password_hash or not verify_password(password, user.password_hash, pepper):
            logger.info("auth.login_failed", extra={"event": "auth.login_failed", "method": "password"})
            raise InvalidCredentialsError("Invalid credentials.")
        logger.info("auth.login_succeeded", extra={"event": "auth.login_succeeded", "user_id": user.id})
        return AuthResult(user=user)

    def _authenticate_quote_token(self, token: str, referral_code: str | None) -> AuthResult:
        quotes = QuoteService(self.db)
        try:
            redeemed = quotes.redeem(token, referral_code=referral_code)
        except InvalidOrExpiredTokenError as exc:
            logger.info("auth.login_failed", extra={"event": "auth.login_failed", "method": "quote_token"})
            raise InvalidCredentialsError("Invalid credentials.") from exc
        if redeemed.user.role != UserRole.CLIENT:
            # Quote links only ever sign in clients; staff use their password.
            logger.warning(
                "auth.login_failed",
                extra={"event": "auth.login_failed", "method": "quote_token", "reason": "non_client_account"},
            )
            raise InvalidCredentialsError("Invalid credentials.")
        logger.info(
            "auth.login_succeeded",
            extra={"event": "auth.login_succeeded", "user_id": redeemed.user.id, "quote_id": redeemed.quote.id},
        )
        return AuthResult(user=redeemed.user, quote_id=redeemed.quote.id)

    def issue_tokens(self, result: AuthResult) -> TokenPair:
        cfg = get_config()
        return create_token_pair(
            user_id=result.user.id,
            role=result.user.role.value,
            secret=cfg.JWT_SECRET,
            permissions_version=cfg.JWT_PERMISSIONS_VERSION,
            access_ttl_minutes=cfg.JWT_ACCESS_TTL_MINUTES,
            refresh_ttl_days=cfg.JWT_REFRESH_TTL_DAYS,
            quote_id=result.quote_id,
        )
