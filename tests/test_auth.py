from __future__ import annotations

from dataclasses import replace
from datetime import timedelta

import pytest

from orderflow.auth.jwt import create_access_token, create_token_pair, decode_jwt, encode_jwt
from orderflow.auth.rbac import Actor, has_scopes, require_scopes, require_staff
from orderflow.core.config import get_config
from orderflow.core.dependencies import get_current_user
from orderflow.core.exceptions import AuthenticationError, AuthorizationError, InvalidCredentialsError
from orderflow.models import UserRole
from orderflow.services.auth_service import AuthService
from orderflow.services.quote_service import QuoteService

SECRET = "unit-test-secret"


def test_token_pair_carries_role_and_quote_claims():
    pair = create_token_pair(user_id=7, role="client", secret=SECRET, quote_id=42)
    access = decode_jwt(pair.access_token, secret=SECRET)
    refresh = decode_jwt(pair.refresh_token, secret=SECRET)

    assert access["sub"] == "7"
    assert access["role"] == "client"
    assert access["token_use"] == "access"
    assert access["quote_id"] == 42
    assert refresh["token_use"] == "refresh"
    assert pair.token_type == "bearer"


def test_decode_rejects_tampering_and_expiry():
    token = create_access_token(user_id=1, role="admin", secret=SECRET)
    with pytest.raises(AuthenticationError):
        decode_jwt(token, secret="other-secret")
    with pytest.raises(AuthenticationError):
        decode_jwt("not-a-jwt", secret=SECRET)

    expired = encode_jwt({"sub": "1", "role": "admin"}, secret=SECRET, ttl=timedelta(seconds=-5))
    with pytest.raises(AuthenticationError, match="expired"):
        decode_jwt(expired, secret=SECRET)


def test_current_user_requires_access_token_and_current_permissions():
    cfg = replace(get_config(), JWT_SECRET=SECRET, JWT_PERMISSIONS_VERSION=2)

    pair = create_token_pair(user_id=3, role="partner", secret=SECRET, permissions_version=2)
    user = get_current_user(pair.access_token, settings=cfg)
    assert user.user_id == 3
    assert user.actor == Actor(user_id=3, role=UserRole.PARTNER)
    assert user.actor.is_staff

    with pytest.raises(AuthenticationError, match="not an access token"):
        get_current_user(pair.refresh_token, settings=cfg)
    stale = create_access_token(user_id=3, role="partner", secret=SECRET, permissions_version=1)
    with pytest.raises(AuthenticationError, match="outdated"):
        get_current_user(stale, settings=cfg)
    unknown_role = create_access_token(user_id=3, role="intern", secret=SECRET, permissions_version=2)
    with pytest.raises(AuthenticationError, match="claims"):
        get_current_user(unknown_role, settings=cfg)


def test_role_scopes():
    assert has_scopes("admin", ["anything.at.all"])
    assert has_scopes("partner", ["quotes.manage", "payments.review"])
    assert not has_scopes("client", ["quotes.manage"])
    assert has_scopes("client", ["quotes.respond", "orders.place"])
    with pytest.raises(AuthorizationError, match="payments.review"):
        require_scopes("client", ["payments.read", "payments.review"])

    with pytest.raises(AuthorizationError):
        require_staff(Actor(user_id=1, role=UserRole.CLIENT))
    with pytest.raises(AuthorizationError):
        require_staff(None)
    assert require_staff(Actor(user_id=1, role=UserRole.PARTNER)).user_id == 1


def test_password_login(session, make_user):
    user = make_user(email="staff@agency.test", role=UserRole.PARTNER, password="s3cret!")
    result = AuthService(session).authenticate("s3cret!", email=" Staff@Agency.test ")
    assert result.user.id == user.id
    assert result.quote_id is None

    pair = AuthService(session).issue_tokens(result)
    claims = decode_jwt(pair.access_token, secret=get_config().JWT_SECRET)
    assert claims["role"] == "partner"


def test_quote_token_login_returns_client_and_quote(session, notifier, make_request, admin_actor):
    issued = QuoteService(session, notifier=notifier).issue(make_request().id, 500, "Scope", admin_actor)

    result = AuthService(session).authenticate(issued.token)
    assert result.user.email == "client@example.com"
    assert result.user.role == UserRole.CLIENT
    assert result.quote_id == issued.quote.id

    claims = decode_jwt(AuthService(session).issue_tokens(result).access_token, secret=get_config().JWT_SECRET)
    assert claims["quote_id"] == issued.quote.id


def test_every_login_failure_looks_the_same(session, make_user):
    make_user(email="staff@agency.test", role=UserRole.ADMIN, password="right")
    make_user(email="nopass@agency.test")
    service = AuthService(session)

    messages = set()
    for credential, email in [
        ("wrong", "staff@agency.test"),
        ("right", "ghost@agency.test"),
        ("anything", "nopass@agency.test"),
        ("dead-token", None),
        ("   ", None),
    ]:
        with pytest.raises(InvalidCredentialsError) as exc:
            service.authenticate(credential, email=email)
        messages.add(str(exc.value))
    assert messages == {"Invalid credentials."}


def test_quote_token_does_not_sign_in_staff_accounts(session, notifier, make_user, make_request, admin_actor):
    make_user(email="partner@agency.test", role=UserRole.PARTNER)
    request = make_request(email="partner@agency.test")
    issued = QuoteService(session, notifier=notifier).issue(request.id, 500, "Scope", admin_actor)

    with pytest.raises(InvalidCredentialsError, match="Invalid credentials."):
        AuthService(session).authenticate(issued.token)
