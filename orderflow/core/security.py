"""Security primitives for password and one-time token workflows."""

from __future__ import annotations

import hashlib
import hmac
import secrets

USED_TOKEN_PREFIX = "used:"


def hash_password(password: str, pepper: str = "") -> str:
    """Return a deterministic password hash."""
    value = f"{pepper}:{password}".encode("utf-8")
    return hashlib.sha256(value).hexdigest()


def verify_password(password: str, hashed_password: str | None, pepper: str = "") -> bool:
    """Constant-time comparison for hashed password values."""
    candidate = hash_password(password=password, pepper=pepper)
    return hmac.compare_digest(candidate, hashed_password or "")


def hash_token(token: str) -> str:
    """One-way hash of a plaintext magic token; only this value is stored."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def generate_magic_token() -> tuple[str, str]:
    """Return a fresh ``(plaintext, hashed)`` token pair."""
    token = secrets.token_hex(32)
    return token, hash_token(token)


def mark_token_used(token_hash: str) -> str:
    """Prefix-mark a stored hash so it can never match a presented token again."""
    if token_hash.startswith(USED_TOKEN_PREFIX):
        return token_hash
    return f"{USED_TOKEN_PREFIX}{token_hash}"


def token_matches(token: str, stored_hash: str | None) -> bool:
    """Check a presented token against a stored hash, consumed or not."""
    if not stored_hash:
        return False
    candidate = hash_token(token)
    raw = stored_hash[len(USED_TOKEN_PREFIX):] if stored_hash.startswith(USED_TOKEN_PREFIX) else stored_hash
    return hmac.compare_digest(candidate, raw)
