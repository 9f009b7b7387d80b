"""Text sanitizers used before persistence."""

from __future__ import annotations

import re
import unicodedata


def sanitize_text(value: str | None, max_len: int = 20000) -> str:
    """Sanitize free-form content before persistence/display."""
    if value is None:
        return ""
    cleaned = str(value).replace("\x00", "").strip()
    cleaned = cleaned[:max_len]
    return cleaned


def optional_text(value: str | None, max_len: int = 20000) -> str | None:
    """Sanitize, mapping blank input to ``None``."""
    cleaned = sanitize_text(value, max_len=max_len)
    return cleaned or None


def slugify(value: str) -> str:
    normalized = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")
    slug = re.sub(r"[^a-z0-9]+", "-", normalized.lower()).strip("-")
    return slug or "project"


def normalize_email(value: str) -> str:
    return sanitize_text(value, max_len=320).lower()
