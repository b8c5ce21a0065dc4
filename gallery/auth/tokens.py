"""Confirmation token generation."""

from __future__ import annotations

import secrets

TOKEN_BYTES = 32


def generate_token() -> str:
    """Return an unguessable, URL-safe confirmation token."""
    return secrets.token_urlsafe(TOKEN_BYTES)
