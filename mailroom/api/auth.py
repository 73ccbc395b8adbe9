"""Authenticated user boundary.

Login and sessions are handled by an upstream layer which forwards the
authenticated user's id in a trusted header (``AUTH_USER_HEADER``).  This
module only turns that header into a ``UUID``; it never checks credentials.
"""
from __future__ import annotations

from uuid import UUID

from fastapi import HTTPException, Request

from mailroom.core.errors import AuthenticationError
from mailroom.core.settings import get_settings


def resolve_user_id(raw: str | None) -> UUID:
    if raw is None or not raw.strip():
        raise AuthenticationError("No authenticated user on the request")
    try:
        return UUID(raw.strip())
    except ValueError:
        raise AuthenticationError("Authenticated user id is malformed") from None


def get_current_user_id(request: Request) -> UUID:
    """FastAPI dependency: the authenticated user id, or 401."""
    header = get_settings().auth_user_header
    try:
        return resolve_user_id(request.headers.get(header))
    except AuthenticationError as exc:
        raise HTTPException(status_code=401, detail=str(exc))
