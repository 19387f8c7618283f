from __future__ import annotations

from fastapi import HTTPException, Request

from .tokens import resolve_token


def bearer_token(request: Request) -> str | None:
    """Return the token from ``Authorization: Bearer <token>``, or ``None``."""
    header = request.headers.get("authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def require_user(request: Request) -> dict:
    """Raise 401 unless the request carries a live bearer token."""
    token = bearer_token(request)
    user = resolve_token(token) if token else None
    if not user:
        raise HTTPException(
            status_code=401,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user
