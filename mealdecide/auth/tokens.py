from __future__ import annotations

import secrets
import threading
from typing import Any

_tokens: dict[str, dict[str, Any]] = {}
_lock = threading.Lock()


def issue_token(user: dict[str, Any]) -> str:
    """Mint an opaque bearer token for an authenticated user."""
    token = secrets.token_urlsafe(32)
    with _lock:
        _tokens[token] = dict(user)
    return token


def resolve_token(token: str) -> dict[str, Any] | None:
    with _lock:
        return _tokens.get(token)


def revoke_token(token: str) -> None:
    with _lock:
        _tokens.pop(token, None)
