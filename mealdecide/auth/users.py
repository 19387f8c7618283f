"""
Demo account directory for the decision API.

Accounts are seeded on import; registration lives outside this service.
Decisions, preferences and items are keyed by the stable ``user_id``, never by
the login name, so a login name can be changed without orphaning history.
"""
from __future__ import annotations

from typing import Any

import bcrypt

# login name -> (password, user id)
DEMO_ACCOUNTS: dict[str, tuple[str, str]] = {
    "user": ("user123", "usr_user"),
    "guest": ("guest123", "usr_guest"),
}

_accounts: dict[str, dict[str, str]] = {}


def _normalize_username(username: str | None) -> str:
    return (username or "").strip().lower()


def _seed_accounts() -> None:
    for username, (password, user_id) in DEMO_ACCOUNTS.items():
        _accounts[username] = {
            "user_id": user_id,
            "password_hash": bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode(),
        }


def user_id_for(username: str | None) -> str | None:
    """Owner id used by the stores for *username*, or ``None`` if unknown."""
    account = _accounts.get(_normalize_username(username))
    return account["user_id"] if account else None


def authenticate(username: str, password: str) -> dict[str, Any] | None:
    """Verify credentials. Returns ``{user_id, username}`` or ``None``."""
    key = _normalize_username(username)
    account = _accounts.get(key)
    if account is None:
        return None
    if not bcrypt.checkpw(password.encode(), account["password_hash"].encode()):
        return None
    return {"user_id": user_id_for(key), "username": key}


_seed_accounts()
