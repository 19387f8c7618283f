"""
Opaque pagination cursors.

Format: unpadded base64url of ``"<epochMillis>:<id>"``. A cursor points at the
last row of a page; the next page holds rows strictly older in
``(createdAt desc, id desc)`` order.
"""
from __future__ import annotations

import base64
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from ..base import as_utc
from ..errors import MalformedCursor

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_MILLIS_RE = re.compile(r"-?\d+")


@dataclass(frozen=True)
class Cursor:
    created_at: datetime
    id: str


def _to_millis(value: datetime) -> int:
    return (as_utc(value) - _EPOCH) // timedelta(milliseconds=1)


def encode_cursor(created_at: datetime, record_id: str) -> str:
    raw = f"{_to_millis(created_at)}:{record_id}"
    return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii").rstrip("=")


def decode_cursor(token: str) -> Cursor:
    """Parse a cursor, raising ``MalformedCursor`` on any defect."""
    try:
        padded = token + "=" * (-len(token) % 4)
        raw = base64.b64decode(padded.encode("ascii"), altchars=b"-_", validate=True).decode("utf-8")
        millis, sep, record_id = raw.partition(":")
        if not sep or not _MILLIS_RE.fullmatch(millis) or not record_id.strip():
            raise ValueError("bad cursor")
        created_at = _EPOCH + timedelta(milliseconds=int(millis))
    except (ValueError, OverflowError) as exc:
        raise MalformedCursor() from exc
    return Cursor(created_at=created_at, id=record_id)
