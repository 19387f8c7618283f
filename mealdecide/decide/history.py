"""
Cursor-paginated reads over decisions and decision events.

All filters AND together. The time window is inclusive at both ends. Rows are
ordered ``(createdAt desc, id desc)``; a page fetches ``limit + 1`` rows and
only hands out a next cursor when the extra row exists. Cursor and window
errors are raised before the store is queried.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Generic, TypeVar

from ..base import as_utc
from ..errors import ValidationFailed
from ..storage.documents import DocumentStore, Predicate
from .cursor import Cursor, decode_cursor, encode_cursor
from .models import Decision, DecisionEvent, FeedbackStatus
from .store import decision_store, event_store

T = TypeVar("T")


@dataclass(frozen=True)
class HistoryQuery:
    limit: int = 50
    cursor: str | None = None
    from_time: datetime | None = None
    to_time: datetime | None = None
    has_feedback: bool | None = None
    feedback_status: FeedbackStatus | None = None
    reason_code: str | None = None


@dataclass
class Page(Generic[T]):
    items: list[T] = field(default_factory=list)
    next_cursor: str | None = None


def _older_than(cursor: Cursor) -> Predicate:
    def check(doc) -> bool:
        return doc.created_at < cursor.created_at or (
            doc.created_at == cursor.created_at and doc.id < cursor.id
        )
    return check


def _window(query: HistoryQuery) -> list[Predicate]:
    start = as_utc(query.from_time) if query.from_time is not None else None
    end = as_utc(query.to_time) if query.to_time is not None else None
    if start is not None and end is not None and start > end:
        raise ValidationFailed("from must be <= to")

    predicates: list[Predicate] = []
    if start is not None:
        predicates.append(lambda d: d.created_at >= start)
    if end is not None:
        predicates.append(lambda d: d.created_at <= end)
    return predicates


def _paginate(store: DocumentStore, predicates: list[Predicate], limit: int) -> Page:
    if limit < 1:
        raise ValidationFailed("limit must be >= 1")
    rows = store.find(predicates, limit=limit + 1)
    if len(rows) <= limit:
        return Page(items=rows)
    page = rows[:limit]
    last = page[-1]
    return Page(items=page, next_cursor=encode_cursor(last.created_at, last.id))


def _base_predicates(query: HistoryQuery) -> list[Predicate]:
    predicates: list[Predicate] = []
    if query.cursor:
        predicates.append(_older_than(decode_cursor(query.cursor)))
    predicates.extend(_window(query))
    return predicates


def list_decisions(
    user_id: str,
    query: HistoryQuery,
    store: DocumentStore[Decision] = decision_store,
) -> Page[Decision]:
    predicates = _base_predicates(query)
    predicates.append(lambda d: d.user_id == user_id)

    if query.has_feedback is True:
        predicates.append(lambda d: d.feedback is not None)
    elif query.has_feedback is False:
        predicates.append(lambda d: d.feedback is None)

    if query.feedback_status is not None:
        status = query.feedback_status
        predicates.append(lambda d: d.feedback is not None and d.feedback.status == status)

    if query.reason_code and query.reason_code.strip():
        code = query.reason_code
        predicates.append(lambda d: d.feedback is not None and d.feedback.reason_code == code)

    return _paginate(store, predicates, query.limit)


def list_events(
    query: HistoryQuery,
    *,
    user_id: str | None = None,
    decision_id: str | None = None,
    store: DocumentStore[DecisionEvent] = event_store,
) -> Page[DecisionEvent]:
    """Events for a user, a decision, or both. At least one key is required."""
    if user_id is None and decision_id is None:
        raise ValidationFailed("user_id or decision_id is required")

    predicates = _base_predicates(query)
    if user_id is not None:
        predicates.append(lambda e: e.user_id == user_id)
    if decision_id is not None:
        predicates.append(lambda e: e.decision_id == decision_id)
    return _paginate(store, predicates, query.limit)
