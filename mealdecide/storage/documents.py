from __future__ import annotations

import threading
from datetime import datetime
from typing import Callable, Generic, Iterable, Protocol, TypeVar


class Document(Protocol):
    id: str
    created_at: datetime


D = TypeVar("D", bound=Document)
Predicate = Callable[[D], bool]


class DocumentStore(Generic[D]):
    """Thread-safe in-memory collection ordered by ``(created_at desc, id desc)``.

    Stands in for the document database; ``find`` behaves like an indexed
    query with a compound descending sort and a row limit.
    """

    def __init__(self) -> None:
        self._docs: dict[str, D] = {}
        self._lock = threading.Lock()

    def save(self, doc: D) -> D:
        with self._lock:
            self._docs[doc.id] = doc
        return doc

    def get(self, doc_id: str) -> D | None:
        with self._lock:
            return self._docs.get(doc_id)

    def find(self, predicates: Iterable[Predicate], limit: int | None = None) -> list[D]:
        checks = list(predicates)
        with self._lock:
            matched = [d for d in self._docs.values() if all(p(d) for p in checks)]
        matched.sort(key=lambda d: (d.created_at, d.id), reverse=True)
        if limit is not None:
            matched = matched[:limit]
        return matched

    def count(self) -> int:
        with self._lock:
            return len(self._docs)

    def clear(self) -> None:
        with self._lock:
            self._docs.clear()
