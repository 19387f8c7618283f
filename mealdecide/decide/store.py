from __future__ import annotations

from ..storage.documents import DocumentStore
from .models import Decision, DecisionEvent

decision_store: DocumentStore[Decision] = DocumentStore()
event_store: DocumentStore[DecisionEvent] = DocumentStore()


def clear_decisions() -> None:
    decision_store.clear()


def clear_events() -> None:
    event_store.clear()
