"""
Feedback and intent events on past decisions.

A feedback submission moves a decision from "no feedback" to "feedback
recorded" (a later submission silently replaces the earlier one). The decision
save is the success boundary; the preference update and the echoed event are
derived writes whose failures are logged and never surface to the caller.
"""
from __future__ import annotations

import logging
import uuid

from ..base import utc_now
from ..errors import Forbidden, NotFound, ValidationFailed
from ..preferences.store import PreferenceStore, preference_store
from ..storage.documents import DocumentStore
from .models import (
    CreateEventRequest,
    Decision,
    DecisionEvent,
    EventAction,
    Feedback,
    FeedbackCategory,
    FeedbackReason,
    FeedbackRequest,
)
from .store import decision_store, event_store

logger = logging.getLogger(__name__)

# Checked in order; first keyword group found in the reason code wins.
_CATEGORY_KEYWORDS: list[tuple[FeedbackCategory, tuple[str, ...]]] = [
    (FeedbackCategory.PRICE, ("PRICE", "BUDGET")),
    (FeedbackCategory.DIET, ("DIET", "ALLERG", "VEG")),
    (FeedbackCategory.AVAILABILITY, ("SOLD_OUT", "CLOSED", "UNAVAILABLE")),
    (FeedbackCategory.VARIETY, ("SAME", "BORING", "VARIETY")),
    (FeedbackCategory.TASTE, ("TASTE", "SPICY", "SWEET")),
]


def infer_category(reason_code: str | None) -> FeedbackCategory | None:
    if reason_code is None or not reason_code.strip():
        return None
    normalized = reason_code.strip().upper()
    for category, keywords in _CATEGORY_KEYWORDS:
        if any(k in normalized for k in keywords):
            return category
    return FeedbackCategory.OTHER


def get_owned_decision(
    user_id: str,
    decision_id: str,
    decisions: DocumentStore[Decision] = decision_store,
) -> Decision:
    decision = decisions.get(decision_id)
    if decision is None:
        raise NotFound("decision not found")
    if decision.user_id != user_id:
        raise Forbidden("not your decision")
    return decision


def _build_feedback(body: FeedbackRequest) -> Feedback:
    has_code = bool(body.reason_code and body.reason_code.strip())
    category = body.category or infer_category(body.reason_code)
    reason = None
    if category is not None or has_code:
        reason = FeedbackReason(category=category, code=body.reason_code, tags=list(body.tags or []))
    return Feedback(
        status=body.status,
        reason_code=body.reason_code,
        reason=reason,
        comment=body.comment,
        rating=body.rating,
        created_at=utc_now(),
    )


def submit_feedback(
    user_id: str,
    decision_id: str,
    body: FeedbackRequest,
    *,
    decisions: DocumentStore[Decision] = decision_store,
    events: DocumentStore[DecisionEvent] = event_store,
    preferences: PreferenceStore = preference_store,
) -> Decision:
    existing = get_owned_decision(user_id, decision_id, decisions)
    feedback = _build_feedback(body)

    saved = decisions.save(existing.model_copy(update={"feedback": feedback}))

    try:
        preferences.apply_feedback(saved.user_id, saved, feedback)
    except Exception:
        logger.warning("Preference update failed for decision %s", saved.id, exc_info=True)

    try:
        events.save(DecisionEvent(
            id=uuid.uuid4().hex,
            decision_id=saved.id,
            user_id=saved.user_id,
            action=EventAction(feedback.status.value),
            created_at=utc_now(),
        ))
    except Exception:
        logger.warning("Feedback event append failed for decision %s", saved.id, exc_info=True)

    return saved


def record_event(
    user_id: str,
    decision_id: str,
    body: CreateEventRequest,
    *,
    decisions: DocumentStore[Decision] = decision_store,
    events: DocumentStore[DecisionEvent] = event_store,
) -> DecisionEvent:
    """Append an intent event; allowed whatever the decision's feedback state."""
    if body.action == EventAction.CLICK_PLATFORM and body.platform is None:
        raise ValidationFailed(
            "platform is required when action=CLICK_PLATFORM",
            [{"field": "platform", "message": "platform is required when action=CLICK_PLATFORM"}],
        )

    existing = get_owned_decision(user_id, decision_id, decisions)
    return events.save(DecisionEvent(
        id=uuid.uuid4().hex,
        decision_id=existing.id,
        user_id=existing.user_id,
        action=body.action,
        platform=body.platform,
        context=body.context,
        created_at=utc_now(),
    ))
