from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated

from pydantic import ConfigDict, Field, StringConstraints

from ..base import CamelModel

Tag = Annotated[str, StringConstraints(max_length=32)]


class Platform(str, Enum):
    SWIGGY = "SWIGGY"
    ZOMATO = "ZOMATO"
    EATSURE = "EATSURE"


class FeedbackStatus(str, Enum):
    ACCEPT = "ACCEPT"
    REJECT = "REJECT"
    SKIP = "SKIP"


class FeedbackCategory(str, Enum):
    PRICE = "PRICE"
    TASTE = "TASTE"
    DIET = "DIET"
    AVAILABILITY = "AVAILABILITY"
    VARIETY = "VARIETY"
    OTHER = "OTHER"


class EventAction(str, Enum):
    ACCEPT = "ACCEPT"
    REJECT = "REJECT"
    SKIP = "SKIP"
    CLICK_PLATFORM = "CLICK_PLATFORM"


# ── Decide request / response ───────────────────────────────────────────


class DecideRequest(CamelModel):
    budget: int | None = Field(default=None, ge=0, le=100000)
    must_have_tags: list[Tag] | None = Field(default=None, max_length=20)
    avoid_tags: list[Tag] | None = Field(default=None, max_length=20)
    query: str | None = Field(default=None, max_length=200)
    limit: int | None = Field(default=None, ge=1, le=50)


class ItemSnapshot(CamelModel):
    id: str
    name: str
    restaurant_name: str | None = None
    tags: list[str] = Field(default_factory=list)
    price_estimate: int | None = None


class DeepLink(CamelModel):
    platform: Platform
    url: str


class ScoreBreakdown(CamelModel):
    base: float = 1.0
    budget_fit: float = 0.0
    must_tag_match: float = 0.0
    avoid_tag_penalty: float = 0.0
    query_match: float = 0.0
    restaurant_affinity: float = 0.0
    tag_affinity: float = 0.0
    price_sensitivity: float = 0.0
    total: float = 1.0


class Candidate(CamelModel):
    item: ItemSnapshot
    score: float
    confidence: float
    why: list[str] = Field(default_factory=list)
    deep_links: list[DeepLink] = Field(default_factory=list)
    breakdown: ScoreBreakdown


class DecideResponse(CamelModel):
    decision_id: str | None
    user_id: str
    time: str
    limit: int
    candidates: list[Candidate]
    message: str | None = None


# ── Persisted decision ──────────────────────────────────────────────────


class DecideInput(CamelModel):
    budget: int | None = None
    must_have_tags: list[str] | None = None
    avoid_tags: list[str] | None = None
    query: str | None = None
    limit: int


class FeedbackReason(CamelModel):
    category: FeedbackCategory | None = None
    code: str | None = None
    tags: list[str] = Field(default_factory=list)


class Feedback(CamelModel):
    status: FeedbackStatus
    reason_code: str | None = None
    reason: FeedbackReason | None = None
    comment: str | None = None
    rating: int | None = None
    created_at: datetime


class PreferenceSnapshot(CamelModel):
    model_config = ConfigDict(frozen=True)

    schema_version: int
    tag_weights: dict[str, int] = Field(default_factory=dict)
    restaurant_weights: dict[str, int] = Field(default_factory=dict)
    price_penalty: int = 0
    updated_at: datetime | None = None


class DecisionMeta(CamelModel):
    model_config = ConfigDict(frozen=True)

    schema_version: int
    algorithm: str
    algorithm_version: str
    input_hash: str | None
    items_hash: str | None
    preference_hash: str | None
    preference_snapshot: PreferenceSnapshot | None = None


class Decision(CamelModel):
    """One ranking call, frozen at creation apart from ``feedback``.

    Feedback is replaced with ``model_copy``; a later submission overwrites an
    earlier one and no history is kept.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str
    created_at: datetime
    input: DecideInput
    candidates: list[Candidate]
    feedback: Feedback | None = None
    meta: DecisionMeta | None = None


# ── Feedback and intent events ──────────────────────────────────────────


class FeedbackRequest(CamelModel):
    status: FeedbackStatus
    reason_code: str | None = Field(default=None, max_length=64)
    category: FeedbackCategory | None = None
    tags: list[Tag] | None = None
    rating: int | None = Field(default=None, ge=1, le=5)
    comment: str | None = Field(default=None, max_length=500)


class EventContext(CamelModel):
    time_of_day: str | None = None
    device: str | None = None
    location_hint: str | None = None


class CreateEventRequest(CamelModel):
    action: EventAction
    platform: Platform | None = None
    context: EventContext | None = None


class DecisionEvent(CamelModel):
    model_config = ConfigDict(frozen=True)

    id: str
    decision_id: str
    user_id: str
    action: EventAction
    platform: Platform | None = None
    context: EventContext | None = None
    created_at: datetime
