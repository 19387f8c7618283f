"""
Online preference learning from decision feedback.

Only the top-ranked candidate of a decision is used as the signal:

* ACCEPT nudges every tag of that item, and its restaurant, up by one.
* REJECT (or any other non-skip status) nudges them down by one.
* SKIP, or a decision without candidates, changes nothing.

Weights stay inside ``[weight_min, weight_max]`` and a weight that lands on
zero is dropped from the map. The price-penalty counter rises on a
``TOO_PRICEY`` rejection and falls on any acceptance.
"""
from __future__ import annotations

from ..base import utc_now
from ..decide.models import Decision, Feedback, FeedbackStatus
from .config import DEFAULT_PREFERENCE_CONFIG, PreferenceConfig
from .models import UserPreference, normalize_key


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def _bump(weights: dict[str, int], key: str, delta: int, config: PreferenceConfig) -> None:
    nxt = _clamp(weights.get(key, 0) + delta, config.weight_min, config.weight_max)
    if nxt == 0:
        weights.pop(key, None)
    else:
        weights[key] = nxt


def apply_decision_feedback(
    preference: UserPreference,
    decision: Decision,
    feedback: Feedback,
    config: PreferenceConfig = DEFAULT_PREFERENCE_CONFIG,
) -> UserPreference:
    """Return the preference state after learning from *feedback*.

    Pure: the input record is never mutated. When nothing is learned the same
    object is returned, which lets callers skip the write.
    """
    if feedback is None or not decision.candidates:
        return preference
    if feedback.status == FeedbackStatus.SKIP:
        return preference

    top = decision.candidates[0].item
    delta = 1 if feedback.status == FeedbackStatus.ACCEPT else -1

    tag_weights = dict(preference.tag_weights)
    for tag in top.tags:
        key = normalize_key(tag)
        if key:
            _bump(tag_weights, key, delta, config)

    restaurant_weights = dict(preference.restaurant_weights)
    restaurant = normalize_key(top.restaurant_name)
    if restaurant:
        _bump(restaurant_weights, restaurant, delta, config)

    price_penalty = preference.price_penalty
    if (
        feedback.status == FeedbackStatus.REJECT
        and feedback.reason_code
        and feedback.reason_code.strip().upper() == config.too_pricey_reason
    ):
        price_penalty = _clamp(price_penalty + 1, config.price_penalty_min, config.price_penalty_max)
    if feedback.status == FeedbackStatus.ACCEPT:
        price_penalty = _clamp(price_penalty - 1, config.price_penalty_min, config.price_penalty_max)

    return preference.model_copy(update={
        "tag_weights": tag_weights,
        "restaurant_weights": restaurant_weights,
        "price_penalty": price_penalty,
        "updated_at": utc_now(),
    })
