"""
Heuristic candidate scoring.

Each item starts at ``BASE_SCORE`` and collects additive adjustments from the
request (budget, must-have tags, avoid tags, query), the user's explicit
profile (hard avoids, avoid/prefer tags and restaurants) and the learned
preference weights. Every adjustment is recorded in a ``ScoreBreakdown`` and,
where it is user-visible, as an explanation bullet.

Ranking is a total order: score desc, updatedAt desc, createdAt desc (missing
timestamps last), id asc. Confidence is a softmax over the returned top N.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

import numpy as np

from ..items.models import Item
from ..preferences.models import PreferenceProfile, UserPreference
from .models import ScoreBreakdown
from .normalization import normalize_tags, normalize_text

BASE_SCORE = 1.0

WITHIN_BUDGET = 1.2
OVER_BUDGET = -0.8
MUST_TAG_MATCH = 0.7
MUST_TAG_MISS = -0.4
HARD_AVOID = -5.0
PROFILE_AVOID = -3.0
REQUEST_AVOID = -1.5
QUERY_HIT = 0.5
MIN_QUERY_TERM = 3
RESTAURANT_WEIGHT = 0.25
TAG_WEIGHT = 0.15
PRICE_PENALTY_WEIGHT = 0.2
PREFERRED_RESTAURANT = 0.8
AVOIDED_RESTAURANT = -1.2
PREFERRED_TAG = 0.6

SAFE_PICK = "A safe pick from your saved items"


@dataclass
class ScoredItem:
    item: Item
    score: float
    why: list[str] = field(default_factory=list)
    breakdown: ScoreBreakdown = field(default_factory=ScoreBreakdown)


def effective_budget(budget: int | None, profile: PreferenceProfile | None) -> int | None:
    """Request budget capped by the profile's ``budgetMax`` (either may be absent)."""
    budget_max = profile.budget_max if profile is not None else None
    if budget_max is None:
        return budget
    if budget is None:
        return budget_max
    return min(budget, budget_max)


def score_item(
    item: Item,
    budget: int | None,
    must_tags: Iterable[str] | None,
    avoid_tags: Iterable[str] | None,
    query: str | None,
    preference: UserPreference | None,
    profile: PreferenceProfile | None,
) -> ScoredItem:
    """Compute the score, breakdown and explanation bullets for one item."""
    profile = profile or PreferenceProfile()
    limit = effective_budget(budget, profile)
    must = normalize_tags(must_tags)
    request_avoid = normalize_tags(avoid_tags)
    profile_avoid = normalize_tags(profile.avoid_tags)
    hard_avoid = normalize_tags(profile.dietary_restrictions) | normalize_tags(profile.allergens)
    terms = [t for t in normalize_text(query).split() if len(t) >= MIN_QUERY_TERM]

    item_tags = normalize_tags(item.tags)
    price = item.price_estimate
    over_budget = limit is not None and price is not None and price > limit

    b = ScoreBreakdown(base=BASE_SCORE)
    why: list[str] = []

    if limit is not None and price is not None:
        if over_budget:
            b.budget_fit = OVER_BUDGET
            why.append(f"Above budget (> {limit})")
        else:
            b.budget_fit = WITHIN_BUDGET
            why.append(f"Within budget (≤ {limit})")

    if must:
        matched = sorted(must & item_tags)
        if matched:
            b.must_tag_match = MUST_TAG_MATCH * len(matched)
            why.extend(f"Matches tag: {t}" for t in matched)
        else:
            b.must_tag_match = MUST_TAG_MISS

    for penalty, avoid, label in (
        (HARD_AVOID, hard_avoid, "Hard avoid (diet/allergen)"),
        (PROFILE_AVOID, profile_avoid, "Avoid tag (profile)"),
        (REQUEST_AVOID, request_avoid, "Avoid tag present"),
    ):
        matched = sorted(avoid & item_tags)
        if matched:
            b.avoid_tag_penalty += penalty * len(matched)
            why.extend(f"{label}: {t}" for t in matched)

    if terms:
        haystack = " ".join([
            normalize_text(item.name),
            normalize_text(item.restaurant_name),
            " ".join(sorted(item_tags)),
        ]).strip()
        hits = sum(1 for t in terms if t in haystack)
        if hits:
            b.query_match = QUERY_HIT * hits
            why.append("Matches your query")

    if not why:
        why.append(SAFE_PICK)

    # Learned weights
    if preference is not None:
        restaurant_weight = preference.restaurant_weight_for(item.restaurant_name)
        if restaurant_weight:
            b.restaurant_affinity += RESTAURANT_WEIGHT * restaurant_weight
            why.append("You often like this place" if restaurant_weight > 0 else "You often pass on this place")

        tag_weight_sum = sum(preference.tag_weight_for(t) for t in item_tags)
        if tag_weight_sum:
            b.tag_affinity += TAG_WEIGHT * tag_weight_sum
            why.append(
                "Matches your usual preferences" if tag_weight_sum > 0
                else "Conflicts with your usual preferences"
            )

        if over_budget and preference.price_penalty > 0:
            b.price_sensitivity = -PRICE_PENALTY_WEIGHT * preference.price_penalty

    # Explicit profile; prefer and avoid can both fire for one restaurant
    restaurant = normalize_text(item.restaurant_name)
    if restaurant:
        if restaurant in normalize_tags(profile.prefer_restaurants):
            b.restaurant_affinity += PREFERRED_RESTAURANT
            why.append("Preferred restaurant (profile)")
        if restaurant in normalize_tags(profile.avoid_restaurants):
            b.restaurant_affinity += AVOIDED_RESTAURANT
            why.append("Avoided restaurant (profile)")

    preferred = sorted(normalize_tags(profile.prefer_tags) & item_tags)
    if preferred:
        b.tag_affinity += PREFERRED_TAG * len(preferred)
        why.extend(f"Preferred tag: {t}" for t in preferred)

    b.total = (
        b.base + b.budget_fit + b.must_tag_match + b.avoid_tag_penalty + b.query_match
        + b.restaurant_affinity + b.tag_affinity + b.price_sensitivity
    )
    return ScoredItem(item=item, score=b.total, why=why, breakdown=b)


def _timestamp_key(value):
    # (present, value) sorts missing timestamps last under reverse=True
    return (value is not None, value.timestamp() if value is not None else 0.0)


def rank(scored: list[ScoredItem]) -> list[ScoredItem]:
    """Sort into the deterministic ranking order.

    Stable sorts applied from the least to the most significant key.
    """
    ordered = sorted(scored, key=lambda s: s.item.id)
    ordered.sort(key=lambda s: _timestamp_key(s.item.created_at), reverse=True)
    ordered.sort(key=lambda s: _timestamp_key(s.item.updated_at), reverse=True)
    ordered.sort(key=lambda s: s.score, reverse=True)
    return ordered


def softmax(scores: list[float]) -> list[float]:
    """Numerically stable softmax; uniform when the exponentials degenerate."""
    if not scores:
        return []
    values = np.asarray(scores, dtype=float)
    exp = np.exp(values - values.max())
    total = float(exp.sum())
    if total == 0.0 or not np.isfinite(total):
        return [1.0 / len(scores)] * len(scores)
    return (exp / total).tolist()
