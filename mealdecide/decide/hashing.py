"""
Reproducibility hashes stamped on every persisted decision.

Each hash is a SHA-256 hex digest of a canonical string, so the same logical
input always yields the same digest whatever the list, set or dict ordering.
The digests and a frozen preference snapshot are computed once, at decision
time, and never recomputed.
"""
from __future__ import annotations

import hashlib
from typing import Iterable

from ..base import iso
from ..items.models import Item
from ..preferences.models import UserPreference
from .models import DecideRequest, PreferenceSnapshot
from .normalization import normalize_text, sorted_csv


def sha256_hex(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def _sorted_map(weights: dict[str, int]) -> str:
    return "{" + ", ".join(f"{k}={weights[k]}" for k in sorted(weights)) + "}"


def _or_null(value: object) -> str:
    return "null" if value is None else str(value)


def hash_input(request: DecideRequest, limit: int) -> str:
    canonical = "|".join([
        f"budget={_or_null(request.budget)}",
        f"must={sorted_csv(request.must_have_tags)}",
        f"avoid={sorted_csv(request.avoid_tags)}",
        f"query={normalize_text(request.query)}",
        f"limit={limit}",
    ])
    return sha256_hex(canonical)


def hash_items(items: Iterable[Item]) -> str | None:
    ordered = sorted(items, key=lambda i: i.id)
    if not ordered:
        return None
    return sha256_hex("|".join(f"{i.id}:{iso(i.updated_at)}" for i in ordered))


def _canonical_profile(preference: UserPreference) -> str:
    p = preference.profile
    return "|".join([
        f"budgetMin={_or_null(p.budget_min)}",
        f"budgetMax={_or_null(p.budget_max)}",
        f"preferTags={sorted_csv(p.prefer_tags)}",
        f"avoidTags={sorted_csv(p.avoid_tags)}",
        f"preferRestaurants={sorted_csv(p.prefer_restaurants)}",
        f"avoidRestaurants={sorted_csv(p.avoid_restaurants)}",
        f"dietaryRestrictions={sorted_csv(p.dietary_restrictions)}",
        f"allergens={sorted_csv(p.allergens)}",
        f"notes={(p.notes or '').strip()}",
    ])


def hash_preference(preference: UserPreference) -> str:
    canonical = "|".join([
        f"tags={_sorted_map(preference.tag_weights)}",
        f"restaurants={_sorted_map(preference.restaurant_weights)}",
        f"pricePenalty={preference.price_penalty}",
        f"updatedAt={iso(preference.updated_at)}",
        f"schemaVersion={preference.schema_version}",
        f"profile={_canonical_profile(preference)}",
    ])
    return sha256_hex(canonical)


def snapshot_preference(preference: UserPreference) -> PreferenceSnapshot:
    return PreferenceSnapshot(
        schema_version=preference.schema_version,
        tag_weights=dict(sorted(preference.tag_weights.items())),
        restaurant_weights=dict(sorted(preference.restaurant_weights.items())),
        price_penalty=preference.price_penalty,
        updated_at=preference.updated_at,
    )
