from __future__ import annotations

from datetime import datetime
from typing import Annotated

from pydantic import Field, StringConstraints, model_validator

from ..base import CamelModel
from .config import DEFAULT_PREFERENCE_CONFIG

Tag = Annotated[str, StringConstraints(max_length=32)]
RestaurantName = Annotated[str, StringConstraints(max_length=120)]


def normalize_key(value: str | None) -> str:
    return (value or "").strip().lower()


def normalize_set(values: list[str] | None) -> list[str]:
    """Trim, lowercase, drop blanks and duplicates; sorted for stable output."""
    if not values:
        return []
    return sorted({normalize_key(v) for v in values if v and v.strip()})


class PreferenceProfile(CamelModel):
    budget_min: int | None = None
    budget_max: int | None = None
    prefer_tags: list[str] = Field(default_factory=list)
    avoid_tags: list[str] = Field(default_factory=list)
    prefer_restaurants: list[str] = Field(default_factory=list)
    avoid_restaurants: list[str] = Field(default_factory=list)
    dietary_restrictions: list[str] = Field(default_factory=list)
    allergens: list[str] = Field(default_factory=list)
    notes: str | None = None


class UpdateProfileRequest(CamelModel):
    budget_min: int | None = Field(default=None, ge=0, le=100000)
    budget_max: int | None = Field(default=None, ge=0, le=100000)
    prefer_tags: list[Tag] | None = Field(default=None, max_length=50)
    avoid_tags: list[Tag] | None = Field(default=None, max_length=50)
    prefer_restaurants: list[RestaurantName] | None = Field(default=None, max_length=50)
    avoid_restaurants: list[RestaurantName] | None = Field(default=None, max_length=50)
    dietary_restrictions: list[Tag] | None = Field(default=None, max_length=20)
    allergens: list[Tag] | None = Field(default=None, max_length=50)
    notes: str | None = Field(default=None, max_length=500)

    @model_validator(mode="after")
    def check_budget_bounds(self) -> "UpdateProfileRequest":
        if (
            self.budget_min is not None
            and self.budget_max is not None
            and self.budget_min > self.budget_max
        ):
            raise ValueError("budgetMin must be <= budgetMax")
        return self

    def to_profile(self) -> PreferenceProfile:
        return PreferenceProfile(
            budget_min=self.budget_min,
            budget_max=self.budget_max,
            prefer_tags=normalize_set(self.prefer_tags),
            avoid_tags=normalize_set(self.avoid_tags),
            prefer_restaurants=normalize_set(self.prefer_restaurants),
            avoid_restaurants=normalize_set(self.avoid_restaurants),
            dietary_restrictions=normalize_set(self.dietary_restrictions),
            allergens=normalize_set(self.allergens),
            notes=self.notes.strip() if self.notes is not None else None,
        )


class UserPreference(CamelModel):
    """Explicit profile plus learned weights for one user.

    Weight maps are sparse: a key that decays back to zero is removed.
    ``revision`` is bumped on every successful write and is what the store
    compares on update.
    """

    user_id: str
    tag_weights: dict[str, int] = Field(default_factory=dict)
    restaurant_weights: dict[str, int] = Field(default_factory=dict)
    price_penalty: int = 0
    updated_at: datetime | None = None
    schema_version: int = DEFAULT_PREFERENCE_CONFIG.schema_version
    profile: PreferenceProfile = Field(default_factory=PreferenceProfile)
    revision: int = 0

    @classmethod
    def empty(cls, user_id: str) -> "UserPreference":
        return cls(user_id=user_id)

    def tag_weight_for(self, tag: str | None) -> int:
        key = normalize_key(tag)
        if not key:
            return 0
        return self.tag_weights.get(key, 0)

    def restaurant_weight_for(self, restaurant_name: str | None) -> int:
        key = normalize_key(restaurant_name)
        if not key:
            return 0
        return self.restaurant_weights.get(key, 0)
