from __future__ import annotations

from datetime import datetime

from pydantic import Field, field_validator

from ..base import CamelModel


class Item(CamelModel):
    """A saved candidate owned by a user. Managed outside the decision engine."""

    id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    restaurant_name: str | None = None
    tags: list[str] = Field(default_factory=list)
    platform_hints: list[str] = Field(default_factory=list)
    price_estimate: int | None = Field(default=None, ge=0)
    active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("tags")
    @classmethod
    def normalize_tags(cls, v: list[str]) -> list[str]:
        seen: list[str] = []
        for tag in v:
            t = tag.strip().lower()
            if t and t not in seen:
                seen.append(t)
        return seen
