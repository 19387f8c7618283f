from __future__ import annotations

from typing import Iterable


def normalize_text(value: str | None) -> str:
    if value is None:
        return ""
    return value.strip().lower()


def normalize_tags(tags: Iterable[str | None] | None) -> set[str]:
    if not tags:
        return set()
    return {normalize_text(t) for t in tags if t is not None and t.strip()}


def sorted_csv(values: Iterable[str | None] | None) -> str:
    """Normalized, de-duplicated, sorted, comma-joined."""
    return ",".join(sorted(normalize_tags(values)))
