from __future__ import annotations

import threading

from .models import Item

_items: dict[str, Item] = {}
_lock = threading.Lock()


def save_item(item: Item) -> Item:
    with _lock:
        _items[item.id] = item
    return item


def get_item(item_id: str) -> Item | None:
    return _items.get(item_id)


def get_active_items(user_id: str) -> list[Item]:
    """Snapshot of the user's active items, in insertion order."""
    with _lock:
        return [i for i in _items.values() if i.user_id == user_id and i.active]


def clear_items() -> None:
    with _lock:
        _items.clear()
