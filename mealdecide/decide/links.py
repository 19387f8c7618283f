from __future__ import annotations

from urllib.parse import quote_plus

from ..items.models import Item
from .config import DEFAULT_DECIDE_CONFIG
from .models import DeepLink, Platform
from .normalization import normalize_text

# Platform hint -> (platform, search URL template). Add a platform here.
PLATFORM_SEARCH_URLS: dict[str, tuple[Platform, str]] = {
    "swiggy": (Platform.SWIGGY, "https://www.swiggy.com/search?query={q}"),
    "zomato": (Platform.ZOMATO, "https://www.zomato.com/search?q={q}"),
    "eatsure": (Platform.EATSURE, "https://www.eatsure.com/search?q={q}"),
}


def _platform_query(item: Item) -> str:
    name = (item.name or "").strip()
    restaurant = (item.restaurant_name or "").strip()
    if restaurant:
        return f"{restaurant} {name}"
    return name


def deep_links_for(item: Item) -> list[DeepLink]:
    """Search links on each hinted platform; unknown hints are ignored."""
    query = _platform_query(item)
    if not query.strip():
        return []

    encoded = quote_plus(query)
    hints = item.platform_hints or list(DEFAULT_DECIDE_CONFIG.default_platforms)

    links: list[DeepLink] = []
    for hint in hints:
        entry = PLATFORM_SEARCH_URLS.get(normalize_text(hint))
        if entry is None:
            continue
        platform, template = entry
        links.append(DeepLink(platform=platform, url=template.format(q=encoded)))
    return links
