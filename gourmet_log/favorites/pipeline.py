"""
Favorites display pipeline.

Responsibilities:
- Drop closed restaurants when the viewer is on the map.
- Apply sidebar (prefecture / city) filters as a union across entries.
- Apply genre filters as an intersection test against each record's tags.
- Stable multi-key sort driven by the viewer's sort keys.
- Group restaurants by area for the sidebar.
"""
from __future__ import annotations

import unicodedata
from datetime import datetime
from typing import Iterable

from .models import (
    Restaurant,
    SidebarFilter,
    SortField,
    SortKey,
    SortOrder,
    ViewMode,
)

PREFECTURE_ORDER = [
    "北海道", "青森県", "岩手県", "宮城県", "秋田県", "山形県", "福島県",
    "茨城県", "栃木県", "群馬県", "埼玉県", "千葉県", "東京都", "神奈川県",
    "新潟県", "富山県", "石川県", "福井県", "山梨県", "長野県", "岐阜県",
    "静岡県", "愛知県", "三重県", "滋賀県", "京都府", "大阪府", "兵庫県",
    "奈良県", "和歌山県", "鳥取県", "島根県", "岡山県", "広島県", "山口県",
    "徳島県", "香川県", "愛媛県", "高知県", "福岡県", "佐賀県", "長崎県",
    "熊本県", "大分県", "宮崎県", "鹿児島県", "沖縄県",
]

_PREFECTURE_INDEX = {name: idx for idx, name in enumerate(PREFECTURE_ORDER)}

# Sort-key default direction when a field is first switched on.
_DEFAULT_ORDER = {
    SortField.created_at: SortOrder.desc,
    SortField.visit_count: SortOrder.desc,
    SortField.prefecture: SortOrder.asc,
    SortField.city: SortOrder.asc,
}


def to_katakana(text: str) -> str:
    """Fold hiragana (U+3041..U+3096) onto the matching katakana."""
    return "".join(
        chr(ord(ch) + 0x60) if "ぁ" <= ch <= "ゖ" else ch
        for ch in text
    )


def prefecture_index(prefecture: str) -> int:
    """Position in the canonical table, ``-1`` when unknown."""
    return _PREFECTURE_INDEX.get(prefecture, -1)


def city_collation_key(city: str) -> str:
    return to_katakana(unicodedata.normalize("NFKC", city or ""))


def _created_at_key(value: str) -> float:
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).timestamp()
    except (AttributeError, ValueError):
        return 0.0


def _sort_value(restaurant: Restaurant, field: SortField):
    if field == SortField.visit_count:
        return restaurant.visit_count or 0
    if field == SortField.prefecture:
        return prefecture_index(restaurant.prefecture)
    if field == SortField.city:
        return city_collation_key(restaurant.city)
    return _created_at_key(restaurant.created_at)


def matches_sidebar(restaurant: Restaurant, filters: Iterable[SidebarFilter]) -> bool:
    """True when ANY filter entry matches the record."""
    return any(getattr(restaurant, f.type) == f.value for f in filters)


def matches_genres(restaurant: Restaurant, genre_filters: Iterable[str]) -> bool:
    wanted = set(genre_filters)
    return any(g in wanted for g in restaurant.genres)


def sort_restaurants(restaurants: list[Restaurant], sort_keys: list[SortKey]) -> list[Restaurant]:
    """Stable multi-key sort; the first entry has the highest priority.

    Applying one stable sort per key from last to first yields the same
    order as a single comparator that falls through on ties.
    """
    result = list(restaurants)
    for key in reversed(sort_keys):
        result.sort(
            key=lambda r, field=key.by: _sort_value(r, field),
            reverse=key.order == SortOrder.desc,
        )
    return result


def derive_list(
    restaurants: Iterable[Restaurant],
    sidebar_filters: list[SidebarFilter],
    genre_filters: list[str],
    sort_keys: list[SortKey],
    view: ViewMode = ViewMode.favorites,
) -> list[Restaurant]:
    """Produce the ordered list to render. The input is never mutated."""
    result = list(restaurants)

    if view == ViewMode.map:
        result = [r for r in result if not r.is_closed]

    if sidebar_filters:
        result = [r for r in result if matches_sidebar(r, sidebar_filters)]

    if genre_filters:
        result = [r for r in result if matches_genres(r, genre_filters)]

    return sort_restaurants(result, sort_keys)


def all_genres(restaurants: Iterable[Restaurant]) -> list[str]:
    genres: set[str] = set()
    for r in restaurants:
        genres.update(r.genres)
    return sorted(genres, key=city_collation_key)


# ---------------------------------------------------------------------------
# Sort key editing
# ---------------------------------------------------------------------------


def toggle_sort(sort_keys: list[SortKey], field: SortField) -> list[SortKey]:
    """Remove *field* if present, otherwise append it with its default order."""
    if any(k.by == field for k in sort_keys):
        return [k for k in sort_keys if k.by != field]
    return [*sort_keys, SortKey(by=field, order=_DEFAULT_ORDER[field])]


def set_sort_order(sort_keys: list[SortKey], field: SortField, order: SortOrder) -> list[SortKey]:
    return [SortKey(by=k.by, order=order) if k.by == field else k for k in sort_keys]


# ---------------------------------------------------------------------------
# Area sidebar
# ---------------------------------------------------------------------------


def group_by_area(restaurants: Iterable[Restaurant], query: str = "") -> list[dict]:
    """Group restaurants into ``prefecture -> city -> count``.

    Unknown prefectures go last. ``query`` narrows prefectures to those whose
    name, one of whose cities, or one of whose restaurant names contains it.
    """
    grouped: dict[str, dict[str, list[Restaurant]]] = {}
    for r in restaurants:
        grouped.setdefault(r.prefecture, {}).setdefault(r.city, []).append(r)

    def _rank(prefecture: str) -> int:
        idx = prefecture_index(prefecture)
        return 99 if idx == -1 else idx

    needle = query.lower()
    areas: list[dict] = []
    for prefecture in sorted(grouped, key=_rank):
        cities = grouped[prefecture]
        if needle and needle not in prefecture.lower() and not any(
            needle in city.lower() or any(needle in r.name.lower() for r in items)
            for city, items in cities.items()
        ):
            continue
        areas.append({
            "prefecture": prefecture,
            "count": sum(len(items) for items in cities.values()),
            "cities": [
                {"city": city, "count": len(cities[city])}
                for city in sorted(cities, key=city_collation_key)
            ],
        })
    return areas
