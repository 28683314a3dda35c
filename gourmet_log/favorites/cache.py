"""
Derived-list memo.

A derived list is a pure function of the source list version and the
viewer's filter / sort / view inputs, so those inputs form the cache key.
A new source version produces a new key and the old entry ages out.
"""
from __future__ import annotations

import hashlib
import json
from collections import OrderedDict
from typing import Any

from .models import SidebarFilter, SortKey, ViewMode

_MAX_ENTRIES = 256

_cache: OrderedDict[str, Any] = OrderedDict()
_hits: int = 0
_misses: int = 0


def make_key(
    source_key: str,
    sidebar_filters: list[SidebarFilter],
    genre_filters: list[str],
    sort_keys: list[SortKey],
    view: ViewMode,
) -> str:
    normalized = json.dumps(
        {
            "source": source_key,
            "sidebar": [f.key() for f in sidebar_filters],
            "genres": list(genre_filters),
            "sort": [(k.by.value, k.order.value) for k in sort_keys],
            "view": view.value,
        },
        sort_keys=True,
        ensure_ascii=False,
    )
    return hashlib.sha256(normalized.encode()).hexdigest()[:16]


def cache_get(key: str) -> Any | None:
    global _hits, _misses
    if key in _cache:
        _hits += 1
        _cache.move_to_end(key)
        return _cache[key]
    _misses += 1
    return None


def cache_set(key: str, value: Any) -> None:
    _cache[key] = value
    _cache.move_to_end(key)
    while len(_cache) > _MAX_ENTRIES:
        _cache.popitem(last=False)


def get_cache_stats() -> dict:
    total = _hits + _misses
    return {
        "size": len(_cache),
        "hits": _hits,
        "misses": _misses,
        "hit_rate": round(_hits / total * 100, 1) if total > 0 else 0.0,
    }


def clear_cache() -> None:
    global _hits, _misses
    _cache.clear()
    _hits = 0
    _misses = 0
