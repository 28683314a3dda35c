"""
Favorites repository.

Rows are kept the way the database hands them back: snake_case dicts with
``sources`` serialized as a JSON string, parsed on read. Every mutation bumps
the owner's version so derived views know their source went stale.
"""
from __future__ import annotations

import json
import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Iterable

from .models import Restaurant, Source

logger = logging.getLogger(__name__)

_rows: dict[str, dict[str, Any]] = {}
_versions: dict[str, int] = {}
_lock = threading.Lock()

_EDITABLE_FIELDS = {
    "visit_count",
    "user_comment",
    "custom_url",
    "genres",
    "latitude",
    "longitude",
    "price_range",
    "is_closed",
}


class RestaurantNotFound(LookupError):
    pass


class PermissionDenied(PermissionError):
    pass


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _bump(user_id: str) -> None:
    _versions[user_id] = _versions.get(user_id, 0) + 1


def _parse_sources(raw: Any) -> list[Source]:
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            logger.debug("Unparseable sources column: %r", raw[:80])
            return []
    if not isinstance(raw, list):
        return []
    sources: list[Source] = []
    for item in raw:
        if isinstance(item, dict) and item.get("uri"):
            sources.append(Source(uri=str(item["uri"]), title=str(item.get("title") or "")))
    return sources


def _row_to_restaurant(row: dict[str, Any]) -> Restaurant:
    return Restaurant(
        id=row["id"],
        user_id=row["user_id"],
        created_at=row["created_at"],
        name=row["name"],
        address=row.get("address") or "",
        hours=row.get("hours") or "",
        price_range=row.get("price_range"),
        is_closed=bool(row.get("is_closed")),
        latitude=row.get("latitude"),
        longitude=row.get("longitude"),
        prefecture=row["prefecture"],
        city=row["city"],
        website=row.get("website"),
        sources=_parse_sources(row.get("sources")),
        visit_count=row.get("visit_count") or 0,
        user_comment=row.get("user_comment") or "",
        custom_url=row.get("custom_url"),
        genres=list(row.get("genres") or []),
    )


def insert_restaurant(user_id: str, data: dict[str, Any]) -> Restaurant:
    """Insert a new favorite for *user_id* and return the stored record."""
    sources = data.get("sources") or []
    row = {
        "id": str(uuid.uuid4()),
        "user_id": user_id,
        "created_at": data.get("created_at") or _now(),
        "name": data["name"],
        "address": data.get("address") or "",
        "hours": data.get("hours") or "",
        "price_range": data.get("price_range"),
        "is_closed": bool(data.get("is_closed", False)),
        "latitude": data.get("latitude"),
        "longitude": data.get("longitude"),
        "prefecture": data["prefecture"],
        "city": data["city"],
        "website": data.get("website"),
        "sources": json.dumps(
            [s.model_dump() if isinstance(s, Source) else s for s in sources],
            ensure_ascii=False,
        ),
        "visit_count": 0,
        "user_comment": "",
        "custom_url": None,
        "genres": list(data.get("genres") or []),
    }
    with _lock:
        _rows[row["id"]] = row
        _bump(user_id)
    return _row_to_restaurant(row)


def _owned_row(restaurant_id: str, user_id: str) -> dict[str, Any]:
    row = _rows.get(restaurant_id)
    if row is None:
        raise RestaurantNotFound(f"Restaurant {restaurant_id} not found")
    if row["user_id"] != user_id:
        raise PermissionDenied("Only the owner can modify this restaurant")
    return row


def update_restaurant(restaurant_id: str, user_id: str, changes: dict[str, Any]) -> Restaurant:
    """Apply a partial update. Unknown fields are ignored."""
    with _lock:
        row = _owned_row(restaurant_id, user_id)
        for key, value in changes.items():
            if key in _EDITABLE_FIELDS:
                row[key] = value
        _bump(user_id)
        return _row_to_restaurant(row)


def delete_restaurant(restaurant_id: str, user_id: str) -> None:
    with _lock:
        _owned_row(restaurant_id, user_id)
        del _rows[restaurant_id]
        _bump(user_id)


def get_restaurant(restaurant_id: str) -> Restaurant:
    row = _rows.get(restaurant_id)
    if row is None:
        raise RestaurantNotFound(f"Restaurant {restaurant_id} not found")
    return _row_to_restaurant(row)


def list_restaurants(user_id: str) -> list[Restaurant]:
    """Return every favorite owned by *user_id* in insertion order."""
    return [_row_to_restaurant(r) for r in list(_rows.values()) if r["user_id"] == user_id]


def list_restaurants_for_users(user_ids: Iterable[str]) -> list[Restaurant]:
    wanted = set(user_ids)
    return [_row_to_restaurant(r) for r in list(_rows.values()) if r["user_id"] in wanted]


def get_version(user_id: str) -> int:
    return _versions.get(user_id, 0)


def delete_user_restaurants(user_id: str) -> int:
    with _lock:
        doomed = [rid for rid, r in _rows.items() if r["user_id"] == user_id]
        for rid in doomed:
            del _rows[rid]
        _bump(user_id)
    return len(doomed)


def clear_restaurants() -> None:
    with _lock:
        _rows.clear()
        _versions.clear()
