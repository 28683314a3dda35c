"""
Share links.

A share captures the owner's active filters at creation time. Viewers of the
link get the owner's current favorites narrowed by that snapshot, read-only,
until the link expires.
"""
from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from ..favorites import store
from ..favorites.models import Restaurant, ShareFilters
from ..favorites.pipeline import matches_genres, matches_sidebar

SHARE_LIFETIME = timedelta(days=7)
# Expired links answer "expired" for this long, then are forgotten.
EXPIRED_RETENTION = timedelta(days=30)


class ShareNotFound(LookupError):
    pass


class ShareExpired(Exception):
    pass


@dataclass(frozen=True)
class Share:
    id: str
    user_id: str
    created_at: datetime
    expires_at: datetime
    filters: ShareFilters | None = None


_shares: dict[str, Share] = {}
_lock = threading.Lock()


def active_filters(filters: ShareFilters | None) -> ShareFilters | None:
    """Collapse an empty snapshot to ``None``."""
    if filters is None or (not filters.sidebar_filters and not filters.genre_filters):
        return None
    return filters


def _purge_expired(now: datetime) -> None:
    cutoff = now - EXPIRED_RETENTION
    for sid in [sid for sid, s in _shares.items() if s.expires_at < cutoff]:
        del _shares[sid]


def create_share(
    user_id: str,
    filters: ShareFilters | None = None,
    lifetime: timedelta = SHARE_LIFETIME,
    now: datetime | None = None,
) -> Share:
    now = now or datetime.now(timezone.utc)
    share = Share(
        id=str(uuid.uuid4()),
        user_id=user_id,
        created_at=now,
        expires_at=now + lifetime,
        filters=active_filters(filters),
    )
    with _lock:
        _purge_expired(now)
        _shares[share.id] = share
    return share


def resolve_share(share_id: str, now: datetime | None = None) -> Share:
    """Return a live share, or raise ``ShareNotFound`` / ``ShareExpired``."""
    share = _shares.get(share_id)
    if share is None:
        raise ShareNotFound("Share link not found.")
    if share.expires_at < (now or datetime.now(timezone.utc)):
        raise ShareExpired("This share link has expired.")
    return share


def apply_snapshot(restaurants: list[Restaurant], filters: ShareFilters | None) -> list[Restaurant]:
    if filters is None:
        return list(restaurants)
    result = list(restaurants)
    if filters.sidebar_filters:
        result = [r for r in result if matches_sidebar(r, filters.sidebar_filters)]
    if filters.genre_filters:
        result = [r for r in result if matches_genres(r, filters.genre_filters)]
    return result


def shared_restaurants(share_id: str, now: datetime | None = None) -> list[Restaurant]:
    share = resolve_share(share_id, now=now)
    return apply_snapshot(store.list_restaurants(share.user_id), share.filters)


def delete_user_shares(user_id: str) -> None:
    with _lock:
        for sid in [sid for sid, s in _shares.items() if s.user_id == user_id]:
            del _shares[sid]


def clear_shares() -> None:
    with _lock:
        _shares.clear()
