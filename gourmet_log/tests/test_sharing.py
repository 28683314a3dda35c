from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from gourmet_log.favorites import store
from gourmet_log.favorites.models import ShareFilters, SidebarFilter
from gourmet_log.sharing.store import (
    EXPIRED_RETENTION,
    SHARE_LIFETIME,
    ShareExpired,
    ShareNotFound,
    create_share,
    delete_user_shares,
    resolve_share,
    shared_restaurants,
)

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


def _seed():
    store.insert_restaurant("owner", {"name": "A", "prefecture": "東京都", "city": "渋谷区", "genres": ["カフェ"]})
    store.insert_restaurant("owner", {"name": "B", "prefecture": "大阪府", "city": "北区", "genres": ["寿司"]})
    store.insert_restaurant("owner", {"name": "C", "prefecture": "東京都", "city": "新宿区", "genres": ["寿司"]})


def test_share_expires_after_seven_days_by_default():
    share = create_share("owner", now=NOW)
    assert share.expires_at - share.created_at == SHARE_LIFETIME == timedelta(days=7)


def test_resolve_live_share():
    share = create_share("owner", now=NOW)
    assert resolve_share(share.id, now=NOW + timedelta(days=6)).user_id == "owner"


def test_expired_share_raises():
    share = create_share("owner", now=NOW)
    with pytest.raises(ShareExpired):
        resolve_share(share.id, now=NOW + timedelta(days=8))


def test_unknown_share_raises():
    with pytest.raises(ShareNotFound):
        resolve_share("missing")


def test_empty_snapshot_is_stored_as_none():
    share = create_share("owner", ShareFilters(), now=NOW)
    assert share.filters is None


def test_shared_list_applies_snapshot_filters():
    _seed()
    filters = ShareFilters(
        sidebar_filters=[SidebarFilter(type="prefecture", value="東京都")],
        genre_filters=["寿司"],
    )
    share = create_share("owner", filters)
    assert [r.name for r in shared_restaurants(share.id)] == ["C"]


def test_shared_list_without_snapshot_returns_everything():
    _seed()
    share = create_share("owner")
    assert len(shared_restaurants(share.id)) == 3


def test_shared_list_reflects_current_favorites():
    share = create_share("owner")
    assert shared_restaurants(share.id) == []
    _seed()
    assert len(shared_restaurants(share.id)) == 3


def test_delete_user_shares():
    share = create_share("owner")
    other = create_share("someone-else")
    delete_user_shares("owner")
    with pytest.raises(ShareNotFound):
        resolve_share(share.id)
    assert resolve_share(other.id).user_id == "someone-else"


def test_long_expired_shares_are_purged_on_create():
    ancient = create_share("owner", now=NOW - SHARE_LIFETIME - EXPIRED_RETENTION - timedelta(days=1))
    recent = create_share("owner", now=NOW - SHARE_LIFETIME - timedelta(days=1))

    create_share("owner", now=NOW)

    with pytest.raises(ShareNotFound):
        resolve_share(ancient.id, now=NOW)
    with pytest.raises(ShareExpired):
        resolve_share(recent.id, now=NOW)
