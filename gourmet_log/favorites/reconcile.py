"""
Per-viewer rendered favorites list.

The rendered list is derived from the authoritative store through the
display pipeline and patched in place by optimistic edits. A patch keeps the
card where it is; the next read after a confirmed mutation sees a new source
version and re-derives.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable

from ..social import notifications
from ..social.models import Notification
from . import store
from .cache import cache_get, cache_set, make_key
from .models import (
    DEFAULT_SORT,
    Restaurant,
    SidebarFilter,
    SortKey,
    ViewMode,
    ViewStateUpdate,
)
from .pipeline import all_genres, derive_list

logger = logging.getLogger(__name__)

_COORDINATE_FIELDS = frozenset({"latitude", "longitude"})


@dataclass(frozen=True)
class ViewSource:
    """The authoritative list a view renders: one owner's favorites."""

    owner_id: str
    read_only: bool = False

    def key(self) -> str:
        return f"user:{self.owner_id}:v{store.get_version(self.owner_id)}"

    def load(self) -> list[Restaurant]:
        return store.list_restaurants(self.owner_id)


class FavoritesView:
    def __init__(self, source: ViewSource) -> None:
        self.source = source
        self.sidebar_filters: list[SidebarFilter] = []
        self.genre_filters: list[str] = []
        self.sort: list[SortKey] = list(DEFAULT_SORT)
        self.view: ViewMode = ViewMode.favorites
        self.pending_geocode: set[str] = set()

        self._raw: list[Restaurant] = []
        self._raw_key: str | None = None
        self._derived_key: str | None = None
        self._displayed: list[Restaurant] = []
        self._stale = True
        self._lock = threading.RLock()
        self._unsubscribe: Callable[[], None] | None = None

    # ── Derivation ─────────────────────────────────────────────────────

    def _sync_source(self) -> None:
        key = self.source.key()
        if self._stale or key != self._raw_key:
            self._raw = self.source.load()
            self._raw_key = key
            self._stale = False

    def _derive(self) -> None:
        key = make_key(
            self._raw_key or "",
            self.sidebar_filters,
            self.genre_filters,
            self.sort,
            self.view,
        )
        if key == self._derived_key:
            return
        cached = cache_get(key)
        if cached is None:
            cached = derive_list(
                self._raw, self.sidebar_filters, self.genre_filters, self.sort, self.view,
            )
            cache_set(key, cached)
        self._displayed = list(cached)
        self._derived_key = key

    def restaurants(self) -> list[Restaurant]:
        """Return the rendered list, re-deriving only when an input changed."""
        with self._lock:
            self._sync_source()
            self._derive()
            return list(self._displayed)

    def current(self) -> list[Restaurant]:
        """Return the rendered list as-is, patches included, without re-deriving."""
        with self._lock:
            return list(self._displayed)

    def genres(self) -> list[str]:
        with self._lock:
            self._sync_source()
            return all_genres(self._raw)

    def raw(self) -> list[Restaurant]:
        with self._lock:
            self._sync_source()
            return list(self._raw)

    def update_state(self, update: ViewStateUpdate) -> list[Restaurant]:
        with self._lock:
            if update.sidebar_filters is not None:
                self.sidebar_filters = list(update.sidebar_filters)
            if update.genre_filters is not None:
                self.genre_filters = list(update.genre_filters)
            if update.sort is not None:
                self.sort = list(update.sort)
            if update.view is not None:
                self.view = update.view
        return self.restaurants()

    # ── Optimistic updates ─────────────────────────────────────────────

    def patch(self, restaurant_id: str, changes: dict[str, Any]) -> bool:
        """Patch one record of the rendered list in place.

        Returns ``False`` when the record is not currently rendered.
        """
        with self._lock:
            if changes and set(changes) <= _COORDINATE_FIELDS:
                self.pending_geocode.discard(restaurant_id)
            for idx, r in enumerate(self._displayed):
                if r.id == restaurant_id:
                    self._displayed[idx] = r.model_copy(update=changes)
                    return True
            return False

    def remove(self, restaurant_id: str) -> None:
        with self._lock:
            self._displayed = [r for r in self._displayed if r.id != restaurant_id]

    def invalidate(self) -> None:
        """Mark the authoritative source stale; the next read re-derives."""
        with self._lock:
            self._stale = True
            self._derived_key = None

    def on_notification(self, notification: Notification) -> None:
        """Refresh when the owner of this list did something that concerns the viewer."""
        if notification.actor_id == self.source.owner_id:
            logger.debug("Refreshing view of %s after %s", self.source.owner_id, notification.type.value)
            self.invalidate()

    def listen(self, viewer_id: str) -> None:
        """Refresh on pushes delivered to *viewer_id*."""
        self.close()
        self._unsubscribe = notifications.subscribe(viewer_id, self.on_notification)

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def mark_geocoding(self, restaurant_id: str) -> None:
        with self._lock:
            self.pending_geocode.add(restaurant_id)

    def clear_geocoding(self, restaurant_id: str) -> None:
        with self._lock:
            self.pending_geocode.discard(restaurant_id)


# ---------------------------------------------------------------------------
# Registry of live views, one per (viewer, source)
# ---------------------------------------------------------------------------

_views: dict[tuple[str, str], FavoritesView] = {}
_views_lock = threading.Lock()


def get_view(viewer_id: str, source: ViewSource) -> FavoritesView:
    with _views_lock:
        key = (viewer_id, source.owner_id)
        view = _views.get(key)
        if view is None:
            view = FavoritesView(source)
            if viewer_id != source.owner_id:
                view.listen(viewer_id)
            _views[key] = view
        return view


def invalidate_owner(owner_id: str) -> None:
    """Invalidate every live view rendering *owner_id*'s favorites."""
    with _views_lock:
        views = [v for (_, oid), v in _views.items() if oid == owner_id]
    for v in views:
        v.invalidate()


def drop_view(viewer_id: str, owner_id: str) -> None:
    """Forget *viewer_id*'s view of *owner_id*'s favorites."""
    with _views_lock:
        view = _views.pop((viewer_id, owner_id), None)
    if view is not None:
        view.close()


def drop_views(viewer_id: str) -> None:
    """Forget every view held by or showing *viewer_id*."""
    with _views_lock:
        dropped = [_views.pop(k) for k in list(_views) if viewer_id in k]
    for view in dropped:
        view.close()


def clear_views() -> None:
    with _views_lock:
        dropped = list(_views.values())
        _views.clear()
    for view in dropped:
        view.close()
