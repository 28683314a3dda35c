"""
In-app notifications.

Each user has an inbox of notifications, newest first. Subscribers registered
for a user are called with every notification published to that user; they
treat the event as a signal to refresh rather than as a diff.
"""
from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Callable

from .models import Notification, NotificationType

logger = logging.getLogger(__name__)

Listener = Callable[[Notification], None]

_inbox: list[Notification] = []
_listeners: dict[str, list[Listener]] = {}
_lock = threading.Lock()


def notify(
    user_id: str,
    type: NotificationType,
    actor_id: str,
    restaurant_id: str | None = None,
) -> Notification:
    notification = Notification(
        id=str(uuid.uuid4()),
        user_id=user_id,
        type=type,
        actor_id=actor_id,
        restaurant_id=restaurant_id,
        created_at=datetime.now(timezone.utc).isoformat(),
    )
    with _lock:
        _inbox.append(notification)
        listeners = list(_listeners.get(user_id, []))
    for listener in listeners:
        try:
            listener(notification)
        except Exception:
            logger.warning("Notification listener failed for user %s", user_id, exc_info=True)
    return notification


def list_notifications(user_id: str, unread_only: bool = False) -> list[Notification]:
    items = [n for n in _inbox if n.user_id == user_id and (not unread_only or not n.read)]
    return list(reversed(items))


def unread_count(user_id: str) -> int:
    return sum(1 for n in _inbox if n.user_id == user_id and not n.read)


def mark_read(user_id: str, ids: list[str] | None = None) -> int:
    """Mark the given notifications (or all of them) read. Returns how many changed."""
    wanted = set(ids) if ids is not None else None
    changed = 0
    with _lock:
        for n in _inbox:
            if n.user_id != user_id or n.read:
                continue
            if wanted is not None and n.id not in wanted:
                continue
            n.read = True
            changed += 1
    return changed


def subscribe(user_id: str, listener: Listener) -> Callable[[], None]:
    """Register *listener* for *user_id*. Returns a function that unsubscribes it."""
    with _lock:
        _listeners.setdefault(user_id, []).append(listener)

    def unsubscribe() -> None:
        with _lock:
            registered = _listeners.get(user_id, [])
            if listener in registered:
                registered.remove(listener)

    return unsubscribe


def delete_user_notifications(user_id: str) -> None:
    with _lock:
        _inbox[:] = [n for n in _inbox if n.user_id != user_id and n.actor_id != user_id]
        _listeners.pop(user_id, None)


def clear_notifications() -> None:
    with _lock:
        _inbox.clear()
        _listeners.clear()
