from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone

from ..auth.users import UserNotFound, get_user
from ..favorites import store
from .models import Follow, FollowCounts, FollowStatus, NotificationType, TimelineEntry, UserProfile
from .notifications import notify

logger = logging.getLogger(__name__)

# (follower_id, following_id) -> Follow
_follows: dict[tuple[str, str], Follow] = {}
# (blocker_id, blocked_id)
_blocks: set[tuple[str, str]] = set()
_lock = threading.Lock()


class FollowError(ValueError):
    pass


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _profile(user_id: str) -> UserProfile:
    user = get_user(user_id)
    return UserProfile(id=user["id"], username=user["username"], display_name=user["display_name"])


def is_blocked(a: str, b: str) -> bool:
    """True when either user has blocked the other."""
    return (a, b) in _blocks or (b, a) in _blocks


# ── Follow requests ─────────────────────────────────────────────────────


def request_follow(follower_id: str, following_id: str) -> Follow:
    if follower_id == following_id:
        raise FollowError("You cannot follow yourself.")
    try:
        get_user(following_id)
    except UserNotFound as exc:
        raise FollowError("User not found.") from exc

    with _lock:
        if is_blocked(follower_id, following_id):
            raise FollowError("You cannot follow this user.")
        existing = _follows.get((follower_id, following_id))
        if existing is not None:
            if existing.status == FollowStatus.accepted:
                raise FollowError("You already follow this user.")
            raise FollowError("A follow request is already pending.")
        follow = Follow(follower_id=follower_id, following_id=following_id, created_at=_now())
        _follows[(follower_id, following_id)] = follow

    notify(following_id, NotificationType.follow_request, actor_id=follower_id)
    return follow


def _pending(follower_id: str, following_id: str) -> Follow:
    follow = _follows.get((follower_id, following_id))
    if follow is None or follow.status != FollowStatus.pending:
        raise FollowError("No pending follow request.")
    return follow


def accept_follow(user_id: str, follower_id: str) -> Follow:
    """Accept *follower_id*'s pending request to follow *user_id*."""
    with _lock:
        follow = _pending(follower_id, user_id)
        follow.status = FollowStatus.accepted
    notify(follower_id, NotificationType.follow_accepted, actor_id=user_id)
    return follow


def reject_follow(user_id: str, follower_id: str) -> None:
    with _lock:
        _pending(follower_id, user_id)
        del _follows[(follower_id, user_id)]


def unfollow(follower_id: str, following_id: str) -> None:
    """Remove a follow, or cancel a request that is still pending."""
    with _lock:
        if _follows.pop((follower_id, following_id), None) is None:
            raise FollowError("You do not follow this user.")


def follow_status(follower_id: str, following_id: str) -> FollowStatus | None:
    follow = _follows.get((follower_id, following_id))
    return follow.status if follow else None


# ── Lists and counts ─────────────────────────────────────────────────────


def _ids(status: FollowStatus, *, of: str | None = None, by: str | None = None) -> list[str]:
    result = []
    for (follower, following), follow in list(_follows.items()):
        if follow.status != status:
            continue
        if of is not None and following == of:
            result.append(follower)
        elif by is not None and follower == by:
            result.append(following)
    return result


def followers(user_id: str) -> list[UserProfile]:
    return [_profile(uid) for uid in _ids(FollowStatus.accepted, of=user_id)]


def following(user_id: str) -> list[UserProfile]:
    return [_profile(uid) for uid in _ids(FollowStatus.accepted, by=user_id)]


def follow_counts(user_id: str) -> FollowCounts:
    return FollowCounts(
        followers=len(_ids(FollowStatus.accepted, of=user_id)),
        following=len(_ids(FollowStatus.accepted, by=user_id)),
    )


def pending_received(user_id: str) -> list[UserProfile]:
    return [_profile(uid) for uid in _ids(FollowStatus.pending, of=user_id)]


def pending_sent(user_id: str) -> list[UserProfile]:
    return [_profile(uid) for uid in _ids(FollowStatus.pending, by=user_id)]


def can_view(viewer_id: str, owner_id: str) -> bool:
    """Owners see their own favorites; others need an accepted follow and no block."""
    if viewer_id == owner_id:
        return True
    if is_blocked(viewer_id, owner_id):
        return False
    return follow_status(viewer_id, owner_id) == FollowStatus.accepted


def notify_new_favorite(owner_id: str, restaurant_id: str) -> int:
    """Tell every accepted follower about a new favorite. Returns how many were notified."""
    recipients = _ids(FollowStatus.accepted, of=owner_id)
    for uid in recipients:
        notify(uid, NotificationType.new_favorite, actor_id=owner_id, restaurant_id=restaurant_id)
    return len(recipients)


def timeline(user_id: str, limit: int = 50) -> list[TimelineEntry]:
    """Favorites of everyone *user_id* follows, newest first."""
    owners = _ids(FollowStatus.accepted, by=user_id)
    if not owners:
        return []
    profiles = {uid: _profile(uid) for uid in owners}
    restaurants = store.list_restaurants_for_users(owners)
    restaurants.sort(key=lambda r: r.created_at, reverse=True)
    return [TimelineEntry(restaurant=r, owner=profiles[r.user_id]) for r in restaurants[:limit]]


# ── Blocking ─────────────────────────────────────────────────────────────


def block(blocker_id: str, blocked_id: str) -> None:
    """Block a user and drop any follow between the two, in both directions."""
    if blocker_id == blocked_id:
        raise FollowError("You cannot block yourself.")
    with _lock:
        _blocks.add((blocker_id, blocked_id))
        _follows.pop((blocker_id, blocked_id), None)
        _follows.pop((blocked_id, blocker_id), None)
    logger.info("User %s blocked %s", blocker_id, blocked_id)


def unblock(blocker_id: str, blocked_id: str) -> None:
    with _lock:
        if (blocker_id, blocked_id) not in _blocks:
            raise FollowError("This user is not blocked.")
        _blocks.discard((blocker_id, blocked_id))


def blocked_users(user_id: str) -> list[UserProfile]:
    return [_profile(b) for (a, b) in sorted(_blocks) if a == user_id]


def delete_user_relationships(user_id: str) -> None:
    with _lock:
        for key in [k for k in _follows if user_id in k]:
            del _follows[key]
        for key in [k for k in _blocks if user_id in k]:
            _blocks.discard(key)


def clear_social() -> None:
    with _lock:
        _follows.clear()
        _blocks.clear()
