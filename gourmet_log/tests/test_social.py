from __future__ import annotations

import pytest

from gourmet_log.auth.users import create_user
from gourmet_log.favorites import store
from gourmet_log.social import follows, notifications
from gourmet_log.social.models import FollowStatus, NotificationType

_counter = 0


def _user(name: str) -> str:
    global _counter
    _counter += 1
    return create_user(f"{name}-social-{_counter}", "pw12345", display_name=name)["id"]


@pytest.fixture
def alice():
    return _user("alice")


@pytest.fixture
def bob():
    return _user("bob")


# ── Follow requests ─────────────────────────────────────────────────────


def test_request_is_pending_and_notifies_target(alice, bob):
    follow = follows.request_follow(alice, bob)
    assert follow.status == FollowStatus.pending
    assert [p.id for p in follows.pending_received(bob)] == [alice]
    assert [p.id for p in follows.pending_sent(alice)] == [bob]
    inbox = notifications.list_notifications(bob)
    assert inbox[0].type == NotificationType.follow_request
    assert inbox[0].actor_id == alice


def test_accept_makes_follow_visible(alice, bob):
    follows.request_follow(alice, bob)
    assert not follows.can_view(alice, bob)

    follows.accept_follow(bob, alice)

    assert follows.can_view(alice, bob)
    assert [p.id for p in follows.followers(bob)] == [alice]
    assert [p.id for p in follows.following(alice)] == [bob]
    counts = follows.follow_counts(bob)
    assert (counts.followers, counts.following) == (1, 0)
    assert notifications.list_notifications(alice)[0].type == NotificationType.follow_accepted


def test_reject_removes_request(alice, bob):
    follows.request_follow(alice, bob)
    follows.reject_follow(bob, alice)
    assert follows.follow_status(alice, bob) is None
    with pytest.raises(follows.FollowError):
        follows.accept_follow(bob, alice)


def test_duplicate_and_self_requests_are_rejected(alice, bob):
    with pytest.raises(follows.FollowError):
        follows.request_follow(alice, alice)
    follows.request_follow(alice, bob)
    with pytest.raises(follows.FollowError):
        follows.request_follow(alice, bob)


def test_unfollow(alice, bob):
    follows.request_follow(alice, bob)
    follows.accept_follow(bob, alice)
    follows.unfollow(alice, bob)
    assert not follows.can_view(alice, bob)
    with pytest.raises(follows.FollowError):
        follows.unfollow(alice, bob)


def test_owner_can_always_view_own_favorites(alice):
    assert follows.can_view(alice, alice)


# ── Blocking ─────────────────────────────────────────────────────────────


def test_block_removes_follows_both_ways(alice, bob):
    follows.request_follow(alice, bob)
    follows.accept_follow(bob, alice)
    follows.request_follow(bob, alice)
    follows.accept_follow(alice, bob)

    follows.block(bob, alice)

    assert follows.follow_status(alice, bob) is None
    assert follows.follow_status(bob, alice) is None
    assert [p.id for p in follows.blocked_users(bob)] == [alice]


def test_blocked_user_cannot_request(alice, bob):
    follows.block(bob, alice)
    with pytest.raises(follows.FollowError):
        follows.request_follow(alice, bob)
    with pytest.raises(follows.FollowError):
        follows.request_follow(bob, alice)


def test_unblock_allows_requests_again(alice, bob):
    follows.block(bob, alice)
    follows.unblock(bob, alice)
    assert follows.blocked_users(bob) == []
    follows.request_follow(alice, bob)
    with pytest.raises(follows.FollowError):
        follows.unblock(bob, alice)


# ── Timeline and new-favorite notifications ─────────────────────────────


def test_timeline_is_newest_first_with_owner_profile(alice, bob):
    follows.request_follow(alice, bob)
    follows.accept_follow(bob, alice)
    store.insert_restaurant(bob, {"name": "Old", "prefecture": "東京都", "city": "港区",
                                  "created_at": "2024-01-01T00:00:00+00:00"})
    store.insert_restaurant(bob, {"name": "New", "prefecture": "東京都", "city": "港区",
                                  "created_at": "2024-03-01T00:00:00+00:00"})
    store.insert_restaurant(alice, {"name": "Mine", "prefecture": "東京都", "city": "港区"})

    entries = follows.timeline(alice)
    assert [e.restaurant.name for e in entries] == ["New", "Old"]
    assert entries[0].owner.display_name == "bob"


def test_timeline_empty_without_follows(alice):
    assert follows.timeline(alice) == []


def test_new_favorite_notifies_accepted_followers_only(alice, bob):
    carol = _user("carol")
    follows.request_follow(alice, bob)
    follows.accept_follow(bob, alice)
    follows.request_follow(carol, bob)

    assert follows.notify_new_favorite(bob, "r1") == 1
    inbox = notifications.list_notifications(alice, unread_only=True)
    assert inbox[0].type == NotificationType.new_favorite
    assert inbox[0].restaurant_id == "r1"
    assert notifications.unread_count(carol) == 0


# ── Notifications ────────────────────────────────────────────────────────


def test_mark_read_and_unread_count():
    first = notifications.notify("u1", NotificationType.follow_request, actor_id="u2")
    notifications.notify("u1", NotificationType.follow_accepted, actor_id="u3")
    assert notifications.unread_count("u1") == 2

    assert notifications.mark_read("u1", [first.id]) == 1
    assert notifications.unread_count("u1") == 1
    assert notifications.mark_read("u1") == 1
    assert notifications.unread_count("u1") == 0


def test_list_is_newest_first():
    notifications.notify("u1", NotificationType.follow_request, actor_id="a")
    notifications.notify("u1", NotificationType.follow_request, actor_id="b")
    assert [n.actor_id for n in notifications.list_notifications("u1")] == ["b", "a"]


def test_subscribers_receive_events_until_unsubscribed():
    received = []
    unsubscribe = notifications.subscribe("u1", received.append)
    notifications.notify("u1", NotificationType.follow_request, actor_id="a")
    notifications.notify("u2", NotificationType.follow_request, actor_id="a")
    unsubscribe()
    notifications.notify("u1", NotificationType.follow_request, actor_id="b")
    assert [n.actor_id for n in received] == ["a"]


def test_failing_subscriber_does_not_block_delivery():
    def broken(_):
        raise RuntimeError("listener down")

    notifications.subscribe("u1", broken)
    notifications.notify("u1", NotificationType.follow_request, actor_id="a")
    assert notifications.unread_count("u1") == 1
