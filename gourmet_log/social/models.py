from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field

from ..favorites.models import Restaurant


class FollowStatus(str, Enum):
    pending = "pending"
    accepted = "accepted"


class NotificationType(str, Enum):
    new_favorite = "new_favorite"
    follow_request = "follow_request"
    follow_accepted = "follow_accepted"


class Follow(BaseModel):
    follower_id: str
    following_id: str
    status: FollowStatus = FollowStatus.pending
    created_at: str


class Notification(BaseModel):
    id: str
    user_id: str
    type: NotificationType
    actor_id: str
    restaurant_id: str | None = None
    created_at: str
    read: bool = False


class UserProfile(BaseModel):
    id: str
    username: str
    display_name: str


class FollowCounts(BaseModel):
    followers: int = 0
    following: int = 0


class TimelineEntry(BaseModel):
    restaurant: Restaurant
    owner: UserProfile


class MarkReadRequest(BaseModel):
    """Omit ``ids`` to mark every notification as read."""

    ids: list[str] | None = Field(default=None)
