"""
Per-user chat histories for the recommendation chat.

A user keeps at most ``MAX_CHAT_HISTORY`` chats. Starting another one is
refused until an old chat is deleted.
"""
from __future__ import annotations

import threading
import uuid
from datetime import datetime, timezone

from .models import ChatHistory, ChatMessage

MAX_CHAT_HISTORY = 10
TITLE_LENGTH = 40

_histories: dict[str, ChatHistory] = {}
_lock = threading.Lock()


class HistoryLimitReached(Exception):
    pass


class HistoryNotFound(LookupError):
    pass


def make_title(first_message: str) -> str:
    title = first_message[:TITLE_LENGTH]
    if len(first_message) > TITLE_LENGTH:
        title += "..."
    return title


def list_histories(user_id: str) -> list[ChatHistory]:
    """Newest first."""
    owned = [h for h in _histories.values() if h.user_id == user_id]
    return sorted(owned, key=lambda h: h.created_at, reverse=True)


def check_capacity(user_id: str) -> None:
    """Raise ``HistoryLimitReached`` if *user_id* cannot start another chat."""
    if sum(1 for h in _histories.values() if h.user_id == user_id) >= MAX_CHAT_HISTORY:
        raise HistoryLimitReached(
            f"You can keep up to {MAX_CHAT_HISTORY} chats. Delete one to start a new chat."
        )


def create_history(user_id: str, messages: list[ChatMessage]) -> ChatHistory:
    if not messages:
        raise ValueError("A chat needs at least one message")
    with _lock:
        check_capacity(user_id)
        history = ChatHistory(
            id=str(uuid.uuid4()),
            user_id=user_id,
            title=make_title(messages[0].content),
            messages=list(messages),
            created_at=datetime.now(timezone.utc).isoformat(),
        )
        _histories[history.id] = history
    return history


def get_history(user_id: str, history_id: str) -> ChatHistory:
    history = _histories.get(history_id)
    if history is None or history.user_id != user_id:
        raise HistoryNotFound(f"Chat {history_id} not found")
    return history


def append_messages(user_id: str, history_id: str, messages: list[ChatMessage]) -> ChatHistory:
    with _lock:
        history = get_history(user_id, history_id)
        history.messages = [*history.messages, *messages]
    return history


def delete_history(user_id: str, history_id: str) -> None:
    with _lock:
        get_history(user_id, history_id)
        del _histories[history_id]


def delete_user_histories(user_id: str) -> None:
    with _lock:
        for hid in [hid for hid, h in _histories.items() if h.user_id == user_id]:
            del _histories[hid]


def clear_histories() -> None:
    with _lock:
        _histories.clear()
