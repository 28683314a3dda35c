from __future__ import annotations

import pytest

from gourmet_log.chat.history import (
    MAX_CHAT_HISTORY,
    HistoryLimitReached,
    HistoryNotFound,
    append_messages,
    create_history,
    delete_history,
    get_history,
    list_histories,
    make_title,
)
from gourmet_log.chat.models import ChatMessage


def _turn(text: str) -> list[ChatMessage]:
    return [ChatMessage(role="user", content=text), ChatMessage(role="model", content="{}")]


def test_title_truncates_long_first_message():
    long = "a" * 50
    assert make_title(long) == "a" * 40 + "..."
    assert make_title("short question") == "short question"
    assert make_title("b" * 40) == "b" * 40


def test_create_and_append():
    history = create_history("u1", _turn("Where for ramen?"))
    assert history.title == "Where for ramen?"

    append_messages("u1", history.id, _turn("Something cheaper?"))

    messages = get_history("u1", history.id).messages
    assert len(messages) == 4
    assert messages[2].content == "Something cheaper?"


def test_histories_are_capped_per_user():
    for i in range(MAX_CHAT_HISTORY):
        create_history("u1", _turn(f"q{i}"))
    with pytest.raises(HistoryLimitReached):
        create_history("u1", _turn("one too many"))
    # Another user is unaffected.
    create_history("u2", _turn("hello"))


def test_delete_frees_a_slot():
    created = [create_history("u1", _turn(f"q{i}")) for i in range(MAX_CHAT_HISTORY)]
    delete_history("u1", created[0].id)
    create_history("u1", _turn("fits now"))
    assert len(list_histories("u1")) == MAX_CHAT_HISTORY


def test_other_users_history_is_not_found():
    history = create_history("u1", _turn("mine"))
    with pytest.raises(HistoryNotFound):
        get_history("u2", history.id)
    with pytest.raises(HistoryNotFound):
        delete_history("u2", history.id)


def test_empty_history_is_rejected():
    with pytest.raises(ValueError):
        create_history("u1", [])
