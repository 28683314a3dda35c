import json
from unittest.mock import MagicMock, patch

from gourmet_log.chat.models import ChatMessage
from gourmet_log.favorites.models import Restaurant
from gourmet_log.llm.config import LLMConfig
from gourmet_log.llm.groq_client import (
    FALLBACK_SUMMARY,
    MAX_PICKS,
    IntroSubject,
    recommend_from_favorites,
    write_restaurant_intro,
)
from gourmet_log.search.models import HotpepperResult


def _r(rid: str, name: str, **kw) -> Restaurant:
    return Restaurant(
        id=rid, user_id="u1", created_at="2024-01-01T00:00:00+00:00",
        name=name, prefecture="東京都", city="渋谷区", **kw,
    )


SAMPLE_RESTAURANTS = [
    _r("1", "Spice House", genres=["カレー"], visit_count=3, user_comment="secret note"),
    _r("2", "Pasta Palace", genres=["イタリアン"]),
    _r("3", "Curry Leaf", genres=["カレー"]),
]

ENABLED_CONFIG = LLMConfig(api_key="test-key", enabled=True)
DISABLED_CONFIG = LLMConfig(api_key="test-key", enabled=False)


def _mock_groq_response(content: str) -> MagicMock:
    message = MagicMock()
    message.content = content
    choice = MagicMock()
    choice.message = message
    response = MagicMock()
    response.choices = [choice]
    response.usage.prompt_tokens = 200
    response.usage.completion_tokens = 50
    return response


@patch("gourmet_log.llm.groq_client.Groq")
def test_recommend_returns_picks_and_summary(mock_groq_cls):
    llm_response = json.dumps({
        "recommendations": [
            {"id": "3", "name": "Curry Leaf", "reason": "A leafy refuge for curry pilgrims."},
            {"id": "1", "name": "Spice House", "reason": "Where spice goes to retire."},
        ],
        "summary": "Two curry temples for a spicy evening.",
    })
    mock_groq_cls.return_value.chat.completions.create.return_value = _mock_groq_response(llm_response)

    outcome = recommend_from_favorites("curry tonight", SAMPLE_RESTAURANTS, config=ENABLED_CONFIG)

    assert [p.id for p in outcome.recommendation.recommendations] == ["3", "1"]
    assert outcome.recommendation.summary == "Two curry temples for a spicy evening."
    assert (outcome.input_tokens, outcome.output_tokens) == (200, 50)


@patch("gourmet_log.llm.groq_client.Groq")
def test_prompt_includes_history_but_not_comments(mock_groq_cls):
    mock_groq_cls.return_value.chat.completions.create.return_value = _mock_groq_response(
        '{"recommendations": [], "summary": ""}'
    )
    history = [ChatMessage(role="user", content="something warm")]

    recommend_from_favorites("and cheap?", SAMPLE_RESTAURANTS, history, config=ENABLED_CONFIG)

    messages = mock_groq_cls.return_value.chat.completions.create.call_args.kwargs["messages"]
    user_content = messages[1]["content"]
    assert "something warm" in user_content
    assert "and cheap?" in user_content
    assert "secret note" not in user_content


@patch("gourmet_log.llm.groq_client.Groq")
def test_unknown_ids_are_dropped_and_picks_capped(mock_groq_cls):
    restaurants = [_r(str(i), f"Shop {i}") for i in range(8)]
    picks = [{"id": "ghost", "name": "Ghost", "reason": "Not real"}] + [
        {"id": str(i), "name": f"Shop {i}", "reason": "Good"} for i in range(8)
    ]
    mock_groq_cls.return_value.chat.completions.create.return_value = _mock_groq_response(
        json.dumps({"recommendations": picks, "summary": "Lots"})
    )

    outcome = recommend_from_favorites("anything", restaurants, config=ENABLED_CONFIG)

    ids = [p.id for p in outcome.recommendation.recommendations]
    assert "ghost" not in ids
    assert len(ids) == MAX_PICKS


@patch("gourmet_log.llm.groq_client.Groq")
def test_recommend_fallback_on_api_error(mock_groq_cls):
    mock_groq_cls.return_value.chat.completions.create.side_effect = Exception("API timeout")

    outcome = recommend_from_favorites("curry", SAMPLE_RESTAURANTS, config=ENABLED_CONFIG)

    assert outcome.recommendation.recommendations == []
    assert outcome.recommendation.summary == FALLBACK_SUMMARY
    assert outcome.input_tokens is None


@patch("gourmet_log.llm.groq_client.Groq")
def test_recommend_fallback_on_bad_json(mock_groq_cls):
    mock_groq_cls.return_value.chat.completions.create.return_value = _mock_groq_response("not valid json{{{")

    outcome = recommend_from_favorites("curry", SAMPLE_RESTAURANTS, config=ENABLED_CONFIG)

    assert outcome.recommendation.summary == FALLBACK_SUMMARY


def test_recommend_disabled():
    outcome = recommend_from_favorites("curry", SAMPLE_RESTAURANTS, config=DISABLED_CONFIG)

    assert outcome.recommendation.recommendations == []


def test_recommend_without_favorites():
    outcome = recommend_from_favorites("curry", [], config=ENABLED_CONFIG)

    assert outcome.recommendation.summary == FALLBACK_SUMMARY


# ── Restaurant introductions ─────────────────────────────────────────────


@patch("gourmet_log.llm.groq_client.Groq")
def test_intro_for_saved_restaurant_builds_on_visits_and_comment(mock_groq_cls):
    create = mock_groq_cls.return_value.chat.completions.create
    create.return_value = _mock_groq_response("  A spice lover's second home.  ")

    outcome = write_restaurant_intro(IntroSubject.from_restaurant(SAMPLE_RESTAURANTS[0]), config=ENABLED_CONFIG)

    assert outcome.comment == "A spice lover's second home."
    assert (outcome.input_tokens, outcome.output_tokens) == (200, 50)
    user_message = create.call_args.kwargs["messages"][1]["content"]
    assert "Spice House" in user_message
    assert "カレー" in user_message
    assert "Visits so far: 3" in user_message
    assert "secret note" in user_message


@patch("gourmet_log.llm.groq_client.Groq")
def test_intro_for_search_result_uses_catch_copy(mock_groq_cls):
    create = mock_groq_cls.return_value.chat.completions.create
    create.return_value = _mock_groq_response("Smoke and sake.")
    result = HotpepperResult(
        id="J1", name="Yakitori Hana", address="東京都渋谷区道玄坂1-2-3",
        prefecture="東京都", city="渋谷区", genre="居酒屋", catch="Charcoal grilled",
    )

    outcome = write_restaurant_intro(IntroSubject.from_search_result(result), config=ENABLED_CONFIG)

    assert outcome.comment == "Smoke and sake."
    user_message = create.call_args.kwargs["messages"][1]["content"]
    assert "Charcoal grilled" in user_message
    assert "Additional information" not in user_message


@patch("gourmet_log.llm.groq_client.Groq")
def test_intro_is_none_on_api_error(mock_groq_cls):
    mock_groq_cls.return_value.chat.completions.create.side_effect = Exception("API timeout")

    outcome = write_restaurant_intro(IntroSubject(name="Spice House"), config=ENABLED_CONFIG)

    assert outcome.comment is None
    assert outcome.input_tokens is None


@patch("gourmet_log.llm.groq_client.Groq")
def test_blank_intro_counts_as_missing(mock_groq_cls):
    mock_groq_cls.return_value.chat.completions.create.return_value = _mock_groq_response("   ")

    outcome = write_restaurant_intro(IntroSubject(name="Spice House"), config=ENABLED_CONFIG)

    assert outcome.comment is None
    assert outcome.input_tokens == 200


def test_intro_disabled():
    assert write_restaurant_intro(IntroSubject(name="Spice House"), config=DISABLED_CONFIG).comment is None
