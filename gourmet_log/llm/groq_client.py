from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field

from groq import Groq

from ..chat.models import ChatMessage, Pick, Recommendation
from ..favorites.models import Restaurant
from ..search.models import HotpepperResult, SearchResult
from .config import DEFAULT_LLM_CONFIG, LLMConfig

logger = logging.getLogger(__name__)

MAX_PICKS = 5

FALLBACK_SUMMARY = "Recommendations are unavailable right now. Please try again later."

SYSTEM_PROMPT = (
    "You are a witty food concierge with a sense of humour. "
    "Using only the user's list of favorite restaurants and the conversation so far, "
    f"pick up to {MAX_PICKS} restaurants that best fit the current request and give "
    "a playful, imaginative reason for each.\n\n"
    "Rules:\n"
    "- Base reasons only on name, genres, location and visit count.\n"
    "- Never mention the user's personal comments.\n"
    "- Include only restaurants from the provided list.\n\n"
    "Return ONLY valid JSON in this exact format:\n"
    '{"recommendations": [{"id": "<restaurant_id>", "name": "<name>", "reason": "<reason>"}], '
    '"summary": "<overall comment that mentions the picks>"}'
)


@dataclass
class RecommendOutcome:
    recommendation: Recommendation = field(default_factory=Recommendation)
    input_tokens: int | None = None
    output_tokens: int | None = None


def _build_user_message(
    user_query: str,
    restaurants: list[Restaurant],
    history: list[ChatMessage],
) -> str:
    lines = ["## Conversation so far"]
    if history:
        for msg in history:
            speaker = "User" if msg.role == "user" else "Assistant"
            lines.append(f"### {speaker}\n{msg.content}")
    else:
        lines.append("No conversation yet.")

    # User comments are never sent.
    lines.append("\n## Favorite restaurants")
    lines.append("| ID | Name | Prefecture | City | Genres | Visits |")
    lines.append("|---|---|---|---|---|---|")
    for r in restaurants:
        lines.append(
            f"| {r.id} | {r.name} | {r.prefecture} | {r.city} "
            f"| {', '.join(r.genres)} | {r.visit_count} |"
        )

    lines.append(f"\n## Current request\n{user_query}")
    return "\n".join(lines)


def recommend_from_favorites(
    user_query: str,
    restaurants: list[Restaurant],
    history: list[ChatMessage] | None = None,
    config: LLMConfig = DEFAULT_LLM_CONFIG,
) -> RecommendOutcome:
    """
    Call Groq LLM to pick up to five of *restaurants* for *user_query*.

    Picks that do not refer to a listed restaurant are dropped.
    Returns a fallback summary with no picks on any failure (timeout, bad
    JSON, API error).
    """
    fallback = RecommendOutcome(recommendation=Recommendation(summary=FALLBACK_SUMMARY))
    if not config.enabled or not config.api_key:
        return fallback

    if not restaurants:
        return fallback

    try:
        client = Groq(api_key=config.api_key, timeout=config.timeout)
        response = client.chat.completions.create(
            model=config.model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": _build_user_message(user_query, restaurants, history or []),
                },
            ],
            max_tokens=config.max_tokens,
            temperature=config.recommend_temperature,
            response_format={"type": "json_object"},
        )

        content = response.choices[0].message.content or ""
        parsed = json.loads(content)

        known = {r.id: r for r in restaurants}
        picks: list[Pick] = []
        for item in parsed.get("recommendations", []):
            rid = str(item.get("id", ""))
            reason = item.get("reason", "")
            if rid in known and reason and all(p.id != rid for p in picks):
                picks.append(Pick(id=rid, name=known[rid].name, reason=reason))
            if len(picks) == MAX_PICKS:
                break

        usage = getattr(response, "usage", None)
        return RecommendOutcome(
            recommendation=Recommendation(recommendations=picks, summary=str(parsed.get("summary") or "")),
            input_tokens=getattr(usage, "prompt_tokens", None),
            output_tokens=getattr(usage, "completion_tokens", None),
        )

    except Exception:
        logger.warning("Groq LLM call failed, returning fallback recommendation", exc_info=True)
        return fallback


# ── Restaurant introductions ─────────────────────────────────────────────

INTRO_SYSTEM_PROMPT = (
    "You are a professional food writer. Write a short, inviting introduction "
    "(about 100 to 150 Japanese characters) that makes the reader want to visit "
    "the restaurant described by the user.\n\n"
    "Rules:\n"
    "- Imagine the dishes and the atmosphere.\n"
    "- Name the occasions it suits: a date, friends, family or eating alone.\n"
    "- If a visit count is given, write as a returning regular would.\n"
    "- If an existing comment is given, refine and build on it rather than replace it.\n"
    "- Reply with the introduction only."
)


@dataclass
class IntroSubject:
    name: str
    address: str = ""
    genres: list[str] = field(default_factory=list)
    catch: str = ""
    visit_count: int = 0
    user_comment: str = ""

    @classmethod
    def from_search_result(cls, result: SearchResult) -> IntroSubject:
        genres = [result.genre] if isinstance(result, HotpepperResult) and result.genre else []
        catch = result.catch if isinstance(result, HotpepperResult) else ""
        return cls(name=result.name, address=result.address, genres=genres, catch=catch)

    @classmethod
    def from_restaurant(cls, restaurant: Restaurant) -> IntroSubject:
        return cls(
            name=restaurant.name,
            address=restaurant.address or f"{restaurant.prefecture}{restaurant.city}",
            genres=list(restaurant.genres),
            visit_count=restaurant.visit_count,
            user_comment=restaurant.user_comment,
        )


@dataclass
class IntroOutcome:
    comment: str | None = None
    input_tokens: int | None = None
    output_tokens: int | None = None


def _build_intro_message(subject: IntroSubject) -> str:
    lines = [
        "## Restaurant",
        f"- Name: {subject.name}",
        f"- Genre: {', '.join(subject.genres) or 'unknown'}",
        f"- Catch copy: {subject.catch or 'none'}",
        f"- Address: {subject.address or 'unknown'}",
    ]
    extra = []
    if subject.visit_count > 0:
        extra.append(f"- Visits so far: {subject.visit_count}")
    if subject.user_comment:
        extra.append(f'- Existing comment: "{subject.user_comment}"')
    if extra:
        lines.append("\n## Additional information")
        lines.extend(extra)
    return "\n".join(lines)


def write_restaurant_intro(subject: IntroSubject, config: LLMConfig = DEFAULT_LLM_CONFIG) -> IntroOutcome:
    """Ask Groq for a short introduction of one restaurant.

    ``comment`` is ``None`` when the LLM is unavailable or answers with nothing.
    """
    if not config.enabled or not config.api_key:
        return IntroOutcome()

    try:
        client = Groq(api_key=config.api_key, timeout=config.timeout)
        response = client.chat.completions.create(
            model=config.model,
            messages=[
                {"role": "system", "content": INTRO_SYSTEM_PROMPT},
                {"role": "user", "content": _build_intro_message(subject)},
            ],
            max_tokens=config.max_tokens,
            temperature=config.recommend_temperature,
        )
        comment = (response.choices[0].message.content or "").strip()
        usage = getattr(response, "usage", None)
        return IntroOutcome(
            comment=comment or None,
            input_tokens=getattr(usage, "prompt_tokens", None),
            output_tokens=getattr(usage, "completion_tokens", None),
        )
    except Exception:
        logger.warning("Groq LLM call failed, no restaurant introduction", exc_info=True)
        return IntroOutcome()
