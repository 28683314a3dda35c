from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field

from groq import Groq
from pydantic import ValidationError

from ..favorites.models import Source
from ..llm.config import DEFAULT_LLM_CONFIG, LLMConfig
from .models import SearchQuery, WebSearchResult

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a search assistant that finds restaurants in a given Japanese area "
    "using web search and reports them as strict JSON.\n\n"
    "Rules:\n"
    "1. Always call the web search tool and use only its results, never prior knowledge.\n"
    "2. Ignore any restaurant outside the requested area, even if the name matches.\n"
    "3. For each restaurant extract name, address, latitude, longitude, prefecture, "
    "city and official website. Use 0 for unknown latitude/longitude.\n"
    "4. Reply with the JSON object only, no commentary.\n"
    "5. When nothing matches, return an empty details array.\n\n"
    "Format:\n"
    '{"details": [{"name": "", "address": "", "latitude": 0, "longitude": 0, '
    '"prefecture": "", "city": "", "website": ""}], '
    '"sources": [{"uri": "", "title": ""}]}'
)

_JSON_BLOCK_RE = re.compile(r"\{.*\}", re.DOTALL)


class WebSearchError(RuntimeError):
    pass


@dataclass
class WebSearchOutcome:
    results: list[WebSearchResult] = field(default_factory=list)
    sources: list[Source] = field(default_factory=list)
    input_tokens: int | None = None
    output_tokens: int | None = None


def build_query_text(query: SearchQuery) -> str:
    parts = [query.prefecture, query.city or "", query.genre_text or "", query.store_name or ""]
    return " ".join(p for p in parts if p).strip()


def _extract_json(content: str) -> dict:
    match = _JSON_BLOCK_RE.search(content or "")
    if not match:
        raise WebSearchError("LLM response did not contain JSON")
    try:
        return json.loads(match.group(0))
    except ValueError as exc:
        raise WebSearchError("LLM response was not valid JSON") from exc


def _coordinate(value: object) -> float | None:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _parse_sources(raw: object) -> list[Source]:
    sources: list[Source] = []
    for item in raw if isinstance(raw, list) else []:
        if isinstance(item, dict) and item.get("uri"):
            sources.append(Source(uri=str(item["uri"]), title=str(item.get("title") or "")))
    return sources


def search_web(query: SearchQuery, config: LLMConfig = DEFAULT_LLM_CONFIG) -> WebSearchOutcome:
    """
    Ask the LLM to search the web for restaurants matching *query*.

    Every result carries the full source list of the answer. Raises
    :class:`WebSearchError` on any failure so the caller can tell "nothing
    found" apart from "search failed".
    """
    if not config.enabled or not config.api_key:
        raise WebSearchError("LLM web search is not configured")

    area = f"{query.prefecture} {query.city or ''}".strip()
    user_content = f"Search area: {area}\nQuery: {build_query_text(query)} restaurant"

    try:
        client = Groq(api_key=config.api_key, timeout=config.search_timeout)
        response = client.chat.completions.create(
            model=config.search_model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": user_content},
            ],
            max_tokens=config.max_tokens,
            temperature=config.search_temperature,
        )
    except Exception as exc:
        raise WebSearchError(f"LLM web search failed: {exc}") from exc

    content = response.choices[0].message.content or ""
    logger.debug("Web search raw response: %s", content[:500])
    parsed = _extract_json(content)

    sources = _parse_sources(parsed.get("sources"))
    results: list[WebSearchResult] = []
    for item in parsed.get("details") or []:
        if not isinstance(item, dict) or not item.get("name"):
            continue
        try:
            results.append(WebSearchResult(
                name=str(item["name"]),
                address=str(item.get("address") or ""),
                hours=str(item.get("hours") or ""),
                latitude=_coordinate(item.get("latitude")),
                longitude=_coordinate(item.get("longitude")),
                prefecture=str(item.get("prefecture") or ""),
                city=str(item.get("city") or ""),
                website=item.get("website") or None,
                sources=sources,
            ))
        except ValidationError:
            logger.info("Skipping malformed web search result %r", item.get("name"), exc_info=True)

    usage = getattr(response, "usage", None)
    return WebSearchOutcome(
        results=results,
        sources=sources,
        input_tokens=getattr(usage, "prompt_tokens", None),
        output_tokens=getattr(usage, "completion_tokens", None),
    )
