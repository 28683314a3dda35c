"""
Search-with-fallback orchestration.

A search session runs the Hotpepper query first. When it yields nothing, or
fails, the session runs the LLM web search exactly once and merges its
results behind the Hotpepper ones. Duplicates are dropped on the exact
``(name, address)`` pair and everything outside the requested prefecture is
filtered out of the final list.

Lifecycle::

    idle -> primary_pending -> primary_success_nonempty -> done
                            -> primary_empty | primary_error
                               -> fallback_pending -> fallback_success | fallback_error -> done
"""
from __future__ import annotations

import logging
import threading
import uuid
from typing import Callable, Iterable

from .models import SearchQuery, SearchResponse, SearchResult, SearchState

logger = logging.getLogger(__name__)

Provider = Callable[[SearchQuery], list[SearchResult]]

BOTH_FAILED_MESSAGE = "Search failed. Please try again later."


def merge_results(existing: Iterable[SearchResult], candidates: Iterable[SearchResult]) -> list[SearchResult]:
    """Append *candidates* whose ``(name, address)`` pair is not already present.

    Matching is exact: case-sensitive and whitespace is not normalized.
    """
    merged = list(existing)
    seen = {(r.name, r.address) for r in merged}
    for candidate in candidates:
        pair = (candidate.name, candidate.address)
        if pair in seen:
            continue
        seen.add(pair)
        merged.append(candidate)
    return merged


def scope_to_prefecture(results: Iterable[SearchResult], prefecture: str | None) -> list[SearchResult]:
    if not prefecture:
        return list(results)
    return [r for r in results if r.prefecture == prefecture]


class SearchSession:
    def __init__(self, query: SearchQuery, search_id: str | None = None) -> None:
        self.search_id = search_id or uuid.uuid4().hex
        self.query = query
        self.state = SearchState.idle
        self.primary_outcome: SearchState | None = None
        self.primary_results: list[SearchResult] = []
        self.fallback_results: list[SearchResult] = []
        self.primary_error: str | None = None
        self.fallback_error: str | None = None
        self.fallback_triggered = False
        self._lock = threading.Lock()

    # ── Primary ────────────────────────────────────────────────────────

    def run_primary(self, primary: Provider) -> SearchState:
        with self._lock:
            if not self.fallback_triggered:
                self.state = SearchState.primary_pending

        try:
            results = list(primary(self.query))
        except Exception as exc:
            logger.warning("Primary search failed, treating as no results", exc_info=True)
            outcome = SearchState.primary_error
            results = []
            error = str(exc) or exc.__class__.__name__
        else:
            outcome = SearchState.primary_success_nonempty if results else SearchState.primary_empty
            error = None

        with self._lock:
            self.primary_results = results
            self.primary_error = error
            self.primary_outcome = outcome
            # A manually triggered fallback owns the state from here on.
            if not self.fallback_triggered:
                self.state = SearchState.done if results else outcome
        return outcome

    def load_page(self, primary: Provider, page: int) -> SearchState:
        """Re-run the primary provider for another page, keeping fallback results."""
        self.query = self.query.model_copy(update={"page": page})
        outcome = self.run_primary(primary)
        with self._lock:
            if self.fallback_triggered or outcome == SearchState.primary_success_nonempty:
                self.state = SearchState.done
        return outcome

    # ── Fallback ───────────────────────────────────────────────────────

    def needs_fallback(self) -> bool:
        return (
            not self.fallback_triggered
            and self.primary_outcome in (SearchState.primary_empty, SearchState.primary_error)
        )

    def trigger_fallback(self, fallback: Provider) -> bool:
        """Run the fallback provider once. Returns ``False`` if it already ran."""
        with self._lock:
            if self.fallback_triggered:
                return False
            self.fallback_triggered = True
            self.state = SearchState.fallback_pending

        try:
            results = list(fallback(self.query))
        except Exception as exc:
            logger.warning("Fallback search failed", exc_info=True)
            with self._lock:
                self.fallback_results = []
                self.fallback_error = str(exc) or exc.__class__.__name__
                self.state = SearchState.fallback_error
        else:
            with self._lock:
                self.fallback_results = results
                self.state = SearchState.fallback_success

        with self._lock:
            self.state = SearchState.done
        return True

    def run(self, primary: Provider, fallback: Provider) -> SearchSession:
        self.run_primary(primary)
        if self.needs_fallback():
            self.trigger_fallback(fallback)
        return self

    # ── Results ────────────────────────────────────────────────────────

    @property
    def results(self) -> list[SearchResult]:
        merged = merge_results(self.primary_results, self.fallback_results)
        return scope_to_prefecture(merged, self.query.prefecture)

    @property
    def error(self) -> str | None:
        """User-facing error, only when both providers failed."""
        if self.primary_error and self.fallback_error:
            return BOTH_FAILED_MESSAGE
        return None

    def to_response(self) -> SearchResponse:
        results = self.results
        primary_count = sum(1 for r in results if r.is_from_hotpepper)
        return SearchResponse(
            search_id=self.search_id,
            state=self.state,
            results=results,
            primary_count=primary_count,
            fallback_count=len(results) - primary_count,
            fallback_triggered=self.fallback_triggered,
            error=self.error,
        )


# ---------------------------------------------------------------------------
# Current search per user
# ---------------------------------------------------------------------------
# A new search replaces the user's current session. A superseded session may
# still finish, but it is no longer what the user sees.

_sessions: dict[str, SearchSession] = {}
_sessions_lock = threading.Lock()


def start_session(user_id: str, query: SearchQuery) -> SearchSession:
    session = SearchSession(query)
    with _sessions_lock:
        _sessions[user_id] = session
    return session


def current_session(user_id: str) -> SearchSession | None:
    return _sessions.get(user_id)


def is_current(user_id: str, session: SearchSession) -> bool:
    return _sessions.get(user_id) is session


def end_session(user_id: str) -> None:
    with _sessions_lock:
        _sessions.pop(user_id, None)


def clear_sessions() -> None:
    with _sessions_lock:
        _sessions.clear()
