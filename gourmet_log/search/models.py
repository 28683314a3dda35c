from __future__ import annotations

from enum import Enum
from typing import Literal, Union

from pydantic import BaseModel, Field

from ..favorites.models import Source


class SearchQuery(BaseModel):
    prefecture: str = Field(..., min_length=1)
    city: str | None = None
    middle_area_code: str | None = None
    small_area_code: str | None = None
    genre: str | None = Field(default=None, description="Hotpepper genre code")
    genre_text: str | None = None
    store_name: str | None = Field(default=None, description="Free-text keyword")
    page: int = Field(default=1, ge=1)


class HotpepperResult(BaseModel):
    id: str
    name: str
    address: str = ""
    hours: str = ""
    latitude: float | None = None
    longitude: float | None = None
    prefecture: str
    city: str
    genre: str = ""
    catch: str = ""
    photo_url: str = ""
    site_url: str = ""
    is_from_hotpepper: Literal[True] = True


class WebSearchResult(BaseModel):
    name: str
    address: str = ""
    hours: str = ""
    price_range: str | None = None
    is_closed: bool = False
    latitude: float | None = None
    longitude: float | None = None
    prefecture: str = ""
    city: str = ""
    website: str | None = None
    sources: list[Source] = Field(default_factory=list)
    is_from_hotpepper: Literal[False] = False


SearchResult = Union[HotpepperResult, WebSearchResult]


class SearchState(str, Enum):
    idle = "idle"
    primary_pending = "primary_pending"
    primary_success_nonempty = "primary_success_nonempty"
    primary_empty = "primary_empty"
    primary_error = "primary_error"
    fallback_pending = "fallback_pending"
    fallback_success = "fallback_success"
    fallback_error = "fallback_error"
    done = "done"


class SearchResponse(BaseModel):
    search_id: str
    state: SearchState
    results: list[SearchResult]
    primary_count: int = 0
    fallback_count: int = 0
    fallback_triggered: bool = False
    superseded: bool = False
    error: str | None = None


class Genre(BaseModel):
    code: str
    name: str


class Area(BaseModel):
    """A Hotpepper middle area, e.g. ``Y005`` for 銀座・有楽町・築地."""

    code: str
    name: str
