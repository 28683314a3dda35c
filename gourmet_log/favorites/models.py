from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field


class Source(BaseModel):
    uri: str
    title: str


class Restaurant(BaseModel):
    id: str
    user_id: str
    created_at: str
    name: str
    address: str = ""
    hours: str = ""
    price_range: str | None = None
    is_closed: bool = False
    latitude: float | None = None
    longitude: float | None = None
    prefecture: str
    city: str
    website: str | None = None
    sources: list[Source] = Field(default_factory=list)
    visit_count: int = Field(default=0, ge=0)
    user_comment: str = ""
    custom_url: str | None = None
    genres: list[str] = Field(default_factory=list)

    @property
    def has_coordinates(self) -> bool:
        """``(0, 0)`` and missing values both mean "no coordinates"."""
        if self.latitude is None or self.longitude is None:
            return False
        return not (self.latitude == 0 and self.longitude == 0)


class RestaurantCreate(BaseModel):
    """Manual-add form payload."""

    name: str = Field(..., min_length=1)
    prefecture: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    address: str = ""
    hours: str = ""
    website: str | None = None
    genres: list[str] = Field(default_factory=list)
    price_range: str | None = None


class RestaurantUpdate(BaseModel):
    """Fields a user may edit on a saved favorite. Unset fields are left alone."""

    visit_count: int | None = Field(default=None, ge=0)
    user_comment: str | None = None
    custom_url: str | None = None
    genres: list[str] | None = None
    latitude: float | None = None
    longitude: float | None = None
    price_range: str | None = None
    is_closed: bool | None = None

    def changed_fields(self) -> dict:
        return self.model_dump(exclude_unset=True)


# ── Presentation state ─────────────────────────────────────────────────


class ViewMode(str, Enum):
    favorites = "favorites"
    map = "map"


class SidebarFilter(BaseModel):
    type: Literal["prefecture", "city"]
    value: str

    def key(self) -> tuple[str, str]:
        return (self.type, self.value)


class SortField(str, Enum):
    created_at = "created_at"
    visit_count = "visit_count"
    prefecture = "prefecture"
    city = "city"


class SortOrder(str, Enum):
    asc = "asc"
    desc = "desc"


class SortKey(BaseModel):
    by: SortField
    order: SortOrder = SortOrder.asc


DEFAULT_SORT: list[SortKey] = [SortKey(by=SortField.prefecture, order=SortOrder.asc)]


class ShareFilters(BaseModel):
    sidebar_filters: list[SidebarFilter] = Field(default_factory=list)
    genre_filters: list[str] = Field(default_factory=list)


class ViewStateUpdate(BaseModel):
    """Partial update of a viewer's filter / sort / view mode."""

    sidebar_filters: list[SidebarFilter] | None = None
    genre_filters: list[str] | None = None
    sort: list[SortKey] | None = None
    view: ViewMode | None = None


class FavoritesViewResponse(BaseModel):
    restaurants: list[Restaurant]
    sidebar_filters: list[SidebarFilter]
    genre_filters: list[str]
    sort: list[SortKey]
    view: ViewMode
    all_genres: list[str]
    pending_geocode: list[str] = Field(default_factory=list)
    read_only: bool = False


class FavoriteUpdateResponse(BaseModel):
    """A confirmed edit: the stored record plus the list as currently rendered."""

    restaurant: Restaurant
    view: FavoritesViewResponse
