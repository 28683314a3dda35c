from __future__ import annotations

import logging
from typing import Any, Callable

from ..search.geocoding import GeocodingError, full_address, geocode_address
from ..search.models import HotpepperResult, SearchResult
from . import store
from .models import Restaurant, RestaurantCreate, Source

logger = logging.getLogger(__name__)

Geocoder = Callable[[str], tuple[float, float]]


class IncompleteRestaurant(ValueError):
    pass


def restaurant_data_from_search(result: SearchResult) -> dict[str, Any]:
    """Map a search result onto the fields of a new favorite."""
    if isinstance(result, HotpepperResult):
        return {
            "name": result.name or "名称不明",
            "address": result.address,
            "hours": result.hours or "情報なし",
            "latitude": result.latitude,
            "longitude": result.longitude,
            "prefecture": result.prefecture,
            "city": result.city,
            "website": result.site_url or None,
            "sources": [Source(uri=result.site_url, title=result.name)] if result.site_url else [],
            "genres": [result.genre] if result.genre else [],
            "price_range": None,
        }
    return {
        "name": result.name or "名称不明",
        "address": result.address,
        "hours": result.hours or "情報なし",
        "latitude": result.latitude,
        "longitude": result.longitude,
        "prefecture": result.prefecture,
        "city": result.city,
        "website": result.website,
        "sources": list(result.sources),
        "genres": [],
        "price_range": result.price_range,
        "is_closed": result.is_closed,
    }


def restaurant_data_from_form(form: RestaurantCreate) -> dict[str, Any]:
    return {**form.model_dump(), "latitude": None, "longitude": None, "sources": []}


def _missing_coordinates(data: dict[str, Any]) -> bool:
    lat, lng = data.get("latitude"), data.get("longitude")
    if lat is None or lng is None:
        return True
    return lat == 0 and lng == 0


def add_favorite(
    user_id: str,
    data: dict[str, Any],
    geocoder: Geocoder | None = None,
) -> Restaurant:
    """
    Save a new favorite for *user_id*.

    Rejects records without a name, prefecture or city. Missing coordinates
    are looked up from the full address; a failed lookup saves the record
    without coordinates.
    """
    if not data.get("name") or not data.get("prefecture") or not data.get("city"):
        raise IncompleteRestaurant("Restaurant information is incomplete.")

    if _missing_coordinates(data):
        address = full_address(data["prefecture"], data["city"], data.get("address"))
        try:
            data["latitude"], data["longitude"] = (geocoder or geocode_address)(address)
        except GeocodingError:
            logger.warning("Geocoding failed, saving without coordinates: %s", address, exc_info=True)
            data["latitude"], data["longitude"] = None, None

    return store.insert_restaurant(user_id, data)


def locate_restaurant(restaurant: Restaurant, geocoder: Geocoder | None = None) -> tuple[float, float]:
    """Geocode a saved favorite from its prefecture, city and address."""
    return (geocoder or geocode_address)(full_address(restaurant.prefecture, restaurant.city, restaurant.address))
