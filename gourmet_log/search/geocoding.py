from __future__ import annotations

import logging

import requests

from .config import DEFAULT_GEOCODING_CONFIG, GeocodingConfig
from .http_client import get_with_retry

logger = logging.getLogger(__name__)

_STATUS_MESSAGES = {
    "ZERO_RESULTS": "The address could not be found. Please check the input.",
    "REQUEST_DENIED": (
        "The geocoding request was denied. Check that the API key has the "
        "Geocoding API enabled and that its restrictions allow this server."
    ),
    "OVER_QUERY_LIMIT": "The API quota has been reached. Please try again later.",
    "INVALID_REQUEST": "Invalid request. The address may be malformed.",
}


class GeocodingError(RuntimeError):
    pass


def full_address(prefecture: str, city: str, address: str | None) -> str:
    return f"{prefecture} {city} {address or ''}".strip()


class GeocodingClient:
    def __init__(self, config: GeocodingConfig = DEFAULT_GEOCODING_CONFIG) -> None:
        self.config = config
        self.session = requests.Session()

    def geocode(self, address: str) -> tuple[float, float]:
        """Resolve *address* to ``(latitude, longitude)`` with the Google Geocoding API."""
        if not address:
            raise GeocodingError("An address is required.")
        if not self.config.api_key:
            raise GeocodingError("GOOGLE_MAPS_API_KEY is not configured")

        params = {"address": address, "key": self.config.api_key, "language": self.config.language}
        try:
            resp = get_with_retry(self.session, self.config.base_url, params, self.config.timeout)
        except requests.RequestException as exc:
            raise GeocodingError(f"Geocoding request failed: {exc}") from exc

        if not resp.ok:
            raise GeocodingError(f"Geocoding request failed: {resp.status_code}")

        try:
            data = resp.json()
        except ValueError as exc:
            raise GeocodingError("Geocoding returned an invalid response") from exc
        status = data.get("status")
        if status != "OK":
            logger.error("Geocoding API error: %s %s", status, data.get("error_message"))
            raise GeocodingError(
                _STATUS_MESSAGES.get(status, f"Could not get coordinates. ({status})")
            )

        results = data.get("results") or []
        if not results:
            raise GeocodingError(_STATUS_MESSAGES["ZERO_RESULTS"])

        location = results[0]["geometry"]["location"]
        return float(location["lat"]), float(location["lng"])


_default_client = GeocodingClient()


def geocode_address(address: str) -> tuple[float, float]:
    return _default_client.geocode(address)
