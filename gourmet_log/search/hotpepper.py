from __future__ import annotations

import logging
import re
from typing import Any

import requests

from ..favorites.pipeline import PREFECTURE_ORDER
from .config import DEFAULT_HOTPEPPER_CONFIG, HotpepperConfig
from .http_client import get_with_retry
from .models import Area, Genre, HotpepperResult, SearchQuery

logger = logging.getLogger(__name__)

PREFECTURE_TO_LARGE_AREA: dict[str, str] = {
    "北海道": "Z01",
    "青森県": "Z02", "岩手県": "Z02", "宮城県": "Z02", "秋田県": "Z02", "山形県": "Z02", "福島県": "Z02",
    "茨城県": "Z03", "栃木県": "Z03", "群馬県": "Z03", "埼玉県": "Z03", "千葉県": "Z03", "東京都": "Z03",
    "神奈川県": "Z03",
    "新潟県": "Z04", "富山県": "Z04", "石川県": "Z04", "福井県": "Z04",
    "山梨県": "Z05", "長野県": "Z05",
    "岐阜県": "Z06", "静岡県": "Z06", "愛知県": "Z06", "三重県": "Z06",
    "滋賀県": "Z07", "京都府": "Z07", "大阪府": "Z07", "兵庫県": "Z07", "奈良県": "Z07", "和歌山県": "Z07",
    "鳥取県": "Z08", "島根県": "Z08", "岡山県": "Z08", "広島県": "Z08", "山口県": "Z08",
    "徳島県": "Z09", "香川県": "Z09", "愛媛県": "Z09", "高知県": "Z09",
    "福岡県": "Z10", "佐賀県": "Z10", "長崎県": "Z10", "熊本県": "Z10", "大分県": "Z10", "宮崎県": "Z10",
    "鹿児島県": "Z10",
    "沖縄県": "Z11",
}

# Marker for an address with no recognisable prefecture. It never equals a
# real prefecture, so scope filtering drops such shops.
PREFECTURE_PARSE_ERROR = "PARSE_ERROR"

_CITY_RE = re.compile(r"^\s*(\S+?[市区町村])")
_PLACEHOLDER_PHOTO = "https://via.placeholder.com/300"


class HotpepperError(RuntimeError):
    pass


def parse_area(address: str, fallback_city: str | None = None) -> tuple[str, str]:
    """Split a Japanese address into ``(prefecture, city)``."""
    address = (address or "").strip()
    prefecture = next((p for p in PREFECTURE_ORDER if address.startswith(p)), PREFECTURE_PARSE_ERROR)
    rest = address[len(prefecture):] if prefecture != PREFECTURE_PARSE_ERROR else address
    match = _CITY_RE.match(rest)
    city = match.group(1) if match else (fallback_city or "不明")
    return prefecture, city


class HotpepperClient:
    def __init__(self, config: HotpepperConfig = DEFAULT_HOTPEPPER_CONFIG) -> None:
        self.config = config
        self.base = config.base_url.rstrip("/")
        self.session = requests.Session()

    def _get(self, path: str, params: dict[str, Any]) -> dict:
        if not self.config.api_key:
            raise HotpepperError("HOTPEPPER_API_KEY is not configured")

        url = f"{self.base}{path}"
        params = {**params, "key": self.config.api_key, "format": "json"}
        try:
            resp = get_with_retry(self.session, url, params, self.config.timeout)
        except requests.RequestException as exc:
            raise HotpepperError(f"request error: {exc}") from exc

        if not resp.ok:
            raise HotpepperError(f"upstream {resp.status_code}: {resp.text[:300]}")

        try:
            payload = resp.json()
        except ValueError as exc:
            raise HotpepperError("invalid json response") from exc

        results = payload.get("results") or {}
        errors = results.get("error")
        if errors:
            raise HotpepperError(errors[0].get("message") or "Hotpepper API error")
        return results

    def search(self, query: SearchQuery) -> list[HotpepperResult]:
        """Search shops for a structured query. An empty list means no hits."""
        count = self.config.page_size
        params: dict[str, Any] = {
            "count": count,
            "start": (query.page - 1) * count + 1,
        }
        large_area = PREFECTURE_TO_LARGE_AREA.get(query.prefecture)
        if large_area:
            params["large_area"] = large_area
        if query.middle_area_code:
            params["middle_area"] = query.middle_area_code
        if query.small_area_code:
            params["small_area"] = query.small_area_code
        if query.city:
            params["address"] = query.city
        if query.genre:
            params["genre"] = query.genre
        if query.store_name:
            params["name_any"] = query.store_name

        logger.debug("Hotpepper search params: %s", params)
        results = self._get("/gourmet/v1/", params)

        if not results or int(results.get("results_available") or 0) == 0:
            return []
        return [self._parse_shop(shop, query) for shop in results.get("shop") or []]

    @staticmethod
    def _parse_shop(shop: dict, query: SearchQuery) -> HotpepperResult:
        address = (shop.get("address") or "").strip()
        prefecture, city = parse_area(address, fallback_city=query.city)
        photo = ((shop.get("photo") or {}).get("pc") or {}).get("l") or _PLACEHOLDER_PHOTO
        return HotpepperResult(
            id=str(shop.get("id", "")),
            name=shop.get("name") or "",
            address=address,
            hours=shop.get("open") or "",
            latitude=_to_float(shop.get("lat")),
            longitude=_to_float(shop.get("lng")),
            prefecture=prefecture,
            city=city,
            genre=(shop.get("genre") or {}).get("name") or "ジャンルなし",
            catch=shop.get("catch") or "",
            photo_url=photo,
            site_url=(shop.get("urls") or {}).get("pc") or "",
        )

    def genres(self) -> list[Genre]:
        results = self._get("/genre/v1/", {})
        return [Genre(code=g["code"], name=g["name"]) for g in results.get("genre") or []]

    def middle_areas(self, large_area_code: str) -> list[Area]:
        """Middle areas inside one large area, in Hotpepper's own order."""
        results = self._get("/middle_area/v1/", {"large_area": large_area_code})
        return [Area(code=a["code"], name=a["name"]) for a in results.get("middle_area") or []]


def _to_float(value: Any) -> float | None:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None
