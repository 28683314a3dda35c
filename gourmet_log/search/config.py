from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parent.parent.parent / ".env")


@dataclass(frozen=True)
class HotpepperConfig:
    api_key: str = os.getenv("HOTPEPPER_API_KEY", "")
    base_url: str = "https://webservice.recruit.co.jp/hotpepper"
    timeout: float = 10.0
    page_size: int = 20


@dataclass(frozen=True)
class GeocodingConfig:
    api_key: str = os.getenv("GOOGLE_MAPS_API_KEY", "")
    base_url: str = "https://maps.googleapis.com/maps/api/geocode/json"
    language: str = "ja"
    timeout: float = 10.0


DEFAULT_HOTPEPPER_CONFIG = HotpepperConfig()
DEFAULT_GEOCODING_CONFIG = GeocodingConfig()
