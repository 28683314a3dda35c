from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parent.parent.parent / ".env")


@dataclass(frozen=True)
class LLMConfig:
    """Groq settings shared by the recommendation chat and the web-search fallback."""

    api_key: str = os.getenv("GROQ_API_KEY", "")
    enabled: bool = True
    max_tokens: int = 2048

    # Recommendation chat
    model: str = os.getenv("GROQ_MODEL", "llama-3.3-70b-versatile")
    recommend_temperature: float = 0.8
    timeout: float = 30.0

    # Compound models run web search server-side and answer slowly.
    search_model: str = os.getenv("GROQ_SEARCH_MODEL", "groq/compound")
    search_temperature: float = 0.2
    search_timeout: float = 60.0


DEFAULT_LLM_CONFIG = LLMConfig()
