from __future__ import annotations

import time
from typing import Any

_usage: list[dict[str, Any]] = []


def record_api_usage(
    user_id: str | None,
    api_type: str,
    input_tokens: int = 0,
    output_tokens: int = 0,
) -> None:
    _usage.append({
        "user_id": user_id,
        "api_type": api_type,
        "input_tokens": input_tokens,
        "output_tokens": output_tokens,
        "timestamp": time.time(),
    })


def get_usage() -> list[dict[str, Any]]:
    return _usage


def delete_user_usage(user_id: str) -> None:
    _usage[:] = [u for u in _usage if u["user_id"] != user_id]


def clear_usage() -> None:
    _usage.clear()
