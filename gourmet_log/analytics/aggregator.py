from __future__ import annotations

from collections import Counter, defaultdict
from datetime import datetime, timezone
from typing import Any


def _day(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).date().isoformat()


def compute_usage_report(records: list[dict[str, Any]], days: int | None = None) -> dict[str, Any]:
    """Summarize API usage per day and per API type, newest day first."""
    daily: dict[str, dict[str, Any]] = defaultdict(
        lambda: {"calls": 0, "input_tokens": 0, "output_tokens": 0, "by_api_type": Counter()}
    )
    type_counter: Counter[str] = Counter()
    user_counter: Counter[str] = Counter()

    for r in records:
        bucket = daily[_day(r["timestamp"])]
        bucket["calls"] += 1
        bucket["input_tokens"] += r.get("input_tokens", 0)
        bucket["output_tokens"] += r.get("output_tokens", 0)
        bucket["by_api_type"][r["api_type"]] += 1
        type_counter[r["api_type"]] += 1
        if r.get("user_id"):
            user_counter[r["user_id"]] += 1

    ordered_days = sorted(daily, reverse=True)
    if days is not None:
        ordered_days = ordered_days[:days]

    return {
        "total_calls": len(records),
        "total_input_tokens": sum(r.get("input_tokens", 0) for r in records),
        "total_output_tokens": sum(r.get("output_tokens", 0) for r in records),
        "by_api_type": dict(type_counter),
        "top_users": [{"user_id": u, "count": c} for u, c in user_counter.most_common(10)],
        "daily": [
            {
                "date": d,
                "calls": daily[d]["calls"],
                "input_tokens": daily[d]["input_tokens"],
                "output_tokens": daily[d]["output_tokens"],
                "by_api_type": dict(daily[d]["by_api_type"]),
            }
            for d in ordered_days
        ],
    }
