"""Retrying GET shared by the Hotpepper and Geocoding clients."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any

import requests

logger = logging.getLogger(__name__)

RETRY_STATUSES = frozenset({429, 500, 502, 503, 504})


@dataclass(frozen=True)
class RetryPolicy:
    retries: int = 2
    base_delay: float = 0.5


DEFAULT_RETRY_POLICY = RetryPolicy()


def get_with_retry(
    session: requests.Session,
    url: str,
    params: dict[str, Any],
    timeout: float,
    policy: RetryPolicy = DEFAULT_RETRY_POLICY,
) -> requests.Response:
    """
    GET *url*, retrying network errors and 429/5xx answers with linear backoff.

    Once retries run out the last response is returned as-is and the last
    network error is re-raised. Callers map both to their own error type.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            resp = session.get(url, params=params, timeout=timeout)
        except requests.RequestException:
            if attempt > policy.retries:
                raise
            logger.debug("GET %s failed on attempt %d, retrying", url, attempt, exc_info=True)
        else:
            if resp.status_code not in RETRY_STATUSES or attempt > policy.retries:
                return resp
            logger.debug("GET %s answered %d on attempt %d, retrying", url, resp.status_code, attempt)
        time.sleep(policy.base_delay * attempt)
