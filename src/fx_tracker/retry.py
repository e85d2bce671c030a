"""Exponential-backoff retries for the rate feed and Gemini requests.

Only transient failures are retried: timeouts, dropped connections and
429/5xx responses. Anything else (bad request, auth, unparseable URL) is
raised on the first attempt so the caller can map it to its own error kind.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Optional

import httpx

from fx_tracker.config import DEFAULT_CONFIG, RetryConfig

logger = logging.getLogger(__name__)

TRANSIENT_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


def backoff_delay(attempt: int, config: RetryConfig = DEFAULT_CONFIG.retry) -> float:
    """Seconds to wait after failed attempt number ``attempt`` (0-based).

    delay = min(base * 2^attempt + jitter, max_delay)
    """
    delay = config.base_delay_seconds * (2 ** attempt)
    if config.jitter_seconds > 0:
        delay += random.uniform(0, config.jitter_seconds)
    return min(delay, config.max_delay_seconds)


def is_transient(exc: BaseException) -> bool:
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in TRANSIENT_STATUS_CODES
    return isinstance(exc, (httpx.TimeoutException, httpx.NetworkError, httpx.RemoteProtocolError))


async def request_with_retry(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    headers: Optional[dict] = None,
    params: Optional[dict] = None,
    json: Any = None,
    config: RetryConfig = DEFAULT_CONFIG.retry,
) -> httpx.Response:
    """Send one request, retrying transient failures up to ``max_attempts``.

    Returns the first 2xx response; re-raises the last error otherwise.
    """
    attempts = max(1, config.max_attempts)
    attempt = 0
    while True:
        try:
            resp = await client.request(method, url, headers=headers, params=params, json=json)
            resp.raise_for_status()
            return resp
        except httpx.HTTPError as exc:
            attempt += 1
            if attempt >= attempts or not is_transient(exc):
                raise
            delay = backoff_delay(attempt - 1, config)
            logger.warning(
                "%s %s failed (attempt %d/%d): %s; retrying in %.1fs",
                method, url, attempt, attempts, exc, delay,
            )
            await asyncio.sleep(delay)
