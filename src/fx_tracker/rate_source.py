"""Rate sources — a simulated random walk and a live HTTP feed.

Both produce ``RateSample`` objects stamped in the tracker's local timezone
and raise ``SourceUnavailable`` when no sample can be produced.
"""

from __future__ import annotations

import logging
import random
from datetime import datetime
from typing import Callable, Optional, Protocol
from zoneinfo import ZoneInfo

import httpx

from fx_tracker.config import DEFAULT_CONFIG, Config
from fx_tracker.errors import SourceUnavailable
from fx_tracker.retry import request_with_retry
from fx_tracker.schemas import RateSample

logger = logging.getLogger(__name__)

_HOUR_MS = 3_600_000


class RateSource(Protocol):
    async def sample(self) -> RateSample:
        ...


def make_sample(rate: float, when: datetime) -> RateSample:
    """Build a sample labelled with the HH:MM of ``when``."""
    return RateSample(
        time=when.strftime("%H:%M"),
        rate=rate,
        unix=int(when.timestamp() * 1000),
    )


def _local_clock(tz_name: str) -> Callable[[], datetime]:
    tz = ZoneInfo(tz_name)
    return lambda: datetime.now(tz)


# ── Simulated feed ───────────────────────────────────────────────────


class RandomWalkRateSource:
    """Random walk around 0.68 EUR per SGD, biased slightly upwards.

    Each step moves by ``(U(0,1) - bias) * step_scale`` and is rounded to
    ``precision`` digits.
    """

    def __init__(
        self,
        config: Config = DEFAULT_CONFIG,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._walk = config.random_walk
        self._rng = rng or random.Random()
        self._clock = clock or _local_clock(config.business_hours.timezone)
        self._last_rate = self._walk.initial_rate

    @property
    def last_rate(self) -> float:
        return self._last_rate

    def reset(self, rate: float) -> None:
        self._last_rate = rate

    def seed_history(self, length: int = DEFAULT_CONFIG.history.seed_length) -> list[RateSample]:
        """Fabricate ``length`` hourly samples ending one hour before now.

        Labels run 08:00, 09:00, ... as on the dashboard's first load. The
        walk continues from the last seeded rate.
        """
        now_ms = int(self._clock().timestamp() * 1000)
        samples = [
            RateSample(
                time=f"{8 + i:02d}:00",
                rate=self._walk.seed_base_rate + self._rng.random() * self._walk.seed_spread,
                unix=now_ms - (length - i) * _HOUR_MS,
            )
            for i in range(length)
        ]
        if samples:
            self._last_rate = samples[-1].rate
        return samples

    async def sample(self) -> RateSample:
        fluctuation = (self._rng.random() - self._walk.bias) * self._walk.step_scale
        rate = round(self._last_rate + fluctuation, self._walk.precision)
        self._last_rate = rate
        return make_sample(rate, self._clock())


# ── Live feed ────────────────────────────────────────────────────────


class LiveRateSource:
    """SGD→EUR reference rate from the Frankfurter API (no key required)."""

    def __init__(
        self,
        config: Config = DEFAULT_CONFIG,
        client: Optional[httpx.AsyncClient] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._cfg = config.live_source
        self._retry = config.retry
        self._client = client or httpx.AsyncClient(timeout=self._cfg.timeout_seconds)
        self._clock = clock or _local_clock(config.business_hours.timezone)
        logger.info(
            "LiveRateSource initialized (%s/%s via %s)",
            self._cfg.base_currency, self._cfg.quote_currency, self._cfg.base_url,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.aclose()

    async def sample(self) -> RateSample:
        url = f"{self._cfg.base_url.rstrip('/')}/latest"
        params = {"from": self._cfg.base_currency, "to": self._cfg.quote_currency}
        try:
            resp = await request_with_retry(
                self._client, "GET", url,
                params=params,
                config=self._retry,
            )
            data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise SourceUnavailable(f"Rate request failed: {exc}") from exc

        rates = data.get("rates") if isinstance(data, dict) else None
        value = (rates or {}).get(self._cfg.quote_currency)
        if value is None:
            raise SourceUnavailable(
                f"{self._cfg.quote_currency} missing from rate response"
            )
        try:
            rate = float(value)
        except (TypeError, ValueError) as exc:
            raise SourceUnavailable(f"Unparseable rate: {value!r}") from exc
        if rate <= 0:
            raise SourceUnavailable(f"Invalid rate value: {rate}")

        return make_sample(rate, self._clock())
