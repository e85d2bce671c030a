"""Business-hours gate — decides whether a scheduled tick may run a check."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Union
from zoneinfo import ZoneInfo

from fx_tracker.config import DEFAULT_CONFIG, BusinessHoursConfig

Timestamp = Union[datetime, int, float]


def to_local(ts: Timestamp, tz_name: str) -> datetime:
    """Convert a timestamp to an aware datetime in ``tz_name``.

    Numbers are epoch seconds; naive datetimes are taken as UTC.
    """
    if isinstance(ts, datetime):
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=timezone.utc)
    else:
        ts = datetime.fromtimestamp(ts, tz=timezone.utc)
    return ts.astimezone(ZoneInfo(tz_name))


def is_open(
    ts: Timestamp,
    tz_name: str = DEFAULT_CONFIG.business_hours.timezone,
    start_hour: int = DEFAULT_CONFIG.business_hours.start_hour,
    end_hour: int = DEFAULT_CONFIG.business_hours.end_hour,
) -> bool:
    """True iff ``start_hour <= local hour < end_hour``."""
    hour = to_local(ts, tz_name).hour
    return start_hour <= hour < end_hour


class BusinessHoursGate:
    """The configured gate, bound to a timezone and an hour range."""

    def __init__(self, config: BusinessHoursConfig = DEFAULT_CONFIG.business_hours) -> None:
        if not 0 <= config.start_hour <= 24 or not 0 <= config.end_hour <= 24:
            raise ValueError(
                f"Hours must be within 0-24, got {config.start_hour}-{config.end_hour}"
            )
        self._config = config
        self._tz = ZoneInfo(config.timezone)

    @property
    def config(self) -> BusinessHoursConfig:
        return self._config

    def is_open(self, ts: Timestamp) -> bool:
        return is_open(
            ts, self._config.timezone, self._config.start_hour, self._config.end_hour,
        )

    def now_local(self) -> datetime:
        return datetime.now(self._tz)

    def describe(self) -> str:
        return (
            f"{self._config.start_hour:02d}:00 - {self._config.end_hour:02d}:00 "
            f"{self._config.timezone}"
        )
