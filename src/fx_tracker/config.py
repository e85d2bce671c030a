"""Central configuration for the SGD/EUR appreciation tracker."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from fx_tracker.errors import ConfigurationInvalid


@dataclass(frozen=True)
class ScheduleConfig:
    """Polling cadence for the scheduler."""

    check_interval_seconds: float = 3600.0     # hourly
    countdown_tick_seconds: float = 1.0
    start_monitoring: bool = True


@dataclass(frozen=True)
class BusinessHoursConfig:
    """Half-open [start_hour, end_hour) window in local time."""

    timezone: str = "Asia/Singapore"
    start_hour: int = 8            # 08:00 SGT
    end_hour: int = 17             # 17:00 SGT (excluded)


@dataclass(frozen=True)
class HistoryConfig:
    capacity: int = 24
    analyzer_context: int = 5
    seed_length: int = 12


@dataclass(frozen=True)
class RandomWalkConfig:
    """Simulated feed around 0.68 EUR per SGD, slightly biased upwards."""

    initial_rate: float = 0.6842
    step_scale: float = 0.002
    bias: float = 0.45
    precision: int = 5
    seed_base_rate: float = 0.68
    seed_spread: float = 0.01


@dataclass(frozen=True)
class LiveSourceConfig:
    base_url: str = "https://api.frankfurter.app"
    base_currency: str = "SGD"
    quote_currency: str = "EUR"
    timeout_seconds: float = 15.0


@dataclass(frozen=True)
class AnalyzerConfig:
    base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    model: str = "gemini-3-flash-preview"
    timeout_seconds: float = 30.0


@dataclass(frozen=True)
class NotificationConfig:
    default_recipient: str = "user@example.com"
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_timeout_seconds: float = 30.0


@dataclass(frozen=True)
class RetryConfig:
    """Backoff settings for outbound HTTP calls."""

    max_attempts: int = 3
    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 30.0
    jitter_seconds: float = 0.5


@dataclass(frozen=True)
class Config:
    """Top-level configuration aggregating all sub-configs."""

    schedule: ScheduleConfig = field(default_factory=ScheduleConfig)
    business_hours: BusinessHoursConfig = field(default_factory=BusinessHoursConfig)
    history: HistoryConfig = field(default_factory=HistoryConfig)
    random_walk: RandomWalkConfig = field(default_factory=RandomWalkConfig)
    live_source: LiveSourceConfig = field(default_factory=LiveSourceConfig)
    analyzer: AnalyzerConfig = field(default_factory=AnalyzerConfig)
    notification: NotificationConfig = field(default_factory=NotificationConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)


# Singleton default config — import this throughout the project.
DEFAULT_CONFIG = Config()


_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[A-Za-z]{2,}$")


def validate_email_address(address: str) -> str:
    """Return the trimmed address, or raise ConfigurationInvalid."""
    candidate = (address or "").strip()
    if not _EMAIL_RE.match(candidate):
        raise ConfigurationInvalid(f"Invalid notification address: {address!r}")
    return candidate
