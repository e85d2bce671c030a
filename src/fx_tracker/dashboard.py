"""Plain-text status rendering: stat cards, trend line and alert log."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Sequence

from fx_tracker.alert_log import AlertLog
from fx_tracker.scheduler import PollingScheduler
from fx_tracker.schemas import AlertKind, RateSample

_SPARK_CHARS = "▁▂▃▄▅▆▇█"


def format_rate(rate: float, places: int = 4) -> str:
    """Round half away from zero for display; comparisons never use this."""
    quantum = Decimal(1).scaleb(-places)
    return str(Decimal(repr(rate)).quantize(quantum, rounding=ROUND_HALF_UP))


def format_time_remaining(seconds: int) -> str:
    seconds = max(int(seconds), 0)
    return f"{seconds // 60}m {seconds % 60}s"


def percent_change(history: Sequence[RateSample]) -> Optional[float]:
    """Change from the oldest to the newest sample in the window, in percent."""
    if len(history) < 2 or history[0].rate == 0:
        return None
    return (history[-1].rate - history[0].rate) / history[0].rate * 100


def sparkline(history: Sequence[RateSample]) -> str:
    if not history:
        return ""
    rates = [s.rate for s in history]
    low, high = min(rates), max(rates)
    span = high - low
    if span == 0:
        return _SPARK_CHARS[len(_SPARK_CHARS) // 2] * len(rates)
    top = len(_SPARK_CHARS) - 1
    return "".join(_SPARK_CHARS[round((r - low) / span * top)] for r in rates)


def render_alert_log(alerts: AlertLog, limit: int = 10) -> str:
    entries = alerts.all()[:limit]
    if not entries:
        return "No alerts triggered yet"
    lines = []
    for e in entries:
        marker = "▲" if e.kind == AlertKind.APPRECIATION else "i"
        lines.append(f"{marker} {e.timestamp}  [Rate: {e.rate}]  {e.message}")
    return "\n".join(lines)


def render_status(scheduler: PollingScheduler) -> str:
    state = scheduler.state
    history = scheduler.history.snapshot()
    change = percent_change(history)
    change_str = f"{change:+.2f}%" if change is not None else "n/a"
    clock = scheduler.now_local().strftime("%I:%M:%S %p")

    lines = [
        f"SGD-EUR Smart Tracker — {clock} ({scheduler.gate.config.timezone})",
        "",
        f"  Current SGD/EUR      {format_rate(state.current_rate)}  ({change_str})",
        f"  Next Scheduled Check {format_time_remaining(state.next_check_in_seconds)}",
        f"  Active Monitoring    {'Enabled' if state.is_monitoring else 'Paused'}",
        f"  Alert History        {scheduler.alerts.count(AlertKind.APPRECIATION)}",
        f"  Notification Email   {state.notification_address}",
        "",
        f"Trend ({len(history)} samples): {sparkline(history)}",
    ]
    if history:
        lines.append(
            f"  {history[0].time} {format_rate(history[0].rate, 5)}"
            f" → {history[-1].time} {format_rate(history[-1].rate, 5)}"
        )
    lines.append(f"Schedule rule: hourly checks during {scheduler.gate.describe()}")
    lines.append("")
    lines.append("Alert Logs:")
    lines.append(render_alert_log(scheduler.alerts))
    return "\n".join(lines)
