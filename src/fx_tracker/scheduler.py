"""Polling scheduler — samples the rate hourly and raises appreciation alerts.

State machine with two modes:
  RUNNING — a periodic tick fires every check interval; ticks inside
            business hours run the check procedure
  STOPPED — the tick is cancelled and the countdown is frozen

A once-per-second countdown task runs independently of the tick. Manual
checks bypass both the countdown and the business-hours gate. At most one
check procedure is in flight; overlapping triggers are dropped. Alert
notifications are delivered in background tasks and never hold the guard.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

from fx_tracker.alert_log import AlertLog
from fx_tracker.analyzer import AppreciationAnalyzer
from fx_tracker.business_hours import BusinessHoursGate, to_local
from fx_tracker.config import DEFAULT_CONFIG, Config, validate_email_address
from fx_tracker.errors import AnalysisUnavailable, SourceUnavailable
from fx_tracker.history import HistoryWindow
from fx_tracker.notifier import LogNotifier, NotificationSink
from fx_tracker.rate_source import RateSource
from fx_tracker.schemas import AlertKind, AlertLogEntry, AppreciationVerdict, RateSample

logger = logging.getLogger(__name__)


class MonitorState(str, Enum):
    STOPPED = "STOPPED"
    RUNNING = "RUNNING"


class Trigger(str, Enum):
    SCHEDULED = "scheduled"
    MANUAL = "manual"


class CheckOutcome(str, Enum):
    RECORDED = "recorded"
    ALERTED = "alerted"
    SOURCE_UNAVAILABLE = "source_unavailable"
    SKIPPED_IN_FLIGHT = "skipped_in_flight"


@dataclass
class SchedulerState:
    current_rate: float
    is_monitoring: bool
    next_check_in_seconds: int
    last_check_unix: Optional[int] = None
    notification_address: str = DEFAULT_CONFIG.notification.default_recipient


@dataclass(frozen=True)
class CheckResult:
    """What a single check procedure did."""

    outcome: CheckOutcome
    trigger: Trigger
    previous_rate: Optional[float] = None
    sample: Optional[RateSample] = None
    appreciated: bool = False
    analyzed: bool = False
    verdict: Optional[AppreciationVerdict] = None
    alert: Optional[AlertLogEntry] = None


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class PollingScheduler:
    """Owns the tick/countdown timers and the check procedure.

    Use as an async context manager (or call ``open``/``close``) so that
    the timers are bound to the running event loop.
    """

    def __init__(
        self,
        source: RateSource,
        analyzer: AppreciationAnalyzer,
        *,
        notifier: Optional[NotificationSink] = None,
        config: Config = DEFAULT_CONFIG,
        history: Optional[HistoryWindow] = None,
        alert_log: Optional[AlertLog] = None,
        initial_rate: Optional[float] = None,
        analyzer_timeout: Optional[float] = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._source = source
        self._analyzer = analyzer
        self._notifier = notifier or LogNotifier()
        self._config = config
        self._gate = BusinessHoursGate(config.business_hours)
        self._history = history if history is not None else HistoryWindow(config.history.capacity)
        self._alerts = alert_log if alert_log is not None else AlertLog()
        self._clock = clock
        self._interval = config.schedule.check_interval_seconds
        self._full_countdown = int(math.ceil(self._interval))
        self._analyzer_timeout = (
            analyzer_timeout if analyzer_timeout is not None
            else config.analyzer.timeout_seconds
        )

        if initial_rate is None:
            latest = self._history.latest()
            initial_rate = latest.rate if latest else config.random_walk.initial_rate

        self._state = SchedulerState(
            current_rate=initial_rate,
            is_monitoring=config.schedule.start_monitoring,
            next_check_in_seconds=self._full_countdown,
            notification_address=config.notification.default_recipient,
        )

        self._tick_task: Optional[asyncio.Task] = None
        self._countdown_task: Optional[asyncio.Task] = None
        self._pending: set[asyncio.Task] = set()
        self._in_flight = False
        self._opened = False

    # ── Read-only views ──────────────────────────────────────────────

    @property
    def state(self) -> SchedulerState:
        return dataclasses.replace(self._state)

    @property
    def monitor_state(self) -> MonitorState:
        return MonitorState.RUNNING if self._state.is_monitoring else MonitorState.STOPPED

    @property
    def history(self) -> HistoryWindow:
        return self._history

    @property
    def alerts(self) -> AlertLog:
        return self._alerts

    @property
    def gate(self) -> BusinessHoursGate:
        return self._gate

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def now_local(self) -> datetime:
        return to_local(self._clock(), self._config.business_hours.timezone)

    # ── Lifecycle ────────────────────────────────────────────────────

    async def open(self) -> None:
        if self._opened:
            return
        self._opened = True
        self._countdown_task = asyncio.create_task(self._countdown_loop())
        if self._state.is_monitoring:
            self._arm_tick()
        logger.info(
            "Scheduler open (state=%s, interval=%ss, hours=%s)",
            self.monitor_state.value, self._interval, self._gate.describe(),
        )

    async def close(self) -> None:
        """Stop monitoring, cancel both timers and wait for in-flight checks."""
        self._state.is_monitoring = False
        for task in (self._tick_task, self._countdown_task):
            if task is not None:
                task.cancel()
        for task in (self._tick_task, self._countdown_task):
            if task is not None:
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._tick_task = None
        self._countdown_task = None
        await self.drain()
        self._opened = False
        logger.info("Scheduler closed")

    async def drain(self) -> None:
        """Wait for spawned checks and notification deliveries to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def __aenter__(self):
        await self.open()
        return self

    async def __aexit__(self, *exc):
        await self.close()

    # ── Commands ─────────────────────────────────────────────────────

    def start(self) -> None:
        """STOPPED -> RUNNING: re-arm the tick and reset the countdown."""
        if self._state.is_monitoring:
            logger.debug("start ignored — already monitoring")
            return
        self._state.is_monitoring = True
        self._state.next_check_in_seconds = self._full_countdown
        if self._opened:
            self._arm_tick()
        logger.info("Monitoring started")

    def pause(self) -> None:
        """RUNNING -> STOPPED: cancel the pending tick; in-flight checks finish."""
        if not self._state.is_monitoring:
            logger.debug("pause ignored — already paused")
            return
        self._state.is_monitoring = False
        if self._tick_task is not None:
            self._tick_task.cancel()
            self._tick_task = None
        logger.info("Monitoring paused")

    def set_notification_address(self, address: str) -> str:
        """Validate and store the alert recipient; raises ConfigurationInvalid."""
        validated = validate_email_address(address)
        self._state.notification_address = validated
        logger.info("Notification address set to %s", validated)
        return validated

    async def check_now(self) -> CheckResult:
        """Run the check procedure immediately, bypassing the gate."""
        return await self.run_check(Trigger.MANUAL)

    # ── Timers ───────────────────────────────────────────────────────

    def _arm_tick(self) -> None:
        if self._tick_task is not None:
            self._tick_task.cancel()
        self._tick_task = asyncio.create_task(self._tick_loop())

    async def _tick_loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            self.tick()

    async def _countdown_loop(self) -> None:
        tick_seconds = self._config.schedule.countdown_tick_seconds
        while True:
            await asyncio.sleep(tick_seconds)
            self.tick_countdown()

    def tick_countdown(self) -> None:
        """Decrement the visible countdown; frozen while paused, floored at 0."""
        if self._state.is_monitoring and self._state.next_check_in_seconds > 0:
            self._state.next_check_in_seconds -= 1

    def tick(self) -> Optional[asyncio.Task]:
        """One firing of the periodic timer.

        Returns the spawned check task, or None when the tick was a no-op.
        """
        if not self._state.is_monitoring:
            return None
        now = self._clock()
        if not self._gate.is_open(now):
            logger.info(
                "Outside business hours (%s) — tick skipped", self._gate.describe(),
            )
            return None
        return self._spawn_check(Trigger.SCHEDULED)

    def _spawn_check(self, trigger: Trigger) -> asyncio.Task:
        # Checks run in their own task so cancelling the tick never
        # interrupts an analyzer call already in flight.
        task = asyncio.create_task(self.run_check(trigger))
        self._pending.add(task)
        task.add_done_callback(self._on_check_done)
        return task

    def _on_check_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Scheduled check failed", exc_info=exc)

    # ── Check procedure ──────────────────────────────────────────────

    async def run_check(self, trigger: Trigger) -> CheckResult:
        if self._in_flight:
            logger.info("Check already in flight — dropping %s trigger", trigger.value)
            return CheckResult(outcome=CheckOutcome.SKIPPED_IN_FLIGHT, trigger=trigger)
        self._in_flight = True
        try:
            return await self._check(trigger)
        finally:
            self._in_flight = False

    async def _check(self, trigger: Trigger) -> CheckResult:
        eligible = trigger is Trigger.MANUAL or self._gate.is_open(self._clock())
        previous = self._state.current_rate

        try:
            sample = await self._source.sample()
        except SourceUnavailable as exc:
            logger.warning("Rate source unavailable — check aborted: %s", exc)
            return CheckResult(
                outcome=CheckOutcome.SOURCE_UNAVAILABLE,
                trigger=trigger,
                previous_rate=previous,
            )

        appreciated = sample.rate > previous
        analyzed = False
        verdict: Optional[AppreciationVerdict] = None
        alert: Optional[AlertLogEntry] = None

        if appreciated and eligible:
            analyzed = True
            verdict = await self._analyze(sample.rate, previous)
            if verdict is not None and verdict.is_appreciating:
                alert = self._record_alert(sample, verdict)
                self._dispatch(verdict)
        elif appreciated:
            logger.info("Rate rose but business hours are closed — no analysis")

        self._history.append(sample)
        self._state.current_rate = sample.rate
        self._state.last_check_unix = sample.unix
        self._state.next_check_in_seconds = self._full_countdown
        if self._opened and self._state.is_monitoring:
            # Next scheduled tick is one full interval after this check.
            self._arm_tick()

        logger.info(
            "Check (%s): %.5f -> %.5f%s",
            trigger.value, previous, sample.rate,
            " — ALERT logged" if alert else "",
        )
        return CheckResult(
            outcome=CheckOutcome.ALERTED if alert else CheckOutcome.RECORDED,
            trigger=trigger,
            previous_rate=previous,
            sample=sample,
            appreciated=appreciated,
            analyzed=analyzed,
            verdict=verdict,
            alert=alert,
        )

    async def _analyze(self, current: float, previous: float) -> Optional[AppreciationVerdict]:
        recent = self._history.recent(self._config.history.analyzer_context)
        try:
            return await asyncio.wait_for(
                self._analyzer.analyze(current, previous, recent),
                timeout=self._analyzer_timeout,
            )
        except AnalysisUnavailable as exc:
            logger.warning("Appreciation analysis unavailable: %s", exc)
        except asyncio.TimeoutError:
            logger.warning(
                "Appreciation analysis timed out after %.1fs", self._analyzer_timeout,
            )
        return None

    def _record_alert(self, sample: RateSample, verdict: AppreciationVerdict) -> AlertLogEntry:
        local = to_local(sample.unix / 1000, self._config.business_hours.timezone)
        entry = AlertLogEntry(
            timestamp=local.strftime("%d/%m/%Y, %H:%M:%S"),
            message=f"SGD Appreciated: {verdict.subject}",
            rate=sample.rate,
            kind=AlertKind.APPRECIATION,
        )
        self._alerts.prepend(entry)
        return entry

    def _dispatch(self, verdict: AppreciationVerdict) -> asyncio.Task:
        """Deliver the notification in the background; the check does not wait."""
        recipient = self._state.notification_address
        task = asyncio.create_task(self._deliver(recipient, verdict.subject, verdict.body))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _deliver(self, recipient: str, subject: str, body: str) -> None:
        try:
            await asyncio.to_thread(self._notifier.notify, recipient, subject, body)
        except Exception:
            logger.exception("Failed to deliver alert notification to %s", recipient)
        else:
            logger.info("Alert notification delivered to %s", recipient)
