"""Operator console — maps typed commands onto scheduler commands.

  start            resume hourly monitoring
  pause            pause monitoring (in-flight checks still finish)
  check            check the rate now, ignoring business hours
  email <address>  set the notification address
  status           show the status view
  logs             show the alert log
  help             list commands
  quit             stop the monitor
"""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import Awaitable, Callable, Optional

from fx_tracker.dashboard import format_rate, render_alert_log, render_status
from fx_tracker.errors import ConfigurationInvalid
from fx_tracker.scheduler import CheckOutcome, CheckResult, PollingScheduler

logger = logging.getLogger(__name__)

HELP_TEXT = __doc__.split("\n\n", 1)[1].rstrip()

QUIT = object()


def describe_check(result: CheckResult) -> str:
    if result.outcome is CheckOutcome.SKIPPED_IN_FLIGHT:
        return "A check is already running — request ignored."
    if result.outcome is CheckOutcome.SOURCE_UNAVAILABLE:
        return "Rate source unavailable — nothing recorded this cycle."
    if result.sample is None:
        return "No sample recorded."
    text = f"Rate {format_rate(result.previous_rate or 0.0, 5)} -> {format_rate(result.sample.rate, 5)}"
    if result.alert is not None:
        return f"{text}. Alert logged, email queued: {result.alert.message}"
    if result.analyzed:
        return f"{text}. Rate rose, but no significant appreciation reported."
    return f"{text}. No appreciation alert."


async def dispatch(scheduler: PollingScheduler, line: str):
    """Execute one console line; returns the text to show, or ``QUIT``."""
    parts = line.strip().split(maxsplit=1)
    if not parts:
        return ""
    command = parts[0].lower()
    arg = parts[1] if len(parts) > 1 else ""

    if command in ("quit", "exit"):
        return QUIT
    if command == "start":
        scheduler.start()
        return "Monitoring enabled."
    if command == "pause":
        scheduler.pause()
        return "Monitoring paused."
    if command == "check":
        try:
            result = await scheduler.check_now()
        except Exception as exc:
            logger.exception("Manual check failed")
            return f"Check failed: {exc}"
        return describe_check(result)
    if command == "email":
        try:
            address = scheduler.set_notification_address(arg)
        except ConfigurationInvalid as exc:
            return f"Rejected: {exc}"
        return f"Notifications will go to {address}."
    if command == "status":
        return render_status(scheduler)
    if command == "logs":
        return render_alert_log(scheduler.alerts)
    if command == "help":
        return HELP_TEXT
    return f"Unknown command: {command!r} (type 'help')"


async def _read_stdin_line() -> str:
    return await asyncio.to_thread(sys.stdin.readline)


def _write(text: str) -> None:
    sys.stdout.write(text + "\n")
    sys.stdout.flush()


async def run_console(
    scheduler: PollingScheduler,
    read_line: Callable[[], Awaitable[str]] = _read_stdin_line,
    write: Optional[Callable[[str], None]] = None,
) -> None:
    """Read commands until ``quit``. On end of input, keep monitoring."""
    write = write or _write
    write(HELP_TEXT)
    while True:
        line = await read_line()
        if line == "":
            logger.info("Console input closed — monitoring continues until interrupted")
            await asyncio.Event().wait()
        reply = await dispatch(scheduler, line)
        if reply is QUIT:
            return
        if reply:
            write(reply)
