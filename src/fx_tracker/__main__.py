"""CLI entry point — run via `python -m fx_tracker`.

Subcommands:
  monitor — Hourly SGD/EUR monitoring with an operator console (default)
  check   — Run one manual check now and print the status view
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging
import os
import random
import sys

from dotenv import load_dotenv

load_dotenv(".env.local")

logger = logging.getLogger("fx_tracker")


def _output(text: str) -> None:
    """Write text to stdout (avoids bare print() for lint compliance)."""
    sys.stdout.write(text + "\n")


def _setup_file_logging() -> None:
    """Add a rotating file handler for the monitor.

    Logs to logs/fx_tracker.log, rotates at 5 MB,
    keeps 3 backups (~20 MB max on disk).
    Stdout handler remains from basicConfig.
    """
    from logging.handlers import RotatingFileHandler
    from pathlib import Path

    log_dir = Path("logs")
    log_dir.mkdir(exist_ok=True)

    handler = RotatingFileHandler(
        log_dir / "fx_tracker.log",
        maxBytes=5 * 1024 * 1024,   # 5 MB
        backupCount=3,
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    ))
    logging.getLogger().addHandler(handler)


# ── Wiring ───────────────────────────────────────────────────────────


def _build_config(args):
    from fx_tracker.config import DEFAULT_CONFIG

    start_h = 0 if args.all_hours else args.start_hour
    end_h = 24 if args.all_hours else args.end_hour

    return dataclasses.replace(
        DEFAULT_CONFIG,
        schedule=dataclasses.replace(
            DEFAULT_CONFIG.schedule,
            check_interval_seconds=args.interval,
            start_monitoring=not args.paused,
        ),
        business_hours=dataclasses.replace(
            DEFAULT_CONFIG.business_hours,
            timezone=args.timezone,
            start_hour=start_h,
            end_hour=end_h,
        ),
    )


def _build_notifier():
    from fx_tracker.notifier import EmailNotifier, LogNotifier

    gmail_address = os.environ.get("GMAIL_ADDRESS", "")
    gmail_app_password = os.environ.get("GMAIL_APP_PASSWORD", "")
    if gmail_address and gmail_app_password:
        return EmailNotifier(gmail_address, gmail_app_password)
    logger.info(
        "Email not configured — alerts will only be logged "
        "(set GMAIL_ADDRESS, GMAIL_APP_PASSWORD)"
    )
    return LogNotifier()


async def _build_scheduler(args, config, analyzer):
    """Create the rate source, seed the history and assemble the scheduler."""
    from fx_tracker.errors import SourceUnavailable
    from fx_tracker.history import HistoryWindow
    from fx_tracker.rate_source import LiveRateSource, RandomWalkRateSource
    from fx_tracker.scheduler import PollingScheduler

    history = HistoryWindow(config.history.capacity)
    if args.source == "live":
        source = LiveRateSource(config)
        try:
            history.append(await source.sample())
        except SourceUnavailable:
            logger.warning("Could not prime history from live feed", exc_info=True)
    else:
        rng = random.Random(args.seed) if args.seed is not None else None
        source = RandomWalkRateSource(config, rng=rng)
        history.seed(source.seed_history(config.history.seed_length))

    scheduler = PollingScheduler(
        source,
        analyzer,
        notifier=_build_notifier(),
        config=config,
        history=history,
    )
    if args.email:
        scheduler.set_notification_address(args.email)
    return scheduler, source


async def _close_quietly(*resources) -> None:
    for res in resources:
        aclose = getattr(res, "aclose", None)
        if aclose is not None:
            await aclose()


# ── Subcommands ──────────────────────────────────────────────────────


async def _monitor(args, api_key: str) -> int:
    from fx_tracker.analyzer import GeminiAnalyzer
    from fx_tracker.console import run_console

    config = _build_config(args)
    analyzer = GeminiAnalyzer(api_key, config)
    source = None
    try:
        scheduler, source = await _build_scheduler(args, config, analyzer)
        async with scheduler:
            await run_console(scheduler)
    finally:
        await _close_quietly(analyzer, source)
    return 0


async def _check(args, api_key: str) -> int:
    from fx_tracker.analyzer import GeminiAnalyzer
    from fx_tracker.console import describe_check
    from fx_tracker.dashboard import render_status

    config = _build_config(args)
    analyzer = GeminiAnalyzer(api_key, config)
    source = None
    try:
        scheduler, source = await _build_scheduler(args, config, analyzer)
        result = await scheduler.check_now()
        await scheduler.drain()
        _output(describe_check(result))
        _output("")
        _output(render_status(scheduler))
    finally:
        await _close_quietly(analyzer, source)
    return 0


def _run(command: str, args) -> int:
    from fx_tracker.errors import ConfigurationInvalid

    api_key = os.environ.get("GEMINI_API_KEY", "") or os.environ.get("API_KEY", "")
    if not api_key:
        logger.error("Missing Gemini credentials. Set the GEMINI_API_KEY environment variable.")
        return 1

    runner = _monitor if command == "monitor" else _check
    if command == "monitor":
        _setup_file_logging()

    try:
        return asyncio.run(runner(args, api_key))
    except ConfigurationInvalid as exc:
        logger.error("%s", exc)
        return 1
    except KeyboardInterrupt:
        logger.info("Monitor stopped by user.")
        return 0
    except Exception:
        logger.exception("%s failed", command)
        return 1


# ── Main with argparse ───────────────────────────────────────────────


def _add_common_args(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--source", choices=("mock", "live"), default="mock",
        help="Rate feed: simulated random walk or live Frankfurter API (default: mock)",
    )
    p.add_argument(
        "--seed", type=int, default=None,
        help="Random seed for the simulated feed",
    )
    p.add_argument(
        "--email", type=str, default=None,
        help="Notification address (default: user@example.com)",
    )
    p.add_argument(
        "--interval", type=float, default=3600,
        help="Seconds between scheduled checks (default: 3600)",
    )
    p.add_argument(
        "--timezone", type=str, default="Asia/Singapore",
        help="Business-hours timezone (default: Asia/Singapore)",
    )
    p.add_argument(
        "--start-hour", type=int, default=8,
        help="First business hour, inclusive (default: 8)",
    )
    p.add_argument(
        "--end-hour", type=int, default=17,
        help="Closing hour, exclusive (default: 17)",
    )
    p.add_argument(
        "--all-hours", action="store_true",
        help="Check around the clock (ignore start/end hour)",
    )
    p.add_argument(
        "--paused", action="store_true",
        help="Start with monitoring paused",
    )


def main(argv: list[str] | None = None) -> int:
    """Parse arguments and dispatch to the appropriate subcommand.

    Parameters
    ----------
    argv : list of CLI args. Defaults to [] (runs 'monitor').
           Pass sys.argv[1:] for real CLI usage.
    """
    if argv is None:
        argv = []
    log_level = os.environ.get("LOGLEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stdout,
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    parser = argparse.ArgumentParser(
        prog="fx_tracker",
        description="SGD/EUR appreciation tracker with AI-assisted alerts",
    )
    subparsers = parser.add_subparsers(dest="command")

    monitor_parser = subparsers.add_parser(
        "monitor", help="Hourly monitoring with an operator console",
    )
    _add_common_args(monitor_parser)

    check_parser = subparsers.add_parser(
        "check", help="Run one manual check and print the status",
    )
    _add_common_args(check_parser)

    # Default to 'monitor' if no subcommand given
    if not argv or argv[0].startswith("-"):
        argv = ["monitor", *argv]
    args = parser.parse_args(argv)

    if args.command in ("monitor", "check"):
        return _run(args.command, args)

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
