"""Tests for the status rendering, operator console and CLI entry point."""

from __future__ import annotations

from unittest.mock import patch

import pytest
from stubs import (
    SGT_OPEN,
    RecordingNotifier,
    StubAnalyzer,
    StubSource,
    make_sample,
    negative_verdict,
    positive_verdict,
)

from fx_tracker.console import HELP_TEXT, QUIT, describe_check, dispatch, run_console
from fx_tracker.dashboard import (
    format_rate,
    format_time_remaining,
    percent_change,
    render_alert_log,
    render_status,
    sparkline,
)
from fx_tracker.history import HistoryWindow
from fx_tracker.scheduler import CheckOutcome, CheckResult, MonitorState, PollingScheduler, Trigger


def _scheduler(rates=(), verdict=None, history=None):
    return PollingScheduler(
        StubSource(rates),
        StubAnalyzer(verdict=verdict or positive_verdict()),
        notifier=RecordingNotifier(),
        history=history,
        initial_rate=0.6800,
        clock=lambda: SGT_OPEN,
    )


# ======================================================================
# Dashboard
# ======================================================================


class TestFormatting:
    def test_format_rate_half_up(self):
        assert format_rate(0.68245) == "0.6825"
        assert format_rate(0.68244) == "0.6824"
        assert format_rate(0.682) == "0.6820"
        assert format_rate(0.682345, 5) == "0.68235"

    def test_format_time_remaining(self):
        assert format_time_remaining(3600) == "60m 0s"
        assert format_time_remaining(125) == "2m 5s"
        assert format_time_remaining(0) == "0m 0s"
        assert format_time_remaining(-4) == "0m 0s"

    def test_percent_change(self):
        samples = [make_sample(0.68, 0), make_sample(0.6834, 1)]
        assert percent_change(samples) == pytest.approx(0.5)
        assert percent_change(samples[:1]) is None

    def test_sparkline(self):
        samples = [make_sample(r, i) for i, r in enumerate([0.68, 0.685, 0.69])]
        line = sparkline(samples)
        assert len(line) == 3
        assert line[0] == "▁"
        assert line[-1] == "█"
        assert sparkline([]) == ""

    def test_sparkline_flat(self):
        samples = [make_sample(0.68, i) for i in range(4)]
        assert len(set(sparkline(samples))) == 1


class TestRenderStatus:
    def test_initial_view(self):
        sched = _scheduler()
        text = render_status(sched)
        assert "Current SGD/EUR      0.6800" in text
        assert "60m 0s" in text
        assert "Enabled" in text
        assert "user@example.com" in text
        assert "No alerts triggered yet" in text
        assert "08:00 - 17:00 Asia/Singapore" in text

    def test_paused_view(self):
        sched = _scheduler()
        sched.pause()
        assert "Paused" in render_status(sched)

    @pytest.mark.asyncio
    async def test_view_after_alert(self):
        history = HistoryWindow()
        history.append(make_sample(0.6800, 0))
        sched = _scheduler([0.6820], history=history)
        await sched.check_now()
        await sched.drain()
        text = render_status(sched)
        assert "Alert History        1" in text
        assert "SGD Appreciated: SGD gains" in text
        assert "Trend (2 samples)" in text

    @pytest.mark.asyncio
    async def test_alert_log_rendering(self):
        sched = _scheduler([0.6820])
        await sched.check_now()
        await sched.drain()
        text = render_alert_log(sched.alerts)
        assert "[Rate: 0.682]" in text
        assert text.startswith("▲")


# ======================================================================
# Console
# ======================================================================


class TestDescribeCheck:
    def test_skipped(self):
        result = CheckResult(outcome=CheckOutcome.SKIPPED_IN_FLIGHT, trigger=Trigger.MANUAL)
        assert "already running" in describe_check(result)

    def test_source_unavailable(self):
        result = CheckResult(outcome=CheckOutcome.SOURCE_UNAVAILABLE, trigger=Trigger.MANUAL)
        assert "unavailable" in describe_check(result)


class TestDispatch:
    @pytest.mark.asyncio
    async def test_pause_and_start(self):
        sched = _scheduler()
        assert await dispatch(sched, "pause") == "Monitoring paused."
        assert sched.monitor_state is MonitorState.STOPPED
        assert await dispatch(sched, "START") == "Monitoring enabled."
        assert sched.monitor_state is MonitorState.RUNNING

    @pytest.mark.asyncio
    async def test_check_reports_alert(self):
        sched = _scheduler([0.6820])
        reply = await dispatch(sched, "check")
        await sched.drain()
        assert "0.68000 -> 0.68200" in reply
        assert "Alert logged, email queued" in reply

    @pytest.mark.asyncio
    async def test_check_error_keeps_console_alive(self):
        sched = _scheduler([RuntimeError("unexpected feed payload"), 0.6790])
        reply = await dispatch(sched, "check")
        assert reply.startswith("Check failed")
        assert sched.in_flight is False
        assert "No appreciation alert" in await dispatch(sched, "check")

    @pytest.mark.asyncio
    async def test_check_without_alert(self):
        sched = _scheduler([0.6820], verdict=negative_verdict())
        reply = await dispatch(sched, "check")
        assert "no significant appreciation" in reply

    @pytest.mark.asyncio
    async def test_check_depreciation(self):
        sched = _scheduler([0.6790])
        reply = await dispatch(sched, "check")
        assert "No appreciation alert" in reply

    @pytest.mark.asyncio
    async def test_email_command(self):
        sched = _scheduler()
        reply = await dispatch(sched, "email fx@example.com")
        assert "fx@example.com" in reply
        assert sched.state.notification_address == "fx@example.com"

    @pytest.mark.asyncio
    async def test_email_rejected(self):
        sched = _scheduler()
        reply = await dispatch(sched, "email nonsense")
        assert reply.startswith("Rejected")
        assert sched.state.notification_address == "user@example.com"

    @pytest.mark.asyncio
    async def test_misc_commands(self):
        sched = _scheduler()
        assert "Current SGD/EUR" in await dispatch(sched, "status")
        assert await dispatch(sched, "logs") == "No alerts triggered yet"
        assert await dispatch(sched, "help") == HELP_TEXT
        assert await dispatch(sched, "   ") == ""
        assert "Unknown command" in await dispatch(sched, "launch")
        assert await dispatch(sched, "quit") is QUIT

    @pytest.mark.asyncio
    async def test_run_console_until_quit(self):
        sched = _scheduler()
        lines = iter(["pause\n", "status\n", "quit\n", "start\n"])
        written: list[str] = []

        async def read_line():
            return next(lines)

        await run_console(sched, read_line=read_line, write=written.append)

        assert written[0] == HELP_TEXT
        assert "Monitoring paused." in written
        assert any("Paused" in w for w in written)
        assert sched.monitor_state is MonitorState.STOPPED


# ======================================================================
# CLI
# ======================================================================


class TestMain:
    def test_missing_api_key(self):
        from fx_tracker.__main__ import main

        with patch.dict("os.environ", {}, clear=True):
            assert main(["check"]) == 1

    def test_default_is_monitor(self):
        from fx_tracker.__main__ import main

        with patch.dict("os.environ", {}, clear=True):
            assert main([]) == 1
            assert main(["--paused"]) == 1

    def test_check_runs_once(self, capsys):
        from fx_tracker.__main__ import main

        stub = StubAnalyzer(verdict=negative_verdict())
        env = {"GEMINI_API_KEY": "test-key"}
        with patch.dict("os.environ", env, clear=True), patch(
            "fx_tracker.analyzer.GeminiAnalyzer", return_value=stub,
        ):
            result = main(["check", "--seed", "4", "--email", "ops@example.com"])

        assert result == 0
        out = capsys.readouterr().out
        assert "Current SGD/EUR" in out
        assert "ops@example.com" in out
        assert "Trend (13 samples)" in out

    def test_check_rejects_bad_email(self):
        from fx_tracker.__main__ import main

        stub = StubAnalyzer()
        with patch.dict("os.environ", {"GEMINI_API_KEY": "k"}, clear=True), patch(
            "fx_tracker.analyzer.GeminiAnalyzer", return_value=stub,
        ):
            assert main(["check", "--email", "broken"]) == 1
