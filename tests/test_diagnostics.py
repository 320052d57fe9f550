"""
tests/test_diagnostics.py — Error Reports, Log Mirror & Health Check Tests
===========================================================================
"""

from __future__ import annotations

import asyncio
import logging

from gigboard.engine.snapshot import ConfigSnapshot
from gigboard.errors import CollaboratorError
from gigboard.services import admin_service
from gigboard.services.diagnostics import (
    DebugChannelHandler,
    ErrorReporter,
    build_error_report,
    format_error,
    format_health_report,
    reachability_sweep,
    run_health_check,
)


def run_async(coro):
    """Run an async coroutine in a new event loop."""
    return asyncio.get_event_loop_policy().new_event_loop().run_until_complete(coro)


def _snapshot(db_engine, debug=(), categories=()):
    for name, targets, reports in categories:
        admin_service.create_category(db_engine, name, actor_id=1)
        admin_service.add_category_channels(db_engine, name, "target", targets, actor_id=1)
        admin_service.add_category_channels(db_engine, name, "report", reports, actor_id=1)
    if debug:
        admin_service.add_debug_channels(db_engine, debug, actor_id=1)
    snap = ConfigSnapshot(db_engine, ttl_seconds=0)
    snap.refresh()
    return snap


class _HttpError(Exception):
    status = 403
    code = 50013


class TestErrorReport:
    def test_format_error_includes_discord_codes(self):
        error = CollaboratorError("send failed in channel=123456", cause=_HttpError("Forbidden"))
        assert format_error(error) == (
            "CollaboratorError: send failed in channel=123456 code=50013 status=403"
        )

    def test_report_links_channels_and_has_traceback(self):
        try:
            raise RuntimeError("boom in channel=123456")
        except RuntimeError as exc:
            report = build_error_report("post gig", exc)
        assert report.startswith("**Bot Error**\n**Context:** post gig")
        assert "channel=<#123456>" in report
        assert "Traceback" in report

    def test_plain_string_error(self):
        assert build_error_report("ctx", "went wrong").endswith("**Error:** went wrong")

    def test_reporter_sends_to_every_debug_channel(self, db_engine, messenger):
        snap = _snapshot(db_engine, debug=[801, 802])
        messenger.failing_channels.add(802)
        reporter = ErrorReporter(messenger, snap)
        assert run_async(reporter.report("ctx", ValueError("bad"))) == 1
        assert "ValueError: bad" in messenger.sent_to(801)[0].content

    def test_reporter_without_debug_channels(self, db_engine, messenger):
        reporter = ErrorReporter(messenger, _snapshot(db_engine))
        assert run_async(reporter.report("ctx", "x")) == 0
        assert messenger.sent == []

    def test_reporter_reloads_stale_debug_channels(self, db_engine, messenger):
        snap = _snapshot(db_engine)
        admin_service.add_debug_channels(db_engine, [801], actor_id=1)
        reporter = ErrorReporter(messenger, snap)
        assert run_async(reporter.report("ctx", "x")) == 1
        assert messenger.sent_to(801)[0].content.startswith("**Bot Error**")


class TestDebugChannelHandler:
    def _logger(self, handler):
        log = logging.getLogger("gigboard.test_mirror")
        log.propagate = False
        log.handlers = [handler]
        log.setLevel(logging.DEBUG)
        return log

    def test_only_warnings_are_queued(self):
        handler = DebugChannelHandler()
        log = self._logger(handler)
        log.info("quiet")
        log.warning("loud channel=123456")
        assert handler.take() == ["[WARNING] loud channel=<#123456>"]
        assert handler.take() == []

    def test_own_records_are_filtered(self):
        handler = DebugChannelHandler()
        own = logging.getLogger("gigboard.services.diagnostics")
        record = own.makeRecord(own.name, logging.ERROR, __file__, 1, "loop", (), None)
        assert not handler.filter(record)

    def test_drain_delivers_lines(self, db_engine, messenger):
        handler = DebugChannelHandler()
        self._logger(handler).error("disk full")
        snap = _snapshot(db_engine, debug=[801])
        assert run_async(handler.drain(messenger, snap)) == 1
        assert messenger.sent_to(801)[0].content == "[ERROR] disk full"

    def test_drain_drops_lines_without_debug_channels(self, db_engine, messenger):
        handler = DebugChannelHandler()
        self._logger(handler).error("nobody listening")
        assert run_async(handler.drain(messenger, _snapshot(db_engine))) == 0
        assert handler.take() == []


class TestHealthCheck:
    def test_sweep_reports_each_channel(self, db_engine, messenger):
        snap = _snapshot(db_engine, categories=[("Art", [501, 502], [601])])
        messenger.access[502] = "missing send"
        (health,) = run_async(reachability_sweep(snap, messenger))
        assert health.name == "Art"
        assert [(s.channel_id, s.status) for s in health.targets] == [(501, "ok"), (502, "missing send")]
        assert [s.status for s in health.reports] == ["ok"]

    def test_report_text(self, db_engine, messenger):
        snap = _snapshot(db_engine, categories=[("Art", [501], [])])
        text = format_health_report(run_async(reachability_sweep(snap, messenger)))
        assert "**Art** (approval off)" in text
        assert "Targets: <#501> (ok)" in text
        assert "Reports: none" in text

    def test_empty_config(self):
        assert "No categories configured." in format_health_report([])

    def test_posted_to_report_channels(self, db_engine, messenger):
        snap = _snapshot(db_engine, categories=[("Art", [501], [601, 602])])
        assert run_async(run_health_check(snap, messenger)) == 2
        assert messenger.sent_to(601)[0].content.startswith("**Health Check**")
