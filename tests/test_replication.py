"""
tests/test_replication.py — Fan-Out, Retraction & Prompt Upkeep Tests
======================================================================
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from gigboard.constants import PROMPT_TITLE
from gigboard.database.models import Gig, GigInstance, GigStatus
from gigboard.services import admin_service, gig_service
from gigboard.services.gig_service import GigDraft
from gigboard.services.replication import PromptAction, PromptDebouncer

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def run_async(coro):
    """Run an async coroutine in a new event loop."""
    return asyncio.get_event_loop_policy().new_event_loop().run_until_complete(coro)


def _instances(engine) -> int:
    with Session(engine) as session:
        return session.scalar(select(func.count()).select_from(GigInstance))


@pytest.fixture
def gig(board):
    category = admin_service.create_category(board.engine, "Art", actor_id=1)
    admin_service.add_category_channels(board.engine, "Art", "target", [501, 502, 503], actor_id=1)
    board.snapshot.refresh(force=True)
    return gig_service.create_gig(
        board.engine,
        author_id=5,
        category_id=category.id,
        origin_channel_id=501,
        status=GigStatus.APPROVED,
        created_at=T0,
        expires_at=T0 + timedelta(days=7),
        payload=GigDraft("Castle", "x" * 120, "100"),
    )


class TestFanOut:
    def test_each_destination_independent(self, board, gig):
        board.messenger.failing_channels.add(502)
        results = run_async(board.replication.fan_out(gig, gig.payload))

        assert [(r.channel_id, r.ok) for r in results] == [(501, True), (502, False), (503, True)]
        assert results[1].error.startswith("CollaboratorError")
        assert _instances(board.engine) == 2

    def test_second_fan_out_fills_only_missing_channels(self, board, gig):
        board.messenger.failing_channels.add(502)
        run_async(board.replication.fan_out(gig, gig.payload))
        board.messenger.failing_channels.clear()

        results = run_async(board.replication.fan_out(gig, gig.payload))
        assert [r.channel_id for r in results] == [502]
        assert _instances(board.engine) == 3

    def test_unrecorded_message_is_deleted_again(self, board, gig, monkeypatch):
        add_instance = gig_service.add_instance

        def flaky_add_instance(engine, **kwargs):
            if kwargs["channel_id"] == 502:
                raise RuntimeError("database unavailable")
            return add_instance(engine, **kwargs)

        monkeypatch.setattr(gig_service, "add_instance", flaky_add_instance)
        results = run_async(board.replication.fan_out(gig, gig.payload))

        assert [(r.channel_id, r.ok) for r in results] == [(501, True), (502, False), (503, True)]
        assert board.messenger.messages_in(502) == []
        assert _instances(board.engine) == 2

    def test_gig_deleted_mid_fan_out_stops_and_cleans_up(self, board, gig, foreign_keys):
        send = board.messenger.send

        async def send_then_delete_gig(channel_id, message):
            sent = await send(channel_id, message)
            gig_service.delete_gig_row(board.engine, gig.id)
            return sent

        board.messenger.send = send_then_delete_gig
        results = run_async(board.replication.fan_out(gig, gig.payload))

        assert [(r.channel_id, r.ok) for r in results] == [(501, False)]
        for channel_id in (501, 502, 503):
            assert board.messenger.messages_in(channel_id) == []
        assert _instances(board.engine) == 0


class TestRetract:
    def test_partial_failure_still_removes_record(self, board, gig):
        run_async(board.replication.fan_out(gig, gig.payload))
        board.messenger.failing_channels.add(503)

        result = run_async(board.replication.retract(gig.id))

        assert result.attempted == 3
        assert result.deleted == 2
        assert [f.channel_id for f in result.failures] == [503]
        assert result.record_removed
        assert _instances(board.engine) == 0
        with Session(board.engine) as session:
            assert session.get(Gig, gig.id) is None

    def test_retract_missing_gig(self, board):
        result = run_async(board.replication.retract("does-not-exist"))
        assert result.attempted == 0
        assert not result.record_removed


class TestPrompt:
    """One prompt per destination, always the newest message."""

    def test_posted_in_empty_channel(self, board, gig):
        assert run_async(board.replication.ensure_prompt(501)) is PromptAction.POSTED
        assert board.messenger.messages_in(501)[-1].embed.title == PROMPT_TITLE

    def test_kept_when_already_newest(self, board, gig):
        run_async(board.replication.ensure_prompt(501))
        assert run_async(board.replication.ensure_prompt(501)) is PromptAction.KEPT
        assert len(board.messenger.sent_to(501)) == 1

    def test_reposted_when_buried(self, board, gig):
        run_async(board.replication.ensure_prompt(501))
        board.messenger.add_foreign_message(501, title=None)

        assert run_async(board.replication.ensure_prompt(501)) is PromptAction.REPOSTED
        history = board.messenger.messages_in(501)
        prompts = [m for m in history if not isinstance(m, tuple) and m.embed.title == PROMPT_TITLE]
        assert len(prompts) == 1
        assert history[-1] is prompts[0]

    def test_duplicates_collapse_to_one(self, board, gig):
        run_async(board.replication.ensure_prompt(501))
        board.messenger.add_foreign_message(501)
        run_async(board.replication.ensure_prompt(501))
        prompts = [
            m for m in board.messenger.messages_in(501)
            if not isinstance(m, tuple) and m.embed.title == PROMPT_TITLE
        ]
        assert len(prompts) == 1

    def test_failure_is_reported_not_raised(self, board, gig):
        board.messenger.failing_channels.add(501)
        assert run_async(board.replication.ensure_prompt(501)) is PromptAction.FAILED

    def test_debounced_skips_non_destinations(self, board, gig):
        assert run_async(board.replication.ensure_prompt_debounced(999)) is PromptAction.SKIPPED

    def test_debounced_checks_once_per_interval(self, board, gig):
        first = run_async(board.replication.ensure_prompt_debounced(501))
        second = run_async(board.replication.ensure_prompt_debounced(501))
        assert first is PromptAction.POSTED
        assert second is PromptAction.SKIPPED

    def test_ensure_all_prompts(self, board, gig):
        results = run_async(board.replication.ensure_all_prompts())
        assert results == {501: PromptAction.POSTED, 502: PromptAction.POSTED, 503: PromptAction.POSTED}


class TestPromptDebouncer:
    def test_interval(self):
        now = [0.0]
        debouncer = PromptDebouncer(interval=5.0, clock=lambda: now[0])
        assert debouncer.should_check(1)
        now[0] = 4.9
        assert not debouncer.should_check(1)
        now[0] = 5.0
        assert debouncer.should_check(1)

    def test_least_recently_checked_is_evicted(self):
        now = [0.0]
        debouncer = PromptDebouncer(interval=5.0, max_entries=2, clock=lambda: now[0])
        debouncer.should_check(1)
        now[0] = 1.0
        debouncer.should_check(2)
        now[0] = 2.0
        debouncer.should_check(3)
        assert len(debouncer) == 2
        assert 1 not in debouncer
        assert 2 in debouncer and 3 in debouncer
