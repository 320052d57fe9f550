"""
tests/test_lifecycle.py — Gig State Machine Tests
==================================================
"""

from __future__ import annotations

import pytest

from gigboard.database.models import GigStatus
from gigboard.engine.lifecycle import (
    TRANSITIONS,
    GigAction,
    initial_action,
    transition,
)
from gigboard.errors import InvalidTransitionError


class TestTransitions:
    def test_submit_without_approval(self):
        assert transition(None, initial_action(False)) is GigStatus.APPROVED

    def test_submit_with_approval(self):
        assert transition(None, initial_action(True)) is GigStatus.PENDING

    def test_accept(self):
        assert transition(GigStatus.PENDING, GigAction.ACCEPT) is GigStatus.APPROVED

    @pytest.mark.parametrize("action", [GigAction.REJECT, GigAction.BANISH, GigAction.DELETE])
    def test_pending_exits(self, action):
        assert transition(GigStatus.PENDING, action) is GigStatus.DELETED

    @pytest.mark.parametrize("action", [GigAction.DELETE, GigAction.EXPIRE, GigAction.BANISH])
    def test_approved_exits(self, action):
        assert transition("approved", action) is GigStatus.DELETED

    def test_nothing_returns_to_pending(self):
        assert all(
            target is not GigStatus.PENDING
            for (current, _), target in TRANSITIONS.items()
            if current is not None
        )

    def test_double_accept_rejected(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            transition(GigStatus.APPROVED, GigAction.ACCEPT)
        assert exc_info.value.user_message == "This gig is not currently available."

    def test_pending_cannot_expire(self):
        with pytest.raises(InvalidTransitionError):
            transition(GigStatus.PENDING, GigAction.EXPIRE)

    def test_deleted_is_terminal(self):
        for action in GigAction:
            with pytest.raises(InvalidTransitionError):
                transition(GigStatus.DELETED, action)
