"""
tests/test_snapshot.py — Configuration Snapshot Tests
======================================================
Covers TTL-gated reloads, forced reloads, and the lookup helpers used for
routing.
"""

from __future__ import annotations

import pytest

from gigboard.database.models import RoleType
from gigboard.engine.snapshot import ConfigSnapshot, PolicyInfo
from gigboard.services import admin_service


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def snapshot(db_engine, clock):
    return ConfigSnapshot(db_engine, ttl_seconds=15, clock=clock)


class TestRefresh:
    """TTL behaviour of ``refresh()``."""

    def test_first_refresh_loads(self, snapshot):
        assert snapshot.is_stale()
        assert snapshot.refresh() is True
        assert snapshot.loaded_at == 1000.0

    def test_fresh_snapshot_is_not_reloaded(self, db_engine, snapshot, clock):
        snapshot.refresh()
        admin_service.create_category(db_engine, "Art", actor_id=1)
        clock.advance(5)
        assert snapshot.refresh() is False
        assert snapshot.category_by_name("Art") is None

    def test_stale_snapshot_reloads_after_ttl(self, db_engine, snapshot, clock):
        snapshot.refresh()
        admin_service.create_category(db_engine, "Art", actor_id=1)
        clock.advance(15)
        assert snapshot.refresh() is True
        assert snapshot.category_by_name("Art") is not None

    def test_force_bypasses_ttl(self, db_engine, snapshot):
        snapshot.refresh()
        admin_service.create_category(db_engine, "Art", actor_id=1)
        assert snapshot.refresh(force=True) is True
        assert snapshot.category_names() == ["Art"]

    def test_current_is_replaced_not_mutated(self, db_engine, snapshot):
        snapshot.refresh()
        before = snapshot.current
        admin_service.create_category(db_engine, "Art", actor_id=1)
        snapshot.refresh(force=True)
        assert before.categories == {}
        assert snapshot.current is not before


class TestLookups:
    @pytest.fixture(autouse=True)
    def _seed(self, db_engine, snapshot):
        admin_service.create_category(db_engine, "Art", actor_id=1)
        admin_service.create_category(db_engine, "code", actor_id=1)
        admin_service.add_category_channels(db_engine, "Art", "target", [501, 502], actor_id=1)
        admin_service.add_category_channels(db_engine, "code", "target", [502], actor_id=1)
        admin_service.add_category_channels(db_engine, "Art", "report", [601], actor_id=1)
        admin_service.add_role_binding(db_engine, RoleType.MODERATOR, 700, actor_id=1)
        admin_service.set_channel_policy(db_engine, 501, actor_id=1, expiry_days=2)
        admin_service.add_debug_channels(db_engine, [801], actor_id=1)
        snapshot.refresh(force=True)
        self.snapshot = snapshot

    def test_categories_for_channel_sorted_case_insensitive(self):
        names = [c.name for c in self.snapshot.categories_for_channel(502)]
        assert names == ["Art", "code"]

    def test_targets_and_reports(self):
        art = self.snapshot.category_by_name("Art")
        assert self.snapshot.targets_for_category(art.id) == [501, 502]
        assert self.snapshot.reports_for_category(art.id) == [601]
        assert self.snapshot.target_channel_ids() == {501, 502}
        assert self.snapshot.report_channel_ids() == {601}

    def test_unknown_category_lookups_are_empty(self):
        assert self.snapshot.category(None) is None
        assert self.snapshot.category("missing") is None
        assert self.snapshot.targets_for_category(None) == []

    def test_roles(self):
        assert self.snapshot.role_ids(RoleType.MODERATOR) == frozenset({700})
        assert self.snapshot.role_ids(RoleType.CREATOR) == frozenset()

    def test_policy_defaults_to_empty(self):
        assert self.snapshot.policy_for_channel(501) == PolicyInfo(expiry_days=2)
        assert self.snapshot.policy_for_channel(999) == PolicyInfo()

    def test_debug_channels(self):
        assert self.snapshot.debug_channel_ids() == [801]
