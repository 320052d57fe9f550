"""
tests/test_admin_service.py — Audited Configuration Mutation Tests
===================================================================
Every mutation writes exactly one ``admin_log`` row per changed record,
with before/after snapshots.
"""

from __future__ import annotations

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from gigboard.database.models import AdminLog, Category, CategoryTarget, ChannelPolicy, RoleType
from gigboard.errors import ConflictError, NotFoundError, ValidationError
from gigboard.services import admin_service


def _log(engine) -> list[AdminLog]:
    with Session(engine) as session:
        return list(session.scalars(select(AdminLog).order_by(AdminLog.id)))


class TestCategories:
    def test_create_logs_after_snapshot(self, db_engine):
        category = admin_service.create_category(db_engine, "  Art ", actor_id=42)
        assert category.name == "Art"

        (entry,) = _log(db_engine)
        assert entry.actor_id == 42
        assert entry.action_type == "CREATE"
        assert entry.target_table == "categories"
        assert entry.before_snapshot is None
        assert entry.after_snapshot["name"] == "Art"
        assert entry.after_snapshot["approve_mode"] is False

    def test_duplicate_name(self, db_engine):
        admin_service.create_category(db_engine, "Art", actor_id=1)
        with pytest.raises(ConflictError):
            admin_service.create_category(db_engine, "Art", actor_id=1)
        assert len(_log(db_engine)) == 1

    def test_blank_name(self, db_engine):
        with pytest.raises(ValidationError):
            admin_service.create_category(db_engine, "   ", actor_id=1)

    def test_delete_removes_channels(self, db_engine):
        admin_service.create_category(db_engine, "Art", actor_id=1)
        admin_service.add_category_channels(db_engine, "Art", "target", [501], actor_id=1)
        admin_service.delete_category(db_engine, "Art", actor_id=1)
        with Session(db_engine) as session:
            assert session.scalars(select(Category)).all() == []
            assert session.scalars(select(CategoryTarget)).all() == []
        assert _log(db_engine)[-1].action_type == "DELETE"

    def test_unknown_category(self, db_engine):
        with pytest.raises(NotFoundError):
            admin_service.set_approve_mode(db_engine, "Nope", True, actor_id=1)

    def test_approve_mode_before_and_after(self, db_engine):
        admin_service.create_category(db_engine, "Art", actor_id=1)
        admin_service.set_approve_mode(db_engine, "Art", True, actor_id=1)
        entry = _log(db_engine)[-1]
        assert entry.before_snapshot["approve_mode"] is False
        assert entry.after_snapshot["approve_mode"] is True


class TestChannels:
    @pytest.fixture(autouse=True)
    def _category(self, db_engine):
        admin_service.create_category(db_engine, "Art", actor_id=1)

    def test_add_skips_existing(self, db_engine):
        assert admin_service.add_category_channels(db_engine, "Art", "target", [501, 502], actor_id=1) == [501, 502]
        assert admin_service.add_category_channels(db_engine, "Art", "target", [502, 503], actor_id=1) == [503]
        # one create + three channel rows
        assert len(_log(db_engine)) == 4

    def test_remove_returns_remaining(self, db_engine):
        admin_service.add_category_channels(db_engine, "Art", "report", [601, 602], actor_id=1)
        remaining = admin_service.remove_category_channels(db_engine, "Art", "report", [601, 999], actor_id=1)
        assert remaining == [602]

    def test_debug_channels(self, db_engine):
        assert admin_service.add_debug_channels(db_engine, [801, 802], actor_id=1) == [801, 802]
        assert admin_service.remove_debug_channels(db_engine, [801], actor_id=1) == [802]


class TestRolesAndPolicies:
    def test_role_binding_add_remove(self, db_engine):
        assert admin_service.add_role_binding(db_engine, RoleType.CREATOR, 710, actor_id=1)
        assert not admin_service.add_role_binding(db_engine, RoleType.CREATOR, 710, actor_id=1)
        assert admin_service.remove_role_binding(db_engine, RoleType.CREATOR, 710, actor_id=1)
        assert not admin_service.remove_role_binding(db_engine, RoleType.CREATOR, 710, actor_id=1)
        assert [e.action_type for e in _log(db_engine)] == ["CREATE", "DELETE"]

    def test_policy_fields_are_independent(self, db_engine):
        admin_service.set_channel_policy(db_engine, 501, actor_id=1, expiry_days=3)
        admin_service.set_channel_policy(db_engine, 501, actor_id=1, cooldown_days=1)
        policy = admin_service.set_channel_policy(db_engine, 501, actor_id=1, expiry_days=None)
        assert policy.expiry_days is None
        assert policy.cooldown_days == 1

        entries = _log(db_engine)
        assert entries[0].action_type == "CREATE"
        assert entries[1].before_snapshot == {"channel_id": 501, "expiry_days": 3, "cooldown_days": None}

    def test_expiry_must_be_positive(self, db_engine):
        with pytest.raises(ValidationError):
            admin_service.set_channel_policy(db_engine, 501, actor_id=1, expiry_days=0)
        with Session(db_engine) as session:
            assert session.get(ChannelPolicy, 501) is None


class TestUnban:
    def test_unknown_scope(self, db_engine):
        with pytest.raises(ValidationError):
            admin_service.unban_user(db_engine, 5, scope="galaxy", guild_id=100, category_name=None, actor_id=1)

    def test_category_scope_needs_name(self, db_engine):
        with pytest.raises(ValidationError) as exc_info:
            admin_service.unban_user(db_engine, 5, scope="category", guild_id=100, category_name=None, actor_id=1)
        assert exc_info.value.user_message == "Category name is required for category or both scope."

    def test_logged_even_when_nothing_removed(self, db_engine):
        assert admin_service.unban_user(
            db_engine, 5, scope="server", guild_id=100, category_name=None, actor_id=1,
        ) == 0
        entry = _log(db_engine)[-1]
        assert entry.action_type == "UNBAN"
        assert entry.after_snapshot == {"scope": "server", "removed": 0}
