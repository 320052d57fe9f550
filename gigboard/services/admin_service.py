"""
gigboard.services.admin_service — Audited Configuration Mutations
==================================================================

Every admin slash command that changes configuration lands here.  Each
write follows the same pattern:

  1. Begin transaction
  2. Read the "before" row(s)
  3. Apply the change
  4. Write an ``admin_log`` row with before/after JSON
  5. Commit

The caller then forces a snapshot refresh (``snapshot.refresh(force=True)``)
so the change is visible to routing immediately instead of after the TTL.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime
from typing import Any

from sqlalchemy import Engine, delete, select
from sqlalchemy.orm import Session

from gigboard.database.engine import get_session
from gigboard.database.models import (
    AdminLog,
    Category,
    CategoryBan,
    CategoryReportChannel,
    CategoryTarget,
    ChannelPolicy,
    DebugChannel,
    GuildBan,
    RoleBinding,
    RoleType,
)
from gigboard.errors import ConflictError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

_UNSET: Any = object()


# ---------------------------------------------------------------------------
# Generic audit helpers
# ---------------------------------------------------------------------------
def _row_to_dict(obj: Any) -> dict | None:
    """Convert a SQLAlchemy model instance to a JSON-serializable dict."""
    if obj is None:
        return None
    result = {}
    for col in obj.__table__.columns:
        val = getattr(obj, col.key, None)
        if isinstance(val, datetime):
            val = val.isoformat()
        result[col.name] = val
    return result


def _log_admin_action(
    session: Session,
    *,
    actor_id: int,
    action_type: str,
    target_table: str,
    target_id: str | None,
    before: dict | None,
    after: dict | None,
    reason: str | None = None,
) -> None:
    """Insert a row into admin_log within the current transaction."""
    session.add(AdminLog(
        actor_id=actor_id,
        action_type=action_type,
        target_table=target_table,
        target_id=target_id,
        before_snapshot=before,
        after_snapshot=after,
        reason=reason,
    ))


def _category_by_name(session: Session, name: str) -> Category:
    category = session.scalar(select(Category).where(Category.name == name))
    if category is None:
        raise NotFoundError("Category not found.")
    return category


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------
def create_category(engine: Engine, name: str, *, actor_id: int) -> Category:
    name = name.strip()
    if not name:
        raise ValidationError("Category name is required.")
    with get_session(engine) as session:
        if session.scalar(select(Category.id).where(Category.name == name)) is not None:
            raise ConflictError("Category already exists.")
        category = Category(name=name, approve_mode=False)
        session.add(category)
        session.flush()
        _log_admin_action(
            session,
            actor_id=actor_id,
            action_type="CREATE",
            target_table="categories",
            target_id=category.id,
            before=None,
            after=_row_to_dict(category),
        )
        session.expunge(category)
    logger.info("Category %r created by %d", name, actor_id)
    return category


def delete_category(engine: Engine, name: str, *, actor_id: int) -> None:
    """Delete a category with its channels and category bans."""
    with get_session(engine) as session:
        category = _category_by_name(session, name)
        _log_admin_action(
            session,
            actor_id=actor_id,
            action_type="DELETE",
            target_table="categories",
            target_id=category.id,
            before=_row_to_dict(category),
            after=None,
        )
        session.delete(category)
    logger.info("Category %r deleted by %d", name, actor_id)


def set_approve_mode(engine: Engine, name: str, enabled: bool, *, actor_id: int) -> None:
    with get_session(engine) as session:
        category = _category_by_name(session, name)
        before = _row_to_dict(category)
        category.approve_mode = enabled
        session.flush()
        _log_admin_action(
            session,
            actor_id=actor_id,
            action_type="UPDATE",
            target_table="categories",
            target_id=category.id,
            before=before,
            after=_row_to_dict(category),
        )


_CHANNEL_MODELS: dict[str, type[CategoryTarget] | type[CategoryReportChannel]] = {
    "target": CategoryTarget,
    "report": CategoryReportChannel,
}


def add_category_channels(
    engine: Engine,
    name: str,
    kind: str,
    channel_ids: Iterable[int],
    *,
    actor_id: int,
) -> list[int]:
    """Bind destination (``kind="target"``) or report channels.  Returns added ids."""
    model = _CHANNEL_MODELS[kind]
    added: list[int] = []
    with get_session(engine) as session:
        category = _category_by_name(session, name)
        for channel_id in channel_ids:
            if session.get(model, (category.id, channel_id)) is not None:
                continue
            row = model(category_id=category.id, channel_id=channel_id)
            session.add(row)
            added.append(channel_id)
            _log_admin_action(
                session,
                actor_id=actor_id,
                action_type="CREATE",
                target_table=model.__tablename__,
                target_id=f"{category.id}:{channel_id}",
                before=None,
                after={"category_id": category.id, "channel_id": channel_id},
            )
    return added


def remove_category_channels(
    engine: Engine,
    name: str,
    kind: str,
    channel_ids: Iterable[int],
    *,
    actor_id: int,
) -> list[int]:
    """Unbind channels.  Returns the channels still bound afterwards."""
    model = _CHANNEL_MODELS[kind]
    with get_session(engine) as session:
        category = _category_by_name(session, name)
        for channel_id in channel_ids:
            row = session.get(model, (category.id, channel_id))
            if row is None:
                continue
            _log_admin_action(
                session,
                actor_id=actor_id,
                action_type="DELETE",
                target_table=model.__tablename__,
                target_id=f"{category.id}:{channel_id}",
                before=_row_to_dict(row),
                after=None,
            )
            session.delete(row)
        session.flush()
        return sorted(session.scalars(
            select(model.channel_id).where(model.category_id == category.id)
        ))


# ---------------------------------------------------------------------------
# Role bindings
# ---------------------------------------------------------------------------
def add_role_binding(engine: Engine, role_type: RoleType, role_id: int, *, actor_id: int) -> bool:
    with get_session(engine) as session:
        if session.get(RoleBinding, (role_type, role_id)) is not None:
            return False
        row = RoleBinding(role_type=role_type, role_id=role_id)
        session.add(row)
        _log_admin_action(
            session,
            actor_id=actor_id,
            action_type="CREATE",
            target_table="role_bindings",
            target_id=f"{role_type}:{role_id}",
            before=None,
            after={"role_type": str(role_type), "role_id": role_id},
        )
    return True


def remove_role_binding(engine: Engine, role_type: RoleType, role_id: int, *, actor_id: int) -> bool:
    with get_session(engine) as session:
        row = session.get(RoleBinding, (role_type, role_id))
        if row is None:
            return False
        _log_admin_action(
            session,
            actor_id=actor_id,
            action_type="DELETE",
            target_table="role_bindings",
            target_id=f"{role_type}:{role_id}",
            before={"role_type": str(role_type), "role_id": role_id},
            after=None,
        )
        session.delete(row)
    return True


# ---------------------------------------------------------------------------
# Channel policies
# ---------------------------------------------------------------------------
def set_channel_policy(
    engine: Engine,
    channel_id: int,
    *,
    actor_id: int,
    expiry_days: int | None = _UNSET,
    cooldown_days: int | None = _UNSET,
) -> ChannelPolicy:
    """Set or clear (pass ``None``) one or both overrides; omitted ones stay."""
    if expiry_days not in (_UNSET, None) and expiry_days <= 0:
        raise ValidationError("Expiry must be at least 1 day.")
    with get_session(engine) as session:
        policy = session.get(ChannelPolicy, channel_id)
        before = _row_to_dict(policy)
        if policy is None:
            policy = ChannelPolicy(channel_id=channel_id)
            session.add(policy)
        if expiry_days is not _UNSET:
            policy.expiry_days = expiry_days
        if cooldown_days is not _UNSET:
            policy.cooldown_days = cooldown_days
        session.flush()
        _log_admin_action(
            session,
            actor_id=actor_id,
            action_type="UPDATE" if before else "CREATE",
            target_table="channel_policies",
            target_id=str(channel_id),
            before=before,
            after=_row_to_dict(policy),
        )
        session.expunge(policy)
    return policy


# ---------------------------------------------------------------------------
# Debug channels
# ---------------------------------------------------------------------------
def add_debug_channels(engine: Engine, channel_ids: Iterable[int], *, actor_id: int) -> list[int]:
    added: list[int] = []
    with get_session(engine) as session:
        for channel_id in channel_ids:
            if session.get(DebugChannel, channel_id) is not None:
                continue
            session.add(DebugChannel(channel_id=channel_id))
            added.append(channel_id)
            _log_admin_action(
                session,
                actor_id=actor_id,
                action_type="CREATE",
                target_table="debug_channels",
                target_id=str(channel_id),
                before=None,
                after={"channel_id": channel_id},
            )
    return added


def remove_debug_channels(engine: Engine, channel_ids: Iterable[int], *, actor_id: int) -> list[int]:
    """Returns the debug channels still configured afterwards."""
    with get_session(engine) as session:
        for channel_id in channel_ids:
            row = session.get(DebugChannel, channel_id)
            if row is None:
                continue
            _log_admin_action(
                session,
                actor_id=actor_id,
                action_type="DELETE",
                target_table="debug_channels",
                target_id=str(channel_id),
                before={"channel_id": channel_id},
                after=None,
            )
            session.delete(row)
        session.flush()
        return sorted(session.scalars(select(DebugChannel.channel_id)))


# ---------------------------------------------------------------------------
# Unbanish
# ---------------------------------------------------------------------------
UNBAN_SCOPES = ("server", "category", "both")


def unban_user(
    engine: Engine,
    user_id: int,
    *,
    scope: str,
    guild_id: int | None,
    category_name: str | None,
    actor_id: int,
) -> int:
    """Lift bans in *scope*.  Returns how many ban rows were removed.

    A server-scope unban leaves category bans in force, and vice versa.
    """
    if scope not in UNBAN_SCOPES:
        raise ValidationError(f"Unknown scope {scope!r}.")
    if scope in ("category", "both") and not category_name:
        raise ValidationError("Category name is required for category or both scope.")

    removed = 0
    with get_session(engine) as session:
        if scope in ("server", "both") and guild_id:
            result = session.execute(
                delete(GuildBan).where(GuildBan.guild_id == guild_id, GuildBan.user_id == user_id)
            )
            removed += result.rowcount or 0
        if scope in ("category", "both"):
            category = _category_by_name(session, category_name or "")
            result = session.execute(
                delete(CategoryBan).where(
                    CategoryBan.category_id == category.id, CategoryBan.user_id == user_id
                )
            )
            removed += result.rowcount or 0
        _log_admin_action(
            session,
            actor_id=actor_id,
            action_type="UNBAN",
            target_table="bans",
            target_id=str(user_id),
            before=None,
            after={"scope": scope, "removed": removed},
        )
    logger.info("Unbanished user %d (scope=%s, removed=%d) by %d", user_id, scope, removed, actor_id)
    return removed
