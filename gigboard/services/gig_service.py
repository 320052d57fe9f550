"""
gigboard.services.gig_service — Gig Persistence
================================================

Synchronous store operations behind the gig workflow.  Every function opens
its own short session; async callers go through ``run_db``.  Rows handed
back are expunged with the relationships callers need already loaded.

Uniqueness races (double application, double report) surface as
:class:`~gigboard.errors.ConflictError`; a double ban is a no-op.  The
database constraint is the arbiter, not a prior existence check.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import Engine, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from gigboard.constants import utcnow
from gigboard.database.engine import get_session
from gigboard.database.models import (
    Application,
    CategoryBan,
    Gig,
    GigInstance,
    GigPayload,
    GigStatus,
    GuildBan,
    Report,
)
from gigboard.engine.lifecycle import GigAction, transition
from gigboard.errors import ConflictError, NotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class GigDraft:
    """Form content as typed by the member (unsanitized)."""

    title: str
    description: str
    pay: str
    timeline: str | None = None


# ---------------------------------------------------------------------------
# Gigs
# ---------------------------------------------------------------------------
def create_gig(
    engine: Engine,
    *,
    author_id: int,
    category_id: str,
    origin_channel_id: int,
    status: GigStatus,
    created_at: datetime,
    expires_at: datetime,
    payload: GigDraft,
) -> Gig:
    """Insert a gig and its (already sanitized) payload in one transaction."""
    with get_session(engine) as session:
        gig = Gig(
            author_id=author_id,
            category_id=category_id,
            origin_channel_id=origin_channel_id,
            status=status,
            created_at=created_at,
            expires_at=expires_at,
        )
        gig.payload = GigPayload(
            title=payload.title,
            description=payload.description,
            pay=payload.pay,
            timeline=payload.timeline or None,
        )
        session.add(gig)
        session.flush()
        session.expunge_all()
    logger.info(
        "Gig %s created by %d in category %s (%s)",
        gig.id, author_id, category_id, status,
    )
    return gig


def get_gig(engine: Engine, gig_id: str) -> Gig | None:
    with Session(engine, expire_on_commit=False) as session:
        gig = session.get(Gig, gig_id, options=[selectinload(Gig.payload)])
        if gig is None:
            return None
        session.expunge_all()
        return gig


def get_gig_for_message(engine: Engine, message_id: int) -> tuple[Gig, GigInstance] | None:
    """Resolve a replicated message back to its gig."""
    with Session(engine, expire_on_commit=False) as session:
        instance = session.get(GigInstance, message_id)
        if instance is None:
            return None
        gig = session.get(Gig, instance.gig_id, options=[selectinload(Gig.payload)])
        if gig is None:
            return None
        session.expunge_all()
        return gig, instance


def list_instances(engine: Engine, gig_id: str) -> list[GigInstance]:
    with Session(engine) as session:
        rows = session.scalars(
            select(GigInstance)
            .where(GigInstance.gig_id == gig_id)
            .order_by(GigInstance.created_at)
        ).all()
        session.expunge_all()
        return list(rows)


def gig_ids_for_author(engine: Engine, author_id: int) -> list[str]:
    with Session(engine) as session:
        return list(session.scalars(
            select(Gig.id).where(Gig.author_id == author_id).order_by(Gig.created_at)
        ))


def approve_gig(engine: Engine, gig_id: str, expires_at: datetime) -> Gig:
    """PENDING → APPROVED with a fresh expiry.

    Raises
    ------
    NotFoundError
        The gig was deleted meanwhile.
    InvalidTransitionError
        The gig is not pending (e.g. a second moderator already accepted).
    """
    with get_session(engine) as session:
        gig = session.get(Gig, gig_id, options=[selectinload(Gig.payload)], with_for_update=True)
        if gig is None:
            raise NotFoundError("Gig not found.")
        gig.status = transition(gig.status, GigAction.ACCEPT)
        gig.expires_at = expires_at
        session.flush()
        session.expunge_all()
    logger.info("Gig %s approved, expires %s", gig_id, expires_at.isoformat())
    return gig


def delete_gig_row(engine: Engine, gig_id: str) -> bool:
    """Remove a gig and everything hanging off it.  False if already gone."""
    with get_session(engine) as session:
        gig = session.get(Gig, gig_id)
        if gig is None:
            return False
        session.delete(gig)
    return True


# ---------------------------------------------------------------------------
# Instances
# ---------------------------------------------------------------------------
def add_instance(
    engine: Engine,
    *,
    message_id: int,
    gig_id: str,
    guild_id: int | None,
    channel_id: int,
    created_at: datetime | None = None,
) -> None:
    """Record one replicated message.

    Raises
    ------
    NotFoundError
        The gig was deleted while its message was being sent.
    """
    with get_session(engine) as session:
        if session.get(Gig, gig_id) is None:
            raise NotFoundError("Gig not found.")
        session.add(GigInstance(
            message_id=message_id,
            gig_id=gig_id,
            guild_id=guild_id,
            channel_id=channel_id,
            created_at=created_at or utcnow(),
        ))


def delete_instance_row(engine: Engine, message_id: int) -> bool:
    with get_session(engine) as session:
        instance = session.get(GigInstance, message_id)
        if instance is None:
            return False
        session.delete(instance)
    return True


# ---------------------------------------------------------------------------
# Applications & reports
# ---------------------------------------------------------------------------
def has_applied(engine: Engine, gig_id: str, applicant_id: int) -> bool:
    with Session(engine) as session:
        return session.get(Application, (gig_id, applicant_id)) is not None


def record_application(engine: Engine, gig_id: str, applicant_id: int) -> None:
    try:
        with get_session(engine) as session:
            session.add(Application(gig_id=gig_id, applicant_id=applicant_id))
    except IntegrityError as exc:
        raise ConflictError("You have already applied for this gig.") from exc


def record_report(engine: Engine, gig_id: str, reporter_id: int) -> None:
    try:
        with get_session(engine) as session:
            session.add(Report(gig_id=gig_id, reporter_id=reporter_id))
    except IntegrityError as exc:
        raise ConflictError("You have already reported this gig.") from exc


# ---------------------------------------------------------------------------
# Bans
# ---------------------------------------------------------------------------
def _insert_ban(engine: Engine, row: GuildBan | CategoryBan, key: tuple) -> bool:
    """Insert one ban row.  False if it already exists or the store refuses it.

    A concurrent banish of the same member loses the primary-key race; a
    category deleted meanwhile fails its foreign key.  Neither may stop the
    caller from retracting the gig.
    """
    try:
        with get_session(engine) as session:
            if session.get(type(row), key) is not None:
                return False
            session.add(row)
    except IntegrityError as exc:
        logger.info("%s %s not written: %s", type(row).__name__, key, exc.orig)
        return False
    return True


def ban_user(
    engine: Engine,
    *,
    user_id: int,
    guild_id: int | None,
    category_id: str | None,
    banned_by: int | None,
    reason: str | None,
    now: datetime | None = None,
) -> int:
    """Ban at guild and/or category scope.  Idempotent; returns rows added.

    Each scope is its own transaction, so the guild ban stands even when
    the category ban cannot be written.
    """
    now = now or utcnow()
    added = 0
    if guild_id:
        added += _insert_ban(
            engine,
            GuildBan(
                guild_id=guild_id, user_id=user_id,
                banned_at=now, banned_by=banned_by, reason=reason,
            ),
            (guild_id, user_id),
        )
    if category_id:
        added += _insert_ban(
            engine,
            CategoryBan(
                category_id=category_id, user_id=user_id,
                banned_at=now, banned_by=banned_by, reason=reason,
            ),
            (category_id, user_id),
        )
    if added:
        logger.info(
            "Banned user %d (guild=%s category=%s) by %s: %s",
            user_id, guild_id, category_id, banned_by, reason,
        )
    return added
