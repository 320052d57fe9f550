"""
gigboard.services.cleanup_service — Expiry & Staleness Sweep
=============================================================

Runs once at startup and then daily from :mod:`gigboard.bot.cogs.tasks`.
Order matters and is fixed:

1. Retract every APPROVED gig whose ``expires_at`` has passed.
2. Delete every instance older than ``stale_days`` (best effort on the
   message, the row always goes), then delete gigs created before the same
   cutoff that have no instances left.
3. Append a ``cleanup_log`` row with the counts.
4. Prune ``cleanup_log`` rows older than ``log_retention_days``.
5. Rotate configuration backups.

Step 2's zero-instance rule also removes PENDING gigs nobody reviewed and
approved gigs whose fan-out failed everywhere.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from sqlalchemy import Engine, delete, exists, select
from sqlalchemy.orm import Session

from gigboard.constants import utcnow
from gigboard.database.engine import get_session, run_db
from gigboard.database.models import CleanupLog, Gig, GigInstance, GigStatus
from gigboard.services import gig_service
from gigboard.services.backup_service import maybe_backup_config

if TYPE_CHECKING:
    from gigboard.config import GigBoardConfig
    from gigboard.services.diagnostics import ErrorReporter
    from gigboard.services.messaging import Messenger
    from gigboard.services.replication import ReplicationEngine

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class StaleInstance:
    message_id: int
    channel_id: int


# ---------------------------------------------------------------------------
# Store queries (synchronous — call via run_db)
# ---------------------------------------------------------------------------
def expired_gig_ids(engine: Engine, now: datetime) -> list[str]:
    with Session(engine) as session:
        return list(session.scalars(
            select(Gig.id).where(Gig.status == GigStatus.APPROVED, Gig.expires_at < now)
        ))


def stale_instances(engine: Engine, cutoff: datetime) -> list[StaleInstance]:
    with Session(engine) as session:
        rows = session.execute(
            select(GigInstance.message_id, GigInstance.channel_id)
            .where(GigInstance.created_at < cutoff)
        ).all()
    return [StaleInstance(message_id=m, channel_id=c) for m, c in rows]


def delete_orphaned_gigs(engine: Engine, cutoff: datetime) -> int:
    """Delete gigs created before *cutoff* that have zero instances."""
    has_instance = exists().where(GigInstance.gig_id == Gig.id)
    deleted = 0
    with get_session(engine) as session:
        gigs = session.scalars(
            select(Gig).where(Gig.created_at < cutoff, ~has_instance)
        ).all()
        for gig in gigs:
            session.delete(gig)
            deleted += 1
    return deleted


def record_cleanup(engine: Engine, run_at: datetime, deleted_gigs: int, deleted_instances: int) -> None:
    with get_session(engine) as session:
        session.add(CleanupLog(
            run_at=run_at,
            deleted_gigs=deleted_gigs,
            deleted_instances=deleted_instances,
        ))


def prune_cleanup_log(engine: Engine, cutoff: datetime) -> int:
    with get_session(engine) as session:
        result = session.execute(delete(CleanupLog).where(CleanupLog.run_at < cutoff))
        return result.rowcount  # type: ignore[return-value]


# ---------------------------------------------------------------------------
# Sweep steps
# ---------------------------------------------------------------------------
async def sweep_expired(
    engine: Engine, replication: ReplicationEngine, now: datetime
) -> tuple[int, int]:
    """Retract expired approved gigs.  Returns (gigs removed, messages deleted)."""
    deleted_gigs = 0
    deleted_instances = 0
    for gig_id in await run_db(expired_gig_ids, engine, now):
        result = await replication.retract(gig_id)
        deleted_instances += result.deleted
        if result.record_removed:
            deleted_gigs += 1
    return deleted_gigs, deleted_instances


async def sweep_stale(
    engine: Engine,
    messenger: Messenger,
    reporter: ErrorReporter,
    cutoff: datetime,
) -> tuple[int, int]:
    """Drop instances older than *cutoff*, then instance-less old gigs.

    Returns (instances removed, gigs removed).
    """
    removed = 0
    for inst in await run_db(stale_instances, engine, cutoff):
        try:
            await messenger.delete(inst.channel_id, inst.message_id)
        except Exception as exc:
            logger.warning(
                "Failed to delete stale gig message message_id=%d channel=%d: %s",
                inst.message_id, inst.channel_id, exc,
            )
            await reporter.report(
                f"delete stale gig message_id={inst.message_id} channel={inst.channel_id}", exc,
            )
        finally:
            await run_db(gig_service.delete_instance_row, engine, inst.message_id)
            removed += 1
    orphans = await run_db(delete_orphaned_gigs, engine, cutoff)
    return removed, orphans


async def run_cleanup(
    engine: Engine,
    cfg: GigBoardConfig,
    replication: ReplicationEngine,
    messenger: Messenger,
    reporter: ErrorReporter,
    now: datetime | None = None,
) -> dict[str, int]:
    """Run the full sweep.  Returns a summary dict of everything it removed."""
    now = now or utcnow()
    stale_cutoff = now - timedelta(days=cfg.stale_instance_days)

    expired_gigs, expired_instances = await sweep_expired(engine, replication, now)
    stale_removed, orphaned = await sweep_stale(engine, messenger, reporter, stale_cutoff)

    deleted_gigs = expired_gigs + orphaned
    deleted_instances = expired_instances + stale_removed
    await run_db(record_cleanup, engine, now, deleted_gigs, deleted_instances)

    log_cutoff = now - timedelta(days=cfg.cleanup_log_retention_days)
    pruned = await run_db(prune_cleanup_log, engine, log_cutoff)

    backup = await run_db(
        maybe_backup_config,
        engine,
        cfg.backup_dir,
        cfg.backup_keep,
        cfg.backup_interval_days,
    )

    logger.info(
        "Cleanup complete — %d expired gigs (%d messages), %d stale instances, "
        "%d orphaned gigs, %d log rows pruned, backup=%s",
        expired_gigs, expired_instances, stale_removed, orphaned, pruned,
        backup.name if backup else "skipped",
    )
    return {
        "expired_gigs": expired_gigs,
        "expired_instances": expired_instances,
        "stale_instances": stale_removed,
        "orphaned_gigs": orphaned,
        "deleted_gigs": deleted_gigs,
        "deleted_instances": deleted_instances,
        "log_pruned": pruned,
        "backup_written": 1 if backup else 0,
    }
