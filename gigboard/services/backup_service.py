"""
gigboard.services.backup_service — Configuration Backups
=========================================================

Weekly JSON export of the admin-managed tables (categories and their
channels, role bindings, channel policies, debug channels, bans), written
by the cleanup sweep.  Only the newest ``keep`` files are retained.

The export is portable across databases, so a PostgreSQL deployment can be
restored into a fresh schema with a short script.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from sqlalchemy import Engine, select
from sqlalchemy.orm import Session

from gigboard.constants import utcnow
from gigboard.database.models import (
    Category,
    CategoryBan,
    CategoryReportChannel,
    CategoryTarget,
    ChannelPolicy,
    DebugChannel,
    GuildBan,
    RoleBinding,
)

logger = logging.getLogger(__name__)

BACKUP_PREFIX = "config-"
BACKUP_SUFFIX = ".json"

_TABLES = (
    Category,
    CategoryTarget,
    CategoryReportChannel,
    RoleBinding,
    ChannelPolicy,
    DebugChannel,
    GuildBan,
    CategoryBan,
)


def _serialize(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def export_config(engine: Engine) -> dict[str, list[dict[str, Any]]]:
    """Every configuration row, keyed by table name."""
    data: dict[str, list[dict[str, Any]]] = {}
    with Session(engine) as session:
        for model in _TABLES:
            rows = session.scalars(select(model)).all()
            data[model.__tablename__] = [
                {col.name: _serialize(getattr(row, col.key)) for col in model.__table__.columns}
                for row in rows
            ]
    return data


def list_backups(backup_dir: Path) -> list[Path]:
    """Existing backups, newest first (by modification time)."""
    if not backup_dir.exists():
        return []
    files = [
        p for p in backup_dir.iterdir()
        if p.is_file() and p.name.startswith(BACKUP_PREFIX) and p.name.endswith(BACKUP_SUFFIX)
    ]
    return sorted(files, key=lambda p: p.stat().st_mtime, reverse=True)


def maybe_backup_config(
    engine: Engine,
    backup_dir: str | Path,
    keep: int = 2,
    interval_days: int = 7,
    now: datetime | None = None,
) -> Path | None:
    """Write a backup unless the newest one is younger than *interval_days*.

    Returns the new file, or ``None`` when skipped or failed.  Failures are
    logged, never raised: a missed backup must not abort the cleanup sweep.
    """
    now = now or utcnow()
    directory = Path(backup_dir)
    try:
        directory.mkdir(parents=True, exist_ok=True)
        existing = list_backups(directory)
        if existing:
            age = now.timestamp() - existing[0].stat().st_mtime
            if age < interval_days * 86400:
                logger.debug("Backup skipped: newest is %.1f days old", age / 86400)
                return None

        target = directory / f"{BACKUP_PREFIX}{now:%Y-%m-%d}{BACKUP_SUFFIX}"
        payload = {"exported_at": now.isoformat(), "tables": export_config(engine)}
        target.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
        logger.info("Configuration backup written → %s", target)

        for old in list_backups(directory)[keep:]:
            old.unlink()
            logger.info("Old backup removed: %s", old.name)
        return target
    except Exception:
        logger.exception("Configuration backup failed")
        return None
