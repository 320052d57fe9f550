"""
gigboard.engine.rate_limit — Per-Channel Posting Cooldown
==========================================================

A member may post one gig per origin channel per cooldown window.

- The window is the channel's ``cooldown_days`` override, else the
  ``default_cooldown_days`` from ``config.yaml`` (3 days).
- A window of zero or less disables the limit for that channel.
- Moderators and admins are never limited.
- Each successful submission overwrites the (member, channel) entry, so the
  window always runs from the most recent post.

Both methods hit the store and are synchronous (call via ``run_db``).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from gigboard.constants import ensure_utc, utcnow
from gigboard.database.engine import get_session
from gigboard.database.models import RateLimitEntry

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from gigboard.engine.access import AccessControl, Actor
    from gigboard.engine.snapshot import ConfigSnapshot

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CooldownStatus:
    eligible: bool
    cooldown_days: int
    retry_after: datetime | None = None


class RateLimiter:
    """Checks and records per-(member, origin channel) cooldowns."""

    def __init__(
        self,
        engine: Engine,
        snapshot: ConfigSnapshot,
        access: AccessControl,
        default_cooldown_days: int,
    ) -> None:
        self._engine = engine
        self._snapshot = snapshot
        self._access = access
        self._default_days = default_cooldown_days

    def cooldown_days(self, channel_id: int) -> int:
        override = self._snapshot.policy_for_channel(channel_id).cooldown_days
        return self._default_days if override is None else override

    def check_cooldown(
        self,
        actor: Actor,
        channel_id: int,
        now: datetime | None = None,
    ) -> CooldownStatus:
        days = self.cooldown_days(channel_id)
        if days <= 0 or self._access.is_moderator(actor):
            return CooldownStatus(eligible=True, cooldown_days=days)

        now = now or utcnow()
        with Session(self._engine) as session:
            entry = session.get(RateLimitEntry, (actor.user_id, channel_id))
            last = ensure_utc(entry.last_post_at) if entry else None

        if last is None:
            return CooldownStatus(eligible=True, cooldown_days=days)
        retry_after = last + timedelta(days=days)
        if now < retry_after:
            return CooldownStatus(eligible=False, cooldown_days=days, retry_after=retry_after)
        return CooldownStatus(eligible=True, cooldown_days=days)

    def record_post(self, user_id: int, channel_id: int, now: datetime | None = None) -> None:
        """Overwrite the entry for (user, channel) with *now*."""
        with get_session(self._engine) as session:
            session.merge(RateLimitEntry(
                user_id=user_id,
                channel_id=channel_id,
                last_post_at=now or utcnow(),
            ))
        logger.debug("Cooldown recorded user=%d channel=%d", user_id, channel_id)
