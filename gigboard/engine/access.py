"""
gigboard.engine.access — Role Gates & Bans
===========================================

Resolves what an :class:`Actor` may do.

- **Admin** comes only from ``config.yaml`` (user ids or role ids) and is
  never stored.  Admins are exempt from bans.
- **Moderator** = a bound moderator role, or admin.
- **Creator / applicant** gates are open by default: with no creator roles
  bound everyone may post; with no applicant roles bound everyone may apply.
- **Bans** exist at guild scope and at category scope.  Lifting one scope
  leaves the other in force.

Role checks are pure functions of the snapshot.  Ban checks read the store
and are synchronous (call via ``run_db``).
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.orm import Session

from gigboard.database.models import CategoryBan, GuildBan, RoleType

if TYPE_CHECKING:
    import discord
    from sqlalchemy import Engine

    from gigboard.config import GigBoardConfig
    from gigboard.engine.snapshot import ConfigSnapshot

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Actor:
    """The member behind an interaction, reduced to what gates need."""

    user_id: int
    role_ids: frozenset[int] = frozenset()
    guild_id: int | None = None

    @classmethod
    def from_interaction(cls, interaction: discord.Interaction) -> Actor:
        roles = getattr(interaction.user, "roles", None) or []
        return cls(
            user_id=interaction.user.id,
            role_ids=frozenset(r.id for r in roles),
            guild_id=interaction.guild_id,
        )


class AccessControl:
    """Answers permission questions against config + snapshot + ban tables."""

    def __init__(
        self,
        cfg: GigBoardConfig,
        snapshot: ConfigSnapshot,
        engine: Engine,
    ) -> None:
        self._cfg = cfg
        self._snapshot = snapshot
        self._engine = engine

    # -------------------------------------------------------------------
    # Roles
    # -------------------------------------------------------------------
    def _has_role(self, actor: Actor, role_type: RoleType) -> bool:
        return bool(actor.role_ids & self._snapshot.role_ids(role_type))

    def is_admin(self, actor: Actor) -> bool:
        return (
            actor.user_id in self._cfg.admin_user_ids
            or bool(actor.role_ids & self._cfg.admin_role_ids)
        )

    def is_moderator(self, actor: Actor) -> bool:
        """Moderator or admin."""
        return self.is_admin(actor) or self._has_role(actor, RoleType.MODERATOR)

    def applicant_roles_configured(self) -> bool:
        return bool(
            self._snapshot.role_ids(RoleType.APPLICANT)
            or self._snapshot.role_ids(RoleType.DIRECT_APPLICANT)
        )

    def is_creator_eligible(self, actor: Actor) -> bool:
        """Holds a creator role, or no creator roles are bound at all."""
        if not self._snapshot.role_ids(RoleType.CREATOR):
            return True
        return self._has_role(actor, RoleType.CREATOR)

    def is_applicant_eligible(self, actor: Actor) -> bool:
        if not self.applicant_roles_configured():
            return True
        return self._has_role(actor, RoleType.DIRECT_APPLICANT) or self._has_role(
            actor, RoleType.APPLICANT
        )

    def can_create_gig(self, actor: Actor) -> bool:
        return self.is_moderator(actor) or self.is_creator_eligible(actor)

    def can_apply(self, actor: Actor) -> bool:
        return self.is_admin(actor) or self.is_applicant_eligible(actor)

    def applicant_type(self, actor: Actor) -> str | None:
        """``"direct"``, ``"normal"`` or ``None`` (may not apply).

        Direct applicants are shown the poster's name so they can reach
        out themselves.
        """
        if self._has_role(actor, RoleType.DIRECT_APPLICANT):
            return "direct"
        if self._has_role(actor, RoleType.APPLICANT):
            return "normal"
        if self.is_admin(actor) or not self.applicant_roles_configured():
            return "normal"
        return None

    def can_manage_gig(self, actor: Actor, author_id: int) -> bool:
        return actor.user_id == author_id or self.is_moderator(actor)

    # -------------------------------------------------------------------
    # Bans (synchronous — call via run_db)
    # -------------------------------------------------------------------
    def is_guild_banned(self, guild_id: int | None, user_id: int) -> bool:
        if not guild_id:
            return False
        with Session(self._engine) as session:
            return session.get(GuildBan, (guild_id, user_id)) is not None

    def is_category_banned(self, category_id: str | None, user_id: int) -> bool:
        if not category_id:
            return False
        with Session(self._engine) as session:
            return session.get(CategoryBan, (category_id, user_id)) is not None

    def is_banned(self, actor: Actor, category_id: str | None = None) -> bool:
        """Guild ban in the actor's guild, or category ban for *category_id*."""
        if self.is_admin(actor):
            return False
        if self.is_guild_banned(actor.guild_id, actor.user_id):
            return True
        return self.is_category_banned(category_id, actor.user_id)

    def banned_category_ids(self, user_id: int, category_ids: Iterable[str]) -> set[str]:
        ids = list(category_ids)
        if not ids:
            return set()
        with Session(self._engine) as session:
            rows = session.scalars(
                select(CategoryBan.category_id).where(
                    CategoryBan.user_id == user_id,
                    CategoryBan.category_id.in_(ids),
                )
            ).all()
        return set(rows)
