"""
gigboard.database.models — SQLAlchemy 2.0 Data Models
======================================================

Configuration tables (edited by admins from Discord):
- categories                — Named routing groups with an approval flag
- category_targets          — Destination channels of a category
- category_report_channels  — Moderation / report channels of a category
- debug_channels            — Sinks for error reports and the log mirror
- channel_policies          — Per-channel expiry / cooldown overrides
- role_bindings             — Role ids per role type
- guild_bans / category_bans — Banished members
- admin_log                 — Append-only audit trail

Tracking tables (written by the gig workflow):
- gigs                      — One logical posting
- gig_payloads              — Immutable sanitized content of a gig
- gig_instances             — One replicated message per destination
- applications / reports    — One per (gig, member)
- rate_limits               — Last successful post per (member, channel)
- cleanup_log               — One row per cleanup sweep
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from gigboard.constants import utcnow


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all GigBoard ORM models."""


def _uuid() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class RoleType(enum.StrEnum):
    """Which gate a bound role opens."""
    MODERATOR = "moderator"
    CREATOR = "creator"
    APPLICANT = "applicant"
    DIRECT_APPLICANT = "direct_applicant"


class GigStatus(enum.StrEnum):
    """Persisted lifecycle status.  DELETED is never stored: the row is gone."""
    PENDING = "pending"
    APPROVED = "approved"
    DELETED = "deleted"


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    return [member.value for member in enum_cls]


# ---------------------------------------------------------------------------
# Category — routing group
# ---------------------------------------------------------------------------
class Category(Base):
    __tablename__ = "categories"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    approve_mode: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    targets: Mapped[list[CategoryTarget]] = relationship(
        back_populates="category", cascade="all, delete-orphan"
    )
    report_channels: Mapped[list[CategoryReportChannel]] = relationship(
        back_populates="category", cascade="all, delete-orphan"
    )
    bans: Mapped[list[CategoryBan]] = relationship(
        back_populates="category", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Category id={self.id} name={self.name!r} approve={self.approve_mode}>"


class CategoryTarget(Base):
    __tablename__ = "category_targets"

    category_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("categories.id", ondelete="CASCADE"), primary_key=True
    )
    channel_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)

    category: Mapped[Category] = relationship(back_populates="targets")

    __table_args__ = (
        Index("ix_category_targets_channel", "channel_id"),
    )


class CategoryReportChannel(Base):
    __tablename__ = "category_report_channels"

    category_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("categories.id", ondelete="CASCADE"), primary_key=True
    )
    channel_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)

    category: Mapped[Category] = relationship(back_populates="report_channels")


class DebugChannel(Base):
    __tablename__ = "debug_channels"

    channel_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)


class ChannelPolicy(Base):
    """Per-channel overrides.  ``None`` means "use the config.yaml default"."""
    __tablename__ = "channel_policies"

    channel_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    expiry_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    cooldown_days: Mapped[int | None] = mapped_column(Integer, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<ChannelPolicy channel={self.channel_id} "
            f"expiry={self.expiry_days} cooldown={self.cooldown_days}>"
        )


class RoleBinding(Base):
    __tablename__ = "role_bindings"

    role_type: Mapped[RoleType] = mapped_column(
        Enum(RoleType, native_enum=False, length=32, values_callable=_enum_values),
        primary_key=True,
    )
    role_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)


# ---------------------------------------------------------------------------
# Bans
# ---------------------------------------------------------------------------
class GuildBan(Base):
    __tablename__ = "guild_bans"

    guild_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    user_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    banned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    banned_by: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<GuildBan guild={self.guild_id} user={self.user_id}>"


class CategoryBan(Base):
    __tablename__ = "category_bans"

    category_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("categories.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    banned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    banned_by: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    category: Mapped[Category] = relationship(back_populates="bans")

    def __repr__(self) -> str:
        return f"<CategoryBan category={self.category_id} user={self.user_id}>"


# ---------------------------------------------------------------------------
# Gig — one logical posting
# ---------------------------------------------------------------------------
class Gig(Base):
    __tablename__ = "gigs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    author_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    # Not a foreign key: deleting a category leaves its live gigs to expire
    category_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    origin_channel_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[GigStatus] = mapped_column(
        Enum(GigStatus, native_enum=False, length=16, values_callable=_enum_values),
        nullable=False,
        default=GigStatus.APPROVED,
    )

    payload: Mapped[GigPayload | None] = relationship(
        back_populates="gig", cascade="all, delete-orphan", uselist=False
    )
    instances: Mapped[list[GigInstance]] = relationship(
        back_populates="gig", cascade="all, delete-orphan"
    )
    applications: Mapped[list[Application]] = relationship(cascade="all, delete-orphan")
    reports: Mapped[list[Report]] = relationship(cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_gigs_author", "author_id"),
        Index("ix_gigs_status_expiry", "status", "expires_at"),
    )

    def __repr__(self) -> str:
        return f"<Gig id={self.id} author={self.author_id} status={self.status}>"


class GigPayload(Base):
    """Sanitized form content.  Written once at submission, never updated."""
    __tablename__ = "gig_payloads"

    gig_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("gigs.id", ondelete="CASCADE"), primary_key=True
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    pay: Mapped[str] = mapped_column(String(200), nullable=False)
    timeline: Mapped[str | None] = mapped_column(String(200), nullable=True)

    gig: Mapped[Gig] = relationship(back_populates="payload")


class GigInstance(Base):
    """One replicated message.  Keyed by the Discord message id."""
    __tablename__ = "gig_instances"

    message_id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    gig_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("gigs.id", ondelete="CASCADE"), nullable=False
    )
    guild_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    channel_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    gig: Mapped[Gig] = relationship(back_populates="instances")

    __table_args__ = (
        Index("ix_gig_instances_gig", "gig_id"),
        Index("ix_gig_instances_created", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<GigInstance msg={self.message_id} gig={self.gig_id} channel={self.channel_id}>"


class Application(Base):
    __tablename__ = "applications"

    gig_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("gigs.id", ondelete="CASCADE"), primary_key=True
    )
    applicant_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    applied_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class Report(Base):
    __tablename__ = "reports"

    gig_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("gigs.id", ondelete="CASCADE"), primary_key=True
    )
    reporter_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    reported_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class RateLimitEntry(Base):
    """Last successful submission per (member, origin channel).  Overwritten."""
    __tablename__ = "rate_limits"

    user_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    channel_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    last_post_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class CleanupLog(Base):
    __tablename__ = "cleanup_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    run_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    deleted_gigs: Mapped[int] = mapped_column(Integer, default=0)
    deleted_instances: Mapped[int] = mapped_column(Integer, default=0)

    __table_args__ = (
        Index("ix_cleanup_log_run_at", "run_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<CleanupLog run_at={self.run_at} gigs={self.deleted_gigs} "
            f"instances={self.deleted_instances}>"
        )


# ---------------------------------------------------------------------------
# AdminLog — append-only audit trail of configuration changes
# ---------------------------------------------------------------------------
class AdminLog(Base):
    __tablename__ = "admin_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    actor_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    action_type: Mapped[str] = mapped_column(String(50), nullable=False)
    target_table: Mapped[str] = mapped_column(String(50), nullable=False)
    target_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    before_snapshot: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    after_snapshot: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_admin_log_actor_time", "actor_id", "timestamp"),
        Index("ix_admin_log_target", "target_table", "target_id", "timestamp"),
    )

    def __repr__(self) -> str:
        return f"<AdminLog id={self.id} actor={self.actor_id} action={self.action_type}>"
