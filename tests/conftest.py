"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import itertools

import pytest
from sqlalchemy import Engine, create_engine

# ---------------------------------------------------------------------------
# Make JSONB columns work in SQLite for testing.
# SQLite doesn't support JSONB natively, but SQLAlchemy's JSON type works.
# We register a custom type compiler so SQLite renders JSONB as TEXT.
# ---------------------------------------------------------------------------
from sqlalchemy.dialects.postgresql import JSONB as PG_JSONB
from sqlalchemy.orm import Session

from gigboard.config import GigBoardConfig
from gigboard.database.models import Base
from gigboard.errors import CollaboratorError
from gigboard.services.messaging import RecentMessage, SentMessage

_jsonb_sqlite_registered = False


def _register_jsonb_sqlite_compat():
    """Register SQLite compilation for PG JSONB type (idempotent).

    Also maps BigInteger → INTEGER so autoincrement works on SQLite.
    """
    global _jsonb_sqlite_registered
    if _jsonb_sqlite_registered:
        return
    from sqlalchemy import BigInteger
    from sqlalchemy.ext.compiler import compiles

    @compiles(PG_JSONB, "sqlite")
    def _compile_jsonb_as_text(type_, compiler, **kw):
        return "TEXT"

    @compiles(BigInteger, "sqlite")
    def _compile_bigint_as_integer(type_, compiler, **kw):
        return "INTEGER"

    _jsonb_sqlite_registered = True


_register_jsonb_sqlite_compat()


@pytest.fixture
def db_engine() -> Engine:
    """Create an in-memory SQLite engine with all GigBoard tables.

    JSONB columns are transparently mapped to TEXT for SQLite compatibility.
    Uses StaticPool so all threads share the same in-memory database
    (required by ``asyncio.to_thread`` used by ``run_db``).
    """
    from sqlalchemy.pool import StaticPool

    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def foreign_keys(db_engine: Engine) -> Engine:
    """Enforce foreign keys on the shared SQLite connection, as PostgreSQL does."""
    with db_engine.connect() as conn:
        conn.exec_driver_sql("PRAGMA foreign_keys=ON")
    return db_engine


@pytest.fixture
def db_session(db_engine: Engine):
    """Provide a transactional session that rolls back after each test."""
    with Session(db_engine) as session:
        yield session
        session.rollback()


@pytest.fixture
def cfg() -> GigBoardConfig:
    return GigBoardConfig(
        community_name="Test Community",
        guild_id=100,
        admin_user_ids=frozenset({1}),
        admin_role_ids=frozenset({900}),
        support_url="https://example.com/support",
    )


# ---------------------------------------------------------------------------
# Fake Discord
# ---------------------------------------------------------------------------
class FakeMessenger:
    """In-memory stand-in for :class:`~gigboard.services.messaging.DiscordMessenger`.

    Channels in ``failing_channels`` reject sends, deletes and history;
    users in ``failing_users`` have DMs closed.
    """

    def __init__(self, guild_id: int = 100) -> None:
        self.guild_id = guild_id
        self._ids = itertools.count(10_000)
        self.channels: dict[int, list[tuple[int, object]]] = {}
        self.sent: list[tuple[int, object]] = []
        self.edited: list[tuple[int, int, object]] = []
        self.deleted: list[tuple[int, int]] = []
        self.dms: list[tuple[int, object]] = []
        self.failing_channels: set[int] = set()
        self.failing_users: set[int] = set()
        self.access: dict[int, str] = {}

    def _check(self, channel_id: int) -> None:
        if channel_id in self.failing_channels:
            raise CollaboratorError(f"channel {channel_id} unavailable")

    def add_foreign_message(self, channel_id: int, title: str | None = None) -> int:
        """Someone else talking in a channel."""
        message_id = next(self._ids)
        self.channels.setdefault(channel_id, []).append((message_id, ("other", title)))
        return message_id

    async def send(self, channel_id, message):
        self._check(channel_id)
        message_id = next(self._ids)
        self.channels.setdefault(channel_id, []).append((message_id, message))
        self.sent.append((channel_id, message))
        return SentMessage(message_id=message_id, channel_id=channel_id, guild_id=self.guild_id)

    async def edit(self, channel_id, message_id, message):
        self._check(channel_id)
        self.edited.append((channel_id, message_id, message))

    async def delete(self, channel_id, message_id):
        self._check(channel_id)
        self.deleted.append((channel_id, message_id))
        history = self.channels.get(channel_id, [])
        self.channels[channel_id] = [m for m in history if m[0] != message_id]

    async def fetch_recent(self, channel_id, limit):
        self._check(channel_id)
        recent = []
        for message_id, message in reversed(self.channels.get(channel_id, [])[-limit:]):
            if isinstance(message, tuple):
                recent.append(RecentMessage(message_id, from_self=False, title=message[1]))
            else:
                title = message.embed.title if getattr(message, "embed", None) else None
                recent.append(RecentMessage(message_id, from_self=True, title=title))
        return recent

    async def bulk_delete(self, channel_id, message_ids):
        for message_id in message_ids:
            await self.delete(channel_id, message_id)

    async def notify_user(self, user_id, message):
        if user_id in self.failing_users:
            raise CollaboratorError(f"DM to user {user_id} failed")
        self.dms.append((user_id, message))

    async def channel_access(self, channel_id):
        return self.access.get(channel_id, "ok")

    def display_name(self, user_id):
        return f"user{user_id}"

    # -- assertions helpers ------------------------------------------------
    def messages_in(self, channel_id: int) -> list:
        return [m for _, m in self.channels.get(channel_id, [])]

    def sent_to(self, channel_id: int) -> list:
        return [m for cid, m in self.sent if cid == channel_id]


@pytest.fixture
def messenger() -> FakeMessenger:
    return FakeMessenger()


@pytest.fixture
def board(db_engine, cfg, messenger):
    """Every gig component wired together the way the bot wires them.

    The snapshot TTL is zero so each workflow call sees the latest
    configuration rows.
    """
    from types import SimpleNamespace

    from gigboard.engine.access import AccessControl
    from gigboard.engine.rate_limit import RateLimiter
    from gigboard.engine.snapshot import ConfigSnapshot
    from gigboard.services.diagnostics import ErrorReporter
    from gigboard.services.gig_workflow import GigWorkflow
    from gigboard.services.replication import PromptDebouncer, ReplicationEngine

    snapshot = ConfigSnapshot(db_engine, ttl_seconds=0)
    access = AccessControl(cfg, snapshot, db_engine)
    rate_limiter = RateLimiter(db_engine, snapshot, access, cfg.default_cooldown_days)
    reporter = ErrorReporter(messenger, snapshot)
    replication = ReplicationEngine(
        db_engine, snapshot, messenger, reporter, cfg.support_url,
        debouncer=PromptDebouncer(interval=5.0),
    )
    workflow = GigWorkflow(
        db_engine, cfg, snapshot, access, rate_limiter, replication, messenger, reporter,
    )
    return SimpleNamespace(
        engine=db_engine,
        cfg=cfg,
        messenger=messenger,
        snapshot=snapshot,
        access=access,
        rate_limiter=rate_limiter,
        reporter=reporter,
        replication=replication,
        workflow=workflow,
    )
