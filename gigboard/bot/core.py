"""
gigboard.bot.core — Bot Instance & Cog Loader
==============================================

Defines :class:`GigBoardBot`, a ``commands.Bot`` subclass that builds the
gig components once and shares them with every cog:

- ``bot.snapshot`` — TTL configuration snapshot
- ``bot.access`` / ``bot.rate_limiter`` — gates
- ``bot.messenger`` / ``bot.reporter`` — Discord delivery and error reports
- ``bot.replication`` — fan-out, retraction, prompt upkeep
- ``bot.workflow`` — every member and moderator action

On ready it forces a snapshot load, syncs the slash-command tree
(guild-scoped when ``DEV_GUILD_ID`` is set, global otherwise) and puts a
"Post a Gig" prompt in every destination channel.  The first cleanup sweep
runs from the tasks cog as soon as the bot is ready.
"""

from __future__ import annotations

import logging
import os

import discord
from discord.ext import commands
from sqlalchemy import Engine

from gigboard.config import GigBoardConfig
from gigboard.database.engine import run_db
from gigboard.engine.access import AccessControl
from gigboard.engine.rate_limit import RateLimiter
from gigboard.engine.snapshot import ConfigSnapshot
from gigboard.services.diagnostics import DebugChannelHandler, ErrorReporter
from gigboard.services.gig_workflow import GigWorkflow
from gigboard.services.messaging import DiscordMessenger
from gigboard.services.replication import PromptDebouncer, ReplicationEngine

logger = logging.getLogger(__name__)

# Cog modules to load on startup.
EXTENSIONS: list[str] = [
    "gigboard.bot.cogs.gigs",
    "gigboard.bot.cogs.admin",
    "gigboard.bot.cogs.tasks",
]


class GigBoardBot(commands.Bot):
    """Custom Bot subclass that carries project-wide state.

    Parameters
    ----------
    cfg:
        The parsed :class:`GigBoardConfig` from ``config.yaml``.
    engine:
        A SQLAlchemy :class:`Engine` connected to the gig database.
    debug_handler:
        Log handler whose queued lines the tasks cog mirrors into the debug
        channels, or ``None`` to disable mirroring.
    """

    def __init__(
        self,
        cfg: GigBoardConfig,
        engine: Engine,
        debug_handler: DebugChannelHandler | None = None,
    ) -> None:
        # Slash commands and components only; no privileged intents needed
        intents = discord.Intents.default()

        super().__init__(
            command_prefix=commands.when_mentioned,
            intents=intents,
            description=f"{cfg.community_name} gig board",
        )

        self.cfg = cfg
        self.engine = engine
        self.debug_handler = debug_handler

        self.snapshot = ConfigSnapshot(engine, ttl_seconds=cfg.config_ttl_seconds)
        self.access = AccessControl(cfg, self.snapshot, engine)
        self.rate_limiter = RateLimiter(engine, self.snapshot, self.access, cfg.default_cooldown_days)
        self.messenger = DiscordMessenger(self)
        self.reporter = ErrorReporter(self.messenger, self.snapshot)
        self.replication = ReplicationEngine(
            engine,
            self.snapshot,
            self.messenger,
            self.reporter,
            cfg.support_url,
            debouncer=PromptDebouncer(interval=cfg.prompt_debounce_seconds),
        )
        self.workflow = GigWorkflow(
            engine,
            cfg,
            self.snapshot,
            self.access,
            self.rate_limiter,
            self.replication,
            self.messenger,
            self.reporter,
        )

    # -----------------------------------------------------------------------
    # Lifecycle hooks
    # -----------------------------------------------------------------------
    async def setup_hook(self) -> None:
        """Load every cog extension before connecting.

        A cog that fails to load is logged and skipped.
        """
        for ext in EXTENSIONS:
            try:
                await self.load_extension(ext)
                logger.info("Loaded extension: %s", ext)
            except Exception as exc:
                logger.error("Failed to load extension %s: %s", ext, exc)

    async def on_ready(self) -> None:
        """Fired when the bot has connected and the cache is populated."""
        assert self.user is not None  # guaranteed after on_ready
        logger.info("Logged in as %s (ID: %s)", self.user.name, self.user.id)

        await run_db(self.snapshot.refresh, True)

        # --- Slash-command sync ---------------------------------------------
        dev_guild_id = os.getenv("DEV_GUILD_ID")
        if dev_guild_id:
            guild = discord.Object(id=int(dev_guild_id))
            self.tree.copy_global_to(guild=guild)
            synced = await self.tree.sync(guild=guild)
            logger.info("Synced %d commands to dev guild %s", len(synced), dev_guild_id)
        else:
            synced = await self.tree.sync()
            logger.info("Synced %d commands globally", len(synced))

        # --- "Post a Gig" prompts -------------------------------------------
        results = await self.replication.ensure_all_prompts()
        logger.info("Prompt upkeep on ready: %d destination channels checked", len(results))

    async def close(self) -> None:
        logger.info("Bot shutting down…")
        await super().close()
