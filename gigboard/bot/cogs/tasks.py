"""
gigboard.bot.cogs.tasks — Periodic Background Tasks
====================================================

Scheduled jobs that run on ``discord.ext.tasks`` loops:

- **Cleanup sweep** — once as soon as the bot is ready, then every 24
  hours: expired gigs, stale instances, cleanup log pruning, config
  backups (see :mod:`gigboard.services.cleanup_service`).
- **Debug log mirror** — every 5 seconds, drains WARNING+ log lines queued
  by :class:`~gigboard.services.diagnostics.DebugChannelHandler` into the
  debug channels.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from discord.ext import commands, tasks

from gigboard.database.engine import run_db
from gigboard.services.cleanup_service import run_cleanup

if TYPE_CHECKING:
    from gigboard.bot.core import GigBoardBot

logger = logging.getLogger(__name__)


class PeriodicTasks(commands.Cog):
    """Cog for scheduled background maintenance tasks."""

    def __init__(self, bot: GigBoardBot) -> None:
        self.bot = bot

    async def cog_load(self) -> None:
        self.cleanup_loop.start()
        self.debug_mirror_loop.start()

    async def cog_unload(self) -> None:
        self.cleanup_loop.cancel()
        self.debug_mirror_loop.cancel()

    # -------------------------------------------------------------------
    # Cleanup sweep — startup, then every 24 hours
    # -------------------------------------------------------------------
    @tasks.loop(hours=24)
    async def cleanup_loop(self):
        try:
            await run_db(self.bot.snapshot.refresh)
            summary = await run_cleanup(
                self.bot.engine,
                self.bot.cfg,
                self.bot.replication,
                self.bot.messenger,
                self.bot.reporter,
            )
            logger.info(
                "Cleanup task complete: %d gigs, %d instances deleted",
                summary["deleted_gigs"], summary["deleted_instances"],
            )
        except Exception as exc:
            logger.exception("Cleanup task failed", extra={"task": "cleanup"})
            await self.bot.reporter.report("cleanup sweep", exc)

    @cleanup_loop.before_loop
    async def _wait_cleanup(self):
        await self.bot.wait_until_ready()

    # -------------------------------------------------------------------
    # Debug log mirror — every 5 seconds
    # -------------------------------------------------------------------
    @tasks.loop(seconds=5)
    async def debug_mirror_loop(self):
        handler = self.bot.debug_handler
        if handler is None:
            return
        try:
            await handler.drain(self.bot.messenger, self.bot.snapshot)
        except Exception:
            logger.exception("Debug mirror drain failed", extra={"task": "debug_mirror"})

    @debug_mirror_loop.before_loop
    async def _wait_debug_mirror(self):
        await self.bot.wait_until_ready()


async def setup(bot: GigBoardBot) -> None:
    await bot.add_cog(PeriodicTasks(bot))
