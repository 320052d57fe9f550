"""
gigboard.bot.cogs.admin — Admin Slash Commands
===============================================

Configuration lives in the database and is managed from Discord:

- ``/category`` — create, delete, list, show, bind target / report
  channels, toggle approval mode
- ``/roles`` — bind moderator / creator / applicant / direct-applicant roles
- ``/channel`` — per-channel expiry and cooldown overrides
- ``/debug`` — debug channels that receive error reports and log lines
- ``/unbanish`` — lift server and/or category bans
- ``/health`` — reachability report posted to the report channels
- ``/cleanup`` — run the expiry sweep now

Every command requires a static admin from ``config.yaml``.  Mutations go
through :mod:`gigboard.services.admin_service` (audited) and force a
snapshot refresh before replying.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands

from gigboard.bot.views import send_outcome
from gigboard.constants import GENERIC_ERROR_MESSAGE, parse_channel_list, parse_user_id
from gigboard.database.engine import run_db
from gigboard.database.models import RoleType
from gigboard.engine.access import Actor
from gigboard.errors import GigError
from gigboard.services import admin_service
from gigboard.services.cleanup_service import run_cleanup
from gigboard.services.diagnostics import run_health_check

if TYPE_CHECKING:
    from gigboard.bot.core import GigBoardBot

logger = logging.getLogger(__name__)

ROLE_LABELS: dict[RoleType, str] = {
    RoleType.MODERATOR: "moderator",
    RoleType.CREATOR: "creator",
    RoleType.APPLICANT: "applicant",
    RoleType.DIRECT_APPLICANT: "direct applicant",
}

ROLE_CHOICES = [
    app_commands.Choice(name=label.title(), value=str(role_type))
    for role_type, label in ROLE_LABELS.items()
]


def is_admin():
    """Check that the user is a static admin (user id or role from config.yaml)."""
    async def predicate(interaction: discord.Interaction) -> bool:
        bot: GigBoardBot = interaction.client  # type: ignore[assignment]
        return bot.access.is_admin(Actor.from_interaction(interaction))
    return app_commands.check(predicate)


async def category_autocomplete(
    interaction: discord.Interaction, current: str,
) -> list[app_commands.Choice[str]]:
    bot: GigBoardBot = interaction.client  # type: ignore[assignment]
    await run_db(bot.snapshot.refresh)
    return [
        app_commands.Choice(name=name, value=name)
        for name in bot.snapshot.category_names()
        if current.lower() in name.lower()
    ][:25]  # Discord caps at 25


def _mentions(channel_ids: list[int]) -> str:
    return ", ".join(f"<#{cid}>" for cid in channel_ids) if channel_ids else "none"


def _role_mentions(role_ids: frozenset[int]) -> str:
    return ", ".join(f"<@&{rid}>" for rid in sorted(role_ids)) if role_ids else "none"


class Admin(commands.Cog, name="Admin"):
    """GigBoard configuration commands."""

    category = app_commands.Group(name="category", description="Manage gig categories.")
    roles = app_commands.Group(name="roles", description="Manage gig role bindings.")
    channel = app_commands.Group(name="channel", description="Per-channel gig policies.")
    debug = app_commands.Group(name="debug", description="Manage debug channels.")

    def __init__(self, bot: GigBoardBot) -> None:
        self.bot = bot

    async def _refresh(self) -> None:
        await run_db(self.bot.snapshot.refresh, True)

    # -------------------------------------------------------------------
    # /category
    # -------------------------------------------------------------------
    @category.command(name="create", description="Create a category.")
    @is_admin()
    async def category_create(self, interaction: discord.Interaction, name: str) -> None:
        category = await run_db(
            admin_service.create_category, self.bot.engine, name, actor_id=interaction.user.id
        )
        await self._refresh()
        await send_outcome(interaction, f"Created category **{category.name}**.")

    @category.command(name="delete", description="Delete a category and its channel bindings.")
    @app_commands.autocomplete(name=category_autocomplete)
    @is_admin()
    async def category_delete(self, interaction: discord.Interaction, name: str) -> None:
        await run_db(admin_service.delete_category, self.bot.engine, name, actor_id=interaction.user.id)
        await self._refresh()
        await send_outcome(interaction, f"Deleted category **{name}**.")

    @category.command(name="list", description="List categories.")
    @is_admin()
    async def category_list(self, interaction: discord.Interaction) -> None:
        await self._refresh()
        names = self.bot.snapshot.category_names()
        body = "\n".join(f"- {n}" for n in names) if names else "No categories configured."
        await send_outcome(interaction, f"**Categories:**\n{body}")

    @category.command(name="show", description="Show a category's channels and approval mode.")
    @app_commands.autocomplete(name=category_autocomplete)
    @is_admin()
    async def category_show(self, interaction: discord.Interaction, name: str) -> None:
        await self._refresh()
        snapshot = self.bot.snapshot
        info = snapshot.category_by_name(name)
        if info is None:
            await send_outcome(interaction, "Category not found.")
            return
        await send_outcome(
            interaction,
            f"**{info.name}**\n"
            f"Approval mode: {'enabled' if info.approve_mode else 'disabled'}\n"
            f"Targets: {_mentions(snapshot.targets_for_category(info.id))}\n"
            f"Report channels: {_mentions(snapshot.reports_for_category(info.id))}",
        )

    async def _change_channels(
        self,
        interaction: discord.Interaction,
        name: str,
        kind: str,
        channels: str,
        add: bool,
    ) -> None:
        channel_ids = parse_channel_list(channels)
        if not channel_ids:
            await send_outcome(interaction, "No valid channels provided.")
            return
        label = "target" if kind == "target" else "report"
        if add:
            await run_db(
                admin_service.add_category_channels, self.bot.engine, name, kind, channel_ids,
                actor_id=interaction.user.id,
            )
            message = f"Added {label} channels to **{name}**."
        else:
            remaining = await run_db(
                admin_service.remove_category_channels, self.bot.engine, name, kind, channel_ids,
                actor_id=interaction.user.id,
            )
            current = "targets" if kind == "target" else "report channels"
            message = f"Removed {label} channels from **{name}**.\nCurrent {current}: {_mentions(remaining)}"
        await self._refresh()
        await send_outcome(interaction, message)
        if kind == "target" and add:
            await self.bot.replication.ensure_all_prompts()

    @category.command(name="add-target", description="Post this category's gigs in these channels.")
    @app_commands.describe(channels="Channel mentions or ids, separated by spaces or commas")
    @app_commands.autocomplete(name=category_autocomplete)
    @is_admin()
    async def category_add_target(self, interaction: discord.Interaction, name: str, channels: str) -> None:
        await self._change_channels(interaction, name, "target", channels, add=True)

    @category.command(name="remove-target", description="Stop posting this category's gigs in these channels.")
    @app_commands.autocomplete(name=category_autocomplete)
    @is_admin()
    async def category_remove_target(self, interaction: discord.Interaction, name: str, channels: str) -> None:
        await self._change_channels(interaction, name, "target", channels, add=False)

    @category.command(name="add-report", description="Send this category's reports and approvals here.")
    @app_commands.autocomplete(name=category_autocomplete)
    @is_admin()
    async def category_add_report(self, interaction: discord.Interaction, name: str, channels: str) -> None:
        await self._change_channels(interaction, name, "report", channels, add=True)

    @category.command(name="remove-report", description="Stop sending this category's reports here.")
    @app_commands.autocomplete(name=category_autocomplete)
    @is_admin()
    async def category_remove_report(self, interaction: discord.Interaction, name: str, channels: str) -> None:
        await self._change_channels(interaction, name, "report", channels, add=False)

    @category.command(name="set-approve", description="Require moderator approval before posting.")
    @app_commands.autocomplete(name=category_autocomplete)
    @is_admin()
    async def category_set_approve(self, interaction: discord.Interaction, name: str, enabled: bool) -> None:
        await run_db(
            admin_service.set_approve_mode, self.bot.engine, name, enabled, actor_id=interaction.user.id
        )
        await self._refresh()
        await send_outcome(
            interaction, f"Approval mode for **{name}** is now {'enabled' if enabled else 'disabled'}."
        )

    # -------------------------------------------------------------------
    # /roles
    # -------------------------------------------------------------------
    @roles.command(name="add", description="Bind a role to a gig permission.")
    @app_commands.choices(role_type=ROLE_CHOICES)
    @is_admin()
    async def roles_add(self, interaction: discord.Interaction, role_type: str, role: discord.Role) -> None:
        rtype = RoleType(role_type)
        await run_db(
            admin_service.add_role_binding, self.bot.engine, rtype, role.id, actor_id=interaction.user.id
        )
        await self._refresh()
        await send_outcome(interaction, f"Added <@&{role.id}> to {ROLE_LABELS[rtype]} roles.")

    @roles.command(name="remove", description="Unbind a role from a gig permission.")
    @app_commands.choices(role_type=ROLE_CHOICES)
    @is_admin()
    async def roles_remove(self, interaction: discord.Interaction, role_type: str, role: discord.Role) -> None:
        rtype = RoleType(role_type)
        await run_db(
            admin_service.remove_role_binding, self.bot.engine, rtype, role.id, actor_id=interaction.user.id
        )
        await self._refresh()
        await send_outcome(interaction, f"Removed <@&{role.id}> from {ROLE_LABELS[rtype]} roles.")

    @roles.command(name="list", description="Show admin and gig role bindings.")
    @is_admin()
    async def roles_list(self, interaction: discord.Interaction) -> None:
        await self._refresh()
        snapshot = self.bot.snapshot
        await send_outcome(
            interaction,
            f"**Admins:** {_role_mentions(self.bot.cfg.admin_role_ids)}\n"
            f"**Moderators:** {_role_mentions(snapshot.role_ids(RoleType.MODERATOR))}\n"
            f"**Creators:** {_role_mentions(snapshot.role_ids(RoleType.CREATOR))}\n"
            f"**Applicants:** {_role_mentions(snapshot.role_ids(RoleType.APPLICANT))}\n"
            f"**Direct Applicants:** {_role_mentions(snapshot.role_ids(RoleType.DIRECT_APPLICANT))}",
        )

    # -------------------------------------------------------------------
    # /channel
    # -------------------------------------------------------------------
    async def _set_policy(
        self,
        interaction: discord.Interaction,
        channel: discord.abc.GuildChannel | None,
        message: str,
        **fields: int | None,
    ) -> None:
        channel_id = channel.id if channel is not None else interaction.channel_id
        await run_db(
            admin_service.set_channel_policy,
            self.bot.engine,
            channel_id,
            actor_id=interaction.user.id,
            **fields,
        )
        await self._refresh()
        await send_outcome(interaction, message.format(channel=f"<#{channel_id}>"))

    @channel.command(name="set-expiry", description="Days before gigs posted from a channel expire.")
    @is_admin()
    async def channel_set_expiry(
        self,
        interaction: discord.Interaction,
        days: app_commands.Range[int, 1, 365],
        channel: discord.TextChannel | None = None,
    ) -> None:
        await self._set_policy(
            interaction, channel, f"Set expiry for {{channel}} to {days} days.", expiry_days=days
        )

    @channel.command(name="clear-expiry", description="Use the default expiry for a channel.")
    @is_admin()
    async def channel_clear_expiry(
        self, interaction: discord.Interaction, channel: discord.TextChannel | None = None
    ) -> None:
        await self._set_policy(
            interaction, channel, "Cleared expiry override for {channel}.", expiry_days=None
        )

    @channel.command(name="set-cooldown", description="Days between gigs per member (0 disables).")
    @is_admin()
    async def channel_set_cooldown(
        self,
        interaction: discord.Interaction,
        days: app_commands.Range[int, 0, 365],
        channel: discord.TextChannel | None = None,
    ) -> None:
        await self._set_policy(
            interaction, channel, f"Set cooldown for {{channel}} to {days} days.", cooldown_days=days
        )

    @channel.command(name="clear-cooldown", description="Use the default cooldown for a channel.")
    @is_admin()
    async def channel_clear_cooldown(
        self, interaction: discord.Interaction, channel: discord.TextChannel | None = None
    ) -> None:
        await self._set_policy(
            interaction, channel, "Cleared cooldown override for {channel}.", cooldown_days=None
        )

    # -------------------------------------------------------------------
    # /debug
    # -------------------------------------------------------------------
    @debug.command(name="add", description="Send error reports to these channels.")
    @is_admin()
    async def debug_add(self, interaction: discord.Interaction, channels: str) -> None:
        channel_ids = parse_channel_list(channels)
        if not channel_ids:
            await send_outcome(interaction, "No valid channels provided.")
            return
        await run_db(
            admin_service.add_debug_channels, self.bot.engine, channel_ids, actor_id=interaction.user.id
        )
        await self._refresh()
        await send_outcome(interaction, "Added debug channels.")

    @debug.command(name="remove", description="Stop sending error reports to these channels.")
    @is_admin()
    async def debug_remove(self, interaction: discord.Interaction, channels: str) -> None:
        channel_ids = parse_channel_list(channels)
        if not channel_ids:
            await send_outcome(interaction, "No valid channels provided.")
            return
        remaining = await run_db(
            admin_service.remove_debug_channels, self.bot.engine, channel_ids, actor_id=interaction.user.id
        )
        await self._refresh()
        await send_outcome(interaction, f"Removed debug channels. Current: {_mentions(remaining)}")

    @debug.command(name="list", description="List debug channels.")
    @is_admin()
    async def debug_list(self, interaction: discord.Interaction) -> None:
        await self._refresh()
        await send_outcome(
            interaction, f"Debug channels: {_mentions(self.bot.snapshot.debug_channel_ids())}"
        )

    # -------------------------------------------------------------------
    # /unbanish
    # -------------------------------------------------------------------
    @app_commands.command(name="unbanish", description="Lift a member's gig bans.")
    @app_commands.describe(
        user="Mention or user id",
        scope="Which bans to lift",
        category="Category name (for category or both scope)",
    )
    @app_commands.choices(scope=[
        app_commands.Choice(name="Server", value="server"),
        app_commands.Choice(name="Category", value="category"),
        app_commands.Choice(name="Both", value="both"),
    ])
    @app_commands.autocomplete(category=category_autocomplete)
    @is_admin()
    async def unbanish(
        self,
        interaction: discord.Interaction,
        user: str,
        scope: str,
        category: str | None = None,
    ) -> None:
        user_id = parse_user_id(user)
        if user_id is None:
            await send_outcome(interaction, "Invalid user. Provide a mention or user ID.")
            return
        removed = await run_db(
            admin_service.unban_user,
            self.bot.engine,
            user_id,
            scope=scope,
            guild_id=interaction.guild_id,
            category_name=category,
            actor_id=interaction.user.id,
        )
        await send_outcome(
            interaction, f"Unbanished <@{user_id}>." if removed else "No matching ban entries found."
        )

    # -------------------------------------------------------------------
    # /health and /cleanup
    # -------------------------------------------------------------------
    @app_commands.command(name="health", description="Post a channel reachability report.")
    @is_admin()
    async def health(self, interaction: discord.Interaction) -> None:
        await interaction.response.defer(ephemeral=True, thinking=True)
        await self._refresh()
        await run_health_check(self.bot.snapshot, self.bot.messenger)
        await send_outcome(interaction, "Health check posted to report channels.")

    @app_commands.command(name="cleanup", description="Run the expiry and staleness sweep now.")
    @is_admin()
    async def cleanup(self, interaction: discord.Interaction) -> None:
        await interaction.response.defer(ephemeral=True, thinking=True)
        await self._refresh()
        summary = await run_cleanup(
            self.bot.engine,
            self.bot.cfg,
            self.bot.replication,
            self.bot.messenger,
            self.bot.reporter,
        )
        await send_outcome(
            interaction,
            f"Cleanup complete: {summary['deleted_gigs']} gigs and "
            f"{summary['deleted_instances']} messages removed.",
        )

    # -------------------------------------------------------------------
    # Error handler
    # -------------------------------------------------------------------
    async def cog_app_command_error(
        self, interaction: discord.Interaction, error: app_commands.AppCommandError
    ) -> None:
        original = getattr(error, "original", error)
        if isinstance(error, app_commands.CheckFailure):
            message = "You do not have permission to use this command."
        elif isinstance(original, GigError):
            message = original.user_message
        else:
            logger.exception("Admin command failed", exc_info=original)
            await self.bot.reporter.report(
                f"/{interaction.command.qualified_name if interaction.command else '?'}", original
            )
            message = GENERIC_ERROR_MESSAGE
        await send_outcome(interaction, message)


async def setup(bot: GigBoardBot) -> None:
    await bot.add_cog(Admin(bot))
