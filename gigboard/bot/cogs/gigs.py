"""
gigboard.bot.cogs.gigs — Gig Buttons & Prompt Upkeep
=====================================================

Every gig button carries its routing in a ``gig:`` custom id (see
:mod:`gigboard.services.embeds`).  :meth:`Gigs.on_interaction` decodes the
id and calls the matching :class:`~gigboard.services.gig_workflow.GigWorkflow`
method, so buttons keep working across restarts without persistent view
registration.

:meth:`Gigs.on_message` keeps the "Post a Gig" prompt at the bottom of busy
destination channels, debounced per channel.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord.ext import commands

from gigboard.bot.views import (
    ApplyModal,
    CategoryPickerView,
    DeleteReasonModal,
    GigFormModal,
    ReportModal,
    report_failure,
    send_outcome,
)
from gigboard.database.engine import run_db
from gigboard.engine.access import Actor
from gigboard.errors import BannedError
from gigboard.services.embeds import (
    APPLY_ID,
    BANISH_ID,
    CREATE_ID,
    CUSTOM_ID_PREFIX,
    DELETE_ALL_ID,
    DELETE_ID,
    REPORT_ID,
    TERMS_ACCEPT_ID,
    build_terms_message,
)
from gigboard.services.messaging import OutboundMessage

if TYPE_CHECKING:
    from gigboard.bot.core import GigBoardBot
    from gigboard.services.gig_workflow import WorkflowResult

logger = logging.getLogger(__name__)


class Gigs(commands.Cog, name="Gigs"):
    """Routes gig button presses to the workflow."""

    def __init__(self, bot: GigBoardBot) -> None:
        self.bot = bot

    # -------------------------------------------------------------------
    # Prompt upkeep
    # -------------------------------------------------------------------
    @commands.Cog.listener()
    async def on_message(self, message: discord.Message) -> None:
        if message.guild is None:
            return
        if self.bot.user is not None and message.author.id == self.bot.user.id:
            return
        if self.bot.snapshot.is_stale():
            await run_db(self.bot.snapshot.refresh)
        await self.bot.replication.ensure_prompt_debounced(message.channel.id)

    # -------------------------------------------------------------------
    # Button dispatch
    # -------------------------------------------------------------------
    @commands.Cog.listener()
    async def on_interaction(self, interaction: discord.Interaction) -> None:
        if interaction.type is not discord.InteractionType.component:
            return
        custom_id = str((interaction.data or {}).get("custom_id", ""))
        if not custom_id.startswith(CUSTOM_ID_PREFIX):
            return
        try:
            await self._dispatch(interaction, custom_id)
        except Exception as exc:
            await report_failure(self.bot, interaction, exc, f"button {custom_id}")

    async def _dispatch(self, interaction: discord.Interaction, custom_id: str) -> None:
        actor = Actor.from_interaction(interaction)
        if await run_db(self.bot.access.is_banned, actor):
            raise BannedError()

        workflow = self.bot.workflow
        message_id = interaction.message.id if interaction.message else 0

        if custom_id == CREATE_ID:
            await workflow.start_creation(actor, interaction.channel_id or 0)
            terms = build_terms_message()
            await interaction.response.send_message(terms.content, view=terms.view, ephemeral=True)

        elif custom_id == TERMS_ACCEPT_ID:
            categories = await workflow.available_categories(actor, interaction.channel_id or 0)
            if len(categories) == 1:
                await interaction.response.send_modal(GigFormModal(self.bot, categories[0]))
            else:
                await interaction.response.send_message(
                    "Select a category for this gig:",
                    view=CategoryPickerView(self.bot, categories),
                    ephemeral=True,
                )

        elif custom_id == DELETE_ALL_ID:
            await self._deferred(interaction, workflow.delete_all_for_user(actor))

        elif custom_id == APPLY_ID:
            target = await workflow.check_can_apply(actor, message_id)
            poster = target.poster_display if target.direct else None
            await interaction.response.send_modal(ApplyModal(self.bot, message_id, poster))

        elif custom_id == REPORT_ID:
            if self.bot.snapshot.is_stale():
                await run_db(self.bot.snapshot.refresh)
            if self.bot.access.is_moderator(actor):
                await interaction.response.defer(ephemeral=True, thinking=True)
                await send_outcome(interaction, await workflow.poster_info(message_id))
            else:
                await workflow.check_can_report(actor, message_id)
                await interaction.response.send_modal(ReportModal(self.bot, message_id))

        elif custom_id == DELETE_ID:
            if await workflow.delete_requires_reason(actor, message_id):
                await interaction.response.send_modal(DeleteReasonModal(self.bot, message_id))
            else:
                await self._deferred(interaction, workflow.delete_gig(actor, message_id))

        elif custom_id == BANISH_ID:
            await self._deferred(interaction, workflow.banish_from_message(actor, message_id))

        else:
            await self._dispatch_scoped(interaction, actor, custom_id.split(":"))

    async def _dispatch_scoped(
        self, interaction: discord.Interaction, actor: Actor, parts: list[str]
    ) -> None:
        """Buttons whose id carries a gig id: approval, report and application notices."""
        workflow = self.bot.workflow
        kind = parts[1] if len(parts) > 1 else ""

        if kind == "approval" and len(parts) == 4:
            action, gig_id = parts[2], parts[3]
            handlers = {
                "accept": lambda: workflow.accept_pending(actor, gig_id),
                "reject": lambda: workflow.reject_pending(actor, gig_id),
                "banish": lambda: workflow.banish(actor, gig_id, context="approval"),
            }
        elif kind == "moderate" and len(parts) == 4:
            action, gig_id = parts[2], parts[3]
            handlers = {
                "delete": lambda: workflow.delete_reported(actor, gig_id),
                "banish": lambda: workflow.banish(actor, gig_id, context="report"),
            }
        elif kind == "applicant" and len(parts) == 5:
            action, gig_id, applicant = parts[2], parts[3], int(parts[4])
            handlers = {
                "contact": lambda: workflow.contact_applicant(actor, gig_id, applicant),
                "report": lambda: workflow.report_applicant(actor, gig_id, applicant),
            }
        else:
            logger.debug("Ignoring unknown gig button %s", ":".join(parts))
            return

        handler = handlers.get(action)
        if handler is None:
            logger.debug("Ignoring unknown %s action %s", kind, action)
            return
        await self._deferred(interaction, handler())
        if kind in ("approval", "moderate"):
            await self._clear_buttons(interaction)

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    async def _deferred(self, interaction: discord.Interaction, action) -> WorkflowResult:
        await interaction.response.defer(ephemeral=True, thinking=True)
        result: WorkflowResult = await action
        await send_outcome(interaction, result.message)
        return result

    async def _clear_buttons(self, interaction: discord.Interaction) -> None:
        if interaction.message is None or interaction.channel_id is None:
            return
        try:
            await self.bot.messenger.edit(
                interaction.channel_id, interaction.message.id, OutboundMessage()
            )
        except Exception as exc:
            logger.debug("Could not clear buttons on message %d: %s", interaction.message.id, exc)


async def setup(bot: GigBoardBot) -> None:
    await bot.add_cog(Gigs(bot))
