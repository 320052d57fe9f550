"""
gigboard.bot.views — Modals & Ephemeral Pickers
================================================

The forms members fill in (gig, application, report, removal reason) and
the category picker shown after the terms are accepted.  These are
short-lived, per-member UI objects, so unlike the long-lived gig buttons
they carry their own callbacks.

Every submit defers first, then reports the workflow outcome through
:func:`send_outcome`, which is also what the gigs cog uses.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord

from gigboard.constants import GENERIC_ERROR_MESSAGE, truncate
from gigboard.engine.access import Actor
from gigboard.errors import GigError
from gigboard.services.gig_service import GigDraft
from gigboard.services.gig_workflow import ApplicationForm
from gigboard.services.messaging import SAFE_MENTIONS

if TYPE_CHECKING:
    from gigboard.bot.core import GigBoardBot
    from gigboard.engine.snapshot import CategoryInfo

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Reply helpers
# ---------------------------------------------------------------------------
async def send_outcome(interaction: discord.Interaction, content: str) -> None:
    """Ephemeral reply that works whether or not the interaction was deferred."""
    content = truncate(content, 2000)
    if interaction.response.is_done():
        await interaction.followup.send(content, ephemeral=True, allowed_mentions=SAFE_MENTIONS)
    else:
        await interaction.response.send_message(
            content, ephemeral=True, allowed_mentions=SAFE_MENTIONS
        )


async def report_failure(
    bot: GigBoardBot, interaction: discord.Interaction, error: BaseException, context: str
) -> None:
    """Member-caused errors become their reply text; anything else is logged and mirrored."""
    if isinstance(error, GigError):
        message = error.user_message
    else:
        logger.exception("Unhandled error in %s", context, exc_info=error)
        await bot.reporter.report(context, error)
        message = GENERIC_ERROR_MESSAGE
    try:
        await send_outcome(interaction, message)
    except discord.HTTPException as exc:
        logger.info("Could not reply to interaction in %s: %s", context, exc)


# ---------------------------------------------------------------------------
# Gig creation
# ---------------------------------------------------------------------------
class GigFormModal(discord.ui.Modal):
    def __init__(self, bot: GigBoardBot, category: CategoryInfo) -> None:
        super().__init__(title="Create a Gig")
        self.bot = bot
        self.category = category
        self.gig_title = discord.ui.TextInput(label="Title", required=True, max_length=100)
        self.description = discord.ui.TextInput(
            label="Description",
            style=discord.TextStyle.paragraph,
            required=True,
            max_length=2000,
        )
        self.pay = discord.ui.TextInput(
            label="Pay", placeholder="e.g. 500 USD", required=True, max_length=100
        )
        self.timeline = discord.ui.TextInput(
            label="Timeline", placeholder="e.g. 2 weeks", required=False, max_length=100
        )
        for item in (self.gig_title, self.description, self.pay, self.timeline):
            self.add_item(item)

    async def on_submit(self, interaction: discord.Interaction) -> None:
        await interaction.response.defer(ephemeral=True, thinking=True)
        draft = GigDraft(
            title=self.gig_title.value,
            description=self.description.value,
            pay=self.pay.value,
            timeline=self.timeline.value or None,
        )
        result = await self.bot.workflow.submit_gig(
            Actor.from_interaction(interaction),
            interaction.channel_id or 0,
            self.category.id,
            draft,
        )
        await send_outcome(interaction, result.message)

    async def on_error(self, interaction: discord.Interaction, error: Exception) -> None:
        await report_failure(self.bot, interaction, error, "gig form")


class CategorySelect(discord.ui.Select):
    def __init__(self, bot: GigBoardBot, categories: list[CategoryInfo]) -> None:
        self.bot = bot
        self._by_id = {c.id: c for c in categories}
        super().__init__(
            placeholder="Select a category",
            options=[discord.SelectOption(label=c.name, value=c.id) for c in categories[:25]],
        )

    async def callback(self, interaction: discord.Interaction) -> None:
        try:
            category = await self.bot.workflow.choose_category(
                Actor.from_interaction(interaction), self.values[0]
            )
        except Exception as exc:
            await report_failure(self.bot, interaction, exc, "select category")
            return
        await interaction.response.send_modal(GigFormModal(self.bot, category))


class CategoryPickerView(discord.ui.View):
    def __init__(self, bot: GigBoardBot, categories: list[CategoryInfo]) -> None:
        super().__init__(timeout=300)
        self.add_item(CategorySelect(bot, categories))


# ---------------------------------------------------------------------------
# Applications & reports
# ---------------------------------------------------------------------------
class ApplyModal(discord.ui.Modal):
    def __init__(self, bot: GigBoardBot, message_id: int, poster_display: str | None = None) -> None:
        super().__init__(title="Apply to Gig")
        self.bot = bot
        self.message_id = message_id
        label = "Application to Poster"
        if poster_display:
            # Discord caps labels at 45 characters
            label = truncate(f"{label} (Poster: {poster_display})", 45)
        self.applicant_name = discord.ui.TextInput(label="Your Name", required=True, max_length=100)
        self.application = discord.ui.TextInput(
            label=label, style=discord.TextStyle.paragraph, required=True, max_length=1024
        )
        self.resume = discord.ui.TextInput(
            label="Resume / Portfolio / CV",
            style=discord.TextStyle.paragraph,
            required=True,
            max_length=1024,
        )
        for item in (self.applicant_name, self.application, self.resume):
            self.add_item(item)

    async def on_submit(self, interaction: discord.Interaction) -> None:
        await interaction.response.defer(ephemeral=True, thinking=True)
        result = await self.bot.workflow.apply_to_gig(
            Actor.from_interaction(interaction),
            self.message_id,
            ApplicationForm(
                name=self.applicant_name.value,
                message=self.application.value,
                resume=self.resume.value,
            ),
            applicant_tag=str(interaction.user),
        )
        await send_outcome(interaction, result.message)

    async def on_error(self, interaction: discord.Interaction, error: Exception) -> None:
        await report_failure(self.bot, interaction, error, "apply form")


class ReportModal(discord.ui.Modal):
    def __init__(self, bot: GigBoardBot, message_id: int) -> None:
        super().__init__(title="Report Gig")
        self.bot = bot
        self.message_id = message_id
        self.reason = discord.ui.TextInput(
            label="Reason for report", style=discord.TextStyle.paragraph, required=True
        )
        self.add_item(self.reason)

    async def on_submit(self, interaction: discord.Interaction) -> None:
        await interaction.response.defer(ephemeral=True, thinking=True)
        result = await self.bot.workflow.report_gig(
            Actor.from_interaction(interaction),
            self.message_id,
            self.reason.value,
            reporter_tag=str(interaction.user),
        )
        await send_outcome(interaction, result.message)

    async def on_error(self, interaction: discord.Interaction, error: Exception) -> None:
        await report_failure(self.bot, interaction, error, "report form")


class DeleteReasonModal(discord.ui.Modal):
    def __init__(self, bot: GigBoardBot, message_id: int) -> None:
        super().__init__(title="Delete Reason")
        self.bot = bot
        self.message_id = message_id
        self.reason = discord.ui.TextInput(
            label="Reason for deletion", style=discord.TextStyle.paragraph, required=True
        )
        self.add_item(self.reason)

    async def on_submit(self, interaction: discord.Interaction) -> None:
        await interaction.response.defer(ephemeral=True, thinking=True)
        result = await self.bot.workflow.delete_gig(
            Actor.from_interaction(interaction), self.message_id, reason=self.reason.value
        )
        await send_outcome(interaction, result.message)

    async def on_error(self, interaction: discord.Interaction, error: Exception) -> None:
        await report_failure(self.bot, interaction, error, "delete reason form")
