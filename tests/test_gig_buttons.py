"""
tests/test_gig_buttons.py — Button Dispatch & Reply Helper Tests
=================================================================
Exercises the gigs cog's ``on_interaction`` routing with a mocked bot, and
the shared reply helpers in :mod:`gigboard.bot.views`.
"""

from __future__ import annotations

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import discord

from gigboard.bot.cogs.gigs import Gigs
from gigboard.bot.views import report_failure, send_outcome
from gigboard.constants import GENERIC_ERROR_MESSAGE
from gigboard.errors import BannedError, NotFoundError
from gigboard.services.embeds import REPORT_ID
from gigboard.services.gig_workflow import WorkflowResult


def run_async(coro):
    """Run an async coroutine in a new event loop."""
    return asyncio.get_event_loop_policy().new_event_loop().run_until_complete(coro)


def _interaction(custom_id: str = "", done: bool = True):
    response = MagicMock()
    response.is_done.return_value = done
    response.defer = AsyncMock()
    response.send_message = AsyncMock()
    response.send_modal = AsyncMock()
    return SimpleNamespace(
        type=discord.InteractionType.component,
        data={"custom_id": custom_id},
        user=SimpleNamespace(id=7, roles=[SimpleNamespace(id=700)]),
        guild_id=100,
        channel_id=601,
        message=SimpleNamespace(id=4242),
        response=response,
        followup=SimpleNamespace(send=AsyncMock()),
    )


def _bot():
    bot = MagicMock()
    bot.access.is_banned.return_value = False
    bot.messenger.edit = AsyncMock()
    bot.reporter.report = AsyncMock()
    bot.workflow = MagicMock()
    return bot


class TestReplyHelpers:
    def test_followup_after_defer(self):
        interaction = _interaction(done=True)
        run_async(send_outcome(interaction, "hello"))
        interaction.followup.send.assert_awaited_once()
        assert interaction.followup.send.call_args.args[0] == "hello"
        assert interaction.followup.send.call_args.kwargs["ephemeral"] is True

    def test_first_response(self):
        interaction = _interaction(done=False)
        run_async(send_outcome(interaction, "x" * 2500))
        content = interaction.response.send_message.call_args.args[0]
        assert len(content) == 2000

    def test_gig_error_is_shown(self):
        bot, interaction = _bot(), _interaction()
        run_async(report_failure(bot, interaction, NotFoundError("Gig not found."), "ctx"))
        assert interaction.followup.send.call_args.args[0] == "Gig not found."
        bot.reporter.report.assert_not_awaited()

    def test_unexpected_error_is_mirrored(self):
        bot, interaction = _bot(), _interaction()
        run_async(report_failure(bot, interaction, RuntimeError("kaboom"), "ctx"))
        assert interaction.followup.send.call_args.args[0] == GENERIC_ERROR_MESSAGE
        bot.reporter.report.assert_awaited_once()


class TestDispatch:
    def test_approval_accept_routes_and_clears_buttons(self):
        bot = _bot()
        bot.workflow.accept_pending = AsyncMock(return_value=WorkflowResult("Gig approved and posted."))
        interaction = _interaction("gig:approval:accept:abc")

        run_async(Gigs(bot).on_interaction(interaction))

        actor = bot.workflow.accept_pending.call_args.args[0]
        assert actor.user_id == 7
        assert bot.workflow.accept_pending.call_args.args[1] == "abc"
        interaction.response.defer.assert_awaited_once()
        assert interaction.followup.send.call_args.args[0] == "Gig approved and posted."
        channel_id, message_id, cleared = bot.messenger.edit.call_args.args
        assert (channel_id, message_id) == (601, 4242)
        assert cleared.view is None

    def test_applicant_contact_carries_applicant_id(self):
        bot = _bot()
        bot.workflow.contact_applicant = AsyncMock(return_value=WorkflowResult("Applicant notified."))
        run_async(Gigs(bot).on_interaction(_interaction("gig:applicant:contact:abc:66")))
        assert bot.workflow.contact_applicant.call_args.args[1:] == ("abc", 66)
        bot.messenger.edit.assert_not_awaited()

    def test_banned_member_gets_ban_message(self):
        bot = _bot()
        bot.access.is_banned.return_value = True
        interaction = _interaction("gig:apply", done=False)
        run_async(Gigs(bot).on_interaction(interaction))
        assert interaction.response.send_message.call_args.args[0] == BannedError.default_message

    def test_foreign_components_are_ignored(self):
        bot = _bot()
        interaction = _interaction("other:thing")
        run_async(Gigs(bot).on_interaction(interaction))
        bot.access.is_banned.assert_not_called()

    def test_workflow_error_becomes_reply(self):
        bot = _bot()
        bot.workflow.delete_reported = AsyncMock(side_effect=NotFoundError("Gig not found."))
        interaction = _interaction("gig:moderate:delete:abc")
        run_async(Gigs(bot).on_interaction(interaction))
        assert interaction.followup.send.call_args.args[0] == "Gig not found."
        bot.messenger.edit.assert_not_awaited()

    def test_report_reloads_stale_config_before_moderator_check(self):
        bot = _bot()
        bot.snapshot.is_stale.return_value = True
        bot.access.is_moderator.side_effect = lambda actor: bot.snapshot.refresh.called
        bot.workflow.poster_info = AsyncMock(return_value="**Poster Info:**")
        interaction = _interaction(REPORT_ID)

        run_async(Gigs(bot).on_interaction(interaction))

        bot.workflow.poster_info.assert_awaited_once_with(4242)
        assert interaction.followup.send.call_args.args[0] == "**Poster Info:**"
