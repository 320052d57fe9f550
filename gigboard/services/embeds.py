"""
gigboard.services.embeds — Embed & Button Layout Builders
==========================================================

All message construction lives here so the workflow and cogs only supply
data.  Buttons carry routing in their ``custom_id``; the views built here
have no callbacks of their own.  :mod:`gigboard.bot.cogs.gigs` dispatches
every ``gig:`` component interaction, which keeps buttons working across
restarts without registering views.

Custom id scheme::

    gig:create | gig:delete-all | gig:terms-accept          (prompt flow)
    gig:apply | gig:report | gig:delete | gig:banish        (instance; keyed by message id)
    gig:approval:<accept|reject|banish>:<gig_id>            (approval prompt)
    gig:moderate:<delete|banish>:<gig_id>                   (report notice)
    gig:applicant:<contact|report>:<gig_id>:<applicant_id>  (application DM)
"""

from __future__ import annotations

from datetime import datetime

import discord

from gigboard.constants import (
    COLOR_ALERT,
    COLOR_APPLICATION,
    COLOR_BRAND,
    PROMPT_TITLE,
    format_pay,
    sanitize_text,
    utcnow,
)
from gigboard.database.models import GigPayload
from gigboard.services.messaging import OutboundMessage

CUSTOM_ID_PREFIX = "gig:"

CREATE_ID = "gig:create"
DELETE_ALL_ID = "gig:delete-all"
TERMS_ACCEPT_ID = "gig:terms-accept"
APPLY_ID = "gig:apply"
REPORT_ID = "gig:report"
DELETE_ID = "gig:delete"
BANISH_ID = "gig:banish"

TERMS_OF_USE = (
    "**Terms of Use**\n"
    "Gigs must describe real, paid work. Do not include contact details: "
    "applications are delivered to you by the bot. Moderators may remove "
    "any gig and ban repeat offenders."
)


def approval_id(action: str, gig_id: str) -> str:
    return f"gig:approval:{action}:{gig_id}"


def moderate_id(action: str, gig_id: str) -> str:
    return f"gig:moderate:{action}:{gig_id}"


def applicant_id(action: str, gig_id: str, user_id: int) -> str:
    return f"gig:applicant:{action}:{gig_id}:{user_id}"


def _view(*buttons: discord.ui.Button) -> discord.ui.View:
    view = discord.ui.View(timeout=None)
    for button in buttons:
        view.add_item(button)
    return view


# ---------------------------------------------------------------------------
# Gig body
# ---------------------------------------------------------------------------
def build_gig_embed(payload: GigPayload) -> discord.Embed:
    """Public gig card.  Payload text is stored sanitized already."""
    body = ""
    if payload.timeline:
        body += f"**Timeline:** {payload.timeline}\n"
    body += f"\n**Description:**\n{payload.description}\n\n**Pay:** {format_pay(payload.pay)}"
    return discord.Embed(
        title=f"Gig: {payload.title}",
        description=body,
        color=COLOR_BRAND,
    )


def build_gig_message(payload: GigPayload) -> OutboundMessage:
    view = _view(
        discord.ui.Button(label="Apply", style=discord.ButtonStyle.primary, custom_id=APPLY_ID),
        discord.ui.Button(label="Report", style=discord.ButtonStyle.secondary, custom_id=REPORT_ID),
        discord.ui.Button(label="Delete", style=discord.ButtonStyle.secondary, custom_id=DELETE_ID),
        discord.ui.Button(label="Banish", style=discord.ButtonStyle.danger, custom_id=BANISH_ID),
    )
    return OutboundMessage(embed=build_gig_embed(payload), view=view)


# ---------------------------------------------------------------------------
# "Post a Gig" prompt
# ---------------------------------------------------------------------------
def build_prompt_message(support_url: str) -> OutboundMessage:
    embed = discord.Embed(
        title=PROMPT_TITLE,
        description="Click the buttons below to manage your gigs.",
        color=COLOR_BRAND,
    )
    view = _view(
        discord.ui.Button(label="Create a Gig", style=discord.ButtonStyle.success, custom_id=CREATE_ID),
        discord.ui.Button(
            label="Delete All My Gigs", style=discord.ButtonStyle.danger, custom_id=DELETE_ALL_ID
        ),
        discord.ui.Button(label="Support", style=discord.ButtonStyle.link, url=support_url),
    )
    return OutboundMessage(embed=embed, view=view)


def build_terms_message() -> OutboundMessage:
    view = _view(
        discord.ui.Button(
            label="Accept and Create Gig",
            style=discord.ButtonStyle.primary,
            custom_id=TERMS_ACCEPT_ID,
        ),
    )
    return OutboundMessage(content=TERMS_OF_USE, view=view)


# ---------------------------------------------------------------------------
# Moderation
# ---------------------------------------------------------------------------
def build_approval_message(gig_id: str, author_id: int, payload: GigPayload) -> OutboundMessage:
    embed = build_gig_embed(payload)
    embed.add_field(name="Poster", value=f"<@{author_id}> ({author_id})", inline=False)
    view = _view(
        discord.ui.Button(
            label="Accept", style=discord.ButtonStyle.success, custom_id=approval_id("accept", gig_id)
        ),
        discord.ui.Button(
            label="Reject", style=discord.ButtonStyle.secondary, custom_id=approval_id("reject", gig_id)
        ),
        discord.ui.Button(
            label="Banish", style=discord.ButtonStyle.danger, custom_id=approval_id("banish", gig_id)
        ),
    )
    return OutboundMessage(content="Pending gig approval", embed=embed, view=view)


def build_report_message(
    *,
    gig_id: str,
    reporter: str,
    reporter_id: int,
    author_id: int,
    category_name: str,
    link: str,
    reason: str,
) -> OutboundMessage:
    embed = discord.Embed(
        title="Gig Reported",
        description=(
            f"**Reported by:** {sanitize_text(reporter)} ({reporter_id})\n"
            f"**Poster:** <@{author_id}> ({author_id})\n"
            f"**Category:** {sanitize_text(category_name)}\n"
            f"**Gig:** {link}\n"
            f"**Reason:** {sanitize_text(reason)}"
        ),
        color=COLOR_ALERT,
        timestamp=utcnow(),
    )
    embed.add_field(name="Report ID", value=gig_id)
    view = _view(
        discord.ui.Button(
            label="Delete", style=discord.ButtonStyle.secondary, custom_id=moderate_id("delete", gig_id)
        ),
        discord.ui.Button(
            label="Banish", style=discord.ButtonStyle.danger, custom_id=moderate_id("banish", gig_id)
        ),
    )
    return OutboundMessage(embed=embed, view=view)


def build_removal_notice(reason: str, link: str) -> OutboundMessage:
    embed = discord.Embed(
        title="Your Gig Was Removed",
        description=f"**Reason:** {sanitize_text(reason)}\n**Gig:** {link}",
        color=COLOR_ALERT,
        timestamp=utcnow(),
    )
    return OutboundMessage(embed=embed)


# ---------------------------------------------------------------------------
# Applications
# ---------------------------------------------------------------------------
def build_application_message(
    *,
    gig_id: str,
    applicant_user_id: int,
    applicant_tag: str,
    category_name: str,
    link: str,
    name: str,
    message: str,
    resume: str,
    submitted_at: datetime | None = None,
) -> OutboundMessage:
    embed = discord.Embed(
        title="New Gig Application",
        description=f"**Category:** {sanitize_text(category_name)}\n**Gig:** {link}",
        color=COLOR_APPLICATION,
        timestamp=submitted_at or utcnow(),
    )
    embed.add_field(
        name="Applicant",
        value=f"<@{applicant_user_id}> ({sanitize_text(applicant_tag)}, {applicant_user_id})",
        inline=False,
    )
    embed.add_field(name="Name", value=sanitize_text(name)[:1024], inline=False)
    embed.add_field(name="Application", value=sanitize_text(message)[:1024], inline=False)
    embed.add_field(name="Resume / Portfolio / CV", value=sanitize_text(resume)[:1024], inline=False)
    view = _view(
        discord.ui.Button(
            label="Contact Me",
            style=discord.ButtonStyle.primary,
            custom_id=applicant_id("contact", gig_id, applicant_user_id),
        ),
        discord.ui.Button(
            label="Report",
            style=discord.ButtonStyle.danger,
            custom_id=applicant_id("report", gig_id, applicant_user_id),
        ),
    )
    return OutboundMessage(embed=embed, view=view)


def build_applicant_report(
    *, reporter_id: int, applicant_user_id: int, gig_id: str, link: str
) -> OutboundMessage:
    embed = discord.Embed(
        title="Application Reported",
        description=(
            f"**Reported by:** <@{reporter_id}> ({reporter_id})\n"
            f"**Applicant:** <@{applicant_user_id}> ({applicant_user_id})\n"
            f"**Gig ID:** {gig_id}\n"
            f"**Context:** {link}"
        ),
        color=COLOR_ALERT,
        timestamp=utcnow(),
    )
    return OutboundMessage(embed=embed)


def build_contact_notice(author_id: int) -> OutboundMessage:
    return OutboundMessage(
        content=(
            "The gig poster is interested in your application. "
            f"Please DM <@{author_id}> to follow up."
        )
    )


def echo_draft(title: str, description: str, pay: str, timeline: str | None) -> str:
    """The member's own input, appended to validation errors for copy/paste."""
    text = (
        "\n\n**Your submitted data:**\n"
        f"**Title:** {title}\n**Description:** {description}\n**Pay:** {pay}\n"
    )
    if timeline:
        text += f"**Timeline:** {timeline}"
    return text
