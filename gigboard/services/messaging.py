"""
gigboard.services.messaging — Messenger Collaborator
=====================================================

Everything the gig workflow needs from Discord, behind one small surface:
send / edit / delete / scan recent messages / bulk delete in a channel, DM a user,
resolve a display name, and probe channel permissions.

:class:`DiscordMessenger` is the production implementation.  Failures are
normalized to :class:`~gigboard.errors.CollaboratorError` so callers handle
one exception type per destination.  Tests substitute a fake with the same
methods.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

import discord

from gigboard.errors import CollaboratorError

if TYPE_CHECKING:
    from discord.ext import commands

logger = logging.getLogger(__name__)

# Never ping anyone from bot-authored content
SAFE_MENTIONS = discord.AllowedMentions.none()


@dataclass(slots=True)
class OutboundMessage:
    content: str | None = None
    embed: discord.Embed | None = None
    view: discord.ui.View | None = None


@dataclass(frozen=True, slots=True)
class SentMessage:
    message_id: int
    channel_id: int
    guild_id: int | None


@dataclass(frozen=True, slots=True)
class RecentMessage:
    """Just enough of a channel message for prompt upkeep."""

    message_id: int
    from_self: bool
    title: str | None


class Messenger(Protocol):
    async def send(self, channel_id: int, message: OutboundMessage) -> SentMessage: ...

    async def edit(self, channel_id: int, message_id: int, message: OutboundMessage) -> None: ...

    async def delete(self, channel_id: int, message_id: int) -> None: ...

    async def fetch_recent(self, channel_id: int, limit: int) -> list[RecentMessage]: ...

    async def bulk_delete(self, channel_id: int, message_ids: list[int]) -> None: ...

    async def notify_user(self, user_id: int, message: OutboundMessage) -> None: ...

    async def channel_access(self, channel_id: int) -> str: ...

    def display_name(self, user_id: int) -> str: ...


class DiscordMessenger:
    """:class:`Messenger` backed by a live ``commands.Bot``."""

    def __init__(self, bot: commands.Bot) -> None:
        self._bot = bot

    async def _channel(self, channel_id: int) -> discord.abc.Messageable:
        channel = self._bot.get_channel(channel_id)
        if channel is None:
            try:
                channel = await self._bot.fetch_channel(channel_id)
            except discord.NotFound as exc:
                raise CollaboratorError(f"channel {channel_id} not found", cause=exc) from exc
            except discord.HTTPException as exc:
                raise CollaboratorError(f"channel {channel_id} unavailable", cause=exc) from exc
        if not isinstance(channel, discord.abc.Messageable):
            raise CollaboratorError(f"channel {channel_id} is not text-based")
        return channel

    async def send(self, channel_id: int, message: OutboundMessage) -> SentMessage:
        channel = await self._channel(channel_id)
        kwargs: dict = {"allowed_mentions": SAFE_MENTIONS}
        if message.content is not None:
            kwargs["content"] = message.content
        if message.embed is not None:
            kwargs["embed"] = message.embed
        if message.view is not None:
            kwargs["view"] = message.view
        try:
            sent = await channel.send(**kwargs)
        except discord.HTTPException as exc:
            raise CollaboratorError(f"send failed in channel={channel_id}", cause=exc) from exc
        return SentMessage(
            message_id=sent.id,
            channel_id=channel_id,
            guild_id=sent.guild.id if sent.guild else None,
        )

    async def edit(self, channel_id: int, message_id: int, message: OutboundMessage) -> None:
        """Replace content and/or embed; the view is always replaced (``None`` strips buttons)."""
        channel = await self._channel(channel_id)
        kwargs: dict = {"view": message.view, "allowed_mentions": SAFE_MENTIONS}
        if message.content is not None:
            kwargs["content"] = message.content
        if message.embed is not None:
            kwargs["embed"] = message.embed
        try:
            await channel.get_partial_message(message_id).edit(**kwargs)  # type: ignore[attr-defined]
        except discord.HTTPException as exc:
            raise CollaboratorError(
                f"edit failed message_id={message_id} channel={channel_id}", cause=exc
            ) from exc

    async def delete(self, channel_id: int, message_id: int) -> None:
        channel = await self._channel(channel_id)
        try:
            await channel.get_partial_message(message_id).delete()  # type: ignore[attr-defined]
        except discord.NotFound:
            logger.debug("Message %d already gone in channel=%d", message_id, channel_id)
        except discord.HTTPException as exc:
            raise CollaboratorError(
                f"delete failed message_id={message_id} channel={channel_id}", cause=exc
            ) from exc

    async def fetch_recent(self, channel_id: int, limit: int) -> list[RecentMessage]:
        channel = await self._channel(channel_id)
        me = self._bot.user
        try:
            return [
                RecentMessage(
                    message_id=m.id,
                    from_self=me is not None and m.author.id == me.id,
                    title=m.embeds[0].title if m.embeds else None,
                )
                async for m in channel.history(limit=limit)
            ]
        except discord.HTTPException as exc:
            raise CollaboratorError(f"history failed in channel={channel_id}", cause=exc) from exc

    async def bulk_delete(self, channel_id: int, message_ids: list[int]) -> None:
        if not message_ids:
            return
        channel = await self._channel(channel_id)
        bulk = getattr(channel, "delete_messages", None)
        if bulk is not None:
            try:
                await bulk([discord.Object(id=mid) for mid in message_ids])
                return
            except discord.HTTPException:
                # Bulk delete rejects messages older than 14 days
                logger.debug("Bulk delete refused in channel=%d, deleting one by one", channel_id)
        for mid in message_ids:
            await self.delete(channel_id, mid)

    async def notify_user(self, user_id: int, message: OutboundMessage) -> None:
        user = self._bot.get_user(user_id)
        try:
            if user is None:
                user = await self._bot.fetch_user(user_id)
            kwargs: dict = {"allowed_mentions": SAFE_MENTIONS}
            if message.content is not None:
                kwargs["content"] = message.content
            if message.embed is not None:
                kwargs["embed"] = message.embed
            if message.view is not None:
                kwargs["view"] = message.view
            await user.send(**kwargs)
        except discord.HTTPException as exc:
            raise CollaboratorError(f"DM to user {user_id} failed", cause=exc) from exc

    async def channel_access(self, channel_id: int) -> str:
        """Permission status of the bot in *channel_id*, as shown by /health."""
        try:
            channel = self._bot.get_channel(channel_id) or await self._bot.fetch_channel(channel_id)
        except discord.NotFound:
            return "not found"
        except discord.HTTPException as exc:
            return f"error: {exc}"
        if not isinstance(channel, discord.abc.Messageable):
            return "not text-based"
        guild = getattr(channel, "guild", None)
        me = guild.me if guild is not None else None
        if me is None:
            return "no perms info"
        perms = channel.permissions_for(me)  # type: ignore[attr-defined]
        if perms.view_channel and perms.send_messages:
            return "ok"
        if not perms.view_channel:
            return "missing view"
        return "missing send"

    def display_name(self, user_id: int) -> str:
        user = self._bot.get_user(user_id)
        return str(user) if user is not None else str(user_id)
