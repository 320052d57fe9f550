"""
gigboard.constants — Shared Constants & Helpers
================================================

Single source of truth for gig limits, presentation constants, and the
small text helpers used by cogs, services, and embeds alike.
"""

from __future__ import annotations

import re
from datetime import UTC, datetime

# ---------------------------------------------------------------------------
# Defaults for GigBoardConfig; config.yaml overrides them
# ---------------------------------------------------------------------------
DEFAULT_EXPIRY_DAYS = 7
DEFAULT_COOLDOWN_DAYS = 3
MIN_DESCRIPTION_LENGTH = 100
MIN_PAY = 20

STALE_INSTANCE_DAYS = 30
CLEANUP_LOG_RETENTION_DAYS = 7
CONFIG_TTL_SECONDS = 15.0
PROMPT_DEBOUNCE_SECONDS = 5.0

# How far back prompt upkeep looks for an existing "Post a Gig" message
PROMPT_SCAN_LIMIT = 50

# Discord hard limit is 2000; keep headroom for linkified mentions
MAX_MESSAGE_LENGTH = 1900

# ---------------------------------------------------------------------------
# Presentation
# ---------------------------------------------------------------------------
PROMPT_TITLE = "Post a Gig"

COLOR_BRAND = 0xB296FF
COLOR_APPLICATION = 0x2BB673
COLOR_ALERT = 0xFF0000

GENERIC_ERROR_MESSAGE = "An error occurred. Please try again."


# ---------------------------------------------------------------------------
# Time helpers
# ---------------------------------------------------------------------------
def utcnow() -> datetime:
    return datetime.now(UTC)


def ensure_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on read)."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------
_MARKDOWN_CHARS = re.compile(r"([\\`*_~|>])")
_EVERYONE = re.compile(r"@(everyone|here)", re.IGNORECASE)
_CHANNEL_REF = re.compile(r"channel=(\d{5,})")
_PAY_NUMBER = re.compile(r"\d+")


def sanitize_text(text: str | None) -> str:
    """Neutralize mass mentions and escape Discord markdown.

    ``@everyone`` / ``@here`` get a zero-width space after the ``@`` so they
    render but never ping.
    """
    if not text:
        return ""
    result = _EVERYONE.sub("@\u200b\\1", text)
    return _MARKDOWN_CHARS.sub(r"\\\1", result)


def extract_pay_amount(pay: str) -> int | None:
    """Return the first integer in *pay*, or ``None`` if there is none."""
    match = _PAY_NUMBER.search(pay or "")
    return int(match.group(0)) if match else None


def format_pay(pay: str) -> str:
    """Append ``USD`` to bare numeric amounts (``"1,500"`` → ``"1,500 USD"``)."""
    stripped = pay.replace(",", "").replace(".", "")
    if stripped.isdigit():
        return f"{pay} USD"
    return pay


def message_link(guild_id: int | None, channel_id: int, message_id: int) -> str:
    guild_part = guild_id if guild_id else "@me"
    return f"https://discord.com/channels/{guild_part}/{channel_id}/{message_id}"


def linkify_channel_refs(text: str) -> str:
    """Turn ``channel=123…`` fragments in log lines into clickable mentions."""
    return _CHANNEL_REF.sub(r"channel=<#\1>", text)


def truncate(text: str, limit: int = MAX_MESSAGE_LENGTH) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


# ---------------------------------------------------------------------------
# Id parsing for slash-command string options
# ---------------------------------------------------------------------------
_CHANNEL_TOKEN = re.compile(r"<#(\d+)>|(\d{5,})")
_USER_MENTION = re.compile(r"^<@!?(\d+)>$")


def parse_channel_list(raw: str | None) -> list[int]:
    """Extract channel ids from mentions and bare ids, preserving order."""
    ids: list[int] = []
    for mention, bare in _CHANNEL_TOKEN.findall(raw or ""):
        channel_id = int(mention or bare)
        if channel_id not in ids:
            ids.append(channel_id)
    return ids


def parse_user_id(raw: str | None) -> int | None:
    """Accept ``<@123>``, ``<@!123>`` or a bare snowflake; else ``None``."""
    if not raw:
        return None
    raw = raw.strip()
    mention = _USER_MENTION.match(raw)
    if mention:
        return int(mention.group(1))
    if raw.isdigit() and len(raw) >= 5:
        return int(raw)
    return None
