"""
gigboard.engine.content_filter — Contact-Detail Detection
==========================================================

Gig posts must not carry contact details: the bot relays applications
itself, so posters never need to publish a handle.  :func:`scan` returns a
short reason when the text looks like it solicits off-platform contact, or
``None`` when it is clean.  It is advisory: the workflow decides what a
match means.
"""

from __future__ import annotations

import re

REASON_CONTACT = "external contact request"
REASON_USERNAME = "discord username mention"

CONTACT_PHRASES: tuple[str, ...] = (
    "dm me",
    "message me",
    "contact me",
    "reach me",
    "hit me up",
    "add me",
    "ping me",
    "find me on",
    "message on discord",
    "dm on discord",
    "discord dm",
    "discord me",
    "discord tag",
    "discord:",
    "discord -",
    "discord handle",
    "discord username",
    "my discord is",
    "my discord:",
    "my discord -",
    "my tag is",
    "my tag:",
    "my handle is",
    "my handle:",
    "my username is",
    "my username:",
    "reach out on",
    "reach out via",
    "reach out at",
    "send me a dm",
    "send me a message",
    "shoot me a dm",
    "shoot me a message",
    "drop me a dm",
    "drop me a message",
    "contact via",
)

_HANDLE = re.compile(r"(^|\s)@\w{2,32}")
_LEGACY_TAG = re.compile(r"\b[a-z0-9._-]{2,32}#[0-9]{4}\b", re.IGNORECASE)
_MESSENGERS = re.compile(
    r"\b(whatsapp|wa\.me|telegram|t\.me|signal|wechat|line|kik|skype|viber)\b",
    re.IGNORECASE,
)


def scan(text: str | None) -> str | None:
    """Return why *text* looks like a contact request, or ``None``."""
    if not text:
        return None
    lowered = text.lower()
    if any(phrase in lowered for phrase in CONTACT_PHRASES):
        return REASON_CONTACT
    if _HANDLE.search(text) or _LEGACY_TAG.search(text):
        return REASON_USERNAME
    if _MESSENGERS.search(text):
        return REASON_CONTACT
    return None


def scan_fields(*fields: str | None) -> str | None:
    """Scan several form fields as one text, skipping empty ones."""
    return scan(" ".join(f for f in fields if f))
