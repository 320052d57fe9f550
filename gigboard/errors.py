"""
gigboard.errors — Error Taxonomy
=================================

Every failure a member can cause is a :class:`GigError` carrying the text
the bot replies with.  Cogs catch ``GigError`` and answer ephemerally with
``exc.user_message``; anything else is an unexpected fault that gets logged
and mirrored to the debug channels.

- :class:`ValidationError` — bad input; carries the submitted draft so the
  reply can echo it back for the member to copy.
- :class:`AccessDeniedError` — missing role or banned (:class:`BannedError`),
  or still cooling down (:class:`RateLimitedError`).
- :class:`ConflictError` — uniqueness violated (duplicate application,
  duplicate report, category name taken).
- :class:`NotFoundError` — gig, instance, or category is gone.
- :class:`CollaboratorError` — Discord refused a send / delete / DM.
- :class:`InvalidTransitionError` — a lifecycle action that does not apply
  to the gig's current status.
"""

from __future__ import annotations

from typing import Any


class GigError(Exception):
    """Base class for all member-facing failures."""

    default_message = "Something went wrong."

    def __init__(self, user_message: str | None = None) -> None:
        self.user_message = user_message or self.default_message
        super().__init__(self.user_message)


class ValidationError(GigError):
    default_message = "Your submission is invalid."

    def __init__(self, user_message: str | None = None, *, draft: Any = None) -> None:
        super().__init__(user_message)
        self.draft = draft


class AccessDeniedError(GigError):
    default_message = "You do not have permission to use this action."


class BannedError(AccessDeniedError):
    default_message = "You are banned from using this bot."


class RateLimitedError(AccessDeniedError):
    """Posting cooldown still running for this channel."""

    def __init__(self, cooldown_days: int, retry_after: Any = None) -> None:
        unit = "day" if cooldown_days == 1 else "days"
        super().__init__(f"You can only post one gig every {cooldown_days} {unit} in this channel.")
        self.cooldown_days = cooldown_days
        self.retry_after = retry_after


class ConflictError(GigError):
    default_message = "That already exists."


class NotFoundError(GigError):
    default_message = "This gig could not be found."


class CollaboratorError(GigError):
    """A Discord call failed.  ``cause`` keeps the original exception."""

    default_message = "Discord rejected the request."

    def __init__(self, user_message: str | None = None, *, cause: BaseException | None = None) -> None:
        super().__init__(user_message)
        self.cause = cause


class InvalidTransitionError(GigError):
    """Raised when a lifecycle action is not valid for the current status."""

    default_message = "This gig is not currently available."

    def __init__(self, current: Any, action: Any) -> None:
        self.current = current
        self.action = action
        super().__init__()

    def __str__(self) -> str:
        return f"Cannot {self.action} a gig in status {self.current}"
