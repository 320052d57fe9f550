"""
gigboard.engine.lifecycle — Gig State Machine
==============================================

::

    (new) ──SUBMIT──────────────▶ APPROVED ──DELETE / EXPIRE / BANISH──▶ DELETED
      │                              ▲
      └──SUBMIT_FOR_APPROVAL──▶ PENDING ──ACCEPT──┘
                                   │
                                   └──REJECT / BANISH / DELETE──▶ DELETED

A gig becomes PENDING only when its category has approval mode on.  Nothing
ever returns to PENDING.  DELETED is terminal and is represented in the
store by the absence of the row.
"""

from __future__ import annotations

import enum

from gigboard.database.models import GigStatus
from gigboard.errors import InvalidTransitionError


class GigAction(enum.StrEnum):
    SUBMIT = "submit"
    SUBMIT_FOR_APPROVAL = "submit_for_approval"
    ACCEPT = "accept"
    REJECT = "reject"
    BANISH = "banish"
    DELETE = "delete"
    EXPIRE = "expire"


# (current status, action) → next status.  ``None`` is a gig not yet stored.
TRANSITIONS: dict[tuple[GigStatus | None, GigAction], GigStatus] = {
    (None, GigAction.SUBMIT): GigStatus.APPROVED,
    (None, GigAction.SUBMIT_FOR_APPROVAL): GigStatus.PENDING,
    (GigStatus.PENDING, GigAction.ACCEPT): GigStatus.APPROVED,
    (GigStatus.PENDING, GigAction.REJECT): GigStatus.DELETED,
    (GigStatus.PENDING, GigAction.BANISH): GigStatus.DELETED,
    (GigStatus.PENDING, GigAction.DELETE): GigStatus.DELETED,
    (GigStatus.APPROVED, GigAction.BANISH): GigStatus.DELETED,
    (GigStatus.APPROVED, GigAction.DELETE): GigStatus.DELETED,
    (GigStatus.APPROVED, GigAction.EXPIRE): GigStatus.DELETED,
}


def transition(current: GigStatus | str | None, action: GigAction) -> GigStatus:
    """Return the status *action* leads to from *current*.

    Raises
    ------
    InvalidTransitionError
        If the pair is not in :data:`TRANSITIONS`.
    """
    status = GigStatus(current) if current is not None else None
    try:
        return TRANSITIONS[(status, action)]
    except KeyError:
        raise InvalidTransitionError(status, action) from None


def initial_action(approve_mode: bool) -> GigAction:
    return GigAction.SUBMIT_FOR_APPROVAL if approve_mode else GigAction.SUBMIT
