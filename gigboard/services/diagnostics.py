"""
gigboard.services.diagnostics — Error Reports, Log Mirror & Health Check
=========================================================================

Three ways the bot tells moderators about itself:

1. :class:`ErrorReporter` posts a ``**Bot Error**`` block (context, error,
   and a trimmed traceback when it fits) to every debug channel.
2. :class:`DebugChannelHandler` is a ``logging.Handler`` that queues
   WARNING+ records; the tasks cog drains the queue into the debug channels
   every few seconds.
3. :func:`reachability_sweep` probes every destination and report channel
   of every category; :func:`run_health_check` posts the result to the
   report channels.

Nothing here raises: a diagnostics failure is logged and dropped.
"""

from __future__ import annotations

import logging
import threading
import traceback
from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from gigboard.constants import MAX_MESSAGE_LENGTH, linkify_channel_refs, truncate
from gigboard.database.engine import run_db
from gigboard.errors import CollaboratorError
from gigboard.services.messaging import OutboundMessage

if TYPE_CHECKING:
    from gigboard.engine.snapshot import ConfigSnapshot
    from gigboard.services.messaging import Messenger

logger = logging.getLogger(__name__)

MAX_TRACEBACK = 800


# ---------------------------------------------------------------------------
# Error reports
# ---------------------------------------------------------------------------
def format_error(error: BaseException | str) -> str:
    if not isinstance(error, BaseException):
        return str(error)
    cause = getattr(error, "cause", None) or error.__cause__
    details = f"{type(error).__name__}: {error}"
    status = getattr(cause, "status", None)
    code = getattr(cause, "code", None)
    if code is not None:
        details += f" code={code}"
    if status is not None:
        details += f" status={status}"
    return details


def build_error_report(context: str, error: BaseException | str) -> str:
    message = f"**Bot Error**\n**Context:** {context}\n**Error:** {format_error(error)}"
    if isinstance(error, BaseException) and error.__traceback__ is not None:
        stack = "".join(traceback.format_exception(type(error), error, error.__traceback__))
        if len(stack) > MAX_TRACEBACK:
            stack = stack[: MAX_TRACEBACK - 3] + "..."
        with_stack = f"{message}\n```\n{stack}\n```"
        if len(with_stack) <= MAX_MESSAGE_LENGTH:
            return linkify_channel_refs(with_stack)
    return linkify_channel_refs(truncate(message))


class ErrorReporter:
    """Posts error reports to the configured debug channels."""

    def __init__(self, messenger: Messenger, snapshot: ConfigSnapshot) -> None:
        self._messenger = messenger
        self._snapshot = snapshot

    async def report(self, context: str, error: BaseException | str) -> int:
        """Send one report per debug channel.  Returns how many landed."""
        if self._snapshot.is_stale():
            try:
                await run_db(self._snapshot.refresh)
            except Exception as exc:
                logger.info("Snapshot refresh before error report failed: %s", exc)
        channels = self._snapshot.debug_channel_ids()
        if not channels:
            return 0
        content = build_error_report(context, error)
        sent = 0
        for channel_id in channels:
            try:
                await self._messenger.send(channel_id, OutboundMessage(content=content))
                sent += 1
            except Exception as exc:
                # INFO, and this logger is excluded from the debug mirror
                logger.info("Error report to channel %d failed: %s", channel_id, exc)
        return sent


# ---------------------------------------------------------------------------
# Debug channel log mirror
# ---------------------------------------------------------------------------
class DebugChannelHandler(logging.Handler):
    """Queue WARNING+ records for delivery to the debug channels.

    ``emit`` may run on any thread (``run_db`` workers log too), so it only
    appends to a bounded deque; :meth:`drain` runs on the event loop.
    """

    def __init__(self, level: int = logging.WARNING, capacity: int = 200) -> None:
        super().__init__(level)
        self._pending: deque[str] = deque(maxlen=capacity)
        self._lock = threading.Lock()
        # Records about delivering records must never be mirrored
        self.addFilter(lambda record: not record.name.startswith(__name__))
        self.addFilter(lambda record: not record.name.startswith("discord"))

    def emit(self, record: logging.LogRecord) -> None:
        try:
            text = self.format(record) if self.formatter else record.getMessage()
            line = truncate(linkify_channel_refs(f"[{record.levelname}] {text}"))
            with self._lock:
                self._pending.append(line)
        except Exception:
            self.handleError(record)

    def take(self) -> list[str]:
        with self._lock:
            lines = list(self._pending)
            self._pending.clear()
        return lines

    async def drain(self, messenger: Messenger, snapshot: ConfigSnapshot) -> int:
        """Deliver queued lines.  Dropped when no debug channel is configured."""
        lines = self.take()
        channels = snapshot.debug_channel_ids()
        if not lines or not channels:
            return 0
        delivered = 0
        for line in lines:
            for channel_id in channels:
                try:
                    await messenger.send(channel_id, OutboundMessage(content=line))
                    delivered += 1
                except Exception as exc:
                    logger.info("Debug mirror to channel %d failed: %s", channel_id, exc)
        return delivered


# ---------------------------------------------------------------------------
# Reachability
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class ChannelStatus:
    channel_id: int
    status: str


@dataclass(slots=True)
class CategoryHealth:
    name: str
    approve_mode: bool
    targets: list[ChannelStatus] = field(default_factory=list)
    reports: list[ChannelStatus] = field(default_factory=list)


async def _probe(messenger: Messenger, channel_id: int) -> ChannelStatus:
    try:
        status = await messenger.channel_access(channel_id)
    except CollaboratorError as exc:
        status = f"error: {exc.user_message}"
    except Exception as exc:
        status = f"error: {format_error(exc)}"
    return ChannelStatus(channel_id=channel_id, status=status)


async def reachability_sweep(snapshot: ConfigSnapshot, messenger: Messenger) -> list[CategoryHealth]:
    """Probe every target and report channel of every category, by name."""
    results: list[CategoryHealth] = []
    categories = sorted(snapshot.current.categories.values(), key=lambda c: c.name.lower())
    for category in categories:
        health = CategoryHealth(name=category.name, approve_mode=category.approve_mode)
        for channel_id in snapshot.targets_for_category(category.id):
            health.targets.append(await _probe(messenger, channel_id))
        for channel_id in snapshot.reports_for_category(category.id):
            health.reports.append(await _probe(messenger, channel_id))
        results.append(health)
    return results


def _status_line(statuses: list[ChannelStatus]) -> str:
    if not statuses:
        return "none"
    return ", ".join(f"<#{s.channel_id}> ({s.status})" for s in statuses)


def format_health_report(results: list[CategoryHealth]) -> str:
    lines = ["**Health Check**"]
    for health in results:
        lines.append(f"**{health.name}** (approval {'on' if health.approve_mode else 'off'})")
        lines.append(f"Targets: {_status_line(health.targets)}")
        lines.append(f"Reports: {_status_line(health.reports)}")
    if len(lines) == 1:
        lines.append("No categories configured.")
    return truncate("\n".join(lines))


async def run_health_check(snapshot: ConfigSnapshot, messenger: Messenger) -> int:
    """Post the health report to every report channel.  Returns posts made."""
    content = format_health_report(await reachability_sweep(snapshot, messenger))
    posted = 0
    for channel_id in sorted(snapshot.report_channel_ids()):
        try:
            await messenger.send(channel_id, OutboundMessage(content=content))
            posted += 1
        except Exception:
            logger.exception("Failed to send health check to channel=%d", channel_id)
    return posted
