"""
gigboard.services.replication — Fan-Out, Retraction & Prompt Upkeep
====================================================================

An approved gig exists as one message per destination channel of its
category.  This module owns those copies.

- :meth:`ReplicationEngine.fan_out` sends the gig to every destination
  independently and records a ``GigInstance`` per success.  One failing
  channel never stops the others; the caller gets a
  :class:`DeliveryResult` per destination.
- :meth:`ReplicationEngine.retract` deletes every instance independently,
  then removes the gig record whatever happened to the messages.
- :meth:`ReplicationEngine.ensure_prompt` keeps exactly one "Post a Gig"
  prompt per destination, and keeps it the newest message there.
  Chatty channels go through :class:`PromptDebouncer` so a burst of
  messages triggers at most one check per channel per interval.
"""

from __future__ import annotations

import enum
import logging
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from gigboard.constants import PROMPT_DEBOUNCE_SECONDS, PROMPT_SCAN_LIMIT, PROMPT_TITLE
from gigboard.database.engine import run_db
from gigboard.services import gig_service
from gigboard.services.diagnostics import format_error
from gigboard.services.embeds import build_gig_message, build_prompt_message

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from gigboard.database.models import Gig, GigPayload
    from gigboard.engine.snapshot import ConfigSnapshot
    from gigboard.services.diagnostics import ErrorReporter
    from gigboard.services.messaging import Messenger

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class DeliveryResult:
    channel_id: int
    ok: bool
    message_id: int | None = None
    error: str | None = None


@dataclass(frozen=True, slots=True)
class InstanceFailure:
    message_id: int
    channel_id: int
    error: str


@dataclass(slots=True)
class RetractionResult:
    gig_id: str
    attempted: int = 0
    deleted: int = 0
    failures: list[InstanceFailure] = field(default_factory=list)
    record_removed: bool = False


class PromptAction(enum.StrEnum):
    KEPT = "kept"
    POSTED = "posted"
    REPOSTED = "reposted"
    SKIPPED = "skipped"
    FAILED = "failed"


# ---------------------------------------------------------------------------
# Debounce map
# ---------------------------------------------------------------------------
class PromptDebouncer:
    """Bounded channel → last-check map with least-recently-checked eviction."""

    def __init__(
        self,
        interval: float = PROMPT_DEBOUNCE_SECONDS,
        max_entries: int = 1024,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.interval = interval
        self.max_entries = max_entries
        self._clock = clock
        self._last: OrderedDict[int, float] = OrderedDict()

    def should_check(self, channel_id: int) -> bool:
        """True (and the check is recorded) if the interval has elapsed."""
        now = self._clock()
        last = self._last.get(channel_id)
        if last is not None and now - last < self.interval:
            return False
        self._last[channel_id] = now
        self._last.move_to_end(channel_id)
        while len(self._last) > self.max_entries:
            self._last.popitem(last=False)
        return True

    def __len__(self) -> int:
        return len(self._last)

    def __contains__(self, channel_id: object) -> bool:
        return channel_id in self._last


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------
class ReplicationEngine:
    """Owns every replicated gig message and every "Post a Gig" prompt."""

    def __init__(
        self,
        engine: Engine,
        snapshot: ConfigSnapshot,
        messenger: Messenger,
        reporter: ErrorReporter,
        support_url: str,
        debouncer: PromptDebouncer | None = None,
    ) -> None:
        self._engine = engine
        self._snapshot = snapshot
        self._messenger = messenger
        self._reporter = reporter
        self._support_url = support_url
        self.debouncer = debouncer or PromptDebouncer()

    # -------------------------------------------------------------------
    # Fan-out
    # -------------------------------------------------------------------
    async def fan_out(self, gig: Gig, payload: GigPayload) -> list[DeliveryResult]:
        """Post *gig* to each destination of its category.

        A message that was sent but could not be recorded is deleted again.
        If the gig itself was deleted meanwhile, the remaining destinations
        are skipped.
        """
        existing = {
            inst.channel_id
            for inst in await run_db(gig_service.list_instances, self._engine, gig.id)
        }
        results: list[DeliveryResult] = []
        for channel_id in self._snapshot.targets_for_category(gig.category_id):
            if channel_id in existing:
                continue
            try:
                sent = await self._messenger.send(channel_id, build_gig_message(payload))
            except Exception as exc:
                logger.exception("Failed to post gig %s in channel=%d", gig.id, channel_id)
                await self._reporter.report(f"post gig channel={channel_id}", exc)
                results.append(DeliveryResult(channel_id, ok=False, error=format_error(exc)))
                continue

            try:
                await run_db(
                    gig_service.add_instance,
                    self._engine,
                    message_id=sent.message_id,
                    gig_id=gig.id,
                    guild_id=sent.guild_id,
                    channel_id=channel_id,
                )
            except Exception as exc:
                results.append(DeliveryResult(channel_id, ok=False, error=format_error(exc)))
                await self._discard(channel_id, sent.message_id)
                if await run_db(gig_service.get_gig, self._engine, gig.id) is None:
                    logger.info("Gig %s deleted during fan-out, stopping at channel=%d", gig.id, channel_id)
                    break
                logger.exception("Failed to record gig %s message in channel=%d", gig.id, channel_id)
                await self._reporter.report(f"record gig channel={channel_id}", exc)
                continue
            results.append(DeliveryResult(channel_id, ok=True, message_id=sent.message_id))

        delivered = sum(1 for r in results if r.ok)
        logger.info("Gig %s fanned out: %d/%d destinations", gig.id, delivered, len(results))
        return results

    async def _discard(self, channel_id: int, message_id: int) -> None:
        """Best-effort delete of an untracked gig message."""
        try:
            await self._messenger.delete(channel_id, message_id)
        except Exception as exc:
            logger.warning(
                "Untracked gig message message_id=%d channel=%d left behind: %s",
                message_id, channel_id, exc,
            )
            await self._reporter.report(
                f"discard gig message_id={message_id} channel={channel_id}", exc,
            )

    # -------------------------------------------------------------------
    # Retraction
    # -------------------------------------------------------------------
    async def retract(self, gig_id: str) -> RetractionResult:
        """Delete every instance of *gig_id*, then the gig record itself."""
        result = RetractionResult(gig_id=gig_id)
        instances = await run_db(gig_service.list_instances, self._engine, gig_id)
        result.attempted = len(instances)
        for inst in instances:
            try:
                await self._messenger.delete(inst.channel_id, inst.message_id)
                result.deleted += 1
            except Exception as exc:
                logger.warning(
                    "Failed to delete gig message message_id=%d channel=%d: %s",
                    inst.message_id, inst.channel_id, exc,
                )
                await self._reporter.report(
                    f"delete gig message_id={inst.message_id} channel={inst.channel_id}", exc,
                )
                result.failures.append(
                    InstanceFailure(inst.message_id, inst.channel_id, format_error(exc))
                )
        result.record_removed = await run_db(gig_service.delete_gig_row, self._engine, gig_id)
        logger.info(
            "Gig %s retracted: %d/%d messages deleted, record removed=%s",
            gig_id, result.deleted, result.attempted, result.record_removed,
        )
        return result

    # -------------------------------------------------------------------
    # "Post a Gig" prompts
    # -------------------------------------------------------------------
    async def ensure_prompt(self, channel_id: int) -> PromptAction:
        """Keep exactly one prompt in *channel_id*, as its newest message."""
        try:
            recent = await self._messenger.fetch_recent(channel_id, PROMPT_SCAN_LIMIT)
            prompts = [m for m in recent if m.from_self and m.title == PROMPT_TITLE]
            newest = recent[0].message_id if recent else None

            if len(prompts) == 1 and prompts[0].message_id == newest:
                return PromptAction.KEPT
            if prompts:
                await self._messenger.bulk_delete(channel_id, [m.message_id for m in prompts])
                action = PromptAction.REPOSTED
            else:
                action = PromptAction.POSTED
            await self._messenger.send(channel_id, build_prompt_message(self._support_url))
            return action
        except Exception as exc:
            logger.warning("Could not ensure prompt in channel=%d: %s", channel_id, exc)
            await self._reporter.report(f"ensure prompt channel={channel_id}", exc)
            return PromptAction.FAILED

    async def ensure_prompt_debounced(self, channel_id: int) -> PromptAction:
        """Prompt upkeep after channel activity; destinations only, debounced."""
        if channel_id not in self._snapshot.target_channel_ids():
            return PromptAction.SKIPPED
        if not self.debouncer.should_check(channel_id):
            return PromptAction.SKIPPED
        return await self.ensure_prompt(channel_id)

    async def ensure_all_prompts(self) -> dict[int, PromptAction]:
        return {
            channel_id: await self.ensure_prompt(channel_id)
            for channel_id in sorted(self._snapshot.target_channel_ids())
        }
