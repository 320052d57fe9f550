"""
gigboard.services.gig_workflow — Gig Lifecycle Orchestration
=============================================================

One method per member or moderator action.  Each runs its gates first
(ban, role, cooldown, content) so a rejected action creates no state, then
applies the lifecycle transition through :mod:`gig_service` and hands
delivery to :class:`~gigboard.services.replication.ReplicationEngine`.

Methods return a :class:`WorkflowResult` whose ``message`` is the ephemeral
reply for the member.  Member-caused failures raise
:class:`~gigboard.errors.GigError` subclasses carrying their reply text;
the gigs cog turns those into replies.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from gigboard.constants import (
    extract_pay_amount,
    message_link,
    sanitize_text,
    utcnow,
)
from gigboard.database.engine import run_db
from gigboard.database.models import GigStatus
from gigboard.engine import content_filter
from gigboard.engine.lifecycle import GigAction, initial_action, transition
from gigboard.errors import (
    AccessDeniedError,
    BannedError,
    ConflictError,
    NotFoundError,
    RateLimitedError,
    ValidationError,
)
from gigboard.services import gig_service
from gigboard.services.embeds import (
    build_applicant_report,
    build_application_message,
    build_approval_message,
    build_contact_notice,
    build_removal_notice,
    build_report_message,
    echo_draft,
)
from gigboard.services.gig_service import GigDraft

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from gigboard.config import GigBoardConfig
    from gigboard.database.models import Gig, GigInstance, GigPayload
    from gigboard.engine.access import AccessControl, Actor
    from gigboard.engine.rate_limit import RateLimiter
    from gigboard.engine.snapshot import CategoryInfo, ConfigSnapshot
    from gigboard.services.diagnostics import ErrorReporter
    from gigboard.services.messaging import Messenger, OutboundMessage
    from gigboard.services.replication import DeliveryResult, ReplicationEngine, RetractionResult

logger = logging.getLogger(__name__)

NO_PERMISSION = "You do not have permission to use this action."
CONTACT_NOT_ALLOWED = (
    "**Error:** For your security, contact details are not allowed in gig posts. "
    "The bot handles contact automatically. Please remove any contact info or usernames."
)


# ---------------------------------------------------------------------------
# Value types
# ---------------------------------------------------------------------------
@dataclass(slots=True)
class WorkflowResult:
    message: str
    gig_id: str | None = None
    status: GigStatus | None = None
    deliveries: list[DeliveryResult] = field(default_factory=list)
    retraction: RetractionResult | None = None
    notified: bool | None = None


@dataclass(frozen=True, slots=True)
class ApplicationForm:
    name: str
    message: str
    resume: str


@dataclass(frozen=True, slots=True)
class ApplyTarget:
    """A gig instance a member is allowed to apply to right now."""

    gig: Gig
    instance: GigInstance
    direct: bool
    poster_display: str


# ---------------------------------------------------------------------------
# Workflow
# ---------------------------------------------------------------------------
class GigWorkflow:
    def __init__(
        self,
        engine: Engine,
        cfg: GigBoardConfig,
        snapshot: ConfigSnapshot,
        access: AccessControl,
        rate_limiter: RateLimiter,
        replication: ReplicationEngine,
        messenger: Messenger,
        reporter: ErrorReporter,
    ) -> None:
        self._engine = engine
        self._cfg = cfg
        self._snapshot = snapshot
        self._access = access
        self._rate_limiter = rate_limiter
        self._replication = replication
        self._messenger = messenger
        self._reporter = reporter

    # -------------------------------------------------------------------
    # Shared helpers
    # -------------------------------------------------------------------
    async def _refresh(self) -> None:
        await run_db(self._snapshot.refresh)

    async def _ensure_not_banned(self, actor: Actor, category_id: str | None = None) -> None:
        if await run_db(self._access.is_banned, actor, category_id):
            raise BannedError()

    async def _require_moderator(self, actor: Actor, message: str = NO_PERMISSION) -> None:
        await self._refresh()
        if not self._access.is_moderator(actor):
            raise AccessDeniedError(message)

    async def _load_gig(self, gig_id: str, missing: str = "Gig not found.") -> Gig:
        gig = await run_db(gig_service.get_gig, self._engine, gig_id)
        if gig is None:
            raise NotFoundError(missing)
        return gig

    async def _resolve_message(
        self, message_id: int, missing: str = "This gig could not be found."
    ) -> tuple[Gig, GigInstance]:
        found = await run_db(gig_service.get_gig_for_message, self._engine, message_id)
        if found is None:
            raise NotFoundError(missing)
        return found

    def expiry_days(self, channel_id: int) -> int:
        override = self._snapshot.policy_for_channel(channel_id).expiry_days
        return self._cfg.default_expiry_days if override is None else override

    async def _send_to_channels(
        self, channel_ids: list[int], message: OutboundMessage, context: str
    ) -> int:
        """Send the same message to several channels.  Returns how many landed."""
        sent = 0
        for channel_id in channel_ids:
            try:
                await self._messenger.send(channel_id, message)
                sent += 1
            except Exception as exc:
                logger.warning("Failed to send %s to channel=%d: %s", context, channel_id, exc)
                await self._reporter.report(f"{context} channel={channel_id}", exc)
        return sent

    async def _publish(self, gig: Gig, payload: GigPayload) -> list[DeliveryResult]:
        """Fan out, then put the prompt back under the new gig."""
        results = await self._replication.fan_out(gig, payload)
        for result in results:
            if result.ok:
                await self._replication.ensure_prompt(result.channel_id)
        return results

    async def _link_for(self, gig_id: str) -> str:
        instances = await run_db(gig_service.list_instances, self._engine, gig_id)
        if not instances:
            return "Unavailable"
        first = instances[0]
        return message_link(first.guild_id, first.channel_id, first.message_id)

    # -------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------
    async def start_creation(self, actor: Actor, channel_id: int) -> None:
        """Gate for the "Create a Gig" button; raises if the member may not."""
        await self._refresh()
        await self._ensure_not_banned(actor)
        if channel_id not in self._snapshot.target_channel_ids():
            logger.info("Create gig attempt in non-destination channel=%d", channel_id)
            raise AccessDeniedError("You can't create a gig in this channel.")
        if not self._access.can_create_gig(actor):
            raise AccessDeniedError("You do not have the required role to create gigs.")

    async def available_categories(
        self, actor: Actor, channel_id: int, now: datetime | None = None
    ) -> list[CategoryInfo]:
        """Categories the member may post into from *channel_id*.

        Runs after the terms are accepted: checks the cooldown, then drops
        categories the member is banned from.
        """
        await self._refresh()
        await self._ensure_not_banned(actor)
        status = await run_db(self._rate_limiter.check_cooldown, actor, channel_id, now)
        if not status.eligible:
            raise RateLimitedError(status.cooldown_days, status.retry_after)

        categories = self._snapshot.categories_for_channel(channel_id)
        if not self._access.is_admin(actor):
            banned = await run_db(
                self._access.banned_category_ids, actor.user_id, [c.id for c in categories]
            )
            categories = [c for c in categories if c.id not in banned]
        if not categories:
            raise NotFoundError("No available categories are configured for this channel.")
        return categories

    async def choose_category(self, actor: Actor, category_id: str) -> CategoryInfo:
        await self._refresh()
        await self._ensure_not_banned(actor, category_id)
        category = self._snapshot.category(category_id)
        if category is None:
            raise NotFoundError("Category not found.")
        return category

    def validate_draft(self, draft: GigDraft) -> None:
        """Content filter, description length and pay floor, in that order."""
        echo = echo_draft(draft.title, draft.description, draft.pay, draft.timeline)
        if content_filter.scan_fields(draft.title, draft.description, draft.pay, draft.timeline):
            raise ValidationError(CONTACT_NOT_ALLOWED + echo, draft=draft)
        if len(draft.description) < self._cfg.min_description_length:
            raise ValidationError(
                f"**Error:** Description must be at least {self._cfg.min_description_length} "
                f"characters. Current length: {len(draft.description)}" + echo,
                draft=draft,
            )
        amount = extract_pay_amount(draft.pay)
        if amount is None or amount < self._cfg.min_pay:
            raise ValidationError(
                f"**Error:** Pay must contain a number of at least {self._cfg.min_pay}." + echo,
                draft=draft,
            )

    async def submit_gig(
        self,
        actor: Actor,
        origin_channel_id: int,
        category_id: str,
        draft: GigDraft,
        now: datetime | None = None,
    ) -> WorkflowResult:
        now = now or utcnow()
        await self._refresh()
        await self._ensure_not_banned(actor, category_id)
        if not self._access.can_create_gig(actor):
            raise AccessDeniedError("You do not have the required role to create gigs.")
        self.validate_draft(draft)

        category = self._snapshot.category(category_id)
        if category is None:
            raise NotFoundError("Category not found.")
        report_channels = self._snapshot.reports_for_category(category_id)
        if category.approve_mode and not report_channels:
            raise NotFoundError("This category requires approval, but no report channels are configured.")
        if not category.approve_mode:
            status = await run_db(self._rate_limiter.check_cooldown, actor, origin_channel_id, now)
            if not status.eligible:
                raise RateLimitedError(status.cooldown_days, status.retry_after)

        gig = await run_db(
            gig_service.create_gig,
            self._engine,
            author_id=actor.user_id,
            category_id=category_id,
            origin_channel_id=origin_channel_id,
            status=transition(None, initial_action(category.approve_mode)),
            created_at=now,
            expires_at=now + timedelta(days=self.expiry_days(origin_channel_id)),
            payload=GigDraft(
                title=sanitize_text(draft.title),
                description=sanitize_text(draft.description),
                pay=sanitize_text(draft.pay),
                timeline=sanitize_text(draft.timeline) or None,
            ),
        )
        await run_db(self._rate_limiter.record_post, actor.user_id, origin_channel_id, now)

        if gig.status == GigStatus.PENDING:
            await self._send_to_channels(
                report_channels,
                build_approval_message(gig.id, gig.author_id, gig.payload),
                "post approval",
            )
            return WorkflowResult("Your gig is pending approval.", gig.id, GigStatus.PENDING)

        deliveries = await self._publish(gig, gig.payload)
        if deliveries and not any(d.ok for d in deliveries):
            message = "Your gig could not be posted to any channel. The moderators have been notified."
        else:
            message = "Your gig has been posted successfully to all configured channels!"
        return WorkflowResult(message, gig.id, GigStatus.APPROVED, deliveries=deliveries)

    # -------------------------------------------------------------------
    # Approval
    # -------------------------------------------------------------------
    async def accept_pending(
        self, actor: Actor, gig_id: str, now: datetime | None = None
    ) -> WorkflowResult:
        await self._require_moderator(actor)
        gig = await self._load_gig(gig_id)
        if gig.payload is None:
            raise NotFoundError("Gig payload not found.")
        now = now or utcnow()
        expires_at = now + timedelta(days=self.expiry_days(gig.origin_channel_id))
        approved = await run_db(gig_service.approve_gig, self._engine, gig_id, expires_at)
        deliveries = await self._publish(approved, approved.payload)
        logger.info("Gig %s accepted by %d", gig_id, actor.user_id)
        return WorkflowResult(
            "Gig approved and posted.", gig_id, GigStatus.APPROVED, deliveries=deliveries
        )

    async def reject_pending(self, actor: Actor, gig_id: str) -> WorkflowResult:
        await self._require_moderator(actor)
        gig = await self._load_gig(gig_id)
        transition(gig.status, GigAction.REJECT)
        retraction = await self._replication.retract(gig_id)
        logger.info("Gig %s rejected by %d", gig_id, actor.user_id)
        return WorkflowResult(
            "Gig rejected and deleted.", gig_id, GigStatus.DELETED, retraction=retraction
        )

    async def banish(self, actor: Actor, gig_id: str, context: str = "approval") -> WorkflowResult:
        """Ban the author in this guild and the gig's category, then retract.

        *context* (``approval``, ``report`` or ``gig``) is stored as the ban
        reason.
        """
        denied = "You do not have permission to banish this user." if context == "gig" else NO_PERMISSION
        await self._require_moderator(actor, denied)
        gig = await self._load_gig(gig_id)
        transition(gig.status, GigAction.BANISH)
        # A deleted category leaves its gigs live; only the guild ban applies then
        category_id = gig.category_id if self._snapshot.category(gig.category_id) else None
        await run_db(
            gig_service.ban_user,
            self._engine,
            user_id=gig.author_id,
            guild_id=actor.guild_id,
            category_id=category_id,
            banned_by=actor.user_id,
            reason=f"{context} banish",
        )
        retraction = await self._replication.retract(gig_id)
        return WorkflowResult(
            "Gig deleted and user banished.", gig_id, GigStatus.DELETED, retraction=retraction
        )

    async def banish_from_message(self, actor: Actor, message_id: int) -> WorkflowResult:
        gig, _ = await self._resolve_message(message_id, "This gig instance could not be found.")
        return await self.banish(actor, gig.id, context="gig")

    # -------------------------------------------------------------------
    # Deletion
    # -------------------------------------------------------------------
    async def delete_requires_reason(self, actor: Actor, message_id: int) -> bool:
        """True when a moderator is deleting someone else's gig."""
        await self._refresh()
        gig, _ = await self._resolve_message(message_id, "This gig instance could not be found.")
        if not self._access.can_manage_gig(actor, gig.author_id):
            raise AccessDeniedError("You do not have permission to delete this gig.")
        return actor.user_id != gig.author_id

    async def delete_gig(
        self, actor: Actor, message_id: int, reason: str | None = None
    ) -> WorkflowResult:
        await self._refresh()
        gig, instance = await self._resolve_message(message_id, "This gig instance could not be found.")
        if not self._access.can_manage_gig(actor, gig.author_id):
            raise AccessDeniedError("You do not have permission to delete this gig.")
        moderated = actor.user_id != gig.author_id
        if moderated and not (reason and reason.strip()):
            raise ValidationError("A reason is required to delete another member's gig.")
        transition(gig.status, GigAction.DELETE)

        link = message_link(instance.guild_id, instance.channel_id, instance.message_id)
        retraction = await self._replication.retract(gig.id)
        if not moderated:
            return WorkflowResult(
                "Gig deleted successfully from all servers.", gig.id, GigStatus.DELETED,
                retraction=retraction,
            )

        try:
            await self._messenger.notify_user(gig.author_id, build_removal_notice(reason or "", link))
            notified = True
        except Exception as exc:
            logger.warning("Failed to DM poster %d about removal: %s", gig.author_id, exc)
            await self._reporter.report("delete reason DM poster", exc)
            notified = False
        message = "Gig deleted and poster notified." if notified else "Gig deleted, but I could not DM the poster."
        return WorkflowResult(message, gig.id, GigStatus.DELETED, retraction=retraction, notified=notified)

    async def delete_reported(self, actor: Actor, gig_id: str) -> WorkflowResult:
        await self._require_moderator(actor)
        gig = await self._load_gig(gig_id)
        transition(gig.status, GigAction.DELETE)
        retraction = await self._replication.retract(gig_id)
        return WorkflowResult("Gig deleted.", gig_id, GigStatus.DELETED, retraction=retraction)

    async def delete_all_for_user(self, actor: Actor) -> WorkflowResult:
        await self._refresh()
        await self._ensure_not_banned(actor)
        gig_ids = await run_db(gig_service.gig_ids_for_author, self._engine, actor.user_id)
        if not gig_ids:
            return WorkflowResult("You have no active gigs to delete.")
        for gig_id in gig_ids:
            await self._replication.retract(gig_id)
        return WorkflowResult(f"Successfully deleted {len(gig_ids)} gigs from all locations.")

    # -------------------------------------------------------------------
    # Applications
    # -------------------------------------------------------------------
    async def check_can_apply(self, actor: Actor, message_id: int) -> ApplyTarget:
        await self._refresh()
        applicant_type = self._access.applicant_type(actor)
        if applicant_type is None:
            raise AccessDeniedError("You do not have the required role to apply for gigs.")
        gig, instance = await self._resolve_message(message_id, "This gig is no longer available.")
        if gig.status != GigStatus.APPROVED:
            raise NotFoundError("This gig is not currently available.")
        await self._ensure_not_banned(actor, gig.category_id)

        direct = applicant_type == "direct"
        poster = self._messenger.display_name(gig.author_id)
        if await run_db(gig_service.has_applied, self._engine, gig.id, actor.user_id):
            if direct:
                raise ConflictError(
                    f"You have already applied for this gig. You can directly message the poster: {poster}."
                )
            raise ConflictError(
                "You have already applied for this gig. Please wait for the poster to reach out."
            )
        return ApplyTarget(gig=gig, instance=instance, direct=direct, poster_display=poster)

    async def apply_to_gig(
        self,
        actor: Actor,
        message_id: int,
        form: ApplicationForm,
        applicant_tag: str,
        now: datetime | None = None,
    ) -> WorkflowResult:
        """DM the application to the poster; the row is stored only once it lands."""
        target = await self.check_can_apply(actor, message_id)
        gig, instance = target.gig, target.instance
        category = self._snapshot.category(gig.category_id)
        notice = build_application_message(
            gig_id=gig.id,
            applicant_user_id=actor.user_id,
            applicant_tag=applicant_tag,
            category_name=category.name if category else "Uncategorized",
            link=message_link(instance.guild_id, instance.channel_id, instance.message_id),
            name=form.name,
            message=form.message,
            resume=form.resume,
            submitted_at=now,
        )
        try:
            await self._messenger.notify_user(gig.author_id, notice)
        except Exception as exc:
            logger.warning("Failed to DM poster %d an application: %s", gig.author_id, exc)
            await self._reporter.report("apply DM poster", exc)
            if target.direct:
                message = (
                    "I couldn't deliver your application. "
                    f"You can message the poster directly: {target.poster_display}."
                )
            else:
                message = "I could not deliver your application. Please try again later."
            return WorkflowResult(message, gig.id, notified=False)

        await run_db(gig_service.record_application, self._engine, gig.id, actor.user_id)
        if target.direct:
            message = (
                "Your application was sent. "
                f"You can also message the poster directly: {target.poster_display}."
            )
        else:
            message = "Your application was sent. The poster will reach out if interested."
        return WorkflowResult(message, gig.id, notified=True)

    # -------------------------------------------------------------------
    # Reports
    # -------------------------------------------------------------------
    async def poster_info(self, message_id: int) -> str:
        """What a moderator sees instead of the report form."""
        gig, _ = await self._resolve_message(message_id)
        return f"**Poster Info:**\nUser ID: {gig.author_id}\nUser: <@{gig.author_id}>"

    async def check_can_report(self, actor: Actor, message_id: int) -> None:
        gig, _ = await self._resolve_message(message_id)
        await self._ensure_not_banned(actor, gig.category_id)

    async def report_gig(
        self, actor: Actor, message_id: int, reason: str, reporter_tag: str
    ) -> WorkflowResult:
        await self._refresh()
        gig, instance = await self._resolve_message(message_id)
        await self._ensure_not_banned(actor, gig.category_id)
        await run_db(gig_service.record_report, self._engine, gig.id, actor.user_id)

        category = self._snapshot.category(gig.category_id)
        notice = build_report_message(
            gig_id=gig.id,
            reporter=reporter_tag,
            reporter_id=actor.user_id,
            author_id=gig.author_id,
            category_name=category.name if category else "Uncategorized",
            link=message_link(instance.guild_id, instance.channel_id, instance.message_id),
            reason=reason,
        )
        channels = self._snapshot.reports_for_category(gig.category_id)
        if not channels:
            logger.warning("Gig %s reported but its category has no report channels", gig.id)
        await self._send_to_channels(channels, notice, "send report")
        return WorkflowResult("Thank you for your report. The moderators have been notified.", gig.id)

    # -------------------------------------------------------------------
    # Poster actions on an application DM
    # -------------------------------------------------------------------
    async def _managed_gig(self, actor: Actor, gig_id: str) -> Gig:
        await self._refresh()
        gig = await self._load_gig(gig_id)
        if not self._access.can_manage_gig(actor, gig.author_id):
            raise AccessDeniedError(NO_PERMISSION)
        return gig

    async def contact_applicant(self, actor: Actor, gig_id: str, applicant_id: int) -> WorkflowResult:
        gig = await self._managed_gig(actor, gig_id)
        try:
            await self._messenger.notify_user(applicant_id, build_contact_notice(gig.author_id))
        except Exception as exc:
            logger.warning("Failed to DM applicant %d: %s", applicant_id, exc)
            await self._reporter.report("contact applicant", exc)
            return WorkflowResult("Failed to contact applicant.", gig_id, notified=False)
        return WorkflowResult("Applicant notified.", gig_id, notified=True)

    async def report_applicant(self, actor: Actor, gig_id: str, applicant_id: int) -> WorkflowResult:
        gig = await self._managed_gig(actor, gig_id)
        channels = self._snapshot.reports_for_category(gig.category_id)
        if not channels:
            raise NotFoundError("No report channels are configured for this category.")
        notice = build_applicant_report(
            reporter_id=actor.user_id,
            applicant_user_id=applicant_id,
            gig_id=gig_id,
            link=await self._link_for(gig_id),
        )
        sent = await self._send_to_channels(channels, notice, "send application report")
        if not sent:
            logger.warning("Application report for gig %s reached no report channel", gig_id)
        return WorkflowResult("Report sent to moderators.", gig_id)
