"""
GigBoard — A Moderated Gig Board for Discord Communities
==========================================================
Members post paid gigs through a modal form, moderators optionally approve
them, and approved gigs are replicated as interactive messages into every
destination channel of their category.  Expired, rejected, and removed gigs
are retracted everywhere they were posted.

Package layout::

    gigboard/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Limits, text sanitization, id parsing
    ├── errors.py          # GigError taxonomy with user-facing messages
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   └── models.py      # All ORM models
    ├── engine/
    │   ├── snapshot.py    # TTL-refreshed configuration snapshot
    │   ├── access.py      # Admin / moderator / role gates + bans
    │   ├── rate_limit.py  # Per-(user, channel) posting cooldown
    │   ├── content_filter.py  # Contact-detail detection
    │   └── lifecycle.py   # Gig state machine
    ├── services/
    │   ├── gig_service.py     # Gig persistence
    │   ├── gig_workflow.py    # Submit / approve / apply / report / delete
    │   ├── replication.py     # Fan-out, retraction, "Post a Gig" prompts
    │   ├── cleanup_service.py # Daily expiry + stale sweep
    │   ├── backup_service.py  # Configuration backups
    │   ├── diagnostics.py     # Error reports, debug log mirror, health
    │   ├── admin_service.py   # Audit-logged configuration mutations
    │   ├── messaging.py       # Messenger collaborator (Discord adapter)
    │   └── embeds.py          # Embeds + button layouts
    └── bot/
        ├── core.py        # Bot subclass, cog loader
        ├── views.py       # Modals and pickers
        └── cogs/
            ├── gigs.py    # Component dispatch + prompt upkeep
            ├── admin.py   # /category, /roles, /channel, /debug, /unbanish, /health
            └── tasks.py   # Cleanup loop + debug log drain
"""

__version__ = "0.1.0"
