"""Initial GigBoard schema

Revision ID: 7c2e91d4a0b3
Revises:
Create Date: 2026-10-19 09:12:40.118203

"""
from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '7c2e91d4a0b3'
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create configuration, tracking and audit tables."""

    # --- categories ---
    op.create_table(
        "categories",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False, unique=True),
        sa.Column("approve_mode", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )

    for table in ("category_targets", "category_report_channels"):
        op.create_table(
            table,
            sa.Column(
                "category_id",
                sa.String(36),
                sa.ForeignKey("categories.id", ondelete="CASCADE"),
                primary_key=True,
            ),
            sa.Column("channel_id", sa.BigInteger, primary_key=True),
        )
    op.create_index("ix_category_targets_channel", "category_targets", ["channel_id"])

    op.create_table(
        "debug_channels",
        sa.Column("channel_id", sa.BigInteger, primary_key=True),
    )

    op.create_table(
        "channel_policies",
        sa.Column("channel_id", sa.BigInteger, primary_key=True),
        sa.Column("expiry_days", sa.Integer, nullable=True),
        sa.Column("cooldown_days", sa.Integer, nullable=True),
    )

    op.create_table(
        "role_bindings",
        sa.Column("role_type", sa.String(32), primary_key=True),
        sa.Column("role_id", sa.BigInteger, primary_key=True),
    )

    # --- bans ---
    op.create_table(
        "guild_bans",
        sa.Column("guild_id", sa.BigInteger, primary_key=True),
        sa.Column("user_id", sa.BigInteger, primary_key=True),
        sa.Column("banned_at", sa.DateTime(timezone=True)),
        sa.Column("banned_by", sa.BigInteger, nullable=True),
        sa.Column("reason", sa.Text, nullable=True),
    )
    op.create_table(
        "category_bans",
        sa.Column(
            "category_id",
            sa.String(36),
            sa.ForeignKey("categories.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("user_id", sa.BigInteger, primary_key=True),
        sa.Column("banned_at", sa.DateTime(timezone=True)),
        sa.Column("banned_by", sa.BigInteger, nullable=True),
        sa.Column("reason", sa.Text, nullable=True),
    )

    # --- gigs ---
    op.create_table(
        "gigs",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("author_id", sa.BigInteger, nullable=False),
        sa.Column("category_id", sa.String(36), nullable=True),
        sa.Column("origin_channel_id", sa.BigInteger, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True)),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
    )
    op.create_index("ix_gigs_author", "gigs", ["author_id"])
    op.create_index("ix_gigs_status_expiry", "gigs", ["status", "expires_at"])

    op.create_table(
        "gig_payloads",
        sa.Column(
            "gig_id",
            sa.String(36),
            sa.ForeignKey("gigs.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, nullable=False),
        sa.Column("pay", sa.String(200), nullable=False),
        sa.Column("timeline", sa.String(200), nullable=True),
    )

    op.create_table(
        "gig_instances",
        sa.Column("message_id", sa.BigInteger, primary_key=True, autoincrement=False),
        sa.Column(
            "gig_id",
            sa.String(36),
            sa.ForeignKey("gigs.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("guild_id", sa.BigInteger, nullable=True),
        sa.Column("channel_id", sa.BigInteger, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_gig_instances_gig", "gig_instances", ["gig_id"])
    op.create_index("ix_gig_instances_created", "gig_instances", ["created_at"])

    op.create_table(
        "applications",
        sa.Column(
            "gig_id",
            sa.String(36),
            sa.ForeignKey("gigs.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("applicant_id", sa.BigInteger, primary_key=True),
        sa.Column("applied_at", sa.DateTime(timezone=True)),
    )
    op.create_table(
        "reports",
        sa.Column(
            "gig_id",
            sa.String(36),
            sa.ForeignKey("gigs.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("reporter_id", sa.BigInteger, primary_key=True),
        sa.Column("reported_at", sa.DateTime(timezone=True)),
    )

    op.create_table(
        "rate_limits",
        sa.Column("user_id", sa.BigInteger, primary_key=True),
        sa.Column("channel_id", sa.BigInteger, primary_key=True),
        sa.Column("last_post_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "cleanup_log",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("run_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("deleted_gigs", sa.Integer),
        sa.Column("deleted_instances", sa.Integer),
    )
    op.create_index("ix_cleanup_log_run_at", "cleanup_log", ["run_at"])

    # --- admin_log ---
    op.create_table(
        "admin_log",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("actor_id", sa.BigInteger, nullable=False),
        sa.Column("action_type", sa.String(50), nullable=False),
        sa.Column("target_table", sa.String(50), nullable=False),
        sa.Column("target_id", sa.String(100), nullable=True),
        sa.Column("before_snapshot", postgresql.JSONB, nullable=True),
        sa.Column("after_snapshot", postgresql.JSONB, nullable=True),
        sa.Column("reason", sa.Text, nullable=True),
        sa.Column(
            "timestamp",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("ix_admin_log_actor_time", "admin_log", ["actor_id", "timestamp"])
    op.create_index(
        "ix_admin_log_target", "admin_log",
        ["target_table", "target_id", "timestamp"],
    )


def downgrade() -> None:
    """Drop every GigBoard table."""
    op.drop_index("ix_admin_log_target", table_name="admin_log")
    op.drop_index("ix_admin_log_actor_time", table_name="admin_log")
    op.drop_table("admin_log")
    op.drop_index("ix_cleanup_log_run_at", table_name="cleanup_log")
    op.drop_table("cleanup_log")
    op.drop_table("rate_limits")
    op.drop_table("reports")
    op.drop_table("applications")
    op.drop_index("ix_gig_instances_created", table_name="gig_instances")
    op.drop_index("ix_gig_instances_gig", table_name="gig_instances")
    op.drop_table("gig_instances")
    op.drop_table("gig_payloads")
    op.drop_index("ix_gigs_status_expiry", table_name="gigs")
    op.drop_index("ix_gigs_author", table_name="gigs")
    op.drop_table("gigs")
    op.drop_table("category_bans")
    op.drop_table("guild_bans")
    op.drop_table("role_bindings")
    op.drop_table("channel_policies")
    op.drop_table("debug_channels")
    op.drop_index("ix_category_targets_channel", table_name="category_targets")
    op.drop_table("category_report_channels")
    op.drop_table("category_targets")
    op.drop_table("categories")
