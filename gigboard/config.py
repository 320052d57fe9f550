"""
gigboard.config — YAML Configuration Loader
============================================

Reads ``config.yaml`` for the settings that never change at runtime:
the community identity, the static admin identities, and the policy
defaults that per-channel overrides fall back to.  Everything moderators
can change from Discord (categories, role bindings, channel policies,
debug channels) lives in the database and is read through
:class:`~gigboard.engine.snapshot.ConfigSnapshot`.

Usage::

    from gigboard.config import load_config

    cfg = load_config()               # reads ./config.yaml by default
    print(cfg.default_expiry_days)    # 7
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml

from gigboard.constants import (
    CLEANUP_LOG_RETENTION_DAYS,
    CONFIG_TTL_SECONDS,
    DEFAULT_COOLDOWN_DAYS,
    DEFAULT_EXPIRY_DAYS,
    MIN_DESCRIPTION_LENGTH,
    MIN_PAY,
    PROMPT_DEBOUNCE_SECONDS,
    STALE_INSTANCE_DAYS,
)


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class GigBoardConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity
    community_name: str
    guild_id: int

    # Static admins, never stored in the database
    admin_user_ids: frozenset[int] = frozenset()
    admin_role_ids: frozenset[int] = frozenset()

    support_url: str = "https://discord.com"

    # Gig policy defaults
    default_expiry_days: int = DEFAULT_EXPIRY_DAYS
    default_cooldown_days: int = DEFAULT_COOLDOWN_DAYS
    min_description_length: int = MIN_DESCRIPTION_LENGTH
    min_pay: int = MIN_PAY

    # Maintenance
    config_ttl_seconds: float = CONFIG_TTL_SECONDS
    prompt_debounce_seconds: float = PROMPT_DEBOUNCE_SECONDS
    stale_instance_days: int = STALE_INSTANCE_DAYS
    cleanup_log_retention_days: int = CLEANUP_LOG_RETENTION_DAYS
    backup_dir: str = "backups"
    backup_keep: int = 2
    backup_interval_days: int = 7


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def _id_set(raw: list | None) -> frozenset[int]:
    return frozenset(int(v) for v in (raw or []))


def load_config(path: str | Path = "config.yaml") -> GigBoardConfig:
    """Read *path* and return a :class:`GigBoardConfig` instance.

    Parameters
    ----------
    path:
        Filesystem path to the YAML configuration file.
        Defaults to ``config.yaml`` in the current working directory.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    defaults = GigBoardConfig(community_name="", guild_id=0)
    return GigBoardConfig(
        community_name=raw["community_name"],
        guild_id=int(raw["guild_id"]),
        admin_user_ids=_id_set(raw.get("admin_user_ids")),
        admin_role_ids=_id_set(raw.get("admin_role_ids")),
        support_url=raw.get("support_url", defaults.support_url),
        default_expiry_days=int(raw.get("default_expiry_days", defaults.default_expiry_days)),
        default_cooldown_days=int(raw.get("default_cooldown_days", defaults.default_cooldown_days)),
        min_description_length=int(
            raw.get("min_description_length", defaults.min_description_length)
        ),
        min_pay=int(raw.get("min_pay", defaults.min_pay)),
        config_ttl_seconds=float(raw.get("config_ttl_seconds", defaults.config_ttl_seconds)),
        prompt_debounce_seconds=float(
            raw.get("prompt_debounce_seconds", defaults.prompt_debounce_seconds)
        ),
        stale_instance_days=int(raw.get("stale_instance_days", defaults.stale_instance_days)),
        cleanup_log_retention_days=int(
            raw.get("cleanup_log_retention_days", defaults.cleanup_log_retention_days)
        ),
        backup_dir=str(raw.get("backup_dir", defaults.backup_dir)),
        backup_keep=int(raw.get("backup_keep", defaults.backup_keep)),
        backup_interval_days=int(raw.get("backup_interval_days", defaults.backup_interval_days)),
    )
