"""
tests/test_config.py — YAML Configuration Loader Tests
=======================================================
"""

from __future__ import annotations

import pytest

from gigboard.config import load_config
from gigboard.constants import (
    CLEANUP_LOG_RETENTION_DAYS,
    CONFIG_TTL_SECONDS,
    PROMPT_DEBOUNCE_SECONDS,
    STALE_INSTANCE_DAYS,
)


def _write(tmp_path, text: str):
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return path


class TestLoadConfig:
    def test_defaults_fill_missing_keys(self, tmp_path):
        cfg = load_config(_write(tmp_path, "community_name: Test\nguild_id: '123'\n"))
        assert cfg.community_name == "Test"
        assert cfg.guild_id == 123
        assert cfg.default_expiry_days == 7
        assert cfg.default_cooldown_days == 3
        assert cfg.min_description_length == 100
        assert cfg.min_pay == 20
        assert cfg.admin_user_ids == frozenset()

    def test_maintenance_defaults_follow_constants(self, tmp_path):
        cfg = load_config(_write(tmp_path, "community_name: Test\nguild_id: 1\n"))
        assert cfg.stale_instance_days == STALE_INSTANCE_DAYS == 30
        assert cfg.cleanup_log_retention_days == CLEANUP_LOG_RETENTION_DAYS == 7
        assert cfg.config_ttl_seconds == CONFIG_TTL_SECONDS == 15.0
        assert cfg.prompt_debounce_seconds == PROMPT_DEBOUNCE_SECONDS == 5.0

    def test_admin_ids_and_overrides(self, tmp_path):
        cfg = load_config(_write(tmp_path, (
            "community_name: Test\n"
            "guild_id: 1\n"
            "admin_user_ids: [11, '12']\n"
            "admin_role_ids: [21]\n"
            "default_cooldown_days: 0\n"
            "config_ttl_seconds: 30\n"
        )))
        assert cfg.admin_user_ids == frozenset({11, 12})
        assert cfg.admin_role_ids == frozenset({21})
        assert cfg.default_cooldown_days == 0
        assert cfg.config_ttl_seconds == 30.0

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")

    def test_missing_required_key(self, tmp_path):
        with pytest.raises(KeyError):
            load_config(_write(tmp_path, "guild_id: 1\n"))
