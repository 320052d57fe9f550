"""
tests/test_content_filter.py — Contact-Detail Detection Tests
==============================================================
"""

from __future__ import annotations

import pytest

from gigboard.engine.content_filter import (
    REASON_CONTACT,
    REASON_USERNAME,
    scan,
    scan_fields,
)


class TestScan:
    """Phrases, handles, legacy tags and messenger names."""

    @pytest.mark.parametrize("text", [
        "Please DM me for details",
        "hit me up if interested",
        "My Discord is coolguy",
        "reach out via email",
        "Contact me on weekends",
    ])
    def test_contact_phrases(self, text):
        assert scan(text) == REASON_CONTACT

    def test_at_handle(self):
        assert scan("Ask @artist_99 for samples") == REASON_USERNAME

    def test_legacy_discord_tag(self):
        assert scan("Find the owner, painter#1234, for more") == REASON_USERNAME

    def test_messenger_names(self):
        assert scan("Ping on Telegram please") == REASON_CONTACT
        assert scan("wa.me link available") == REASON_CONTACT

    def test_clean_text_passes(self):
        assert scan("Need a 3D model of a castle, low poly, 2 weeks.") is None

    def test_empty_text(self):
        assert scan("") is None
        assert scan(None) is None

    def test_email_at_sign_is_not_a_handle(self):
        # "@" inside a word is not preceded by whitespace
        assert scan("Deliverables in PNG format only") is None
        assert scan("name@example") is None


class TestScanFields:
    def test_skips_empty_fields(self):
        assert scan_fields("Title", None, "", "50 USD") is None

    def test_any_field_triggers(self):
        assert scan_fields("Logo", "Nice brief", "100", "dm me after") == REASON_CONTACT
