"""Tests for id, API key and slug generation."""

import re
import uuid

from app.core.keygen import REVOKED_PLACEHOLDER, mask_api_key, new_api_key, new_id, new_slug


def test_new_id_is_uuid4_string():
    value = new_id()
    assert len(value) == 36
    assert uuid.UUID(value).version == 4


def test_new_ids_are_distinct():
    assert len({new_id() for _ in range(200)}) == 200


def test_api_key_is_64_hex_chars():
    key = new_api_key()
    assert re.fullmatch(r"[0-9a-f]{64}", key)


def test_api_keys_are_distinct():
    assert len({new_api_key() for _ in range(200)}) == 200


def test_slug_is_eight_url_safe_chars():
    for _ in range(50):
        slug = new_slug()
        assert re.fullmatch(r"[A-Za-z0-9_-]{8}", slug)


class TestMaskApiKey:
    def test_active_key_shows_only_suffix(self):
        key = "a" * 56 + "12345678"
        assert mask_api_key(key, revoked=False) == "****12345678"

    def test_revoked_key_shows_placeholder(self):
        assert mask_api_key(new_api_key(), revoked=True) == REVOKED_PLACEHOLDER

    def test_custom_suffix_length(self):
        assert mask_api_key("abcdef", revoked=False, suffix=2) == "****ef"

    def test_raw_key_never_leaks(self):
        key = new_api_key()
        assert key not in mask_api_key(key, revoked=False)
