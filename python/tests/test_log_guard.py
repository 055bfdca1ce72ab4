"""Tests for log hygiene helpers.

Covers:
- hash_text digests
- safe_kv blocking secrets and message content
- Request-scoped context injected into log events
"""

import pytest

from contently.logging import (
    add_request_context,
    clear_request_context,
    set_auth_via,
    set_request_context,
)
from contently.services.redact import FORBIDDEN_KEYS, hash_text, safe_kv


class TestHashText:
    def test_stable_output(self):
        assert hash_text("Announce our v2 launch") == hash_text("Announce our v2 launch")

    def test_different_inputs_differ(self):
        assert hash_text("twitter") != hash_text("linkedin")

    def test_returns_sha256_hex(self):
        result = hash_text("")
        assert len(result) == 64
        assert all(c in "0123456789abcdef" for c in result)


class TestSafeKv:
    def test_allows_safe_keys(self):
        result = safe_kv(model_name="llama-3.1-8b-instant", latency_ms=120, status_code=200)
        assert result == {
            "model_name": "llama-3.1-8b-instant",
            "latency_ms": 120,
            "status_code": 200,
        }

    def test_allows_redacted_suffix_keys(self):
        result = safe_kv(prompt_sha256="abc", content_chars=42, refresh_token_hash="def")
        assert result == {"prompt_sha256": "abc", "content_chars": 42, "refresh_token_hash": "def"}

    @pytest.mark.parametrize("key", sorted(FORBIDDEN_KEYS))
    def test_forbidden_key_raises_in_test(self, key):
        with pytest.raises(ValueError, match="Forbidden log keys"):
            safe_kv(**{key: "value"}, _env="test")

    def test_forbidden_key_passes_through_in_prod(self):
        result = safe_kv(password="hunter22", _env="prod")
        assert result == {"password": "hunter22"}


class TestRequestContext:
    def setup_method(self):
        clear_request_context()

    def teardown_method(self):
        clear_request_context()

    def test_context_injected_into_events(self):
        set_request_context("req-1", user_id="u-1", path="/conversations", method="POST")
        set_auth_via("session")

        event_dict = add_request_context(None, "info", {"event": "x"})

        assert event_dict == {
            "event": "x",
            "request_id": "req-1",
            "user_id": "u-1",
            "path": "/conversations",
            "method": "POST",
            "auth_via": "session",
        }

    def test_unset_values_are_omitted(self):
        set_request_context("req-1")
        event_dict = add_request_context(None, "info", {})
        assert event_dict == {"request_id": "req-1"}

    def test_clear_removes_everything(self):
        set_request_context("req-1", path="/health", method="GET")
        set_auth_via("identity_provider")
        clear_request_context()
        assert add_request_context(None, "info", {}) == {}
