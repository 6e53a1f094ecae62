# tests/unit/llm/test_unit_errors.py — v1
"""Tests for llm/errors.py."""

from __future__ import annotations

from screenlens.llm.errors import (
    RETRYABLE_CODES,
    USER_MESSAGES,
    VisionServiceError,
    create_service_error,
    is_retryable,
)


class TestVisionServiceError:
    def test_defaults_from_code(self):
        err = VisionServiceError("TIMEOUT", "took 61s")
        assert err.retryable is True
        assert err.user_message == USER_MESSAGES["TIMEOUT"]
        assert str(err) == "[TIMEOUT] took 61s"

    def test_explicit_retryable_overrides(self):
        err = VisionServiceError("UNKNOWN_ERROR", "boom", retryable=True)
        assert err.retryable is True

    def test_to_dict(self):
        err = create_service_error("RATE_LIMITED", "429", retry_after_ms=5000, status_code=429)
        data = err.to_dict()
        assert data["code"] == "RATE_LIMITED"
        assert data["retryable"] is True
        assert data["retryAfterMs"] == 5000
        assert err.status_code == 429

    def test_to_dict_omits_missing_retry_after(self):
        assert "retryAfterMs" not in create_service_error("TIMEOUT", "x").to_dict()


class TestRetryable:
    def test_retryable_codes(self):
        assert RETRYABLE_CODES == {"RATE_LIMITED", "TIMEOUT", "NETWORK_ERROR"}

    def test_non_retryable(self):
        for code in ("API_KEY_INVALID", "VALIDATION_ERROR", "RESPONSE_PARSE_ERROR"):
            assert not is_retryable(code)
            assert not create_service_error(code, "x").retryable

    def test_every_code_has_user_message(self):
        assert len(USER_MESSAGES) == 9
