"""Unit tests for logging service."""

from storageup.services.logging_service import configure_logging, get_logger, redact_sensitive


class TestRedactSensitive:
    """Tests for redact_sensitive processor."""

    def test_redacts_password(self):
        event_dict = {"password": "secret1", "event": "test"}
        result = redact_sensitive(None, None, event_dict)
        assert result["password"] == "REDACTED"

    def test_redacts_password_hash(self):
        event_dict = {"password_hash": "$2b$10$abc", "event": "test"}
        result = redact_sensitive(None, None, event_dict)
        assert result["password_hash"] == "REDACTED"

    def test_redacts_jwt_secret(self):
        event_dict = {"jwt_secret": "s3cr3t", "event": "test"}
        result = redact_sensitive(None, None, event_dict)
        assert result["jwt_secret"] == "REDACTED"

    def test_redacts_authorization_and_cookie(self):
        event_dict = {"authorization": "Bearer abc", "cookie": "token=abc", "event": "test"}
        result = redact_sensitive(None, None, event_dict)
        assert result["authorization"] == "REDACTED"
        assert result["cookie"] == "REDACTED"

    def test_redacts_tokens_and_reset_links(self):
        """Session tokens, reset tokens, their hashes and reset URLs are hidden."""
        event_dict = {
            "token": "eyJ...",
            "reset_token": "abc",
            "token_hash": "deadbeef",
            "reset_url": "http://localhost:3000/reset-password?token=abc",
            "event": "test",
        }
        result = redact_sensitive(None, None, event_dict)
        assert result["token"] == "REDACTED"
        assert result["reset_token"] == "REDACTED"
        assert result["token_hash"] == "REDACTED"
        assert result["reset_url"] == "REDACTED"

    def test_preserves_non_sensitive_fields(self):
        event_dict = {
            "event": "session_token_refreshed",
            "correlation_id": "abc-123",
            "user_id": "u-1",
            "auth_carrier": "admin_cookie",
            "duration_ms": 100,
        }
        expected = dict(event_dict)
        result = redact_sensitive(None, None, event_dict)
        assert result == expected

    def test_case_insensitive_redaction(self):
        event_dict = {"Password": "secret2", "SESSION_TOKEN": "secret3"}
        result = redact_sensitive(None, None, event_dict)
        assert result["Password"] == "REDACTED"
        assert result["SESSION_TOKEN"] == "REDACTED"


class TestConfigureLogging:
    def test_configure_logging_sets_level(self):
        configure_logging("DEBUG")
        logger = get_logger("test")
        assert logger is not None

    def test_invalid_level_falls_back(self):
        configure_logging("NOT_A_LEVEL")
        assert get_logger() is not None
