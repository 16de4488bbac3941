"""
Tests for token handling and log masking.
"""

import logging
from datetime import timedelta

import pytest
from fastapi import HTTPException
from leadbot.core.logging import MaskingFormatter
from leadbot.core.security import create_access_token, decode_access_token


def format_message(message: str) -> str:
    record = logging.LogRecord("leadbot", logging.INFO, __file__, 1, message, None, None)
    return MaskingFormatter("%(message)s").format(record)


class TestTokens:
    """Test JWT creation and validation."""

    def test_round_trip(self):
        """Test claims survive encoding."""
        payload = decode_access_token(create_access_token({"sub": "admin-1", "role": "admin"}))
        assert payload["sub"] == "admin-1"
        assert payload["role"] == "admin"
        assert "exp" in payload

    def test_expired_token(self):
        """Test expired tokens are rejected."""
        token = create_access_token({"sub": "admin-1"}, expires_delta=timedelta(seconds=-1))
        with pytest.raises(HTTPException) as exc:
            decode_access_token(token)
        assert exc.value.status_code == 401


class TestLogMasking:
    """Test contact details never reach the logs."""

    def test_email_masked(self):
        """Test free-text e-mail addresses are masked."""
        masked = format_message("Contact captured: john@acme.com")
        assert "john@acme.com" not in masked
        assert "***@***" in masked

    def test_phone_masked(self):
        """Test phone numbers are masked."""
        assert "5551234567" not in format_message("Callback to 5551234567")
        assert "123-4567" not in format_message("Callback to (555) 123-4567")

    def test_dict_fields_masked(self):
        """Test contact fields inside logged dicts are masked."""
        masked = format_message(str({"email": "ann@lee.io", "phone": "+447911123456", "company": "Lee"}))
        assert "ann@lee.io" not in masked
        assert "7911123456" not in masked
        assert "'company': 'Lee'" in masked

    def test_plain_text_untouched(self):
        """Test ordinary messages pass through."""
        assert format_message("Lead scored 62 (warm)") == "Lead scored 62 (warm)"
