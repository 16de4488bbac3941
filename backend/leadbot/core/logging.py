"""
Logging configuration with masking for visitor contact details
"""
import logging
import re
from typing import Any

from leadbot.core.config import settings


# Patterns to mask in logs. JSON-style fields first, then free-text values.
MASK_PATTERNS = [
    (r'"email":\s*"[^"]*"', '"email": "***@***"'),
    (r"'email':\s*'[^']*'", "'email': '***@***'"),
    (r'"phone":\s*"[^"]*"', '"phone": "***"'),
    (r"'phone':\s*'[^']*'", "'phone': '***'"),
    (r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}", "***@***"),
    (r"\+\d{1,3}[-.\s]?\d{8,12}\b", "***-***-****"),
    (r"\(?\b\d{3}\)?[-.\s]\d{3}[-.\s]\d{4}\b", "***-***-****"),
    (r"\+?\b1?\d{10}\b", "***-***-****"),
]


class MaskingFormatter(logging.Formatter):
    """Custom formatter that masks e-mail addresses and phone numbers."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for pattern, replacement in MASK_PATTERNS:
            message = re.sub(pattern, replacement, message, flags=re.IGNORECASE)
        return message


def setup_logging() -> logging.Logger:
    """Configure application logging."""
    logger = logging.getLogger("leadbot")
    logger.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)

    # Avoid stacking handlers when the module is reloaded
    if not logger.handlers:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)
        console_handler.setFormatter(
            MaskingFormatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
        logger.addHandler(console_handler)

    return logger


# Global logger instance
logger = setup_logging()


def log_audit_event(
    event_type: str,
    actor_id: str,
    actor_type: str,
    details: dict[str, Any],
) -> None:
    """Log an audit event for session lifecycle and lead hand-offs."""
    logger.info(
        f"AUDIT: {event_type} | actor={actor_id} ({actor_type}) | details={details}"
    )
