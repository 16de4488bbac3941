"""
Core module exports
"""
from leadbot.core.config import settings
from leadbot.core.security import (
    create_access_token,
    decode_access_token,
    require_role,
)
from leadbot.core.logging import logger, log_audit_event

__all__ = [
    "settings",
    "create_access_token",
    "decode_access_token",
    "require_role",
    "logger",
    "log_audit_event",
]
