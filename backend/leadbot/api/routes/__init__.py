"""
API routes package
"""
from leadbot.api.routes import chat, admin

__all__ = [
    "chat",
    "admin",
]
