"""
Services package
"""
from leadbot.services.extraction_service import extract_customer_info
from leadbot.services.notifier import LeadNotifier, LoggingNotifier, WebhookNotifier, get_notifier
from leadbot.services.retry import RetryPolicy, get_retry_policy
from leadbot.services.scoring import ScoringEngine, get_scoring_engine
from leadbot.services.session_store import SessionStore, get_session_store

__all__ = [
    "extract_customer_info",
    "LeadNotifier",
    "LoggingNotifier",
    "WebhookNotifier",
    "get_notifier",
    "RetryPolicy",
    "get_retry_policy",
    "ScoringEngine",
    "get_scoring_engine",
    "SessionStore",
    "get_session_store",
]
