"""
Lead Notification Service

Builds the hand-off payload for sales and delivers it through a sink:
- LoggingNotifier: audit log only (development default)
- WebhookNotifier: POSTs the payload as JSON to a configured URL
"""
from typing import Dict, Any, Optional, List
from abc import ABC, abstractmethod
from enum import Enum

import httpx

from leadbot.core.config import settings
from leadbot.core.logging import logger, log_audit_event
from leadbot.orchestration.state import utcnow_iso


class NotificationPriority(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class FollowUpUrgency(str, Enum):
    IMMEDIATE = "IMMEDIATE"
    TWO_HOURS = "2_HOURS"
    TWENTY_FOUR_HOURS = "24_HOURS"
    FORTY_EIGHT_HOURS = "48_HOURS"
    WEEK = "WEEK"


class NotificationError(Exception):
    """Raised when a notification sink cannot deliver a payload."""
    pass


def priority_for_score(score: int) -> str:
    if score >= 80:
        return NotificationPriority.HIGH.value
    if score >= 60:
        return NotificationPriority.MEDIUM.value
    return NotificationPriority.LOW.value


def urgency_for(score: int, timeline: Optional[str]) -> str:
    """Follow-up urgency from score, bumped by a pressing timeline."""
    timeline = (timeline or "").lower()
    if score >= 80 or "immediate" in timeline or "asap" in timeline:
        return FollowUpUrgency.IMMEDIATE.value
    if score >= 70 or "week" in timeline:
        return FollowUpUrgency.TWO_HOURS.value
    if score >= 60 or "month" in timeline:
        return FollowUpUrgency.TWENTY_FOUR_HOURS.value
    if score >= 45:
        return FollowUpUrgency.FORTY_EIGHT_HOURS.value
    return FollowUpUrgency.WEEK.value


def build_lead_notification(state: Dict[str, Any], notification_type: str) -> Dict[str, Any]:
    """Assemble the sales hand-off payload for a session."""
    info = state.get("customer_info") or {}
    qualification = state.get("qualification") or {}
    analytics = state.get("analytics") or {}
    score = qualification.get("total_score", 0)

    return {
        "type": notification_type,
        "session_id": state.get("session_id"),
        "priority": priority_for_score(score),
        "urgency": urgency_for(score, info.get("timeline")),
        "contact": {
            "name": info.get("name"),
            "email": info.get("email"),
            "phone": info.get("phone"),
            "title": info.get("title"),
        },
        "company": {
            "name": info.get("company"),
            "industry": info.get("industry"),
            "size": info.get("company_size"),
            "employee_count": info.get("employee_count"),
        },
        "requirements": {
            "challenges": list(info.get("current_challenges") or []),
            "budget": info.get("budget"),
            "timeline": info.get("timeline"),
            "summary": info.get("opportunity_summary"),
        },
        "qualification": {
            "score": score,
            "tier": qualification.get("tier"),
            "is_qualified": qualification.get("is_qualified", False),
            "reasons": list(qualification.get("qualification_reasons") or []),
        },
        "recommendations": list(state.get("recommendations") or []),
        "key_moments": list(analytics.get("key_moments") or []),
        "conversation_status": state.get("conversation_status"),
        "created_at": utcnow_iso(),
    }


class LeadNotifier(ABC):
    """Sink for lead notifications."""

    channel: str = "unknown"

    @abstractmethod
    async def send(self, payload: Dict[str, Any]) -> None:
        """Deliver a payload; raise NotificationError on failure."""
        pass


class LoggingNotifier(LeadNotifier):
    """Records notifications in the audit log."""

    channel = "log"

    def __init__(self):
        self.sent: List[Dict[str, Any]] = []

    async def send(self, payload: Dict[str, Any]) -> None:
        self.sent.append(payload)
        log_audit_event(
            event_type=f"lead_notification_{payload.get('type')}",
            actor_id=payload.get("session_id") or "unknown",
            actor_type="session",
            details={
                "priority": payload.get("priority"),
                "urgency": payload.get("urgency"),
                "score": payload.get("qualification", {}).get("score"),
                "tier": payload.get("qualification", {}).get("tier"),
            },
        )


class WebhookNotifier(LeadNotifier):
    """Delivers notifications to an HTTP webhook."""

    channel = "webhook"

    def __init__(self, url: str, timeout: Optional[float] = None):
        self.url = url
        self.timeout = timeout or settings.NOTIFICATION_TIMEOUT_SECONDS

    async def send(self, payload: Dict[str, Any]) -> None:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.url, json=payload)
                response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error(f"Lead notification webhook failed: {exc}")
            raise NotificationError(f"Webhook delivery failed: {exc}") from exc

        logger.info(
            f"Lead notification delivered for session {payload.get('session_id')} "
            f"({payload.get('type')}, {payload.get('priority')})"
        )


# Singleton notifier instance
_notifier: Optional[LeadNotifier] = None


def get_notifier() -> LeadNotifier:
    """Get the configured notifier (creates if needed)."""
    global _notifier

    if _notifier is not None:
        return _notifier

    if settings.NOTIFICATION_WEBHOOK_URL:
        logger.info("Using webhook lead notifier")
        _notifier = WebhookNotifier(settings.NOTIFICATION_WEBHOOK_URL)
    else:
        logger.info("Using logging lead notifier")
        _notifier = LoggingNotifier()

    return _notifier
