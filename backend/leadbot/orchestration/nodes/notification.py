"""
Notification and nurture stages - lead hand-off to the notifier
"""
from typing import Any, Dict

from langchain_core.runnables import RunnableConfig

from leadbot.core.logging import logger, log_audit_event
from leadbot.orchestration.nodes.base import (
    StageOutcome,
    get_stage_notifier,
    get_stage_retry,
    tracked_stage,
)
from leadbot.orchestration.state import (
    NotificationRecord,
    NotificationType,
    has_contact,
    make_message,
    utcnow_iso,
    was_notified,
)
from leadbot.services.notifier import build_lead_notification


NURTURE_REPLY = (
    "Thanks for sharing all of this with me. I'll send over some resources on "
    "{topic} that should help as you plan your next steps. Feel free to come "
    "back any time you'd like to talk it through."
)


def can_notify(state: Dict[str, Any]) -> bool:
    """Qualified, reachable and not yet handed to sales."""
    qualification = state.get("qualification") or {}
    return (
        bool(qualification.get("is_qualified"))
        and has_contact(state.get("customer_info"))
        and not was_notified(state, NotificationType.QUALIFICATION.value)
    )


def can_nurture(state: Dict[str, Any]) -> bool:
    qualification = state.get("qualification")
    return (
        bool(qualification)
        and not qualification.get("is_qualified")
        and not was_notified(state, NotificationType.NURTURE.value)
    )


async def _deliver(state: Dict[str, Any], config: RunnableConfig, notification_type: str):
    notifier = get_stage_notifier(config)
    retry = get_stage_retry(config)
    payload = build_lead_notification(state, notification_type)

    _, retries = await retry.execute(
        notifier.send, payload, description=f"{notification_type} notification"
    )

    record = NotificationRecord(
        type=notification_type,
        timestamp=utcnow_iso(),
        channel=notifier.channel,
        tier=payload["qualification"]["tier"],
        score=payload["qualification"]["score"],
    )
    log_audit_event(
        event_type=f"notification_sent_{notification_type}",
        actor_id=state.get("session_id") or "unknown",
        actor_type="session",
        details={"priority": payload["priority"], "urgency": payload["urgency"]},
    )
    return payload, record, retries


@tracked_stage("notification")
async def notification_stage(state: Dict[str, Any], config: RunnableConfig) -> StageOutcome:
    """Hand a qualified lead to sales, at most once per session."""
    if not can_notify(state):
        return StageOutcome(result={"reason": "Notification not required"}, status="skipped")

    payload, record, retries = await _deliver(state, config, NotificationType.QUALIFICATION.value)
    logger.info(
        f"Qualified lead notification sent for session {state.get('session_id')} "
        f"(priority={payload['priority']}, urgency={payload['urgency']})"
    )
    return StageOutcome(
        update={"notifications_sent": [record]},
        result={"priority": payload["priority"], "urgency": payload["urgency"]},
        retry_count=retries,
    )


@tracked_stage("nurture")
async def nurture_stage(state: Dict[str, Any], config: RunnableConfig) -> StageOutcome:
    """Move a scored but unqualified lead into nurture, at most once."""
    if not can_nurture(state):
        return StageOutcome(result={"reason": "Nurture not required"}, status="skipped")

    payload, record, retries = await _deliver(state, config, NotificationType.NURTURE.value)

    info = state.get("customer_info") or {}
    topic = "automating your workflows"
    if info.get("industry"):
        topic = f"automation in {info['industry'].lower()}"

    return StageOutcome(
        update={
            "notifications_sent": [record],
            "messages": [make_message("assistant", NURTURE_REPLY.format(topic=topic))],
        },
        result={"priority": payload["priority"]},
        retry_count=retries,
    )
