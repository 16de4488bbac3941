"""
Qualification stage - BANT scoring once the conversation gate has passed
"""
from typing import Any, Dict

from langchain_core.runnables import RunnableConfig

from leadbot.core.logging import logger, log_audit_event
from leadbot.orchestration.nodes.base import StageOutcome, get_stage_scoring, tracked_stage
from leadbot.orchestration.state import ConversationStatus, utcnow_iso


def qualification_moment(qualification: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "timestamp": utcnow_iso(),
        "event": (
            f"Lead scored {qualification.get('total_score', 0)} "
            f"({qualification.get('tier')})"
        ),
        "impact": "positive" if qualification.get("is_qualified") else "neutral",
    }


def score_session(state: Dict[str, Any], config: RunnableConfig) -> Dict[str, Any]:
    """Score the session and build the qualification update."""
    engine = get_stage_scoring(config)
    qualification = engine.evaluate(state.get("customer_info") or {})

    analytics = dict(state.get("analytics") or {})
    analytics["conversion_probability"] = qualification["total_score"] / 100
    analytics["key_moments"] = list(analytics.get("key_moments") or []) + [
        qualification_moment(qualification)
    ]

    log_audit_event(
        event_type="lead_qualified" if qualification["is_qualified"] else "lead_scored",
        actor_id=state.get("session_id") or "unknown",
        actor_type="session",
        details={
            "score": qualification["total_score"],
            "tier": qualification["tier"],
            "is_qualified": qualification["is_qualified"],
        },
    )

    return {
        "qualification": qualification,
        "analytics": analytics,
    }


@tracked_stage("qualification")
async def qualification_stage(state: Dict[str, Any], config: RunnableConfig) -> StageOutcome:
    """Score the lead. Never rescores a session that already has a record."""
    if state.get("qualification"):
        return StageOutcome(result={"reason": "Already qualified"}, status="skipped")

    update = score_session(state, config)
    update["conversation_status"] = ConversationStatus.QUALIFIED.value
    qualification = update["qualification"]

    logger.info(
        f"Session {state.get('session_id')} scored {qualification['total_score']} "
        f"tier={qualification['tier']} qualified={qualification['is_qualified']}"
    )
    return StageOutcome(
        update=update,
        result={
            "total_score": qualification["total_score"],
            "tier": qualification["tier"],
            "is_qualified": qualification["is_qualified"],
        },
    )
