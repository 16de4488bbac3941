"""
Admin API routes
"""
from typing import List, Optional, Dict, Any

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from leadbot.api.deps import get_lead_orchestrator, get_session_sweeper
from leadbot.core import require_role, logger, log_audit_event
from leadbot.orchestration.orchestrator import LeadOrchestrator
from leadbot.services.session_sweeper import SessionSweeper

router = APIRouter()


# Request/Response schemas
class SessionSummaryResponse(BaseModel):
    session_id: str
    conversation_type: Optional[str] = None
    status: Optional[str] = None
    start_time: Optional[str] = None
    last_update: Optional[str] = None
    qualified: bool = False
    qualification_score: int = 0
    tier: Optional[str] = None
    customer_name: Optional[str] = None
    company: Optional[str] = None


class AnalyticsResponse(BaseModel):
    total_sessions: int
    active_sessions: int
    qualified_leads: int
    average_qualification_score: float
    conversion_rate: float
    average_duration: float


class NotifyResponse(BaseModel):
    session_id: str
    notified: bool


@router.get("/sessions", response_model=List[SessionSummaryResponse])
async def list_sessions(
    current_user: dict = Depends(require_role(["admin"])),
    orchestrator: LeadOrchestrator = Depends(get_lead_orchestrator),
):
    """List every stored session."""
    return [SessionSummaryResponse(**summary) for summary in orchestrator.get_active_sessions()]


@router.get("/analytics", response_model=AnalyticsResponse)
async def get_analytics(
    current_user: dict = Depends(require_role(["admin"])),
    orchestrator: LeadOrchestrator = Depends(get_lead_orchestrator),
):
    """Aggregate lead metrics."""
    return AnalyticsResponse(**orchestrator.get_analytics())


@router.post("/sessions/{session_id}/notify", response_model=NotifyResponse)
async def notify_session(
    session_id: str,
    current_user: dict = Depends(require_role(["admin"])),
    orchestrator: LeadOrchestrator = Depends(get_lead_orchestrator),
):
    """Send the sales notification for a qualified session now."""
    if orchestrator.get_session(session_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Session not found",
        )

    notified = await orchestrator.trigger_notification(session_id)
    log_audit_event(
        event_type="manual_notification",
        actor_id=current_user.get("sub", "unknown"),
        actor_type="admin",
        details={"session_id": session_id, "notified": notified},
    )
    return NotifyResponse(session_id=session_id, notified=notified)


@router.post("/sessions/sweep")
async def sweep_sessions(
    current_user: dict = Depends(require_role(["admin"])),
    sweeper: SessionSweeper = Depends(get_session_sweeper),
) -> Dict[str, Any]:
    """Run the timeout check and retention cleanup immediately."""
    result = await sweeper.sweep_now()
    logger.info(
        f"Manual sweep by {current_user.get('sub', 'unknown')}: "
        f"{len(result['timed_out'])} timed out, {result['evicted']} evicted"
    )
    return result
