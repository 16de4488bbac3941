"""
Chat API routes
"""
from typing import List, Optional, Dict, Any

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from leadbot.api.deps import get_lead_orchestrator
from leadbot.core import logger
from leadbot.orchestration.orchestrator import LeadOrchestrator, TurnResult
from leadbot.orchestration.state import ConversationType

router = APIRouter()


# Request/Response schemas
class StartSessionRequest(BaseModel):
    session_id: Optional[str] = None
    conversation_type: ConversationType = ConversationType.CHAT
    initial_message: Optional[str] = Field(default=None, max_length=4000)
    customer_info: Dict[str, Any] = {}


class ChatMessageRequest(BaseModel):
    session_id: str
    message: str = Field(min_length=1, max_length=4000)
    metadata: Dict[str, Any] = {}


class SessionSummary(BaseModel):
    status: str
    qualified: bool = False
    tier: Optional[str] = None
    message_count: int = 0


class ChatTurnResponse(BaseModel):
    session_id: str
    reply: str
    replies: List[str] = []
    ui_action: Optional[Dict[str, Any]] = None
    session: SessionSummary


class MessageView(BaseModel):
    role: str
    content: str
    timestamp: str


class SessionView(BaseModel):
    session_id: str
    conversation_type: str
    status: str
    messages: List[MessageView]
    ui_action: Optional[Dict[str, Any]] = None
    start_time: str
    last_update_time: str


def _turn_response(turn: TurnResult) -> ChatTurnResponse:
    state = turn.state
    qualification = state.get("qualification") or {}
    return ChatTurnResponse(
        session_id=turn.session_id,
        reply=turn.reply,
        replies=turn.replies,
        ui_action=state.get("ui_action"),
        session=SessionSummary(
            status=state.get("conversation_status"),
            qualified=bool(qualification.get("is_qualified")),
            tier=qualification.get("tier"),
            message_count=len(state.get("messages") or []),
        ),
    )


@router.post("/session", response_model=ChatTurnResponse)
async def start_chat_session(
    request: StartSessionRequest,
    orchestrator: LeadOrchestrator = Depends(get_lead_orchestrator),
):
    """Start a new lead conversation."""
    turn = await orchestrator.start_session(
        session_id=request.session_id,
        conversation_type=request.conversation_type.value,
        initial_message=request.initial_message,
        initial_data=request.customer_info or None,
    )
    logger.info(f"Chat session created: {turn.session_id}")
    return _turn_response(turn)


@router.post("/message", response_model=ChatTurnResponse)
async def send_message(
    request: ChatMessageRequest,
    orchestrator: LeadOrchestrator = Depends(get_lead_orchestrator),
):
    """Send a visitor message. Unknown session ids start a new session."""
    turn = await orchestrator.continue_session(
        session_id=request.session_id,
        message=request.message,
        metadata=request.metadata,
    )
    logger.info(f"Chat message in session {request.session_id}")
    return _turn_response(turn)


@router.get("/session/{session_id}", response_model=SessionView)
async def get_chat_session(
    session_id: str,
    orchestrator: LeadOrchestrator = Depends(get_lead_orchestrator),
):
    """Get the visitor-facing view of a session."""
    state = orchestrator.get_session(session_id)
    if not state:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Session not found",
        )

    return SessionView(
        session_id=state["session_id"],
        conversation_type=state["conversation_type"],
        status=state["conversation_status"],
        messages=[MessageView(**msg) for msg in state.get("messages") or []],
        ui_action=state.get("ui_action"),
        start_time=state["start_time"],
        last_update_time=state["last_update_time"],
    )


@router.post("/session/{session_id}/end")
async def end_chat_session(
    session_id: str,
    orchestrator: LeadOrchestrator = Depends(get_lead_orchestrator),
):
    """End a session; qualified leads are handed to sales before removal."""
    state = await orchestrator.end_session(session_id)
    if state is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Session not found",
        )

    qualification = state.get("qualification") or {}
    return {
        "session_id": session_id,
        "status": state["conversation_status"],
        "qualified": bool(qualification.get("is_qualified")),
        "notifications_sent": len(state.get("notifications_sent") or []),
    }
