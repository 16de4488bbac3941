"""
API dependencies
"""
from typing import Optional

from leadbot.core import require_role
from leadbot.orchestration.orchestrator import LeadOrchestrator, get_orchestrator
from leadbot.services.session_sweeper import SessionSweeper

_sweeper: Optional[SessionSweeper] = None


def get_lead_orchestrator() -> LeadOrchestrator:
    return get_orchestrator()


def get_session_sweeper() -> SessionSweeper:
    """Get the sweeper bound to the process orchestrator (creates if needed)."""
    global _sweeper
    if _sweeper is None:
        _sweeper = SessionSweeper(get_orchestrator())
    return _sweeper


__all__ = [
    "get_lead_orchestrator",
    "get_session_sweeper",
    "require_role",
]
