"""
Orchestration package - LangGraph workflow for lead qualification

The graph and orchestrator live in `leadbot.orchestration.graph` and
`leadbot.orchestration.orchestrator`; import them from there, since the
stages depend on `leadbot.services`, which in turn depends on this package.
"""
from leadbot.orchestration.routing import get_llm, LLMProvider
from leadbot.orchestration.state import (
    LeadConversationState,
    ConversationStatus,
    ConversationType,
    QualificationTier,
    create_initial_state,
    tier_for_score,
)

__all__ = [
    # Routing
    "get_llm",
    "LLMProvider",
    # State
    "LeadConversationState",
    "ConversationStatus",
    "ConversationType",
    "QualificationTier",
    "create_initial_state",
    "tier_for_score",
]
