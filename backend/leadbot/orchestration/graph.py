"""
Lead Graph - per-turn routing for the lead-qualification conversation

Each user turn runs START -> extraction -> conversation and then follows
the routers below until END. END suspends the session until the next
user message; it does not end the session.
"""
from typing import Any, Dict

from langgraph.graph import StateGraph, END

from leadbot.orchestration.nodes import (
    conversation_stage,
    error_recovery_stage,
    extraction_stage,
    notification_stage,
    nurture_stage,
    parallel_processing_stage,
    qualification_stage,
    ui_interaction_stage,
)
from leadbot.orchestration.nodes.base import failed_this_turn
from leadbot.orchestration.nodes.notification import can_notify, can_nurture
from leadbot.orchestration.state import (
    ConversationStatus,
    LeadConversationState,
    has_contact,
    last_unrecovered_error,
)


def needs_recovery(state: Dict[str, Any]) -> bool:
    return last_unrecovered_error(state) is not None


def route_after_extraction(state: Dict[str, Any]) -> str:
    if needs_recovery(state):
        return "error_recovery"
    return "conversation"


def route_lead_handoff(state: Dict[str, Any]) -> str:
    """Hand a scored lead to sales or to nurture."""
    if can_notify(state) and not failed_this_turn(state, "notification"):
        return "notification"
    if can_nurture(state) and not failed_this_turn(state, "nurture"):
        return "nurture"
    return END


def route_post_conversation(state: Dict[str, Any]) -> str:
    """Shared routing once the reply for this turn exists."""
    ui_action = state.get("ui_action") or {}
    if ui_action.get("type") == "show_text_input":
        # Waiting for the visitor to fill in the form
        return END

    info = state.get("customer_info") or {}
    if (
        info.get("current_challenges")
        and not has_contact(info)
        and not state.get("contact_prompted")
        and not failed_this_turn(state, "ui_interaction")
    ):
        return "ui_interaction"

    qualification = state.get("qualification")
    analytics = state.get("analytics") or {}
    if (
        qualification
        and analytics.get("scored_for") != qualification.get("scored_at")
        and not failed_this_turn(state, "parallel_processing")
    ):
        return "parallel_processing"

    return route_lead_handoff(state)


def route_after_conversation(state: Dict[str, Any]) -> str:
    if needs_recovery(state):
        return "error_recovery"
    if (
        state.get("conversation_status") == ConversationStatus.READY_TO_QUALIFY.value
        and not state.get("qualification")
    ):
        return "qualification"
    return route_post_conversation(state)


def route_after_qualification(state: Dict[str, Any]) -> str:
    if needs_recovery(state):
        return "error_recovery"
    return route_post_conversation(state)


def route_after_parallel(state: Dict[str, Any]) -> str:
    if needs_recovery(state):
        return "error_recovery"
    return route_lead_handoff(state)


def route_terminal(state: Dict[str, Any]) -> str:
    """ui_interaction, notification and nurture end the turn."""
    if needs_recovery(state):
        return "error_recovery"
    return END


def build_lead_graph() -> StateGraph:
    """Build the lead-qualification graph."""
    workflow = StateGraph(LeadConversationState)

    # Add nodes
    workflow.add_node("extraction", extraction_stage)
    workflow.add_node("conversation", conversation_stage)
    workflow.add_node("qualification", qualification_stage)
    workflow.add_node("ui_interaction", ui_interaction_stage)
    workflow.add_node("parallel_processing", parallel_processing_stage)
    workflow.add_node("notification", notification_stage)
    workflow.add_node("nurture", nurture_stage)
    workflow.add_node("error_recovery", error_recovery_stage)

    # Set entry point
    workflow.set_entry_point("extraction")

    handoff_targets = {
        "notification": "notification",
        "nurture": "nurture",
        END: END,
    }
    post_conversation_targets = {
        "ui_interaction": "ui_interaction",
        "parallel_processing": "parallel_processing",
        **handoff_targets,
    }

    workflow.add_conditional_edges(
        "extraction",
        route_after_extraction,
        {
            "conversation": "conversation",
            "error_recovery": "error_recovery",
        }
    )

    workflow.add_conditional_edges(
        "conversation",
        route_after_conversation,
        {
            "error_recovery": "error_recovery",
            "qualification": "qualification",
            **post_conversation_targets,
        }
    )

    workflow.add_conditional_edges(
        "qualification",
        route_after_qualification,
        {
            "error_recovery": "error_recovery",
            **post_conversation_targets,
        }
    )

    workflow.add_conditional_edges(
        "parallel_processing",
        route_after_parallel,
        {
            "error_recovery": "error_recovery",
            **handoff_targets,
        }
    )

    for node in ("ui_interaction", "notification", "nurture"):
        workflow.add_conditional_edges(
            node,
            route_terminal,
            {
                "error_recovery": "error_recovery",
                END: END,
            }
        )

    # The apology is now the last message, so conversation passes straight through
    workflow.add_edge("error_recovery", "conversation")

    return workflow

