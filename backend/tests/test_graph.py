"""
Tests for lead graph routing.
"""

from langgraph.graph import END

from leadbot.orchestration.graph import (
    build_lead_graph,
    route_after_conversation,
    route_after_extraction,
    route_lead_handoff,
    route_post_conversation,
)
from leadbot.orchestration.nodes.conversation import GREETING
from leadbot.orchestration.nodes.error_recovery import recovery_message
from leadbot.orchestration.state import create_initial_state, make_error, make_message
from leadbot.services.scoring import ScoringEngine

from conftest import BrokenNotifier, FailingChatModel


READY_INFO = {
    "email": "ann@lee.io",
    "company": "Lee Logistics LLC",
    "current_challenges": ["Dispatch scheduling is manual and slow"],
    "timeline": "this_month",
    "budget": "$50K-$100K",
}

READY_TURNS = [
    "We run a regional delivery business",
    "Dispatch scheduling is manual and slow",
    "My email is ann@lee.io",
    "We would like to start this month",
    "Budget is roughly $60k for this",
    "What would a pilot look like?",
]


def session_with_turns(turns, info=None) -> dict:
    state = create_initial_state("graph-session")
    messages = [make_message("assistant", GREETING)]
    for text in turns:
        messages.append(make_message("user", text))
        messages.append(make_message("assistant", "Tell me more."))
    state["messages"] = messages[:-1]
    if info:
        state["customer_info"] = dict(info)
    return state


def agents(result: dict) -> list:
    return [e["agent_id"] for e in result["agent_executions"]]


class TestRouters:
    """Test routing decisions in isolation."""

    def test_extraction_error_goes_to_recovery(self):
        """Test an unrecovered error diverts to recovery."""
        state = {"errors": [make_error("extraction", "boom")]}
        assert route_after_extraction(state) == "error_recovery"
        assert route_after_extraction({"errors": []}) == "conversation"

    def test_ready_goes_to_qualification(self):
        """Test a ready, unscored session is qualified."""
        state = create_initial_state("s")
        state["conversation_status"] = "ready_to_qualify"
        assert route_after_conversation(state) == "qualification"

    def test_pending_input_ends_turn(self):
        """Test a shown contact form pauses the graph."""
        state = create_initial_state("s")
        state["ui_action"] = {"type": "show_text_input", "input_type": "email"}
        state["customer_info"] = {"current_challenges": ["manual invoicing is slow"]}
        assert route_post_conversation(state) == END

    def test_missing_contact_prompts_once(self):
        """Test the contact prompt is only shown once."""
        state = create_initial_state("s")
        state["customer_info"] = {"current_challenges": ["manual invoicing is slow"]}
        assert route_post_conversation(state) == "ui_interaction"
        state["contact_prompted"] = True
        assert route_post_conversation(state) == END

    def test_new_score_runs_parallel_processing(self):
        """Test analytics and recommendations run once per score."""
        state = create_initial_state("s")
        state["customer_info"] = dict(READY_INFO)
        state["qualification"] = ScoringEngine().evaluate(READY_INFO)
        assert route_post_conversation(state) == "parallel_processing"
        state["analytics"] = {**state["analytics"], "scored_for": state["qualification"]["scored_at"]}
        assert route_post_conversation(state) == "notification"

    def test_handoff(self):
        """Test qualified leads go to sales and the rest to nurture, once each."""
        state = create_initial_state("s")
        state["customer_info"] = dict(READY_INFO)
        state["qualification"] = ScoringEngine().evaluate(READY_INFO)
        assert route_lead_handoff(state) == "notification"
        state["notifications_sent"] = [{"type": "qualification"}]
        assert route_lead_handoff(state) == END

        state["qualification"] = ScoringEngine().evaluate({"industry": "Retail"})
        assert route_lead_handoff(state) == "nurture"
        state["notifications_sent"].append({"type": "nurture"})
        assert route_lead_handoff(state) == END


class TestLeadGraph:
    """Test whole turns through the compiled graph."""

    async def test_greeting_turn(self, stage_config):
        """Test a new session is greeted."""
        graph = build_lead_graph().compile()
        result = await graph.ainvoke(create_initial_state("s"), config=stage_config)
        assert [m["content"] for m in result["messages"]] == [GREETING]
        assert agents(result) == ["extraction", "conversation"]

    async def test_challenge_without_contact_prompts(self, stage_config):
        """Test a pain point without contact details opens the contact form."""
        graph = build_lead_graph().compile()
        state = session_with_turns(["Our invoicing is completely manual and slow"])
        result = await graph.ainvoke(state, config=stage_config)

        assert agents(result) == ["extraction", "conversation", "ui_interaction"]
        assert result["ui_action"]["type"] == "show_text_input"
        assert result["contact_prompted"] is True
        assert [m["role"] for m in result["messages"][-2:]] == ["assistant", "assistant"]

    async def test_full_qualification_turn(self, stage_config, notifier):
        """Test a complete conversation is qualified and handed to sales in one turn."""
        graph = build_lead_graph().compile()
        result = await graph.ainvoke(session_with_turns(READY_TURNS, READY_INFO), config=stage_config)

        assert agents(result) == [
            "extraction", "conversation", "qualification", "parallel_processing", "notification",
        ]
        assert result["conversation_status"] == "qualified"
        assert result["qualification"]["is_qualified"] is True
        assert result["recommendations"]
        assert [n["type"] for n in result["notifications_sent"]] == ["qualification"]
        assert len(notifier.sent) == 1

    async def test_conversation_failure_recovers(self, stage_config):
        """Test a failing model yields an apology instead of an error."""
        config = {"configurable": {**stage_config["configurable"], "llm": FailingChatModel()}}
        graph = build_lead_graph().compile()
        result = await graph.ainvoke(session_with_turns(["Hello there, just browsing"]), config=config)

        assert agents(result) == ["extraction", "conversation", "error_recovery", "conversation"]
        assert result["messages"][-1]["content"] == recovery_message("conversation")
        assert result["errors"][-1]["recovered"] is True

    async def test_notification_failure_does_not_loop(self, stage_config, qualified_state):
        """Test a failing sink is attempted once per turn and left unsent."""
        broken = BrokenNotifier()
        config = {"configurable": {**stage_config["configurable"], "notifier": broken}}
        qualified_state["messages"].append(make_message("user", "Any update on next steps?"))

        graph = build_lead_graph().compile()
        result = await graph.ainvoke(qualified_state, config=config)

        assert agents(result).count("notification") == 1
        assert result["notifications_sent"] == []
        assert result["messages"][-1]["content"] == recovery_message("notification")
        assert all(e["recovered"] for e in result["errors"])
