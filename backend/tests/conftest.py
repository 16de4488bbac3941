"""
Test configuration and fixtures for LeadBot backend tests.
"""

import json
from typing import Generator, List, Optional

import pytest
from fastapi.testclient import TestClient
from langchain_core.language_models.fake_chat_models import FakeListChatModel

from leadbot.core.config import settings
from leadbot.core.security import create_access_token
from leadbot.orchestration.orchestrator import LeadOrchestrator
from leadbot.orchestration.state import create_initial_state, make_message
from leadbot.services.notifier import LeadNotifier, LoggingNotifier, NotificationError
from leadbot.services.retry import RetryPolicy
from leadbot.services.scoring import ScoringEngine
from leadbot.services.session_store import InMemorySessionStore


JOHN_SMITH_MESSAGE = (
    "Hi, I'm John Smith, VP of Engineering at Acme Corp, we need automation for "
    "our $2M support ticket backlog, budget around $150k, want to start this quarter"
)

RECOMMENDATION_REPLY = json.dumps({
    "recommendations": [
        {
            "title": "AI-assisted triage",
            "description": "Route tickets automatically.",
            "addresses": "support ticket backlog",
        }
    ]
})


def turn_reply(message: str, status: str = "gathering", **extracted) -> str:
    """A structured conversation reply as the model would return it."""
    return json.dumps({
        "message": message,
        "extracted": extracted,
        "status": status,
        "intent_type": "automation_inquiry",
        "opportunity_summary": None,
        "missing_info": [],
    })


class ScriptedChatModel(FakeListChatModel):
    """Fake chat model: conversation prompts get scripted replies in order,
    recommendation prompts get a fixed reply."""

    recommendation_reply: str = RECOMMENDATION_REPLY
    prompts: List[str] = []

    def _call(self, messages, stop=None, run_manager=None, **kwargs) -> str:
        system = str(messages[0].content) if messages else ""
        self.prompts.append(system)
        if "solutions consultant" in system:
            return self.recommendation_reply
        return super()._call(messages, stop=stop, run_manager=run_manager, **kwargs)


class FailingChatModel:
    """Chat model whose every call fails."""

    def __init__(self, error: Optional[Exception] = None):
        self.error = error or RuntimeError("LLM unavailable")
        self.calls = 0

    async def ainvoke(self, *args, **kwargs):
        self.calls += 1
        raise self.error


class BrokenNotifier(LeadNotifier):
    """Notifier whose sink is down."""

    channel = "broken"

    def __init__(self):
        self.attempts = 0

    async def send(self, payload):
        self.attempts += 1
        raise NotificationError("sink unavailable")


@pytest.fixture
def store() -> InMemorySessionStore:
    """Fresh in-memory session store."""
    return InMemorySessionStore()


@pytest.fixture
def notifier() -> LoggingNotifier:
    """Notifier that records payloads instead of delivering them."""
    return LoggingNotifier()


@pytest.fixture
def retry_policy() -> RetryPolicy:
    """Retry policy without backoff delays."""
    return RetryPolicy(base_delay=0)


@pytest.fixture
def llm() -> ScriptedChatModel:
    """Scripted model answering every conversation turn with a plain follow-up."""
    return ScriptedChatModel(
        responses=[turn_reply("Thanks for sharing that. Could you tell me a bit more?")],
        prompts=[],
    )


@pytest.fixture
def orchestrator(store, notifier, retry_policy, llm) -> LeadOrchestrator:
    """Orchestrator wired to in-memory collaborators."""
    return LeadOrchestrator(
        store=store,
        llm=llm,
        notifier=notifier,
        retry_policy=retry_policy,
        scoring_engine=ScoringEngine(),
    )


@pytest.fixture
def stage_config(llm, notifier, retry_policy) -> dict:
    """Runnable config for calling stages directly."""
    return {
        "configurable": {
            "llm": llm,
            "notifier": notifier,
            "retry_policy": retry_policy,
            "scoring_engine": ScoringEngine(),
        }
    }


@pytest.fixture
def qualified_info() -> dict:
    """Customer info that scores as a qualified lead."""
    return {
        "name": "John Smith",
        "email": "john@acme.com",
        "company": "Acme Corp",
        "title": "VP of Engineering",
        "role": "influencer",
        "current_challenges": ["we need automation for our $2M support ticket backlog"],
        "budget": "$100K-$250K",
        "budget_amount": 150000,
        "timeline": "this_quarter",
    }


@pytest.fixture
def qualified_state(qualified_info) -> dict:
    """A scored, qualified session that has not been handed to sales yet."""
    state = create_initial_state("qualified-session")
    state["customer_info"] = qualified_info
    state["messages"] = [
        make_message("user", JOHN_SMITH_MESSAGE),
        make_message("assistant", "Great, thanks John."),
    ]
    state["qualification"] = ScoringEngine().evaluate(qualified_info)
    state["conversation_status"] = "qualified"
    return state


@pytest.fixture
def client(orchestrator, monkeypatch) -> Generator[TestClient, None, None]:
    """Create a test client bound to the test orchestrator."""
    from main import app
    from leadbot.api.deps import get_lead_orchestrator, get_session_sweeper
    from leadbot.services.session_sweeper import SessionSweeper

    monkeypatch.setattr(settings, "SESSION_SWEEPER_ENABLED", False)
    sweeper = SessionSweeper(orchestrator)
    app.dependency_overrides[get_lead_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_session_sweeper] = lambda: sweeper
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def admin_token() -> str:
    """Get an access token for an admin."""
    return create_access_token(data={"sub": "admin-1", "role": "admin"})


@pytest.fixture
def admin_headers(admin_token: str) -> dict:
    """Get authorization headers for an admin."""
    return {"Authorization": f"Bearer {admin_token}"}


@pytest.fixture
def viewer_headers() -> dict:
    """Get authorization headers for a non-admin user."""
    token = create_access_token(data={"sub": "viewer-1", "role": "viewer"})
    return {"Authorization": f"Bearer {token}"}
