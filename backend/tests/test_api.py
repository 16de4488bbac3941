"""
Tests for the chat and admin API endpoints.
"""

from leadbot.orchestration.nodes.conversation import GREETING
from leadbot.orchestration.state import create_initial_state

from conftest import JOHN_SMITH_MESSAGE


class TestHealth:
    """Test the health endpoint."""

    def test_root(self, client):
        """Test the service reports healthy."""
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestChatEndpoints:
    """Test visitor-facing chat endpoints."""

    def test_start_session(self, client):
        """Test starting a session returns the greeting."""
        response = client.post("/chat/session", json={"session_id": "api-1"})
        assert response.status_code == 200
        data = response.json()
        assert data["session_id"] == "api-1"
        assert data["reply"] == GREETING
        assert data["session"]["status"] == "active"

    def test_start_with_unknown_type(self, client):
        """Test an unsupported conversation type is rejected."""
        response = client.post("/chat/session", json={"conversation_type": "fax"})
        assert response.status_code == 422

    def test_message_opens_contact_form(self, client):
        """Test a pain point without contact details returns a UI action."""
        client.post("/chat/session", json={"session_id": "api-2"})
        response = client.post("/chat/message", json={"session_id": "api-2", "message": JOHN_SMITH_MESSAGE})
        assert response.status_code == 200
        data = response.json()
        assert len(data["replies"]) == 2
        assert data["ui_action"]["type"] == "show_text_input"
        assert data["ui_action"]["input_type"] == "email"

    def test_empty_message_rejected(self, client):
        """Test blank messages fail validation."""
        response = client.post("/chat/message", json={"session_id": "api-3", "message": ""})
        assert response.status_code == 422

    def test_get_session(self, client):
        """Test the session view lists the transcript."""
        client.post("/chat/session", json={"session_id": "api-4", "initial_message": "Hello there, quick question"})
        response = client.get("/chat/session/api-4")
        assert response.status_code == 200
        data = response.json()
        assert data["messages"][0]["role"] == "user"
        assert data["messages"][-1]["role"] == "assistant"

    def test_get_missing_session(self, client):
        """Test unknown sessions return 404."""
        assert client.get("/chat/session/nope").status_code == 404

    def test_end_session(self, client, store, notifier, qualified_state):
        """Test ending a qualified session hands it off and removes it."""
        store.set(qualified_state["session_id"], qualified_state)
        response = client.post("/chat/session/qualified-session/end")
        assert response.status_code == 200
        assert response.json() == {
            "session_id": "qualified-session",
            "status": "completed",
            "qualified": True,
            "notifications_sent": 1,
        }
        assert len(notifier.sent) == 1
        assert client.get("/chat/session/qualified-session").status_code == 404

    def test_end_missing_session(self, client):
        """Test ending an unknown session returns 404."""
        assert client.post("/chat/session/nope/end").status_code == 404


class TestAdminEndpoints:
    """Test the admin surface and its access control."""

    def test_requires_token(self, client):
        """Test admin routes reject anonymous callers."""
        assert client.get("/admin/sessions").status_code in (401, 403)

    def test_rejects_bad_token(self, client):
        """Test a forged token is rejected."""
        response = client.get("/admin/sessions", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    def test_requires_admin_role(self, client, viewer_headers):
        """Test non-admin roles are forbidden."""
        assert client.get("/admin/sessions", headers=viewer_headers).status_code == 403

    def test_list_sessions(self, client, store, admin_headers, qualified_state):
        """Test the session list."""
        store.set(qualified_state["session_id"], qualified_state)
        response = client.get("/admin/sessions", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()[0]["session_id"] == "qualified-session"
        assert response.json()[0]["tier"] == "warm"

    def test_analytics(self, client, store, admin_headers, qualified_state):
        """Test aggregate metrics."""
        store.set(qualified_state["session_id"], qualified_state)
        response = client.get("/admin/analytics", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["qualified_leads"] == 1
        assert response.json()["conversion_rate"] == 100.0

    def test_notify(self, client, store, notifier, admin_headers, qualified_state):
        """Test a manual notification is sent once."""
        store.set(qualified_state["session_id"], qualified_state)
        first = client.post("/admin/sessions/qualified-session/notify", headers=admin_headers)
        second = client.post("/admin/sessions/qualified-session/notify", headers=admin_headers)
        assert first.json() == {"session_id": "qualified-session", "notified": True}
        assert second.json()["notified"] is False
        assert len(notifier.sent) == 1

    def test_notify_missing(self, client, admin_headers):
        """Test notifying an unknown session returns 404."""
        response = client.post("/admin/sessions/nope/notify", headers=admin_headers)
        assert response.status_code == 404

    def test_sweep(self, client, store, admin_headers):
        """Test a manual sweep leaves fresh sessions alone."""
        store.set("fresh", create_initial_state("fresh"))
        response = client.post("/admin/sessions/sweep", headers=admin_headers)
        assert response.status_code == 200
        assert response.json() == {"timed_out": [], "evicted": 0}
