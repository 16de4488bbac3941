"""
Tests for lead notification payloads and sinks.
"""

import json

import httpx
import pytest
from leadbot.services.notifier import (
    LoggingNotifier,
    NotificationError,
    WebhookNotifier,
    build_lead_notification,
    priority_for_score,
    urgency_for,
)


class TestPriority:
    """Test priority and urgency mapping."""

    @pytest.mark.parametrize("score,priority", [(95, "HIGH"), (80, "HIGH"), (62, "MEDIUM"), (40, "LOW")])
    def test_priority(self, score, priority):
        """Test priority follows the score."""
        assert priority_for_score(score) == priority

    @pytest.mark.parametrize("score,timeline,urgency", [
        (85, None, "IMMEDIATE"),
        (35, "immediate", "IMMEDIATE"),
        (72, None, "2_HOURS"),
        (62, "this_quarter", "24_HOURS"),
        (35, "this_month", "24_HOURS"),
        (50, None, "48_HOURS"),
        (35, None, "WEEK"),
    ])
    def test_urgency(self, score, timeline, urgency):
        """Test urgency from score, bumped by timeline."""
        assert urgency_for(score, timeline) == urgency


class TestPayload:
    """Test the hand-off payload."""

    def test_payload(self, qualified_state):
        """Test contact, company and qualification are included."""
        payload = build_lead_notification(qualified_state, "qualification")
        assert payload["type"] == "qualification"
        assert payload["session_id"] == "qualified-session"
        assert payload["priority"] == "MEDIUM"
        assert payload["urgency"] == "24_HOURS"
        assert payload["contact"]["name"] == "John Smith"
        assert payload["company"]["name"] == "Acme Corp"
        assert payload["qualification"]["score"] == 62
        assert payload["requirements"]["budget"] == "$100K-$250K"


class TestSinks:
    """Test notification delivery."""

    async def test_logging_notifier_records(self, qualified_state):
        """Test the logging sink keeps what it sent."""
        notifier = LoggingNotifier()
        await notifier.send(build_lead_notification(qualified_state, "qualification"))
        assert notifier.sent[0]["contact"]["email"] == "john@acme.com"

    async def test_webhook_posts_json(self, qualified_state, monkeypatch):
        """Test the webhook sink POSTs the payload."""
        received = []

        def handler(request: httpx.Request) -> httpx.Response:
            received.append(json.loads(request.content))
            return httpx.Response(204)

        original = httpx.AsyncClient
        monkeypatch.setattr(
            httpx, "AsyncClient",
            lambda **kwargs: original(transport=httpx.MockTransport(handler), **kwargs),
        )

        await WebhookNotifier("https://hooks.example.com/leads").send(
            build_lead_notification(qualified_state, "qualification")
        )
        assert received[0]["session_id"] == "qualified-session"

    async def test_webhook_error(self, qualified_state, monkeypatch):
        """Test HTTP failures surface as NotificationError."""
        original = httpx.AsyncClient
        monkeypatch.setattr(
            httpx, "AsyncClient",
            lambda **kwargs: original(
                transport=httpx.MockTransport(lambda request: httpx.Response(500)), **kwargs
            ),
        )

        with pytest.raises(NotificationError):
            await WebhookNotifier("https://hooks.example.com/leads").send(
                build_lead_notification(qualified_state, "qualification")
            )
