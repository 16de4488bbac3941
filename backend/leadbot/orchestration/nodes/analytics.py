"""
Analytics branch - sentiment, engagement and conversion probability
"""
import re
from typing import Any, Dict, Optional

from leadbot.orchestration.nodes.base import last_user_message
from leadbot.orchestration.state import has_contact, parse_timestamp, utcnow, utcnow_iso


POSITIVE_WORDS = ["great", "excellent", "perfect", "love", "awesome", "fantastic", "interested", "excited"]
NEGATIVE_WORDS = ["not", "no", "bad", "poor", "hate", "terrible", "wrong", "issue", "problem"]


def analyze_sentiment(text: str) -> str:
    """Word-list sentiment: positive, neutral or negative."""
    words = re.findall(r"[a-z']+", (text or "").lower())
    score = sum(1 for w in POSITIVE_WORDS if w in words) - sum(1 for w in NEGATIVE_WORDS if w in words)
    if score > 0:
        return "positive"
    if score < 0:
        return "negative"
    return "neutral"


def engagement_score(message_count: int, response_seconds: float) -> float:
    """Faster replies and longer conversations read as more engaged (0-100)."""
    return max(0.0, min(100.0, 100 - response_seconds * 2 + message_count * 5))


async def run_analytics(state: Dict[str, Any], now: Optional[Any] = None) -> Dict[str, Any]:
    """Recompute session analytics. Returns the new analytics mapping."""
    now = now or utcnow()
    analytics = dict(state.get("analytics") or {})
    messages = state.get("messages") or []

    latest = last_user_message(state)
    sentiment = analyze_sentiment(latest.get("content", "")) if latest else "neutral"

    # Time the visitor took to answer the message before their latest one
    response_seconds = 0.0
    if latest is not None:
        position = next(i for i, m in enumerate(messages) if m is latest)
        if position > 0:
            answered = messages[position - 1]
            response_seconds = max(
                0.0,
                (parse_timestamp(latest["timestamp"]) - parse_timestamp(answered["timestamp"])).total_seconds(),
            )

    qualification = state.get("qualification")
    conversion = analytics.get("conversion_probability") or 0.0
    if qualification:
        conversion = qualification.get("total_score", 0) / 100
    elif has_contact(state.get("customer_info")):
        conversion = max(0.3, conversion)

    analytics.update(
        {
            "message_count": len(messages),
            "conversation_duration": max(
                0.0, (now - parse_timestamp(state.get("start_time") or now)).total_seconds()
            ),
            "engagement_score": engagement_score(len(messages), response_seconds),
            "sentiment": sentiment,
            "conversion_probability": conversion,
            "key_moments": list(analytics.get("key_moments") or []) + [
                {
                    "timestamp": utcnow_iso(),
                    "event": f"User message analyzed: {sentiment} sentiment",
                    "impact": sentiment,
                }
            ],
        }
    )
    return analytics
