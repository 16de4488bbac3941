"""
Recommendation branch - proposes solutions for the visitor's challenges
"""
import json
from typing import Any, Dict, List

from langchain_core.messages import HumanMessage, SystemMessage
from pydantic import BaseModel, ConfigDict, Field

from leadbot.core.langfuse_handler import get_llm_callbacks
from leadbot.core.logging import logger
from leadbot.orchestration.utils import message_text, parse_structured_reply


RECOMMENDATION_PROMPT = """You are a solutions consultant for an AI and automation consultancy.
Given a prospect's profile, propose up to 3 concrete solutions.

Return ONLY a JSON object:
{"recommendations": [{"title": "...", "description": "...", "addresses": "which challenge it solves"}]}"""

# (keywords, title, description) used when the LLM gives no usable answer
FALLBACK_SOLUTIONS = [
    (("manual", "time-consuming", "slow", "waste"), "Workflow automation",
     "Automate repetitive manual steps so the team can focus on exceptions."),
    (("backlog", "ticket", "support"), "AI-assisted triage",
     "Classify and route incoming requests automatically to shrink the backlog."),
    (("error", "mistake", "data quality"), "Automated data validation",
     "Catch bad records at entry with rule- and model-based checks."),
    (("integration", "complex"), "System integration",
     "Connect existing tools so data flows without re-keying."),
    (("compliance", "security"), "Compliance monitoring",
     "Continuously check processes against policy and flag deviations."),
    (("cost", "expensive", "inefficien"), "Process cost analysis",
     "Map where time and money go and target the costliest steps first."),
]

DISCOVERY_SOLUTION = {
    "title": "Automation discovery workshop",
    "description": "A short session to map processes and find the best automation candidates.",
    "addresses": "general",
}


class Recommendation(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: str
    description: str = ""
    addresses: str = ""


class RecommendationSet(BaseModel):
    model_config = ConfigDict(extra="ignore")

    recommendations: List[Recommendation] = Field(default_factory=list)


def fallback_recommendations(info: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Keyword-matched solutions for the recorded challenges."""
    picked: List[Dict[str, Any]] = []
    for challenge in info.get("current_challenges") or []:
        lowered = challenge.lower()
        for keywords, title, description in FALLBACK_SOLUTIONS:
            if any(k in lowered for k in keywords) and all(p["title"] != title for p in picked):
                picked.append({"title": title, "description": description, "addresses": challenge})
    return picked[:3] or [dict(DISCOVERY_SOLUTION)]


async def run_recommendations(state: Dict[str, Any], llm) -> List[Dict[str, Any]]:
    """Ask the LLM for solutions; fall back to keyword matching on a bad reply."""
    info = state.get("customer_info") or {}
    profile = {
        "company": info.get("company"),
        "industry": info.get("industry"),
        "company_size": info.get("company_size"),
        "challenges": info.get("current_challenges") or [],
        "budget": info.get("budget"),
        "timeline": info.get("timeline"),
    }
    response = await llm.ainvoke(
        [
            SystemMessage(content=RECOMMENDATION_PROMPT),
            HumanMessage(content=json.dumps(profile)),
        ],
        config={"callbacks": get_llm_callbacks()},
    )

    parsed = parse_structured_reply(message_text(response), RecommendationSet)
    if parsed is None or not parsed.recommendations:
        logger.info(f"Using fallback recommendations for session {state.get('session_id')}")
        return fallback_recommendations(info)

    return [r.model_dump() for r in parsed.recommendations[:3]]
