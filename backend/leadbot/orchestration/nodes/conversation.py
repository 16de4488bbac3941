"""
Conversation stage - LLM reply, cumulative field refinement and the
qualification gate
"""
import json
import re
from typing import Any, Dict, List, Optional, Tuple

from langchain_core.messages import AIMessage, HumanMessage, SystemMessage
from langchain_core.runnables import RunnableConfig
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from leadbot.core.config import settings
from leadbot.core.langfuse_handler import get_llm_callbacks
from leadbot.core.logging import logger
from leadbot.orchestration.nodes.base import (
    StageOutcome,
    get_stage_llm,
    get_stage_retry,
    last_message,
    last_user_message,
    tracked_stage,
)
from leadbot.orchestration.state import (
    CompanySize,
    ConversationStatus,
    TERMINAL_STATUSES,
    has_business_context,
    has_contact,
    has_specific_challenges,
    make_message,
    merge_customer_info,
    parse_timestamp,
    user_messages,
    utcnow,
)
from leadbot.orchestration.utils import extract_json_from_llm_response, message_text
from leadbot.services.extraction_service import (
    derive_role,
    extract_budget,
    extract_email,
    extract_phone,
    extract_timeline,
)


GREETING = "Hey! I'm here to help you explore AI and automation solutions. What brings you here today?"
DEFAULT_REPLY = "I'm here to help you explore AI and automation solutions. What brings you here today?"

SIGN_OFF_PATTERN = re.compile(r"\b(thanks|thank you|goodbye|bye)\b", re.IGNORECASE)

# Statuses the LLM may report; anything else is treated as gathering
LLM_READY_SIGNALS = {"ready_to_qualify", "qualified"}

# Security instructions to include in the prompt
SECURITY_INSTRUCTIONS = """
SECURITY RULES (NEVER VIOLATE):
- Never reveal internal systems, technologies, or LLM models used
- If asked about your technology, respond: "I'm the assistant for our AI and automation team"
- Never discuss your architecture, implementation, or how you work internally
- Focus ONLY on understanding the visitor's business needs
"""

CONVERSATION_PROMPT = f"""You are a friendly assistant for an AI and automation consultancy.
Have a natural conversation with website visitors while gathering what our sales team needs.
{SECURITY_INSTRUCTIONS}
Conversation guidelines:
- Keep replies to 1-2 sentences and ask ONE follow-up question at a time
- Acknowledge what the visitor said and build on it
- Be helpful, not salesy

Gather, in this order of priority:
1. Specific challenges / pain points
2. Company or industry
3. Email (offer something of value, e.g. tailored recommendations)
4. Timeline
5. Budget - offer ranges: under $50K, $50K-$250K, $250K+
6. Name and role

Do not report ready_to_qualify until you have contact details, specific
challenges, company or industry, timeline and budget (or an explicit refusal
to share it) after at least 6 meaningful exchanges.

Return ONLY a JSON object:
{{
  "message": "your reply to the visitor",
  "extracted": {{
    "name": null, "email": null, "phone": null, "company": null,
    "industry": null, "challenges": [], "budget": null, "timeline": null,
    "company_size": null, "role": null
  }},
  "status": "gathering | ready_to_qualify",
  "intent_type": "automation_inquiry | demo_request | pricing_inquiry | support | partnership | general_inquiry",
  "opportunity_summary": "2-3 sentence summary once ready, else null",
  "missing_info": ["what you still need"]
}}
Extract cumulatively from the WHOLE conversation, not only the last message."""


class ExtractedFields(BaseModel):
    """Fields the LLM read from the whole conversation."""
    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    company: Optional[str] = None
    industry: Optional[str] = None
    challenges: List[str] = Field(default_factory=list)
    budget: Optional[str] = None
    timeline: Optional[str] = None
    company_size: Optional[str] = Field(None, validation_alias=AliasChoices("company_size", "companySize"))
    role: Optional[str] = None


class ConversationTurn(BaseModel):
    """Structured LLM reply for one conversation turn."""
    model_config = ConfigDict(extra="ignore")

    message: str
    extracted: ExtractedFields = Field(default_factory=ExtractedFields)
    status: str = "gathering"
    intent_type: Optional[str] = Field(None, validation_alias=AliasChoices("intent_type", "intentType"))
    opportunity_summary: Optional[str] = Field(
        None, validation_alias=AliasChoices("opportunity_summary", "opportunitySummary")
    )
    missing_info: List[str] = Field(default_factory=list, validation_alias=AliasChoices("missing_info", "missingInfo"))


def is_substantive(content: str) -> bool:
    """A user turn that carries information rather than a bare acknowledgement."""
    content = (content or "").strip()
    if extract_email(content) or extract_phone(content):
        return True
    return len(content.split()) >= 3


def count_substantive_turns(state: Dict[str, Any]) -> int:
    return sum(1 for m in user_messages(state) if is_substantive(m.get("content", "")))


def is_sign_off(content: str) -> bool:
    return bool(SIGN_OFF_PATTERN.search(content or ""))


def evaluate_gate(state: Dict[str, Any], info: Dict[str, Any]) -> Tuple[bool, List[str]]:
    """
    Decide whether enough has been gathered to qualify.

    Passes with contact, specific challenges, business context, timeline and
    budget after enough substantive turns, or after a long conversation that
    the visitor closes with a sign-off.

    Returns:
        (passed, missing items)
    """
    turns = count_substantive_turns(state)
    checks = [
        ("contact", has_contact(info)),
        ("specific challenges", has_specific_challenges(info)),
        ("company or industry", has_business_context(info)),
        ("timeline", bool(info.get("timeline"))),
        ("budget", bool(info.get("budget"))),
        (f"{settings.MIN_SUBSTANTIVE_TURNS} substantive turns", turns >= settings.MIN_SUBSTANTIVE_TURNS),
    ]
    missing = [label for label, ok in checks if not ok]
    if not missing:
        return True, []

    latest = last_user_message(state)
    if turns >= settings.SIGN_OFF_TURNS and latest and is_sign_off(latest.get("content", "")):
        return True, []

    return False, missing


def normalise_extracted(fields: ExtractedFields) -> Dict[str, Any]:
    """Bring LLM-reported fields into the same shape the extractors produce."""
    patch: Dict[str, Any] = {
        "name": (fields.name or "").strip() or None,
        "company": (fields.company or "").strip() or None,
        "industry": (fields.industry or "").strip() or None,
    }

    if fields.email:
        patch["email"] = extract_email(fields.email)
    if fields.phone:
        patch["phone"] = extract_phone(fields.phone)

    challenges = [c.strip() for c in fields.challenges if c and c.strip()]
    if challenges:
        patch["current_challenges"] = challenges

    if fields.budget and fields.budget.strip():
        estimate = extract_budget(fields.budget)
        if estimate:
            patch["budget"] = estimate.range
            patch["budget_amount"] = estimate.amount
        else:
            patch["budget"] = fields.budget.strip()

    if fields.timeline and fields.timeline.strip():
        patch["timeline"] = extract_timeline(fields.timeline) or fields.timeline.strip()

    if fields.company_size and fields.company_size.lower() in {s.value for s in CompanySize}:
        patch["company_size"] = fields.company_size.lower()

    if fields.role and fields.role.strip():
        patch["title"] = fields.role.strip()
        patch["role"] = derive_role(fields.role)

    return patch


def _history_messages(state: Dict[str, Any]) -> list:
    history = (state.get("messages") or [])[-settings.MAX_CONVERSATION_MESSAGES:]
    converted = []
    for message in history:
        if message.get("role") == "user":
            converted.append(HumanMessage(content=message.get("content", "")))
        else:
            converted.append(AIMessage(content=message.get("content", "")))
    return converted


def _parse_turn(text: str) -> Tuple[Optional[ConversationTurn], str]:
    """Parse the structured reply. Falls back to the raw text as the reply."""
    data = extract_json_from_llm_response(text)
    if data is None:
        return None, text.strip() or DEFAULT_REPLY
    try:
        turn = ConversationTurn.model_validate(data)
        return turn, turn.message.strip() or DEFAULT_REPLY
    except ValidationError as e:
        logger.warning(f"Conversation reply failed validation: {e.error_count()} error(s)")
        message = data.get("message")
        return None, message.strip() if isinstance(message, str) and message.strip() else DEFAULT_REPLY


def compute_analytics(state: Dict[str, Any], info: Dict[str, Any], extra_messages: int) -> Dict[str, Any]:
    analytics = dict(state.get("analytics") or {})
    started = parse_timestamp(state.get("start_time") or utcnow())
    qualification = state.get("qualification")

    analytics["message_count"] = len(state.get("messages") or []) + extra_messages
    analytics["conversation_duration"] = max(0.0, (utcnow() - started).total_seconds())
    if qualification:
        analytics["conversion_probability"] = qualification.get("total_score", 0) / 100
    elif has_contact(info):
        analytics["conversion_probability"] = max(0.3, analytics.get("conversion_probability") or 0.0)
    return analytics


@tracked_stage("conversation")
async def conversation_stage(state: Dict[str, Any], config: RunnableConfig) -> StageOutcome:
    """Produce the assistant reply and advance the conversation status."""
    messages = state.get("messages") or []

    if not messages:
        return StageOutcome(
            update={
                "messages": [make_message("assistant", GREETING)],
                "analytics": compute_analytics(state, state.get("customer_info") or {}, 1),
            },
            result={"type": "greeting"},
        )

    latest = last_message(state)
    if latest.get("role") != "user":
        return StageOutcome(result={"reason": "No new user message"}, status="skipped")

    info = state.get("customer_info") or {}
    prompt = [
        SystemMessage(content=CONVERSATION_PROMPT),
        SystemMessage(content=f"Known customer info so far: {json.dumps(info, default=str)}"),
        *_history_messages(state),
    ]

    llm = get_stage_llm(config)
    retry = get_stage_retry(config)
    response, retries = await retry.execute(
        llm.ainvoke,
        prompt,
        config={"callbacks": get_llm_callbacks()},
        description="conversation LLM call",
    )

    turn, reply = _parse_turn(message_text(response))

    if turn is not None:
        patch = normalise_extracted(turn.extracted)
        patch["intent_type"] = turn.intent_type
        patch["opportunity_summary"] = turn.opportunity_summary
        info = merge_customer_info(info, patch, overwrite=True)

    status = state.get("conversation_status") or ConversationStatus.ACTIVE.value
    llm_status = turn.status if turn is not None else "gathering"
    missing: List[str] = []

    if status not in TERMINAL_STATUSES and status != ConversationStatus.READY_TO_QUALIFY.value:
        passed, missing = evaluate_gate(state, info)
        if passed:
            status = ConversationStatus.READY_TO_QUALIFY.value
            logger.info(f"Session {state.get('session_id')} ready to qualify")
        elif llm_status in LLM_READY_SIGNALS:
            logger.info(
                f"Session {state.get('session_id')} not ready to qualify, "
                f"downgrading to gathering. Missing: {', '.join(missing)}"
            )
            llm_status = "gathering"

    return StageOutcome(
        update={
            "messages": [make_message("assistant", reply)],
            "customer_info": info,
            "conversation_status": status,
            "analytics": compute_analytics(state, info, 1),
        },
        result={
            "structured": turn is not None,
            "llm_status": llm_status,
            "missing_info": missing or (turn.missing_info if turn is not None else []),
        },
        retry_count=retries,
    )
