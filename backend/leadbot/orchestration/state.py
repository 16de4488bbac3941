"""
Shared state and types for the lead-qualification graph
"""
from typing import TypedDict, List, Optional, Annotated, Any, Dict
from datetime import datetime, timezone
from enum import Enum
import operator
import uuid


class ConversationStatus(str, Enum):
    ACTIVE = "active"
    READY_TO_QUALIFY = "ready_to_qualify"
    QUALIFIED = "qualified"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class ConversationType(str, Enum):
    CHAT = "chat"
    CALLBACK = "callback"
    EMAIL = "email"
    FORM = "form"


class QualificationTier(str, Enum):
    HOT = "hot"
    WARM = "warm"
    QUALIFIED = "qualified"
    VIABLE = "viable"
    NURTURE = "nurture"


class CompanySize(str, Enum):
    STARTUP = "startup"
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"
    ENTERPRISE = "enterprise"


class AuthorityRole(str, Enum):
    DECISION_MAKER = "decision_maker"
    INFLUENCER = "influencer"
    RESEARCHER = "researcher"


class Timeframe(str, Enum):
    IMMEDIATE = "immediate"
    THIS_MONTH = "this_month"
    THIS_QUARTER = "this_quarter"
    THIS_YEAR = "this_year"
    NEXT_YEAR = "next_year"


class NotificationType(str, Enum):
    QUALIFICATION = "qualification"
    NURTURE = "nurture"


# Ordered from hottest to coldest; first breakpoint the score reaches wins
TIER_BREAKPOINTS = [
    (80, QualificationTier.HOT),
    (60, QualificationTier.WARM),
    (45, QualificationTier.QUALIFIED),
    (30, QualificationTier.VIABLE),
]

TIER_RANK = {
    QualificationTier.NURTURE.value: 0,
    QualificationTier.VIABLE.value: 1,
    QualificationTier.QUALIFIED.value: 2,
    QualificationTier.WARM.value: 3,
    QualificationTier.HOT.value: 4,
}

MAX_SCORE = 100

# Statuses the conversation gate must never move backwards from
TERMINAL_STATUSES = {
    ConversationStatus.QUALIFIED.value,
    ConversationStatus.COMPLETED.value,
    ConversationStatus.ABANDONED.value,
}


class ChatMessage(TypedDict):
    role: str  # user | assistant
    content: str
    timestamp: str


class CustomerInfo(TypedDict, total=False):
    """Visitor details gathered during the conversation."""
    name: str
    email: str
    phone: str
    company: str
    industry: str
    employee_count: int
    company_size: str
    title: str
    role: str
    current_challenges: List[str]
    budget: str  # range label, or the visitor's own words when not numeric
    budget_amount: int
    timeline: str  # Timeframe value, or the visitor's own words
    intent_type: str
    opportunity_summary: str


class Qualification(TypedDict, total=False):
    budget: dict
    authority: dict
    need: dict
    timeline: dict
    contact_score: int
    total_score: int
    is_qualified: bool
    tier: str
    qualification_reasons: List[str]
    disqualification_reasons: List[str]
    scored_at: str


class AgentExecution(TypedDict, total=False):
    agent_id: str
    start_time: str
    end_time: str
    status: str  # completed | failed | skipped
    result: Any
    error: str
    retry_count: int


class ErrorEntry(TypedDict):
    error_id: str
    timestamp: str
    agent: str
    error: str
    recovered: bool


class NotificationRecord(TypedDict, total=False):
    type: str
    timestamp: str
    channel: str
    tier: str
    score: int


class Analytics(TypedDict, total=False):
    message_count: int
    conversation_duration: float
    conversion_probability: float
    engagement_score: float
    sentiment: str
    key_moments: List[dict]
    scored_for: Optional[str]  # qualification timestamp the branch last ran for


class UIAction(TypedDict, total=False):
    type: str  # show_text_input | hide_text_input
    input_type: Optional[str]  # email | phone
    placeholder: Optional[str]


def merge_errors(existing: List[ErrorEntry], new: List[ErrorEntry]) -> List[ErrorEntry]:
    """
    Reducer for the error log.

    New ids are appended; an entry whose id is already present replaces the
    old one in place. This lets error recovery flip `recovered` without the
    log growing a duplicate.
    """
    merged = list(existing or [])
    positions = {entry.get("error_id"): i for i, entry in enumerate(merged)}
    for entry in new or []:
        position = positions.get(entry.get("error_id"))
        if position is None:
            positions[entry.get("error_id")] = len(merged)
            merged.append(entry)
        else:
            merged[position] = {**merged[position], **entry}
    return merged


class LeadConversationState(TypedDict):
    """State threaded through every stage of the lead graph."""
    # Session info
    session_id: str
    conversation_type: str

    # Conversation
    messages: Annotated[List[ChatMessage], operator.add]

    # Gathered data
    customer_info: CustomerInfo
    qualification: Optional[Qualification]
    recommendations: Optional[List[dict]]

    # Control
    conversation_status: str
    ui_action: Optional[UIAction]
    contact_prompted: bool

    # Audit
    agent_executions: Annotated[List[AgentExecution], operator.add]
    errors: Annotated[List[ErrorEntry], merge_errors]
    notifications_sent: Annotated[List[NotificationRecord], operator.add]

    analytics: Analytics

    # Timestamps
    start_time: str
    last_update_time: str


APPEND_FIELDS = ("messages", "agent_executions", "notifications_sent")


def apply_update(state: Dict[str, Any], update: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Apply a stage update outside the graph, with the same reducers the
    graph uses. Used when a single stage runs directly (sweeps, manual
    notifications).
    """
    merged = dict(state)
    for key, value in (update or {}).items():
        if key in APPEND_FIELDS:
            merged[key] = list(merged.get(key) or []) + list(value or [])
        elif key == "errors":
            merged[key] = merge_errors(merged.get(key) or [], value or [])
        else:
            merged[key] = value
    return merged


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def utcnow_iso() -> str:
    return utcnow().isoformat()


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO timestamp stored in state (naive values are UTC)."""
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def create_initial_state(
    session_id: str,
    conversation_type: str = ConversationType.CHAT.value,
    now: Optional[datetime] = None,
) -> LeadConversationState:
    """Create initial conversation state."""
    started = (now or utcnow()).isoformat()
    return LeadConversationState(
        session_id=session_id,
        conversation_type=conversation_type,
        messages=[],
        customer_info={"current_challenges": []},
        qualification=None,
        recommendations=None,
        conversation_status=ConversationStatus.ACTIVE.value,
        ui_action=None,
        contact_prompted=False,
        agent_executions=[],
        errors=[],
        notifications_sent=[],
        analytics={
            "message_count": 0,
            "conversation_duration": 0.0,
            "conversion_probability": 0.0,
            "engagement_score": 0.0,
            "sentiment": "neutral",
            "key_moments": [],
            "scored_for": None,
        },
        start_time=started,
        last_update_time=started,
    )


def make_message(role: str, content: str) -> ChatMessage:
    return ChatMessage(role=role, content=content, timestamp=utcnow_iso())


def make_error(agent: str, error: str, recovered: bool = False) -> ErrorEntry:
    return ErrorEntry(
        error_id=str(uuid.uuid4()),
        timestamp=utcnow_iso(),
        agent=agent,
        error=error,
        recovered=recovered,
    )


def tier_for_score(score: int) -> str:
    """Map a total score onto its qualification tier."""
    for breakpoint, tier in TIER_BREAKPOINTS:
        if score >= breakpoint:
            return tier.value
    return QualificationTier.NURTURE.value


def merge_challenges(existing: Optional[List[str]], new: Optional[List[str]]) -> List[str]:
    """Ordered union; duplicates are dropped by exact string match."""
    merged = list(existing or [])
    for challenge in new or []:
        if challenge and challenge not in merged:
            merged.append(challenge)
    return merged


def merge_customer_info(
    current: Optional[Dict[str, Any]],
    patch: Optional[Dict[str, Any]],
    overwrite: bool = False,
) -> CustomerInfo:
    """
    Merge a patch into customer info.

    Empty values in the patch are ignored. Populated fields are only replaced
    when `overwrite` is set; challenges are always unioned.
    """
    merged: Dict[str, Any] = dict(current or {})
    for key, value in (patch or {}).items():
        if value is None or value == "" or value == [] or value == {}:
            continue
        if key == "current_challenges":
            merged[key] = merge_challenges(merged.get(key), value)
        elif overwrite or not merged.get(key):
            merged[key] = value
    return merged


def has_contact(info: Optional[Dict[str, Any]]) -> bool:
    info = info or {}
    return bool(info.get("email") or info.get("phone"))


def has_business_context(info: Optional[Dict[str, Any]]) -> bool:
    info = info or {}
    return bool(info.get("company") or info.get("industry"))


def is_generic_challenge(challenge: str) -> bool:
    """'We need automation' style statements carry no specific pain point."""
    return "automation" in challenge.lower() and len(challenge.split()) < 4


def has_specific_challenges(info: Optional[Dict[str, Any]]) -> bool:
    challenges = (info or {}).get("current_challenges") or []
    return bool(challenges) and not all(is_generic_challenge(c) for c in challenges)


def has_lead_context(info: Optional[Dict[str, Any]]) -> bool:
    """Anything that tells sales what the visitor's business needs."""
    info = info or {}
    return has_business_context(info) or bool(info.get("current_challenges"))


def was_notified(state: Dict[str, Any], notification_type: str) -> bool:
    return any(
        n.get("type") == notification_type
        for n in state.get("notifications_sent") or []
    )


def last_unrecovered_error(state: Dict[str, Any]) -> Optional[ErrorEntry]:
    errors = state.get("errors") or []
    if errors and not errors[-1].get("recovered"):
        return errors[-1]
    return None


def user_messages(state: Dict[str, Any]) -> List[ChatMessage]:
    return [m for m in state.get("messages") or [] if m.get("role") == "user"]
