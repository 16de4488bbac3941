"""
Customer Data Extraction

Pulls structured lead data out of free-text visitor messages.
Every extractor is an independent `text -> Optional[value]` function so it
can be tested and replaced without touching the graph.

Extractable fields:
- Contact (email, phone)
- Identity (name, title, derived authority role)
- Business (company, industry, employee count, derived company size)
- Buying signals (budget, timeline)
- Pain points (challenges)
"""
from typing import Optional, Dict, Any, List
from dataclasses import dataclass
import re

from leadbot.orchestration.state import (
    AuthorityRole,
    CompanySize,
    Timeframe,
)


# Words that follow "I'm" / "this is" but are not names
NAME_STOP_WORDS = {
    "a", "an", "the", "at", "in", "on", "with", "from", "for", "here", "just",
    "not", "so", "very", "really", "also", "still", "currently", "looking",
    "interested", "trying", "working", "calling", "reaching", "curious",
    "wondering", "hoping", "going", "thinking", "exploring", "planning",
    "ready", "good", "great", "fine", "ok", "okay", "sure", "glad", "happy",
    "responsible", "based", "new", "part", "about", "sorry", "afraid",
    "running", "leading", "managing", "the", "our", "my", "your", "what",
    "how", "that", "it", "excited", "keen", "eager", "thrilled", "pleased",
    "considering", "evaluating", "struggling", "frustrated", "tired", "stuck",
    "concerned", "worried", "busy", "back", "only", "both",
}

# Introductions where a lower-case word is more likely an adjective than a name
LOOSE_INTRODUCTIONS = {"i'm", "i am", "this is"}

COMPANY_SUFFIXES = (
    "LLC", "LLP", "Inc", "Corp", "Corporation", "Company", "Co", "Ltd",
    "Firm", "Associates", "Partners", "Group", "Solutions", "Services",
    "Technologies",
)

# Leading tokens swept into a company match by the capitalised-word pattern
COMPANY_LEADING_NOISE = {
    "hi", "hello", "hey", "i", "i'm", "we", "we're", "our", "my", "the",
    "at", "from", "with", "this", "thanks", "yes", "so", "and",
}

GENERIC_BUSINESS_PHRASES = (
    "my business", "our business", "my company", "our company",
    "the company", "my firm", "our firm", "my real estate business",
)

INDUSTRIES = [
    "real estate", "healthcare", "banking", "insurance",
    "retail", "e-commerce", "manufacturing", "logistics", "transportation",
    "technology", "software", "saas", "education", "hospitality",
    "construction", "automotive", "energy", "utilities", "telecom",
    "media", "entertainment", "legal", "consulting", "marketing",
    "pharmaceutical", "biotech", "agriculture", "food service", "nonprofit",
]

INDUSTRY_CONTEXT_WORDS = ("industry", "sector", "company", "business", "firm", "space")

FINANCE_PHRASES = (
    "finance industry", "financial services", "finance sector", "work in finance",
)

# (title, case_sensitive); longer titles first so "Vice President" beats "President"
TITLES = [
    ("Vice President", False), ("Head of", False),
    ("CEO", False), ("CTO", False), ("CFO", False), ("COO", False),
    ("CMO", False), ("CIO", False), ("CISO", False),
    ("President", False), ("VP", False),
    ("Director", False), ("Manager", False), ("Lead", True),
    ("Partner", True), ("Principal", True), ("Founder", False), ("Owner", False),
    ("Analyst", False), ("Engineer", False), ("Developer", False), ("Architect", False),
    ("Consultant", False), ("Specialist", False), ("Coordinator", False),
]

DECISION_MAKER_PATTERN = re.compile(r"\b(CEO|CTO|CFO|COO|President|Owner|Founder)\b", re.IGNORECASE)
INFLUENCER_PATTERN = re.compile(r"\b(Director|VP|Vice President|Head of|Manager)\b", re.IGNORECASE)

URGENT_KEYWORDS = [
    "urgent", "urgently", "asap", "immediately", "right away",
    "as soon as possible", "critical", "emergency", "now", "today", "tomorrow",
    "this week", "next week",
]

TIMELINE_KEYWORDS = [
    (Timeframe.THIS_MONTH, ["this month", "next month"]),
    (Timeframe.THIS_QUARTER, ["this quarter", "next quarter", "q1", "q2", "q3", "q4"]),
    (Timeframe.THIS_YEAR, ["this year", "end of the year", "by year end"]),
    (Timeframe.NEXT_YEAR, ["next year"]),
]

CHALLENGE_KEYWORDS = [
    "problem", "challenge", "issue", "pain", "struggl", "difficult",
    "frustrat", "slow", "manual", "error", "mistake", "inefficien",
    "waste", "cost", "expensive", "time-consuming", "complex",
    "integration", "data quality", "compliance", "security", "backlog",
]

# Sentences longer than this are narrowed to the clause carrying the pain point
CHALLENGE_CLAUSE_THRESHOLD = 100

BUDGET_RANGES = [
    (50_000, "Under $50K"),
    (100_000, "$50K-$100K"),
    (250_000, "$100K-$250K"),
    (500_000, "$250K-$500K"),
    (1_000_000, "$500K-$1M"),
]
BUDGET_TOP_RANGE = "Over $1M"

MULTIPLIERS = {
    "k": 1_000,
    "thousand": 1_000,
    "m": 1_000_000,
    "mm": 1_000_000,
    "million": 1_000_000,
}

_NUMBER = r"(\d+(?:,\d{3})*(?:\.\d+)?)"
_MULTIPLIER = r"(k|thousand|mm|m|million)?\b"

BUDGET_PATTERNS = [
    # "budget around $150k", "budget of 50k", "budgeted $80,000"
    re.compile(r"\bbudget(?:ed)?\b[^$\d.!?]{0,30}\$?\s*" + _NUMBER + r"\s*" + _MULTIPLIER, re.IGNORECASE),
    # "$50k", "$150,000", "$2M"
    re.compile(r"\$\s*" + _NUMBER + r"\s*" + _MULTIPLIER, re.IGNORECASE),
    # "50k budget", "75 thousand dollars"
    re.compile(r"\b" + _NUMBER + r"\s*(k|thousand)\s*(?:budget|dollars?)\b", re.IGNORECASE),
]

EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")

PHONE_PATTERNS = [
    re.compile(r"\+\d{1,3}[-.\s]?\d{8,12}"),  # international
    re.compile(r"\+?1?[-.\s]?\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}"),  # US
    re.compile(r"\d{3}[-.\s]\d{3}[-.\s]\d{4}"),  # simple groups
]

NAME_PATTERN = re.compile(
    r"\b(?i:(my name is|i'm|i am|this is|call me))\s+([A-Za-z][a-z'-]+(?:\s+[A-Z][a-z'-]+){0,2})"
)

_CAPITALISED_RUN = r"[A-Z][\w&'-]*(?:\s+[A-Z][\w&'-]*){0,4}"

COMPANY_NAMED_PATTERN = re.compile(r"\b(?:called|named)\s+([A-Z][\w&'-]*(?:\s+[A-Z][\w&'-]*){0,3})")
COMPANY_SUFFIX_PATTERN = re.compile(
    r"\b(" + _CAPITALISED_RUN + r")\s+(" + "|".join(COMPANY_SUFFIXES) + r")\b"
)
COMPANY_PHRASE_PATTERN = re.compile(
    r"\b(?i:i'm with|i am with|i work at|i work for|i represent|representing|"
    r"company is|firm is|organization is)\s+(" + _CAPITALISED_RUN + r")"
)
COMPANY_MENTION_PATTERN = re.compile(
    r"\b(?:from|at|with|for|represent|representing)\s+([A-Z][\w&'-]*(?:\s+[A-Z][\w&'-]*)*)"
)

EMPLOYEE_PATTERN = re.compile(
    r"\b(\d[\d,]*)\s*\+?\s*(?:employees?|people|persons?|staff|lawyers?|attorneys?|"
    r"consultants?|workers?|team\s*members?|professionals?|developers?|engineers?)\b",
    re.IGNORECASE,
)

SENTENCE_SPLIT = re.compile(r"[.!?]+(?=\s|$)")


@dataclass
class BudgetEstimate:
    """Normalised dollar amount and its range label."""
    amount: int
    range: str


def _contains_phrase(text_lower: str, phrase: str) -> bool:
    return re.search(r"\b" + re.escape(phrase) + r"\b", text_lower) is not None


def extract_email(text: str) -> Optional[str]:
    """First e-mail address in the text, lower-cased."""
    match = EMAIL_PATTERN.search(text or "")
    if not match:
        return None
    email = match.group(0).lower()
    if "@" in email and "." in email and " " not in email:
        return email
    return None


def extract_phone(text: str) -> Optional[str]:
    """First phone number with at least 10 digits, stripped to digits and '+'."""
    for pattern in PHONE_PATTERNS:
        for match in pattern.finditer(text or ""):
            phone = re.sub(r"[^\d+]", "", match.group(0))
            if len(re.sub(r"\D", "", phone)) >= 10:
                return phone
    return None


def extract_name(text: str) -> Optional[str]:
    """Name from a self-introduction ("my name is", "I'm", "call me" ...)."""
    for match in NAME_PATTERN.finditer(text or ""):
        tokens = match.group(2).split()
        if tokens[0].lower() in NAME_STOP_WORDS:
            continue
        # "I'm excited" is a mood, "I'm Ann" is a name
        if match.group(1).lower() in LOOSE_INTRODUCTIONS and not tokens[0][0].isupper():
            continue
        # Drop trailing words like "here" / "speaking"
        while tokens and tokens[-1].lower() in ("here", "speaking", "calling"):
            tokens.pop()
        name = " ".join(token[0].upper() + token[1:].lower() for token in tokens)
        if 2 < len(name) < 50 and "@" not in name:
            return name
    return None


def _clean_company(candidate: str) -> Optional[str]:
    tokens = candidate.split()
    while tokens and tokens[0].lower() in COMPANY_LEADING_NOISE:
        tokens.pop(0)
    if not tokens:
        return None
    if any(token.lower() in ("my", "our", "your") for token in tokens):
        return None
    company = " ".join(tokens)
    if len(company) <= 2:
        return None
    return company


def extract_company(text: str) -> Optional[str]:
    """
    Company name.

    A legal-entity or organisation suffix is kept in the value
    ("Acme Corp"). Generic phrases like "my business" only yield a company
    when a proper name follows "called" / "named".
    """
    text = text or ""
    text_lower = text.lower()

    if any(_contains_phrase(text_lower, phrase) for phrase in GENERIC_BUSINESS_PHRASES):
        named = COMPANY_NAMED_PATTERN.search(text)
        if named:
            company = _clean_company(named.group(1))
            if company:
                return company

    for match in COMPANY_SUFFIX_PATTERN.finditer(text):
        company = _clean_company(f"{match.group(1)} {match.group(2)}")
        # A bare suffix ("Services") is not a company
        if company and len(company.split()) > 1:
            return company

    for match in COMPANY_PHRASE_PATTERN.finditer(text):
        company = _clean_company(match.group(1))
        if company:
            return company

    return None


def _company_mentions(text: str) -> List[str]:
    return [m.group(1).lower() for m in COMPANY_MENTION_PATTERN.finditer(text)]


def extract_industry(text: str) -> Optional[str]:
    """Industry from a fixed vocabulary, confirmed by context words."""
    text = text or ""
    text_lower = text.lower()
    company_names = _company_mentions(text)

    if "financ" in text_lower and not any(
        "financ" in name for name in company_names
    ):
        if any(phrase in text_lower for phrase in FINANCE_PHRASES):
            return "Finance"

    for industry in INDUSTRIES:
        if not _contains_phrase(text_lower, industry):
            continue
        # Skip vocabulary that is part of a company name ("Acme Logistics")
        if any(industry in name for name in company_names):
            continue
        if industry == "consulting" and "consulting firm" in text_lower:
            return "Consulting"
        contextual = any(
            _contains_phrase(text_lower, f"{industry} {word}")
            for word in INDUSTRY_CONTEXT_WORDS
        ) or re.search(
            r"\b(?:work|working|are|operate|operating)\s+in\s+(?:the\s+)?" + re.escape(industry) + r"\b",
            text_lower,
        )
        if contextual:
            return " ".join(word.capitalize() for word in industry.split())

    return None


def extract_title(text: str) -> Optional[str]:
    """Job title from a fixed vocabulary, with its department when given."""
    text = text or ""
    for title, case_sensitive in TITLES:
        # Only the title itself ignores case; the department must be capitalised
        title_pattern = re.escape(title) if case_sensitive else f"(?i:{re.escape(title)})"
        if title.endswith(" of"):
            pattern = r"\b" + title_pattern + r"\s+[A-Za-z][\w&-]*(?:\s+[A-Z][\w&-]*)*"
        else:
            pattern = r"\b" + title_pattern + r"\b(?:\s+of\s+[A-Z][\w&-]*(?:\s+[A-Z][\w&-]*)*)?"
        match = re.search(pattern, text)
        if match:
            full_title = match.group(0).strip()
            return full_title if len(full_title) < 100 else title
    return None


def derive_role(title: Optional[str]) -> Optional[str]:
    """Coarse decision-authority tier for a job title."""
    if not title:
        return None
    if re.search(r"\bvice president\b", title, re.IGNORECASE):
        return AuthorityRole.INFLUENCER.value
    if DECISION_MAKER_PATTERN.search(title):
        return AuthorityRole.DECISION_MAKER.value
    if INFLUENCER_PATTERN.search(title):
        return AuthorityRole.INFLUENCER.value
    return AuthorityRole.RESEARCHER.value


def extract_employee_count(text: str) -> Optional[int]:
    match = EMPLOYEE_PATTERN.search(text or "")
    if not match:
        return None
    count = int(match.group(1).replace(",", ""))
    return count if count > 0 else None


def company_size_for(employee_count: int) -> str:
    if employee_count < 10:
        return CompanySize.STARTUP.value
    if employee_count < 50:
        return CompanySize.SMALL.value
    if employee_count < 250:
        return CompanySize.MEDIUM.value
    if employee_count < 1000:
        return CompanySize.LARGE.value
    return CompanySize.ENTERPRISE.value


def budget_range_for(amount: int) -> str:
    for upper_bound, label in BUDGET_RANGES:
        if amount < upper_bound:
            return label
    return BUDGET_TOP_RANGE


def extract_budget(text: str) -> Optional[BudgetEstimate]:
    """
    Budget amount and range.

    Explicit budget context ("budget around $150k") wins over other money
    figures in the same message ("our $2M backlog").
    """
    for pattern in BUDGET_PATTERNS:
        for match in pattern.finditer(text or ""):
            number = float(match.group(1).replace(",", ""))
            suffix = (match.group(2) or "").lower()
            amount = int(number * MULTIPLIERS.get(suffix, 1))
            if amount > 0:
                return BudgetEstimate(amount=amount, range=budget_range_for(amount))
    return None


def extract_timeline(text: str) -> Optional[str]:
    """Urgency bucket from timeline keywords."""
    text_lower = (text or "").lower()
    if any(_contains_phrase(text_lower, keyword) for keyword in URGENT_KEYWORDS):
        return Timeframe.IMMEDIATE.value
    for timeframe, keywords in TIMELINE_KEYWORDS:
        if any(_contains_phrase(text_lower, keyword) for keyword in keywords):
            return timeframe.value
    return None


def _has_challenge_keyword(fragment: str) -> bool:
    fragment_lower = fragment.lower()
    return any(keyword in fragment_lower for keyword in CHALLENGE_KEYWORDS)


def extract_challenges(text: str) -> List[str]:
    """Sentences (or clauses of long sentences) describing pain points."""
    challenges: List[str] = []
    for sentence in SENTENCE_SPLIT.split(text or ""):
        sentence = sentence.strip()
        if not _has_challenge_keyword(sentence):
            continue
        candidate = sentence
        if len(sentence) > CHALLENGE_CLAUSE_THRESHOLD:
            for clause in sentence.split(","):
                if _has_challenge_keyword(clause):
                    candidate = clause.strip()
                    break
        if 10 < len(candidate) < 200 and candidate not in challenges:
            challenges.append(candidate)
    return challenges


def extract_customer_info(text: str, existing: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Run every extractor over one message.

    Returns a patch holding only fields that are not already set in
    `existing`, and only challenges not already recorded. Applying the same
    message twice therefore yields an empty patch the second time.
    """
    existing = existing or {}
    patch: Dict[str, Any] = {}

    def offer(field: str, value: Any) -> None:
        if value and not existing.get(field):
            patch[field] = value

    offer("email", extract_email(text))
    offer("phone", extract_phone(text))
    offer("name", extract_name(text))
    offer("company", extract_company(text))
    offer("industry", extract_industry(text))

    employee_count = extract_employee_count(text)
    if employee_count and not existing.get("employee_count"):
        patch["employee_count"] = employee_count
        offer("company_size", company_size_for(employee_count))

    title = extract_title(text)
    if title and not existing.get("title"):
        patch["title"] = title
        offer("role", derive_role(title))

    budget = extract_budget(text)
    if budget and not existing.get("budget"):
        patch["budget"] = budget.range
        offer("budget_amount", budget.amount)

    offer("timeline", extract_timeline(text))

    known = existing.get("current_challenges") or []
    new_challenges = [c for c in extract_challenges(text) if c not in known]
    if new_challenges:
        patch["current_challenges"] = new_challenges

    return patch
