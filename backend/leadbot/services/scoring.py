"""
Lead Scoring Engine

Deterministic BANT-style scoring for qualified conversations.
Each rule awards points for one signal in the gathered customer info:
- Contact channel (email or phone)
- Business context (company or industry)
- Specific challenge
- Name
- Budget bucket
- Timeline urgency
- Authority role

The total is clamped to 100 and mapped onto a tier.
"""
from typing import Dict, Any, List, Optional
from dataclasses import dataclass

from leadbot.core.config import settings
from leadbot.orchestration.state import (
    MAX_SCORE,
    Qualification,
    Timeframe,
    has_business_context,
    has_contact,
    has_specific_challenges,
    tier_for_score,
    utcnow_iso,
)


BUDGET_POINTS = {
    "Over $1M": 15,
    "$500K-$1M": 15,
    "$250K-$500K": 10,
    "$100K-$250K": 10,
    "$50K-$100K": 6,
    "Under $50K": 3,
}
# Budget mentioned but not a recognised range
UNBUCKETED_BUDGET_POINTS = 3

TIMELINE_POINTS = {
    Timeframe.IMMEDIATE.value: 15,
    Timeframe.THIS_MONTH.value: 10,
    Timeframe.THIS_QUARTER.value: 7,
    Timeframe.THIS_YEAR.value: 3,
    Timeframe.NEXT_YEAR.value: 3,
}
UNBUCKETED_TIMELINE_POINTS = 3


@dataclass
class ScoringRule:
    """A single scoring rule."""
    rule_id: str
    description: str
    points: int

    def evaluate(self, info: Dict[str, Any]) -> tuple[int, List[str]]:
        """Evaluate the rule. Returns (points awarded, reasons)."""
        raise NotImplementedError


class ContactRule(ScoringRule):
    """A way to reach the visitor."""

    def __init__(self):
        super().__init__(
            rule_id="contact",
            description="Email or phone provided",
            points=15,
        )

    def evaluate(self, info: Dict[str, Any]) -> tuple[int, List[str]]:
        if has_contact(info):
            channel = "email" if info.get("email") else "phone"
            return self.points, [f"Contact provided via {channel}"]
        return 0, []


class BusinessContextRule(ScoringRule):
    def __init__(self):
        super().__init__(
            rule_id="business_context",
            description="Company or industry known",
            points=10,
        )

    def evaluate(self, info: Dict[str, Any]) -> tuple[int, List[str]]:
        if has_business_context(info):
            label = info.get("company") or info.get("industry")
            return self.points, [f"Business context: {label}"]
        return 0, []


class SpecificChallengeRule(ScoringRule):
    def __init__(self):
        super().__init__(
            rule_id="specific_challenge",
            description="Specific business challenge identified",
            points=10,
        )

    def evaluate(self, info: Dict[str, Any]) -> tuple[int, List[str]]:
        if has_specific_challenges(info):
            count = len(info.get("current_challenges") or [])
            return self.points, [f"{count} business challenge(s) identified"]
        return 0, []


class NameRule(ScoringRule):
    def __init__(self):
        super().__init__(
            rule_id="name",
            description="Visitor introduced themselves",
            points=5,
        )

    def evaluate(self, info: Dict[str, Any]) -> tuple[int, List[str]]:
        if info.get("name"):
            return self.points, ["Name provided"]
        return 0, []


class BudgetRule(ScoringRule):
    """Points scale with the budget bucket."""

    def __init__(self):
        super().__init__(
            rule_id="budget",
            description="Budget range",
            points=15,
        )

    def evaluate(self, info: Dict[str, Any]) -> tuple[int, List[str]]:
        budget = info.get("budget")
        if not budget:
            return 0, []
        points = BUDGET_POINTS.get(budget, UNBUCKETED_BUDGET_POINTS)
        return points, [f"Budget: {budget}"]


class TimelineRule(ScoringRule):
    """Points scale with urgency."""

    def __init__(self):
        super().__init__(
            rule_id="timeline",
            description="Purchase timeline",
            points=15,
        )

    def evaluate(self, info: Dict[str, Any]) -> tuple[int, List[str]]:
        timeline = info.get("timeline")
        if not timeline:
            return 0, []
        points = TIMELINE_POINTS.get(timeline, UNBUCKETED_TIMELINE_POINTS)
        return points, [f"Timeline: {timeline.replace('_', ' ')}"]


class AuthorityRule(ScoringRule):
    def __init__(self):
        super().__init__(
            rule_id="authority",
            description="Role or title known",
            points=5,
        )

    def evaluate(self, info: Dict[str, Any]) -> tuple[int, List[str]]:
        role = info.get("role") or info.get("title")
        if role:
            return self.points, [f"Role: {role.replace('_', ' ')}"]
        return 0, []


class ScoringEngine:
    """
    Lead scoring engine.

    Runs every rule over the customer info and assembles the qualification
    record: BANT sub-scores, clamped total, tier and reasons.
    """

    RULE_VERSION = "v1.0"

    def __init__(self, threshold: Optional[int] = None):
        self.threshold = settings.QUALIFICATION_THRESHOLD if threshold is None else threshold
        self.contact = ContactRule()
        self.business_context = BusinessContextRule()
        self.challenge = SpecificChallengeRule()
        self.name = NameRule()
        self.budget = BudgetRule()
        self.timeline = TimelineRule()
        self.authority = AuthorityRule()
        self.rules: List[ScoringRule] = [
            self.contact,
            self.business_context,
            self.challenge,
            self.name,
            self.budget,
            self.timeline,
            self.authority,
        ]

    def evaluate(self, info: Dict[str, Any]) -> Qualification:
        """
        Score a lead.

        Args:
            info: Gathered customer info

        Returns:
            Qualification record
        """
        info = info or {}
        awarded: Dict[str, int] = {}
        reasons: List[str] = []

        for rule in self.rules:
            points, rule_reasons = rule.evaluate(info)
            awarded[rule.rule_id] = points
            reasons.extend(rule_reasons)

        raw_total = sum(awarded.values())
        total = min(raw_total, MAX_SCORE)

        contact_ok = has_contact(info)
        challenge_ok = has_specific_challenges(info)
        is_qualified = total >= self.threshold and contact_ok and challenge_ok

        disqualification_reasons: List[str] = []
        if not contact_ok:
            disqualification_reasons.append("No contact method provided")
        if not challenge_ok:
            disqualification_reasons.append("No specific business challenge identified")
        if total < self.threshold:
            disqualification_reasons.append(
                f"Score {total} below qualification threshold {self.threshold}"
            )

        return Qualification(
            budget={
                "score": awarded["budget"],
                "range": info.get("budget"),
                "amount": info.get("budget_amount"),
            },
            authority={
                "score": awarded["authority"] + awarded["name"],
                "role": info.get("role"),
                "title": info.get("title"),
                "name_provided": bool(info.get("name")),
            },
            need={
                "score": awarded["specific_challenge"] + awarded["business_context"],
                "challenges": list(info.get("current_challenges") or []),
                "business_context": has_business_context(info),
            },
            timeline={
                "score": awarded["timeline"],
                "timeframe": info.get("timeline"),
            },
            contact_score=awarded["contact"],
            total_score=total,
            is_qualified=is_qualified,
            tier=tier_for_score(total),
            qualification_reasons=reasons,
            disqualification_reasons=disqualification_reasons,
            scored_at=utcnow_iso(),
        )

    def get_rule_descriptions(self) -> List[Dict[str, Any]]:
        """Describe every rule and its maximum points."""
        return [
            {
                "rule_id": rule.rule_id,
                "description": rule.description,
                "points": rule.points,
            }
            for rule in self.rules
        ]


# Singleton instance
_scoring_engine: Optional[ScoringEngine] = None


def get_scoring_engine() -> ScoringEngine:
    """Get or create the scoring engine singleton."""
    global _scoring_engine
    if _scoring_engine is None:
        _scoring_engine = ScoringEngine()
    return _scoring_engine
