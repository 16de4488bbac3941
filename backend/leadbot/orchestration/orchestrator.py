"""
Lead Orchestrator - session lifecycle around the lead graph

Owns the session store, runs one graph pass per user turn, and performs
the periodic timeout sweep and retention cleanup. Every operation on a
session holds that session's lock, so a turn and a sweep never interleave.
"""
import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from langchain_core.runnables import RunnableConfig

from leadbot.core.config import settings
from leadbot.core.logging import logger, log_audit_event
from leadbot.orchestration.graph import build_lead_graph
from leadbot.orchestration.nodes.error_recovery import recovery_message
from leadbot.orchestration.nodes.notification import can_notify, notification_stage
from leadbot.orchestration.nodes.qualification import score_session
from leadbot.orchestration.state import (
    ConversationStatus,
    ConversationType,
    apply_update,
    create_initial_state,
    has_contact,
    has_lead_context,
    make_message,
    merge_customer_info,
    parse_timestamp,
    utcnow,
    utcnow_iso,
    was_notified,
    NotificationType,
)
from leadbot.services.session_store import SessionStore, get_session_store


TIMEOUT_REASON = "Session abandoned ({minutes}-minute timeout)"

# Fields callers may not replace through update_session
PROTECTED_FIELDS = {"session_id", "messages", "agent_executions", "errors", "notifications_sent", "start_time"}


def settle_errors(state: Dict[str, Any]) -> Dict[str, Any]:
    """
    Mark open stage failures as handled.

    Work done outside a user turn has no reply to apologise in. Its failures
    are already logged by the stage, and leaving them open would send the
    next turn straight to error recovery.
    """
    state["errors"] = [
        error if error.get("recovered") else {**error, "recovered": True}
        for error in state.get("errors") or []
    ]
    return state


@dataclass
class TurnResult:
    """Outcome of one conversation turn."""
    session_id: str
    state: Dict[str, Any]
    replies: List[str] = field(default_factory=list)

    @property
    def reply(self) -> str:
        return "\n\n".join(self.replies)


class LeadOrchestrator:
    """Drives lead-qualification conversations."""

    def __init__(
        self,
        store: Optional[SessionStore] = None,
        llm: Any = None,
        notifier: Any = None,
        retry_policy: Any = None,
        scoring_engine: Any = None,
        timeout_seconds: Optional[int] = None,
        retention_hours: Optional[int] = None,
    ):
        self.store = store or get_session_store()
        self.graph = build_lead_graph().compile()
        self.llm = llm
        self.notifier = notifier
        self.retry_policy = retry_policy
        self.scoring_engine = scoring_engine
        self.timeout = timedelta(seconds=timeout_seconds or settings.SESSION_TIMEOUT_SECONDS)
        self.retention = timedelta(hours=retention_hours or settings.SESSION_RETENTION_HOURS)
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock(self, session_id: str) -> asyncio.Lock:
        lock = self._locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[session_id] = lock
        return lock

    def _config(self) -> RunnableConfig:
        # Unset collaborators resolve to the process-wide defaults inside the stages
        return {
            "configurable": {
                "llm": self.llm,
                "notifier": self.notifier,
                "retry_policy": self.retry_policy,
                "scoring_engine": self.scoring_engine,
            }
        }

    def _save(self, state: Dict[str, Any]) -> None:
        self.store.set(state["session_id"], state)

    async def _run_turn(self, state: Dict[str, Any]) -> TurnResult:
        """Run one graph pass and persist the result."""
        before = len(state.get("messages") or [])
        try:
            result = dict(await self.graph.ainvoke(state, config=self._config()))
        except Exception as e:
            # Stages capture their own failures; this covers the graph itself
            logger.error(f"Lead graph failed for session {state['session_id']}: {e}")
            result = dict(state)
            result["messages"] = list(state.get("messages") or []) + [
                make_message("assistant", recovery_message("graph"))
            ]

        result["last_update_time"] = utcnow_iso()
        self._save(result)

        replies = [
            m["content"] for m in (result.get("messages") or [])[before:]
            if m.get("role") == "assistant"
        ]
        return TurnResult(session_id=result["session_id"], state=result, replies=replies)

    async def start_session(
        self,
        session_id: Optional[str] = None,
        conversation_type: str = ConversationType.CHAT.value,
        initial_message: Optional[str] = None,
        initial_data: Optional[Dict[str, Any]] = None,
    ) -> TurnResult:
        """Create a session and produce the first assistant reply."""
        session_id = session_id or str(uuid.uuid4())
        async with self._lock(session_id):
            existing = self.store.get(session_id)
            if existing is not None:
                logger.info(f"Session {session_id} already exists, continuing it")
                if not initial_message:
                    return TurnResult(session_id=session_id, state=existing)
                return await self._add_user_turn(existing, initial_message, initial_data)
            return await self._begin(session_id, conversation_type, initial_message, initial_data)

    async def continue_session(
        self,
        session_id: str,
        message: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> TurnResult:
        """Add a user message to a session, starting one if the id is unknown."""
        metadata = metadata or {}
        async with self._lock(session_id):
            state = self.store.get(session_id)
            if state is None:
                logger.info(f"Unknown session {session_id}, starting a new one")
                return await self._begin(
                    session_id,
                    metadata.get("conversation_type", ConversationType.CHAT.value),
                    message,
                    metadata.get("customer_info"),
                )
            return await self._add_user_turn(state, message, metadata.get("customer_info"))

    async def _begin(
        self,
        session_id: str,
        conversation_type: str,
        initial_message: Optional[str],
        initial_data: Optional[Dict[str, Any]],
    ) -> TurnResult:
        # Caller holds the session lock
        state = create_initial_state(session_id, conversation_type)
        if initial_data:
            state["customer_info"] = merge_customer_info(state["customer_info"], initial_data)
        if initial_message:
            state["messages"] = [make_message("user", initial_message)]

        log_audit_event(
            event_type="session_started",
            actor_id=session_id,
            actor_type="session",
            details={"conversation_type": conversation_type},
        )
        return await self._run_turn(state)

    async def _add_user_turn(
        self,
        state: Dict[str, Any],
        message: str,
        customer_info: Optional[Dict[str, Any]] = None,
    ) -> TurnResult:
        # Caller holds the session lock
        state = dict(state)
        if customer_info:
            state["customer_info"] = merge_customer_info(state.get("customer_info"), customer_info)
        state["messages"] = list(state.get("messages") or []) + [make_message("user", message)]
        state["ui_action"] = None
        return await self._run_turn(state)

    def get_session(self, session_id: str) -> Optional[Dict[str, Any]]:
        return self.store.get(session_id)

    async def update_session(self, session_id: str, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Apply external updates. Customer info is merged, other fields replaced."""
        async with self._lock(session_id):
            state = self.store.get(session_id)
            if state is None:
                return None
            state = dict(state)
            for key, value in updates.items():
                if key in PROTECTED_FIELDS:
                    continue
                if key == "customer_info":
                    state[key] = merge_customer_info(state.get(key), value, overwrite=True)
                else:
                    state[key] = value
            state["last_update_time"] = utcnow_iso()
            self._save(state)
            return state

    async def trigger_notification(self, session_id: str) -> bool:
        """
        Notify sales about a session now.

        Returns True only when a new qualification notification was recorded;
        sessions that are unqualified, unreachable or already notified are
        left alone.
        """
        async with self._lock(session_id):
            state = self.store.get(session_id)
            if state is None:
                logger.info(f"Cannot notify: no session {session_id}")
                return False
            if not can_notify(state):
                logger.info(f"Notification not triggered for session {session_id}: conditions not met")
                return False

            state = settle_errors(apply_update(state, await notification_stage(state, self._config())))
            self._save(state)
            return was_notified(state, NotificationType.QUALIFICATION.value)

    async def end_session(self, session_id: str) -> Optional[Dict[str, Any]]:
        """Complete a session, run final routing, and remove it from the store."""
        async with self._lock(session_id):
            state = self.store.get(session_id)
            if state is None:
                return None
            state = dict(state)
            state["conversation_status"] = ConversationStatus.COMPLETED.value
            result = await self._run_turn(state)

            self.store.delete(session_id)
            log_audit_event(
                event_type="session_completed",
                actor_id=session_id,
                actor_type="session",
                details={
                    "qualified": bool((result.state.get("qualification") or {}).get("is_qualified")),
                    "notifications": len(result.state.get("notifications_sent") or []),
                },
            )
        self._locks.pop(session_id, None)
        return result.state

    def get_active_sessions(self) -> List[Dict[str, Any]]:
        """Summaries of every session in the store."""
        summaries = []
        for state in self.store.list_all(limit=10_000):
            qualification = state.get("qualification") or {}
            info = state.get("customer_info") or {}
            summaries.append({
                "session_id": state.get("session_id"),
                "conversation_type": state.get("conversation_type"),
                "status": state.get("conversation_status"),
                "start_time": state.get("start_time"),
                "last_update": state.get("last_update_time"),
                "qualified": bool(qualification.get("is_qualified")),
                "qualification_score": qualification.get("total_score", 0),
                "tier": qualification.get("tier"),
                "customer_name": info.get("name"),
                "company": info.get("company"),
            })
        return summaries

    async def _expire_session(self, state: Dict[str, Any]) -> str:
        """Resolve one timed-out session. Returns the outcome label."""
        session_id = state["session_id"]
        info = state.get("customer_info") or {}

        if not has_contact(info) or not has_lead_context(info):
            reason = "no_contact" if not has_contact(info) else "no_business_context"
            # Nothing worth handing over; the audit entry is the only record kept
            self.store.delete(session_id)
            log_audit_event(
                event_type="session_abandoned",
                actor_id=session_id,
                actor_type="session",
                details={"reason": reason, "status": ConversationStatus.ABANDONED.value},
            )
            return "abandoned"

        logger.info(f"Session {session_id} timed out with viable info, qualifying and notifying")
        config = self._config()
        if not state.get("qualification"):
            state = apply_update(state, score_session(state, config))

        qualification = dict(state["qualification"])
        reasons = list(qualification.get("qualification_reasons") or [])
        timeout_reason = TIMEOUT_REASON.format(minutes=int(self.timeout.total_seconds() // 60))
        if timeout_reason not in reasons:
            reasons.append(timeout_reason)
        qualification["qualification_reasons"] = reasons
        state["qualification"] = qualification

        if can_notify(state):
            state = settle_errors(apply_update(state, await notification_stage(state, config)))
            if can_notify(state):
                # Hand-off not recorded; stay open so the next sweep tries again
                logger.warning(f"Timeout hand-off for session {session_id} failed, will retry")
                self._save(state)
                return "notify_pending"

        state["conversation_status"] = ConversationStatus.COMPLETED.value
        self._save(state)
        log_audit_event(
            event_type="session_completed",
            actor_id=session_id,
            actor_type="session",
            details={
                "reason": "timeout",
                "qualified": bool(qualification.get("is_qualified")),
                "notified": was_notified(state, NotificationType.QUALIFICATION.value),
            },
        )
        return "completed"

    async def check_timeouts(self, now: Optional[datetime] = None) -> List[Dict[str, str]]:
        """
        Sweep sessions idle past the timeout.

        Sessions without contact details or any business context are
        abandoned, discarded and never notified. Viable ones are scored if needed,
        notified if qualified, and completed. A qualified session whose hand-off
        fails stays open and is retried by the next sweep.
        """
        now = now or utcnow()
        outcomes = []
        for session_id in self.store.list_ids():
            async with self._lock(session_id):
                state = self.store.get(session_id)
                if state is None:
                    continue
                if state.get("conversation_status") in (
                    ConversationStatus.COMPLETED.value,
                    ConversationStatus.ABANDONED.value,
                ):
                    continue
                idle = now - parse_timestamp(state.get("last_update_time") or state.get("start_time"))
                if idle < self.timeout:
                    continue
                outcome = await self._expire_session(dict(state))
                outcomes.append({"session_id": session_id, "outcome": outcome})
            if not self.store.exists(session_id):
                self._locks.pop(session_id, None)

        if outcomes:
            logger.info(f"Timeout sweep resolved {len(outcomes)} session(s)")
        return outcomes

    async def cleanup_sessions(self, now: Optional[datetime] = None) -> int:
        """Evict sessions whose last activity is older than the retention window."""
        now = now or utcnow()
        evicted = 0
        for session_id in self.store.list_ids():
            async with self._lock(session_id):
                state = self.store.get(session_id)
                if state is None:
                    continue
                age = now - parse_timestamp(state.get("last_update_time") or state.get("start_time"))
                if age <= self.retention:
                    continue
                self.store.delete(session_id)
                evicted += 1
                log_audit_event(
                    event_type="session_evicted",
                    actor_id=session_id,
                    actor_type="session",
                    details={"status": state.get("conversation_status")},
                )
            self._locks.pop(session_id, None)
        return evicted

    def get_analytics(self) -> Dict[str, Any]:
        """Aggregate figures across all stored sessions."""
        sessions = self.store.list_all(limit=10_000)
        total = len(sessions)
        active = 0
        qualified = 0
        score_sum = 0
        duration_sum = 0.0

        for state in sessions:
            if state.get("conversation_status") == ConversationStatus.ACTIVE.value:
                active += 1
            qualification = state.get("qualification") or {}
            if qualification.get("is_qualified"):
                qualified += 1
                score_sum += qualification.get("total_score", 0)
            duration_sum += (state.get("analytics") or {}).get("conversation_duration", 0.0)

        return {
            "total_sessions": total,
            "active_sessions": active,
            "qualified_leads": qualified,
            "average_qualification_score": score_sum / qualified if qualified else 0,
            "conversion_rate": (qualified / total) * 100 if total else 0,
            "average_duration": duration_sum / total if total else 0,
        }


# Singleton orchestrator instance
_orchestrator: Optional[LeadOrchestrator] = None


def get_orchestrator() -> LeadOrchestrator:
    """Get the orchestrator instance (creates if needed)."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = LeadOrchestrator()
    return _orchestrator
