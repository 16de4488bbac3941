"""
Shared plumbing for graph stages: execution tracking, error capture and
access to injected collaborators.
"""
import functools
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional

from langchain_core.runnables import RunnableConfig

from leadbot.core.logging import logger
from leadbot.orchestration.state import (
    AgentExecution,
    make_error,
    parse_timestamp,
    user_messages,
    utcnow_iso,
)


@dataclass
class StageOutcome:
    """What a stage produced: a partial state update plus audit details."""
    update: Dict[str, Any] = field(default_factory=dict)
    result: Any = None
    status: str = "completed"
    retry_count: int = 0


StageFn = Callable[[Dict[str, Any], RunnableConfig], Awaitable[StageOutcome]]


def tracked_stage(agent_id: str):
    """
    Wrap a stage so every invocation appends one `agent_executions` entry.

    An exception inside the stage becomes an unrecovered `errors` entry
    plus a failed execution; it never leaves the graph.
    """
    def decorator(func: StageFn):
        @functools.wraps(func)
        async def wrapper(state: Dict[str, Any], config: Optional[RunnableConfig] = None) -> Dict[str, Any]:
            started = utcnow_iso()
            try:
                outcome = await func(state, config or {})
            except Exception as e:
                logger.error(f"Stage {agent_id} failed for session {state.get('session_id')}: {e}")
                return {
                    "errors": [make_error(agent_id, str(e) or e.__class__.__name__)],
                    "agent_executions": [
                        AgentExecution(
                            agent_id=agent_id,
                            start_time=started,
                            end_time=utcnow_iso(),
                            status="failed",
                            error=str(e) or e.__class__.__name__,
                            retry_count=0,
                        )
                    ],
                }

            update = dict(outcome.update)
            update["agent_executions"] = [
                AgentExecution(
                    agent_id=agent_id,
                    start_time=started,
                    end_time=utcnow_iso(),
                    status=outcome.status,
                    result=outcome.result,
                    retry_count=outcome.retry_count,
                )
            ]
            return update
        return wrapper
    return decorator


def _configurable(config: Optional[RunnableConfig]) -> Dict[str, Any]:
    return (config or {}).get("configurable") or {}


def get_stage_llm(config: Optional[RunnableConfig]):
    llm = _configurable(config).get("llm")
    if llm is None:
        from leadbot.orchestration.routing import get_llm
        llm = get_llm()
    return llm


def get_stage_notifier(config: Optional[RunnableConfig]):
    notifier = _configurable(config).get("notifier")
    if notifier is None:
        from leadbot.services.notifier import get_notifier
        notifier = get_notifier()
    return notifier


def get_stage_retry(config: Optional[RunnableConfig]):
    policy = _configurable(config).get("retry_policy")
    if policy is None:
        from leadbot.services.retry import get_retry_policy
        policy = get_retry_policy()
    return policy


def get_stage_scoring(config: Optional[RunnableConfig]):
    engine = _configurable(config).get("scoring_engine")
    if engine is None:
        from leadbot.services.scoring import get_scoring_engine
        engine = get_scoring_engine()
    return engine


def last_user_message(state: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    users = user_messages(state)
    return users[-1] if users else None


def last_message(state: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    messages = state.get("messages") or []
    return messages[-1] if messages else None


def turn_started_at(state: Dict[str, Any]):
    """Start of the current turn: the latest user message, else session start."""
    latest = last_user_message(state)
    if latest and latest.get("timestamp"):
        return parse_timestamp(latest["timestamp"])
    return parse_timestamp(state.get("start_time") or utcnow_iso())


def failed_this_turn(state: Dict[str, Any], agent_id: str) -> bool:
    """Whether the stage already failed since the current turn began."""
    started = turn_started_at(state)
    return any(
        error.get("agent") == agent_id and parse_timestamp(error.get("timestamp")) >= started
        for error in state.get("errors") or []
    )
