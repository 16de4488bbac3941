"""
Error recovery stage - apologises and marks the failure handled
"""
from typing import Any, Dict

from langchain_core.runnables import RunnableConfig

from leadbot.core.logging import logger
from leadbot.orchestration.nodes.base import StageOutcome, tracked_stage
from leadbot.orchestration.state import last_unrecovered_error, make_message


RECOVERY_PREFIX = "I apologize for the brief interruption. "
RECOVERY_SUFFIX = "How else can I assist you today?"
RECOVERY_CONTEXT = {
    "notification": "I'll make sure our team gets your information. ",
    "parallel_processing": "Let me continue helping you with your needs. ",
}


def recovery_message(agent: str) -> str:
    return RECOVERY_PREFIX + RECOVERY_CONTEXT.get(agent, "") + RECOVERY_SUFFIX


@tracked_stage("error_recovery")
async def error_recovery_stage(state: Dict[str, Any], config: RunnableConfig) -> StageOutcome:
    error = last_unrecovered_error(state)
    if error is None:
        return StageOutcome(result={"reason": "Nothing to recover"}, status="skipped")

    logger.warning(
        f"Recovering session {state.get('session_id')} from {error['agent']} failure: {error['error']}"
    )
    # Same error_id, so the reducer replaces the entry instead of appending
    recovered = {**error, "recovered": True}
    return StageOutcome(
        update={
            "errors": [recovered],
            "messages": [make_message("assistant", recovery_message(error["agent"]))],
        },
        result={"recovered_agent": error["agent"]},
    )
