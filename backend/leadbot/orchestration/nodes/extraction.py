"""
Extraction stage - regex field extraction from the latest user message
"""
from typing import Any, Dict

from langchain_core.runnables import RunnableConfig

from leadbot.core.logging import logger
from leadbot.orchestration.nodes.base import StageOutcome, tracked_stage, last_user_message
from leadbot.orchestration.state import UIAction, has_contact, merge_customer_info
from leadbot.services.extraction_service import extract_customer_info


@tracked_stage("extraction")
async def extraction_stage(state: Dict[str, Any], config: RunnableConfig) -> StageOutcome:
    """Fill empty customer fields from the most recent user message."""
    message = last_user_message(state)
    if message is None:
        return StageOutcome(result={"reason": "No user message"}, status="skipped")

    current = state.get("customer_info") or {}
    patch = extract_customer_info(message.get("content", ""), current)
    if not patch:
        return StageOutcome(result={"extracted": []})

    merged = merge_customer_info(current, patch)
    update: Dict[str, Any] = {"customer_info": merged}

    # Contact arrived after we asked for it: close the input form
    if state.get("contact_prompted") and not has_contact(current) and has_contact(merged):
        update["ui_action"] = UIAction(type="hide_text_input", input_type=None, placeholder=None)

    logger.info(f"Extracted fields for session {state.get('session_id')}: {sorted(patch.keys())}")
    return StageOutcome(update=update, result={"extracted": sorted(patch.keys())})
