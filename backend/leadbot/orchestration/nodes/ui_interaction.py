"""
UI interaction stage - asks the client to open a contact input
"""
from typing import Any, Dict

from langchain_core.runnables import RunnableConfig

from leadbot.orchestration.nodes.base import StageOutcome, tracked_stage
from leadbot.orchestration.state import UIAction, make_message


ASK_EMAIL = (
    "I'd be happy to have our AI strategist reach out with specific solutions "
    "for your needs. What's the best email address to reach you?"
)
ASK_PHONE = (
    "I'd be happy to have our AI strategist reach out with specific solutions "
    "for your needs. What's the best phone number to reach you?"
)


@tracked_stage("ui_interaction")
async def ui_interaction_stage(state: Dict[str, Any], config: RunnableConfig) -> StageOutcome:
    """Prompt once for contact details and show the matching input."""
    info = state.get("customer_info") or {}

    # Visitors who arrived by callback request are asked for a phone number
    if state.get("conversation_type") == "callback" and not info.get("phone"):
        text, input_type, placeholder = ASK_PHONE, "phone", "(555) 123-4567"
    else:
        text, input_type, placeholder = ASK_EMAIL, "email", "your@email.com"

    return StageOutcome(
        update={
            "messages": [make_message("assistant", text)],
            "ui_action": UIAction(type="show_text_input", input_type=input_type, placeholder=placeholder),
            "contact_prompted": True,
        },
        result={"input_type": input_type},
    )
