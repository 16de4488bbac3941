"""
Graph stages
"""
from leadbot.orchestration.nodes.extraction import extraction_stage
from leadbot.orchestration.nodes.conversation import conversation_stage
from leadbot.orchestration.nodes.qualification import qualification_stage
from leadbot.orchestration.nodes.ui_interaction import ui_interaction_stage
from leadbot.orchestration.nodes.parallel import parallel_processing_stage
from leadbot.orchestration.nodes.notification import notification_stage, nurture_stage
from leadbot.orchestration.nodes.error_recovery import error_recovery_stage

__all__ = [
    "extraction_stage",
    "conversation_stage",
    "qualification_stage",
    "ui_interaction_stage",
    "parallel_processing_stage",
    "notification_stage",
    "nurture_stage",
    "error_recovery_stage",
]
