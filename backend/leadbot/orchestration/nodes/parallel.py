"""
Parallel processing stage - analytics and recommendations side by side
"""
import asyncio
from typing import Any, Dict

from langchain_core.runnables import RunnableConfig

from leadbot.core.logging import logger
from leadbot.orchestration.nodes.analytics import run_analytics
from leadbot.orchestration.nodes.base import (
    StageOutcome,
    get_stage_llm,
    get_stage_retry,
    tracked_stage,
)
from leadbot.orchestration.nodes.recommendation import run_recommendations


@tracked_stage("parallel_processing")
async def parallel_processing_stage(state: Dict[str, Any], config: RunnableConfig) -> StageOutcome:
    """
    Run both branches concurrently, each under the retry policy, and keep
    whichever succeed. A failed branch is logged and skipped.
    """
    retry = get_stage_retry(config)
    llm = get_stage_llm(config)

    analytics_result, recommendation_result = await asyncio.gather(
        retry.execute(run_analytics, state, description="analytics"),
        retry.execute(run_recommendations, state, llm, description="recommendation"),
        return_exceptions=True,
    )

    update: Dict[str, Any] = {}
    succeeded, failed = [], []
    retries = 0

    if isinstance(analytics_result, BaseException):
        logger.error(f"Analytics branch failed for session {state.get('session_id')}: {analytics_result}")
        failed.append("analytics")
        analytics = dict(state.get("analytics") or {})
    else:
        analytics, attempts = analytics_result
        retries += attempts
        succeeded.append("analytics")

    if isinstance(recommendation_result, BaseException):
        logger.error(
            f"Recommendation branch failed for session {state.get('session_id')}: {recommendation_result}"
        )
        failed.append("recommendation")
    else:
        recommendations, attempts = recommendation_result
        retries += attempts
        update["recommendations"] = recommendations
        succeeded.append("recommendation")

    # Marks the current qualification as processed so the branch runs once per score
    analytics["scored_for"] = (state.get("qualification") or {}).get("scored_at")
    update["analytics"] = analytics

    return StageOutcome(
        update=update,
        result={"succeeded": succeeded, "failed": failed},
        retry_count=retries,
    )
