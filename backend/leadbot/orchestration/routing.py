"""
LLM Provider Routing - environment-configured provider selection
"""
from typing import Optional
from enum import Enum

from langchain_core.language_models import BaseChatModel
from langchain_community.chat_models import ChatOllama

from leadbot.core.config import settings
from leadbot.core.logging import logger


class LLMProvider(str, Enum):
    BEDROCK = "bedrock"
    OLLAMA = "ollama"


def get_llm(provider: Optional[str] = None) -> BaseChatModel:
    """
    Get the configured LLM instance.

    The provider comes from LLM_PROVIDER unless given explicitly. Bedrock
    falls back to Ollama when it cannot be initialised.
    """
    provider = provider or settings.LLM_PROVIDER

    logger.info(f"Using LLM provider: {provider}")

    if provider == LLMProvider.BEDROCK.value:
        return _get_bedrock_llm()
    return _get_ollama_llm()


def _get_ollama_llm() -> BaseChatModel:
    """Get Ollama LLM instance."""
    return ChatOllama(
        model=settings.OLLAMA_MODEL,
        base_url=settings.OLLAMA_BASE_URL,
        temperature=settings.LLM_TEMPERATURE,
        num_predict=settings.LLM_MAX_TOKENS,
    )


def _get_bedrock_llm() -> BaseChatModel:
    """Get AWS Bedrock LLM instance."""
    try:
        from langchain_aws import ChatBedrock
        import boto3

        bedrock_runtime = boto3.client(
            "bedrock-runtime",
            region_name=settings.AWS_REGION,
            aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
            aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
        )

        return ChatBedrock(
            client=bedrock_runtime,
            model_id=settings.BEDROCK_MODEL_ID,
            model_kwargs={
                "temperature": settings.LLM_TEMPERATURE,
                "max_tokens": settings.LLM_MAX_TOKENS,
            },
        )
    except Exception as e:
        logger.error(f"Failed to initialize Bedrock: {e}, falling back to Ollama")
        return _get_ollama_llm()
