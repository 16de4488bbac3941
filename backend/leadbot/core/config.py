"""
Application Configuration
"""
from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings
from pydantic import model_validator


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "LeadBot"
    APP_ENV: Literal["development", "staging", "production"] = "development"
    DEBUG: bool = False  # Secure default
    SECRET_KEY: str = "change-me-in-production"

    # Redis (session store outside development)
    REDIS_URL: str = "redis://localhost:6379/0"

    # LLM Provider
    LLM_PROVIDER: Literal["bedrock", "ollama"] = "ollama"
    LLM_TEMPERATURE: float = 0.3
    LLM_MAX_TOKENS: int = 500

    # AWS Bedrock
    AWS_REGION: str = "us-east-1"
    AWS_ACCESS_KEY_ID: str = ""
    AWS_SECRET_ACCESS_KEY: str = ""
    BEDROCK_MODEL_ID: str = "anthropic.claude-3-sonnet-20240229-v1:0"

    # Ollama
    OLLAMA_BASE_URL: str = "http://localhost:11434"
    OLLAMA_MODEL: str = "llama3"

    # JWT (admin endpoints)
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRATION_HOURS: int = 24

    # Session lifecycle
    SESSION_TIMEOUT_SECONDS: int = 5 * 60
    SESSION_TTL_SECONDS: int = 25 * 60 * 60  # backstop past retention
    SESSION_RETENTION_HOURS: int = 24
    TIMEOUT_CHECK_INTERVAL_SECONDS: int = 60
    CLEANUP_INTERVAL_SECONDS: int = 60 * 60
    SESSION_SWEEPER_ENABLED: bool = True

    # Qualification
    QUALIFICATION_THRESHOLD: int = 30
    MIN_SUBSTANTIVE_TURNS: int = 6
    SIGN_OFF_TURNS: int = 8
    MAX_CONVERSATION_MESSAGES: int = 50

    # Retry for LLM and downstream calls
    RETRY_MAX_ATTEMPTS: int = 3
    RETRY_BASE_DELAY_SECONDS: float = 1.0

    # Lead notifications
    NOTIFICATION_WEBHOOK_URL: str = ""
    NOTIFICATION_TIMEOUT_SECONDS: float = 10.0

    # LangFuse Observability (optional)
    LANGFUSE_PUBLIC_KEY: str = ""
    LANGFUSE_SECRET_KEY: str = ""
    LANGFUSE_HOST: str = "https://cloud.langfuse.com"

    @model_validator(mode="after")
    def validate_production_settings(self) -> "Settings":
        """Validate critical settings for non-development environments."""
        if self.APP_ENV != "development":
            # Reject default SECRET_KEY in production/staging
            if self.SECRET_KEY == "change-me-in-production":
                raise ValueError(
                    "SECRET_KEY must be changed from default value in production/staging environments. "
                    "Set a secure, random SECRET_KEY in your .env file or environment variables."
                )

            if self.DEBUG:
                import warnings
                warnings.warn(
                    "DEBUG mode is enabled in a non-development environment. "
                    "This is not recommended for production.",
                    UserWarning,
                )

        # Validate AWS credentials when using Bedrock
        if self.LLM_PROVIDER == "bedrock":
            if not self.AWS_ACCESS_KEY_ID or not self.AWS_SECRET_ACCESS_KEY:
                raise ValueError(
                    "AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY are required when LLM_PROVIDER is 'bedrock'. "
                    "Set these in your .env file or environment variables."
                )

        if self.RETRY_MAX_ATTEMPTS < 1:
            raise ValueError("RETRY_MAX_ATTEMPTS must be at least 1")

        return self

    model_config = {"env_file": ".env", "case_sensitive": True, "extra": "ignore"}


@lru_cache()
def get_settings() -> Settings:
    """Cached settings instance."""
    return Settings()


settings = get_settings()
