"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings

from tipster.exceptions import ConfigurationError


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # OpenAI-compatible completion endpoint
    OPENAI_API_KEY: str = ""
    OPENAI_BASE_URL: str = "https://api.openai.com/v1"
    PREDICTION_MODEL: str = "o3"
    LLM_TIMEOUT_SECONDS: int = 300  # Reasoning models can take minutes
    LLM_MAX_OUTPUT_TOKENS: int = 10_000  # Safeguard against runaway costs

    # Instruction templates: <PROMPTS_DIR>/<template-set>/{match,match.justification,bonus}.md
    PROMPTS_DIR: str = "./prompts"

    # Storage
    DATABASE_URL: str = "sqlite:///./tipster.db"

    # Community (prediction league) namespace
    COMMUNITY: str = ""
    COMMUNITY_CONTEXT: str = ""  # Empty = same as COMMUNITY

    # Reprediction policy
    MAX_REPREDICTIONS: Optional[int] = None  # None = unbounded

    # Documents whose changes never force a reprediction
    STALENESS_IGNORED_DOCUMENTS: list[str] = ["bundesliga-standings.csv"]

    # Pricing (USD per 1M tokens) - SINGLE SOURCE OF TRUTH
    # cached_input omitted = model has no discounted cached-input rate
    LLM_PRICING: dict = {
        "gpt-4.1": {"input": 2.00, "cached_input": 0.50, "output": 8.00},
        "gpt-4.1-mini": {"input": 0.40, "cached_input": 0.10, "output": 1.60},
        "gpt-4.1-nano": {"input": 0.10, "cached_input": 0.025, "output": 0.40},
        "gpt-4o": {"input": 2.50, "cached_input": 1.25, "output": 10.00},
        "gpt-4o-2024-08-06": {"input": 2.50, "cached_input": 1.25, "output": 10.00},
        "gpt-4o-mini": {"input": 0.15, "cached_input": 0.075, "output": 0.60},
        "gpt-5": {"input": 1.25, "cached_input": 0.125, "output": 10.00},
        "gpt-5-mini": {"input": 0.25, "cached_input": 0.025, "output": 2.00},
        "gpt-5-nano": {"input": 0.05, "cached_input": 0.005, "output": 0.40},
        "o1": {"input": 15.00, "cached_input": 7.50, "output": 60.00},
        "o1-mini": {"input": 1.10, "cached_input": 0.55, "output": 4.40},
        "o1-pro": {"input": 150.00, "output": 600.00},
        "o3": {"input": 2.00, "cached_input": 0.50, "output": 8.00},
        "o3-mini": {"input": 1.10, "cached_input": 0.55, "output": 4.40},
        "o4-mini": {"input": 1.10, "cached_input": 0.275, "output": 4.40},
    }

    # Telemetry
    METRICS_ENABLED: bool = True
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @property
    def community_context(self) -> str:
        """Community whose documents and predictions are used (falls back to COMMUNITY)."""
        return self.COMMUNITY_CONTEXT or self.COMMUNITY


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def require_llm_settings(settings: Settings) -> None:
    """
    Fail fast when the completion endpoint cannot be used.

    Called once at workflow start, before any subject is processed.
    """
    if not settings.OPENAI_API_KEY.strip():
        raise ConfigurationError("OPENAI_API_KEY not configured")
    if not settings.PREDICTION_MODEL.strip():
        raise ConfigurationError("PREDICTION_MODEL not configured")
    if settings.MAX_REPREDICTIONS is not None and settings.MAX_REPREDICTIONS < 0:
        raise ConfigurationError("MAX_REPREDICTIONS must be 0 or greater")
