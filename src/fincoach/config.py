"""FinCoach settings.

Created: 2026-10-02

All values can be set through ``FINCOACH_*`` environment variables or a
``.env`` file in the working directory. Tests build ``Settings(...)``
directly; the composition root uses ``get_settings()``.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

MODEL_CHAT = "deepseek-chat"
MODEL_REASONER = "deepseek-reasoner"

DEFAULT_ADVISOR_PROMPT = (
    "You are a helpful financial advisor assistant. Provide concise, practical advice "
    "on personal finance, investments, budgeting, and savings. Use clear language and "
    "focus on actionable tips that can help users improve their financial situation."
)

DEFAULT_CATEGORIZER_PROMPT = (
    "You are a financial transaction categorizer. "
    "Analyze the transaction and respond with only the category name."
)


class Settings(BaseSettings):
    """Runtime configuration for the LLM client and the services built on it."""

    model_config = SettingsConfigDict(
        env_prefix="FINCOACH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Chat-completions endpoint
    api_key: str | None = None
    api_base_url: str = "https://api.deepseek.com"
    model: str = MODEL_CHAT

    # Streaming chat
    chat_temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    chat_max_tokens: int = Field(default=1000, gt=0)
    advisor_system_prompt: str = DEFAULT_ADVISOR_PROMPT

    # Categorization (non-streaming)
    categorize_temperature: float = Field(default=0.1, ge=0.0, le=2.0)
    categorize_max_tokens: int = Field(default=50, gt=0)
    categorizer_system_prompt: str = DEFAULT_CATEGORIZER_PROMPT
    categorize_local_first: bool = False

    # Transport
    connect_timeout: float = Field(default=10.0, gt=0)
    read_timeout: float = Field(default=30.0, gt=0)
    max_concurrent_requests: int = Field(default=4, ge=1)

    log_level: str = "INFO"

    @field_validator("api_base_url")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @property
    def completions_url(self) -> str:
        return f"{self.api_base_url}/chat/completions"


@lru_cache
def get_settings() -> Settings:
    """Load settings once per process."""
    return Settings()
