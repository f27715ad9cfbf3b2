# config.py
"""Configuration settings for the Project Genie document generation core.
Uses Pydantic BaseSettings for automatic environment variable loading.
"""

from __future__ import annotations

import structlog
from dotenv import load_dotenv
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()

logger = structlog.get_logger()

SUPPORTED_PROVIDERS = ("openai", "deepseek")


class GenieSettings(BaseSettings):
    """Full configuration for the document generation core."""

    # API and Model Configuration
    LLM_PROVIDER: str = "openai"
    OPENAI_API_KEY: str = ""
    OPENAI_API_BASE: str = "https://api.openai.com/v1"
    OPENAI_MODEL: str = "gpt-4o-mini"
    DEEPSEEK_API_KEY: str = ""
    DEEPSEEK_API_BASE: str = "https://api.deepseek.com/v1"
    DEEPSEEK_MODEL: str = "deepseek-chat"

    LLM_TEMPERATURE: float = 0.7
    HTTPX_TIMEOUT: float = 180.0

    # Queue, Retry and Rate Limiting
    MAX_CONCURRENT_GENERATIONS: int = 3
    # DeepSeek rejects parallel bursts, so its calls run one at a time.
    SEQUENTIAL_PROVIDERS: list[str] = ["deepseek"]
    GENERATION_MAX_ATTEMPTS: int = 3
    RETRY_BASE_DELAY_SECONDS: float = 1.0
    RETRY_MAX_DELAY_SECONDS: float = 5.0
    DOCUMENT_TIMEOUT_SECONDS: float = 180.0

    # Caching
    ENABLE_DOCUMENT_CACHE: bool = True
    DOCUMENT_CACHE_MAX_SIZE: int = 50

    # Output
    BASE_OUTPUT_DIR: str = "generated_documents"

    # Logging & UI
    LOG_LEVEL_STR: str = Field("INFO", alias="GENIE_LOG_LEVEL")
    LOG_FORMAT: str = (
        "%(asctime)s - %(levelname)s - [%(name)s:%(funcName)s:%(lineno)d] - %(message)s"
    )
    LOG_DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"
    LOG_FILE: str | None = None
    ENABLE_RICH_LOGGING: bool = True

    @model_validator(mode="after")
    def validate_generation_limits(self) -> GenieSettings:
        provider = self.LLM_PROVIDER.lower()
        if provider not in SUPPORTED_PROVIDERS:
            raise ValueError(
                f"LLM_PROVIDER must be one of {SUPPORTED_PROVIDERS}, got '{self.LLM_PROVIDER}'"
            )
        self.LLM_PROVIDER = provider
        if self.GENERATION_MAX_ATTEMPTS < 1:
            raise ValueError("GENERATION_MAX_ATTEMPTS must be at least 1")
        if self.MAX_CONCURRENT_GENERATIONS < 1:
            raise ValueError("MAX_CONCURRENT_GENERATIONS must be at least 1")
        if self.DOCUMENT_CACHE_MAX_SIZE < 1:
            raise ValueError("DOCUMENT_CACHE_MAX_SIZE must be at least 1")
        if self.RETRY_MAX_DELAY_SECONDS < self.RETRY_BASE_DELAY_SECONDS:
            raise ValueError(
                "RETRY_MAX_DELAY_SECONDS must not be smaller than RETRY_BASE_DELAY_SECONDS"
            )
        return self

    @model_validator(mode="after")
    def warn_missing_api_key(self) -> GenieSettings:
        key = self.OPENAI_API_KEY if self.LLM_PROVIDER == "openai" else self.DEEPSEEK_API_KEY
        if not key:
            logger.warning(
                "No API key configured for the selected LLM provider.",
                provider=self.LLM_PROVIDER,
            )
        return self

    def provider_is_sequential(self, provider_name: str) -> bool:
        """Return True when calls to ``provider_name`` must not overlap."""
        return provider_name.lower() in {p.lower() for p in self.SEQUENTIAL_PROVIDERS}

    model_config = SettingsConfigDict(
        env_prefix="", env_file=".env", extra="ignore", populate_by_name=True
    )


settings = GenieSettings()
