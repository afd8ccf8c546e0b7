"""Application settings management leveraging pydantic-settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_RISK_PHRASES = (
    "kill myself",
    "end my life",
    "i want to die",
    "suicide",
    "self harm",
)

HF_INFERENCE_URL = "https://api-inference.huggingface.co/models"


class Settings(BaseSettings):
    """Typed configuration sourced from environment variables and `.env`."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # Language-model completion service
    openai_api_key: str | None = None
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-4o-mini"
    openai_max_retries: int = Field(2, ge=0)

    # Emotion classification service
    hf_api_key: str | None = None
    hf_model: str = "j-hartmann/emotion-english-distilroberta-base"
    hf_api_url: str | None = None

    request_timeout: float = Field(30.0, gt=0)

    # HTTP server
    host: str = "0.0.0.0"
    port: int = 5000
    log_level: str = "info"
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    risk_phrases: list[str] = Field(default_factory=lambda: list(DEFAULT_RISK_PHRASES))

    # Persistence
    storage_backend: Literal["memory", "mongo"] = "memory"
    mongo_url: str = "mongodb://localhost:27017"
    mongo_database: str = "mindbot"

    @model_validator(mode="after")
    def _derive_hf_api_url(self) -> "Settings":
        if not self.hf_api_url:
            self.hf_api_url = f"{HF_INFERENCE_URL}/{self.hf_model}"
        return self


@lru_cache
def get_settings() -> Settings:
    """Load settings once per process."""
    return Settings()
