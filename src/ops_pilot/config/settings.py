"""Application settings."""

from functools import lru_cache
import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parents[3]


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    app_name: str = "ops-pilot"
    app_env: str = "dev"
    app_debug: bool = False
    log_level: str = "INFO"

    simulation_enabled: bool = False
    simulation_interval_s: float = Field(default=3.5, gt=0.0)
    simulation_probability: float = Field(default=0.5, ge=0.0, le=1.0)
    simulated_stage_delay_s: float = Field(default=0.6, ge=0.0)
    recall_delay_s: float = Field(default=0.8, ge=0.0)

    gmail_poll_interval_s: float = Field(default=60.0, gt=0.0)
    gmail_max_results: int = Field(default=8, ge=1, le=100)

    backend_timeout_s: float = Field(default=45.0, ge=0.0)
    llm_provider: str = "openai"
    llm_model: str = "gpt-4o-mini"
    llm_base_url: str = "https://api.openai.com/v1"
    llm_timeout_s: float = Field(default=20.0, ge=0.5)
    llm_max_retries: int = Field(default=1, ge=0)
    llm_backoff_s: float = Field(default=0.2, ge=0.0)
    openai_api_key: str = ""

    model_config = SettingsConfigDict(
        env_prefix="OPS_PILOT_",
        extra="ignore",
        env_file=(PROJECT_ROOT / ".env", PROJECT_ROOT / ".env.local"),
        env_file_encoding="utf-8",
    )

    def resolved_openai_api_key(self) -> str:
        return self.openai_api_key or os.getenv("OPENAI_API_KEY", "")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
