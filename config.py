"""
HYDRA - Application Configuration
"""
from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    # App
    APP_NAME: str = "hydra"
    APP_HOST: str = "0.0.0.0"
    APP_PORT: int = 5000
    APP_DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Narrative generator
    GEMINI_API_KEY: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("GEMINI_API_KEY", "API_KEY"),
    )
    GEMINI_MODEL: str = "gemini-2.5-flash"
    NARRATIVE_MODE: str = "auto"    # auto | static | remote

    # Mock data
    RANDOM_SEED: Optional[int] = None


@lru_cache()
def get_settings() -> Settings:
    return Settings()
