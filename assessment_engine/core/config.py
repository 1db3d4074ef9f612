"""
assessment_engine/core/config.py
Configuration management using Pydantic Settings (v2)
Supports .env file, environment variables, and type safety
"""

from functools import lru_cache
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # =================================================================
    # Database
    # =================================================================
    DATABASE_URL: str = "sqlite:///./assessments.db"
    DB_ECHO: bool = False

    # =================================================================
    # JWT & Security
    # =================================================================
    SECRET_KEY: str = "change-this-secret-key-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24  # 1 day

    # =================================================================
    # Assessment rules
    # =================================================================
    WRITE_RETRY_ATTEMPTS: int = 3
    MAX_RESPONSE_LENGTH: int = 10_000
    MAX_FEEDBACK_LENGTH: int = 5_000

    # =================================================================
    # App Environment
    # =================================================================
    ENVIRONMENT: Literal["development", "staging", "production"] = "development"
    LOG_LEVEL: str = "INFO"

    @field_validator("WRITE_RETRY_ATTEMPTS")
    @classmethod
    def at_least_one_attempt(cls, v: int) -> int:
        if v < 1:
            raise ValueError("WRITE_RETRY_ATTEMPTS must be at least 1")
        return v

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return str(v).upper()

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Cached settings instance – safe for multiple imports
    """
    return Settings()


settings = get_settings()
