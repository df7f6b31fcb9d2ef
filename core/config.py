"""
Configuration settings for the Follow-up Tracker backend.

Uses Pydantic Settings for environment variable management.
"""

import os
from typing import List, Optional
from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    # Environment
    ENV: str = Field(default="development", env="ENV")
    DEBUG: bool = Field(default=False, env="DEBUG")
    LOG_LEVEL: str = Field(default="INFO", env="LOG_LEVEL")

    # Logging Control
    ENABLE_FILE_LOGGING: bool = Field(default=False, env="ENABLE_FILE_LOGGING")
    ENABLE_REQUEST_LOGGING: bool = Field(default=True, env="ENABLE_REQUEST_LOGGING")

    # Application
    APP_NAME: str = Field(default="Followup Tracker", env="APP_NAME")
    VERSION: str = Field(default="1.0.0", env="VERSION")

    # Server
    HOST: str = Field(default="0.0.0.0", env="HOST")
    PORT: int = Field(default=8000, env="PORT")

    REDIS_URL: str = Field(default="redis://localhost:6379/0", env="REDIS_URL")
    CELERY_BROKER_URL: Optional[str] = Field(default=None, env="CELERY_BROKER_URL")
    CELERY_RESULT_BACKEND: Optional[str] = Field(default=None, env="CELERY_RESULT_BACKEND")

    origins: List[str] = [
        "http://localhost:3000",  # dashboard
        "http://localhost:5173",
    ]

    DATABASE_URL: Optional[str] = Field(default=None, env="DATABASE_URL")
    PRODUCTION_DATABASE_URL: Optional[str] = Field(default=None, env="PRODUCTION_DATABASE_URL")

    @property
    def database_url(self) -> str:
        if self.ENV == "production":
            return self.PRODUCTION_DATABASE_URL or self.DATABASE_URL or ""
        return self.DATABASE_URL or "sqlite+aiosqlite:///./followup.db"

    @property
    def broker_url(self) -> str:
        return self.CELERY_BROKER_URL or self.REDIS_URL

    @property
    def result_backend(self) -> str:
        return self.CELERY_RESULT_BACKEND or self.REDIS_URL

    DATABASE_POOL_SIZE: int = Field(default=10, env="DATABASE_POOL_SIZE")
    DATABASE_MAX_OVERFLOW: int = Field(default=20, env="DATABASE_MAX_OVERFLOW")

    # Scheduling
    DEFAULT_TIMEZONE: str = Field(default="UTC", env="DEFAULT_TIMEZONE")
    SWEEP_INTERVAL_MINUTES: int = Field(default=60, env="SWEEP_INTERVAL_MINUTES")
    DELIVERY_DEDUP_TTL_SECONDS: int = Field(default=36 * 60 * 60, env="DELIVERY_DEDUP_TTL_SECONDS")
    DELIVERY_MAX_ATTEMPTS: int = Field(default=3, env="DELIVERY_MAX_ATTEMPTS")
    ANALYSIS_MAX_ATTEMPTS: int = Field(default=3, env="ANALYSIS_MAX_ATTEMPTS")
    RETRY_BACKOFF_SECONDS: int = Field(default=1, env="RETRY_BACKOFF_SECONDS")

    # Alerts
    ESCALATION_THRESHOLD_HOURS: int = Field(default=4, env="ESCALATION_THRESHOLD_HOURS")
    MISSED_REMINDER_AFTER_HOURS: int = Field(default=2, env="MISSED_REMINDER_AFTER_HOURS")
    TASK_DUE_HOURS: int = Field(default=24, env="TASK_DUE_HOURS")
    ALERT_ON_DELIVERY_FAILURE: bool = Field(default=True, env="ALERT_ON_DELIVERY_FAILURE")
    ALERT_ON_ANALYSIS_FAILURE: bool = Field(default=True, env="ALERT_ON_ANALYSIS_FAILURE")

    # Domain events (consumed by CRM sync)
    EVENTS_STREAM: str = Field(default="followup:events", env="EVENTS_STREAM")
    EVENTS_STREAM_ENABLED: bool = Field(default=True, env="EVENTS_STREAM_ENABLED")
    EVENTS_STREAM_MAXLEN: int = Field(default=10000, env="EVENTS_STREAM_MAXLEN")

    # WhatsApp Configuration (Twilio)
    TWILIO_ACCOUNT_SID: Optional[str] = Field(default=None, env="TWILIO_ACCOUNT_SID")
    TWILIO_AUTH_TOKEN: Optional[str] = Field(default=None, env="TWILIO_AUTH_TOKEN")
    TWILIO_WHATSAPP_FROM_NUMBER: Optional[str] = Field(default=None, env="TWILIO_WHATSAPP_FROM_NUMBER")

    OPENAI_MODEL: Optional[str] = Field(
        default=None,
        env="OPENAI_MODEL"
    )

    OPENAI_MAX_TOKENS: Optional[int] = Field(
        default=None,
        env="OPENAI_MAX_TOKENS"
    )

    OPENAI_TEMPERATURE: Optional[float] = Field(
        default=None,
        env="OPENAI_TEMPERATURE"
    )

    OPENAI_API_KEY: Optional[str] = Field(
        default=None,
        env="OPENAI_API_KEY"
    )

    OPENAI_TRANSCRIPTION_MODEL: str = Field(
        default="whisper-1",
        env="OPENAI_TRANSCRIPTION_MODEL"
    )

    TRANSCRIPTION_ENABLED: bool = Field(default=False, env="TRANSCRIPTION_ENABLED")

    # Sentry (Optional)
    SENTRY_DSN: Optional[str] = Field(default=None, env="SENTRY_DSN")
    SENTRY_ENVIRONMENT: str = Field(default="development", env="SENTRY_ENVIRONMENT")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"


# Create settings instance
settings = Settings()


def get_env_file() -> str:
    """Get the appropriate environment file based on ENV setting."""
    env_file = f".env.{settings.ENV}"
    if os.path.exists(env_file):
        return env_file
    return ".env"


# Update settings with environment-specific file
settings = Settings(_env_file=get_env_file())
