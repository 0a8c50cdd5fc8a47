from __future__ import annotations

from pydantic import ConfigDict, Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    app_name: str = "LabSnap API"
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    openai_api_key: str | None = Field(None, alias="OPENAI_API_KEY")
    openai_model: str = Field("gpt-4o", alias="OPENAI_MODEL")
    openai_timeout: float = Field(60.0, alias="OPENAI_TIMEOUT")
    openai_max_tokens: int = Field(3000, alias="OPENAI_MAX_TOKENS")
    openai_temperature: float = Field(0.7, alias="OPENAI_TEMPERATURE")

    database_url: str = Field("sqlite:////tmp/labsnap_test.db", alias="DATABASE_URL")
    db_create_all: bool = Field(False, alias="DB_CREATE_ALL")

    redis_url: str | None = Field(None, alias="REDIS_URL")
    record_key_prefix: str = Field("labsnap", alias="RECORD_KEY_PREFIX")

    auth_enabled: bool = Field(False, alias="AUTH_ENABLED")
    demo_user_id: str = Field("demo_user", alias="DEMO_USER_ID")

    day_boundary_tz: str = Field(
        "UTC",
        alias="DAY_BOUNDARY_TZ",
        description="Timezone whose calendar day bounds the daily counters",
    )
    free_daily_photo_limit: int = Field(3, alias="FREE_DAILY_PHOTO_LIMIT")
    free_daily_calculator_limit: int = Field(3, alias="FREE_DAILY_CALCULATOR_LIMIT")
    free_photo_interval_s: int = Field(30, alias="FREE_PHOTO_INTERVAL_S")
    countdown_seconds: int = Field(30, alias="COUNTDOWN_SECONDS")

    pro_subscription_days: int = Field(30, alias="PRO_SUBSCRIPTION_DAYS")
    checkout_redirect_seconds: int = Field(5, alias="CHECKOUT_REDIRECT_SECONDS")
    checkout_processing_delay: float = Field(
        0.0,
        alias="CHECKOUT_PROCESSING_DELAY",
        description="Seconds the simulated payment takes before succeeding",
    )

    max_image_bytes: int = Field(4 * 1024 * 1024, alias="MAX_IMAGE_BYTES")

    model_config = ConfigDict(
        extra="ignore",
        env_file=".env",
        case_sensitive=False,
        populate_by_name=True,
    )
