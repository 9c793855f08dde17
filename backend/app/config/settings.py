# /app/config/settings.py

import sys
from typing import List, Annotated
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode


class Settings(BaseSettings):
    # MongoDB (optional: without a URI the in-process store is used)
    mongo_uri: str | None = None
    mongo_db_name: str = "storebot"
    max_pool_size: int = 10
    min_pool_size: int = 1

    # Redis
    redis_url: str | None = None

    # AI APIs
    openai_api_key: str | None = None
    openai_model: str = "gpt-4o"
    gemini_api_key: str | None = None
    gemini_model: str = "models/gemini-1.5-flash"
    ai_request_timeout_seconds: float = 20.0

    # Cart Recovery Automation
    automation_interval_minutes: int = 15
    cart_recovery_window_hours: int = 72
    discount_code_prefix: str = "COMEBACK"
    default_discount_amount: str = "10"
    default_discount_type: str = "percentage"

    # Deployment
    environment: str = Field(default="development")
    api_version: str = "v1"
    workers: int = 2

    cors_allowed_origins: Annotated[List[str], NoDecode] = Field(default=["http://localhost:5173"])

    # Observability
    alerting_webhook_url: str | None = None

    # ---------------- Validators ---------------- #

    @field_validator("cors_allowed_origins", mode="before")
    @classmethod
    def parse_cors_allowed_origins(cls, v):
        """
        Handle both string (comma-separated) and list formats for cors_allowed_origins.
        """
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @field_validator("default_discount_type")
    @classmethod
    def discount_type_must_be_known(cls, v):
        if v not in ("percentage", "fixed"):
            raise ValueError("DEFAULT_DISCOUNT_TYPE must be 'percentage' or 'fixed'")
        return v

    @field_validator("cart_recovery_window_hours", "automation_interval_minutes")
    @classmethod
    def must_be_positive(cls, v):
        if v <= 0:
            raise ValueError("Interval and window settings must be positive")
        return v

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


def validate_environment(settings_obj: Settings):
    try:
        if settings_obj.environment == "production":
            if not settings_obj.gemini_api_key and not settings_obj.openai_api_key:
                raise ValueError("At least one AI API key must be provided")
            if not settings_obj.mongo_uri:
                raise ValueError("MONGO_URI is required in production")

        return settings_obj

    except Exception as e:
        print(f"--- [ERROR] Environment validation failed: {e}")
        sys.exit(1)


settings = Settings()
validate_environment(settings)
