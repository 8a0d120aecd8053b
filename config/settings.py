"""
Configuration settings for the application
"""
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Premium re-verification timing (seconds)
DEFAULT_POLL_INTERVAL_SECONDS = 5 * 60
DEFAULT_STALENESS_SECONDS = 5 * 60
DEFAULT_POLL_IDLE_SECONDS = 30 * 60

# Completion defaults
DEFAULT_OPENAI_MODEL = "gpt-3.5-turbo"
DEFAULT_OPENAI_TEMPERATURE = 0.9


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    # Core authentication and security
    jwt_secret_key: Optional[str] = Field(default=None, alias="JWT_SECRET_KEY")

    # Stripe billing configuration
    stripe_secret_key: Optional[str] = Field(default=None, alias="STRIPE_SECRET_KEY")
    stripe_publishable_key: Optional[str] = Field(default=None, alias="STRIPE_PUBLISHABLE_KEY")
    stripe_webhook_secret: Optional[str] = Field(default=None, alias="STRIPE_WEBHOOK_SECRET")
    stripe_price_id: Optional[str] = Field(default=None, alias="STRIPE_PRICE_ID")

    # Completion API
    openai_api_key: Optional[str] = Field(default=None, alias="OPENAI_API_KEY")
    openai_model: str = Field(default=DEFAULT_OPENAI_MODEL, alias="OPENAI_MODEL")
    openai_temperature: float = Field(default=DEFAULT_OPENAI_TEMPERATURE, alias="OPENAI_TEMPERATURE")

    # Premium entitlement
    premium_poll_interval_seconds: int = Field(
        default=DEFAULT_POLL_INTERVAL_SECONDS, alias="PREMIUM_POLL_INTERVAL_SECONDS"
    )
    premium_staleness_seconds: int = Field(
        default=DEFAULT_STALENESS_SECONDS, alias="PREMIUM_STALENESS_SECONDS"
    )
    # Pollers with no status read for this long stop themselves
    premium_poll_idle_seconds: int = Field(
        default=DEFAULT_POLL_IDLE_SECONDS, alias="PREMIUM_POLL_IDLE_SECONDS"
    )

    # Infrastructure configuration
    redis_url: Optional[str] = Field(default=None, alias="REDIS_URL")
    rate_limit_per_minute: int = Field(default=60, alias="RATE_LIMIT_PER_MINUTE")
    database_url: Optional[str] = Field(default="sqlite+aiosqlite:///./sql_app.db", alias="DATABASE_URL")

    # Frontend configuration
    frontend_url: Optional[str] = Field(default="http://localhost:5173", alias="FRONTEND_URL")

    # Render.com deployment configuration
    render: Optional[str] = Field(default=None, alias="RENDER")
    render_external_url: Optional[str] = Field(default=None, alias="RENDER_EXTERNAL_URL")
    render_service_name: Optional[str] = Field(default=None, alias="RENDER_SERVICE_NAME")

    # Environment configuration
    env: Optional[str] = Field(default=None, alias="ENV")


# Instantiate settings object
settings = Settings()

# Determine if we're in production mode
IS_PRODUCTION = bool(settings.render) or bool(settings.env and settings.env.lower() == "production")
