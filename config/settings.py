"""
Configuration settings for the application
"""
from decimal import Decimal
from typing import Dict, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Plan tags accepted at lead intake
PLAN_BASIC = "basico"
PLAN_PROFESSIONAL = "profesional"
PLAN_ENTERPRISE = "empresarial"


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    # Token signing
    jwt_secret_key: Optional[str] = Field(default=None, alias="JWT_SECRET_KEY")

    # Infrastructure configuration
    database_url: Optional[str] = Field(default="sqlite+aiosqlite:///./cv_manager.db", alias="DATABASE_URL")
    env: Optional[str] = Field(default=None, alias="ENV")

    # Public URLs
    frontend_url: Optional[str] = Field(default="http://localhost:8787", alias="FRONTEND_URL")
    app_url: Optional[str] = Field(default="http://localhost:8787", alias="APP_URL")

    # Trial / subscription lifecycle
    trial_hours: int = Field(default=24, alias="TRIAL_HOURS")
    trial_sweep_interval_seconds: int = Field(default=3600, alias="TRIAL_SWEEP_INTERVAL_SECONDS")
    admin_api_key: Optional[str] = Field(default=None, alias="ADMIN_API_KEY")

    # Pricing configuration
    tax_rate: Decimal = Field(default=Decimal("0.16"), alias="TAX_RATE")
    plan_prices: Dict[str, Decimal] = Field(
        default={
            PLAN_BASIC: Decimal("500"),
            PLAN_PROFESSIONAL: Decimal("1000"),
            PLAN_ENTERPRISE: Decimal("2500"),
        },
        alias="PLAN_PRICES",
    )

    # AI suggestion gateway (OpenAI-compatible chat completions)
    ai_api_key: Optional[str] = Field(default=None, alias="AI_API_KEY")
    ai_base_url: str = Field(default="https://api.blackbox.ai", alias="AI_BASE_URL")
    ai_model: str = Field(default="blackboxai/openai/gpt-4o", alias="AI_MODEL")
    # Model id -> display name; AI_MODEL must be one of these
    ai_models: Dict[str, str] = Field(
        default={
            "blackboxai/openai/gpt-4o": "GPT-4o",
            "blackboxai/anthropic/claude-sonnet-3.5": "Claude Sonnet 3.5",
            "blackboxai/google/gemini-pro": "Gemini Pro",
        },
        alias="AI_MODELS",
    )

    # Outbound email relay
    smtp_host: Optional[str] = Field(default=None, alias="SMTP_HOST")
    smtp_port: int = Field(default=587, alias="SMTP_PORT")
    smtp_user: Optional[str] = Field(default=None, alias="SMTP_USER")
    smtp_pass: Optional[str] = Field(default=None, alias="SMTP_PASS")
    smtp_from: Optional[str] = Field(default=None, alias="SMTP_FROM")


# Instantiate settings object
settings = Settings()

# Determine if we're in production mode
IS_PRODUCTION = bool(settings.env and settings.env.lower() == "production")
