"""Configuration management for the care intake agent."""
import os
import re
from pathlib import Path
from typing import Optional
from pydantic import Field, field_validator, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache

CONFIG_DIR = Path(__file__).resolve().parent


class Settings(BaseSettings):
    """Application settings with validation."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # Twilio - only used to shape the TwiML reply and for the health check
    twilio_account_sid: str = ""
    twilio_auth_token: SecretStr = Field(default="")
    twilio_phone_number: str = ""

    # OpenAI - reply generation (falls back to static replies when unavailable)
    openai_api_key: SecretStr = Field(default="")
    openai_model: str = "gpt-4o-mini"
    use_llm_replies: bool = True
    llm_timeout_sec: float = Field(default=8.0, gt=0, le=60)

    # Redis Configuration
    redis_host: str = "localhost"
    redis_port: int = Field(default=6379, ge=1, le=65535)
    redis_db: int = Field(default=0, ge=0, le=15)
    redis_password: SecretStr = Field(default="")
    redis_ssl: bool = False
    redis_url: str = ""  # Optional: full Redis URL (overrides individual settings)
    use_redis: bool = False  # Enable Redis-backed profile store
    lock_timeout_sec: float = Field(default=10.0, gt=0)
    lock_blocking_timeout_sec: float = Field(default=5.0, gt=0)

    # Intake data files
    policy_file: str = str(CONFIG_DIR / "policy.json")
    field_weights_file: str = str(CONFIG_DIR / "field_weights.json")
    phi_redaction_mode: str = Field(default="mask_partial", pattern=r"^(mask_partial|full_redact)$")

    # Agency
    agency_name: str = "United Family Caregivers"
    support_phone: str = "833.432.6488"

    # Application
    app_env: str = Field(default="development", pattern=r"^(development|staging|production|testing|test)$")
    log_level: str = Field(default="INFO", pattern=r"^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")
    admin_api_key: str = ""  # Admin API key to protect profile inspection endpoints

    # -------------------------------------------------------------------------
    # Validators
    # -------------------------------------------------------------------------

    @field_validator("twilio_phone_number")
    @classmethod
    def validate_phone_number(cls, v: str) -> str:
        """Normalize the agency number to E.164 (lenient in test mode)."""
        if not v:
            return v
        is_test = os.getenv('APP_ENV', '').lower() in ('testing', 'test')

        cleaned = re.sub(r"[\s\-\(\)\.]+", "", v)
        if not cleaned.startswith("+"):
            cleaned = "+" + cleaned
        if re.match(r"^\+\d{10,15}$", cleaned):
            return cleaned
        if is_test:
            return cleaned
        raise ValueError("Phone number must be E.164 format (e.g., +15551234567)")

    @field_validator("app_env")
    @classmethod
    def validate_app_env(cls, v: str) -> str:
        """Normalize app_env to lowercase."""
        return v.lower()

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize log_level to uppercase."""
        return str(v).upper()

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env == "production"

    @property
    def is_testing(self) -> bool:
        """Check if running in test environment."""
        return self.app_env in ("testing", "test")

    @property
    def llm_enabled(self) -> bool:
        """Reply generation is attempted only with a key configured."""
        return self.use_llm_replies and bool(self.get_openai_api_key())

    # -------------------------------------------------------------------------
    # Secret Accessors (for services that need the raw value)
    # -------------------------------------------------------------------------

    def get_twilio_auth_token(self) -> str:
        """Get Twilio auth token as string."""
        return self.twilio_auth_token.get_secret_value() if self.twilio_auth_token else ""

    def get_openai_api_key(self) -> str:
        """Get OpenAI API key as string."""
        return self.openai_api_key.get_secret_value() if self.openai_api_key else ""

    def get_redis_password(self) -> str:
        """Get Redis password as string."""
        return self.redis_password.get_secret_value() if self.redis_password else ""

    def get_redis_url(self) -> Optional[str]:
        """Full Redis URL when one was configured."""
        return self.redis_url.strip() or None


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
