"""Application configuration"""

import logging
from functools import lru_cache
from typing import List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# Secrets that must never sign a real session
KNOWN_WEAK_SECRETS = {"dev-session-secret-change-me", "changeme", "secret"}


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Application
    app_name: str = "Podcast Club API"
    environment: str = "development"  # "development" or "production"
    app_base_url: str = "http://localhost:3000"
    cors_origins: str = "http://localhost:3000"

    # Security (SESSION_SECRET has no default; startup fails without it)
    session_secret: str
    session_days: int = 7
    bcrypt_rounds: int = 12
    owner_recovery_code: Optional[str] = None

    # Database (":memory:" keeps everything in process)
    database_path: str = "/app/data/podcast_club.json"

    # Email: "sendgrid" (default) or "office365"
    email_provider: str = "sendgrid"
    email_from_email: Optional[str] = None
    email_from_name: str = "Podcast Club"
    sendgrid_api_key: Optional[str] = None
    smtp_host: str = "smtp.office365.com"
    smtp_port: int = 587
    smtp_username: Optional[str] = None
    smtp_password: Optional[str] = None

    @field_validator("session_secret")
    @classmethod
    def validate_session_secret(cls, value: str) -> str:
        secret = value.strip()
        if not secret:
            raise ValueError("SESSION_SECRET must not be empty")
        if secret.lower() in KNOWN_WEAK_SECRETS:
            raise ValueError("SESSION_SECRET must not be a well-known placeholder")
        return secret

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def cors_origin_list(self) -> List[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


def validate_production_settings(config: Settings) -> List[str]:
    """Return a list of configuration problems that matter in production"""
    problems = []
    if len(config.session_secret) < 32:
        problems.append("SESSION_SECRET should be at least 32 characters")
    if not config.app_base_url.startswith("https://"):
        problems.append("APP_BASE_URL should use https")
    if not (config.sendgrid_api_key or config.smtp_username):
        problems.append("No email provider configured; reset links will only be logged")
    return problems


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
