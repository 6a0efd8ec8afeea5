"""
Runtime Settings

Centralized configuration for the results pipeline.
All values are loaded from environment variables (optionally via .env).
"""
import os
import logging
from typing import List

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

# Development-only fallback for credential signing. Never used in production.
DEV_BADGE_SECRET = "results-pipeline-dev-secret"
DEV_JWT_SECRET = "results-pipeline-dev-jwt-secret"


def get_bool_env(key: str, default: bool = False) -> bool:
    """Get a boolean value from environment variable."""
    value = os.getenv(key, str(default)).lower()
    return value in ('true', '1', 'yes', 'on', 'enabled')


def get_int_env(key: str, default: int) -> int:
    """Get an integer value from environment variable."""
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning(f"Invalid integer for {key}={value!r}, using default {default}")
        return default


class ConfigurationError(RuntimeError):
    """Raised when a required setting is missing for the current environment."""


class Settings:
    """
    Settings for the application.

    To add a new setting:
    1. Add it in __init__ and load it from an environment variable
    2. Read it through `settings` (or inject it into the service that needs it)
    """

    def __init__(self):
        # Database
        self.DATABASE_URL: str = os.getenv(
            "DATABASE_URL", "sqlite+aiosqlite:///./results_pipeline.db"
        )
        self.ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

        # Auth boundary (tokens are minted by the external auth service)
        self.JWT_SECRET_KEY: str = os.getenv("JWT_SECRET_KEY", "")
        self.JWT_ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")
        self.AUTH_TOKEN_URL: str = os.getenv("AUTH_TOKEN_URL", "/api/auth/login")

        # Credential issuance
        self.BADGE_SECRET: str = os.getenv("BADGE_SECRET", "")
        self.CREDENTIAL_ID_PREFIX: str = os.getenv("CREDENTIAL_ID_PREFIX", "CE")
        self.CREDENTIAL_ID_BYTES: int = max(get_int_env("CREDENTIAL_ID_BYTES", 4), 4)
        self.CREDENTIAL_ISSUER_NAME: str = os.getenv("CREDENTIAL_ISSUER_NAME", "CompeteEdu")

        # Public voting
        self.VOTE_SALT: str = os.getenv("VOTE_SALT", "vote-salt")
        self.VOTE_RATE_LIMIT: str = os.getenv("VOTE_RATE_LIMIT", "10/minute")
        # Only enable behind a reverse proxy that overwrites X-Forwarded-For
        self.TRUST_FORWARDED_FOR: bool = get_bool_env("TRUST_FORWARDED_FOR", False)

        # Scoring defaults
        self.DEFAULT_PUBLIC_VOTE_WEIGHT: int = get_int_env("DEFAULT_PUBLIC_VOTE_WEIGHT", 20)

        # HTTP
        self.ALLOWED_ORIGINS: List[str] = [
            origin.strip()
            for origin in os.getenv("ALLOWED_ORIGINS", "").split(",")
            if origin.strip()
        ]

        # Feature flags
        self.FEATURE_PUBLIC_VOTING: bool = get_bool_env('FEATURE_PUBLIC_VOTING', True)
        self.FEATURE_CREDENTIAL_GALLERY: bool = get_bool_env('FEATURE_CREDENTIAL_GALLERY', True)

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    def get_credential_secret(self) -> str:
        """
        Secret appended to every credential payload before hashing.

        Falls back to a fixed development constant when BADGE_SECRET is unset;
        that fallback is refused in production.
        """
        if self.BADGE_SECRET:
            return self.BADGE_SECRET
        if self.is_production:
            raise ConfigurationError("BADGE_SECRET must be set in production")
        logger.warning("BADGE_SECRET not set - using development fallback secret")
        return DEV_BADGE_SECRET

    def get_jwt_secret(self) -> str:
        if self.JWT_SECRET_KEY:
            return self.JWT_SECRET_KEY
        if self.is_production:
            raise ConfigurationError("JWT_SECRET_KEY must be set in production")
        logger.warning("JWT_SECRET_KEY not set - using development fallback secret")
        return DEV_JWT_SECRET

    def validate(self) -> None:
        """Fail fast on settings that are mandatory for the current environment."""
        self.get_credential_secret()
        self.get_jwt_secret()


settings = Settings()


def get_settings() -> Settings:
    """Dependency for getting runtime settings"""
    return settings
