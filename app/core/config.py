"""
Application configuration with environment-specific secrets management.

Supported environment files (loaded in order of precedence):
1. .env.{ENVIRONMENT} (e.g., .env.production, .env.development)
2. .env (fallback)

Required secrets for production:
- DATABASE_URL
- OPENWEATHER_API_KEY (weather enrichment)
- REDIS_URL (when KV_STORE_BACKEND is "redis")
"""
import os
import logging
from pathlib import Path
from typing import Literal
from pydantic_settings import BaseSettings
from pydantic import ConfigDict

# Get the project root directory (3 levels up from this file)
PROJECT_ROOT = Path(__file__).parent.parent.parent

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings with environment-specific configuration."""

    # Environment
    ENVIRONMENT: Literal["development", "production", "test"] = "development"

    model_config = ConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"  # Allow extra fields from .env
    )

    # Application
    APP_NAME: str = "Match Weather Sync API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8001

    # Database - any SQLAlchemy URL, SQLite for local development
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./matchday.sqlite")

    # Key-value store (sync lock/status, prediction cache, conversations)
    KV_STORE_BACKEND: Literal["memory", "redis"] = "memory"
    REDIS_URL: str | None = None

    # Request rate limiting (slowapi)
    RATE_LIMIT_ENABLED: bool = True

    # TheSportsDB
    SPORTSDB_BASE_URL: str = "https://www.thesportsdb.com/api/v1/json"
    SPORTSDB_API_KEY: str = "123"  # Free public key
    SPORTSDB_TIMEOUT: float = 30.0
    SPORTSDB_RATE_LIMIT: int = 28  # Calls per quota window
    SPORTSDB_COOLDOWN_SECONDS: float = 60.0  # Pause once the window is spent

    # OpenWeather One Call 3.0
    OPENWEATHER_API_KEY: str = ""
    OPENWEATHER_BASE_URL: str = "https://api.openweathermap.org/data/3.0/onecall"
    OPENWEATHER_TIMEOUT: float = 30.0

    # DeepSeek (OpenAI-compatible chat completions)
    DEEPSEEK_API_KEY: str = ""
    DEEPSEEK_BASE_URL: str = "https://api.deepseek.com/v1"
    DEEPSEEK_MODEL: str = "deepseek-chat"
    DEEPSEEK_TIMEOUT: float = 60.0

    # Sync
    DEFAULT_YEARS_TO_SYNC: int = 5
    SYNC_LOCK_TTL_SECONDS: int = 7200  # 2 hours while running
    SYNC_RESULT_TTL_SECONDS: int = 3600  # 1 hour for terminal status

    # Venue coordinate re-attempt policy: always, never, cooldown
    VENUE_COORDINATE_RETRY_POLICY: Literal["always", "never", "cooldown"] = "always"
    VENUE_RETRY_COOLDOWN_HOURS: int = 24

    # Scheduled current-season sync
    SYNC_SCHEDULE_ENABLED: bool = False
    SYNC_SCHEDULE_CRON_HOUR: str = "5"
    SYNC_SCHEDULE_TIMEZONE: str = "UTC"

    # CORS - comma-separated string for env var parsing
    CORS_ORIGINS_STR: str = ""

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    @property
    def CORS_ORIGINS(self) -> list[str]:
        """Get CORS origins with environment-aware defaults."""
        if self.CORS_ORIGINS_STR:
            origins = [o.strip() for o in self.CORS_ORIGINS_STR.split(",") if o.strip()]
            if origins:
                return origins

        if self.is_production():
            logger.warning(
                "CORS_ORIGINS_STR not set in production. "
                "Please set CORS_ORIGINS_STR environment variable with explicit origins."
            )
            return []
        return [
            "http://localhost:3000",
            "http://localhost:5173",
            "http://127.0.0.1:3000",
            "http://127.0.0.1:5173",
        ]

    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.ENVIRONMENT == "production"

    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.ENVIRONMENT == "development"

    def validate_required_secrets(self) -> list[str]:
        """
        Validate that required secrets are set for the current environment.

        Returns:
            List of missing secret names (empty if all present)
        """
        missing = []

        if self.is_production():
            if not self.DATABASE_URL or self.DATABASE_URL.startswith("sqlite"):
                missing.append("DATABASE_URL")
            if not self.OPENWEATHER_API_KEY:
                missing.append("OPENWEATHER_API_KEY")

        # The Redis URL is required whenever Redis backs the key-value store
        if self.KV_STORE_BACKEND == "redis" and not self.REDIS_URL:
            missing.append("REDIS_URL")

        return missing


def _load_env_file() -> Path:
    """
    Load the appropriate environment file based on ENVIRONMENT variable.

    Loads in order of precedence:
    1. .env.{ENVIRONMENT} (e.g., .env.production, .env.development)
    2. .env (fallback)
    """
    environment = os.getenv("ENVIRONMENT", "development")

    env_file = PROJECT_ROOT / f".env.{environment}"
    if env_file.exists():
        logger.info(f"Loading environment from {env_file.name}")
        return env_file

    default_env = PROJECT_ROOT / ".env"
    if default_env.exists():
        logger.info(f"Loading environment from .env (environment: {environment})")
    return default_env


_env_file = _load_env_file()


class _SettingsWithEnvFile(Settings):
    model_config = ConfigDict(
        env_file=str(_env_file),
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )


settings = _SettingsWithEnvFile()

# Validate secrets on startup
missing_secrets = settings.validate_required_secrets()
if missing_secrets:
    logger.warning(f"Missing required secrets for {settings.ENVIRONMENT}: {', '.join(missing_secrets)}")
    if settings.is_production():
        raise ValueError(
            f"Cannot start in production with missing secrets: {', '.join(missing_secrets)}. "
            f"Please set these environment variables in .env.production"
        )
