import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List, Optional

from dotenv import load_dotenv

from fintrack import __version__

load_dotenv()


def get_database_url() -> str:
    """Get database URL from DATABASE_URL or the individual PostgreSQL variables."""
    if os.getenv("DATABASE_URL") is not None:
        return os.getenv("DATABASE_URL")

    user = os.getenv("PGUSER", "fintrack_user")
    password = os.getenv("PGPASSWORD", "fintrack_password")
    host = os.getenv("PGHOST", "localhost")
    port = os.getenv("PGPORT", "5432")
    db = os.getenv("PGDATABASE", "fintrack_db")
    return f"postgresql://{user}:{password}@{host}:{port}/{db}"


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: str) -> List[str]:
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


@dataclass
class Settings:
    database_url: str = field(default_factory=get_database_url)
    environment: str = field(default_factory=lambda: os.getenv("APP_ENV", "development"))
    version: str = field(default_factory=lambda: os.getenv("APP_VERSION", __version__))

    # Auth
    jwt_secret: str = field(default_factory=lambda: os.getenv("JWT_SECRET", "dev-secret-key-change-me"))
    jwt_refresh_secret: Optional[str] = field(default_factory=lambda: os.getenv("JWT_REFRESH_SECRET"))
    access_token_days: int = 7
    remember_me_token_days: int = 30
    refresh_token_days: int = 30

    # Logging
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    log_json: bool = field(default_factory=lambda: _env_bool("LOG_JSON", False))

    # HTTP
    cors_origins: List[str] = field(
        default_factory=lambda: _env_list("CORS_ORIGINS", "http://localhost:3000,http://localhost:3001")
    )
    port: int = field(default_factory=lambda: int(os.getenv("PORT", "8000")))

    # Startup connection attempts (exponential backoff between them)
    db_connect_retries: int = field(default_factory=lambda: int(os.getenv("DB_CONNECT_RETRIES", "5")))

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def refresh_secret(self) -> str:
        return self.jwt_refresh_secret or self.jwt_secret


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload after changing the environment.
    """
    return Settings()
