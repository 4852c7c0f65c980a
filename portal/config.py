"""Configuration settings for the Ivory client portal."""

import os
import secrets
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class Settings:
    """Application settings loaded from environment variables."""

    # Application
    APP_ENV: str = os.getenv("APP_ENV", "development")
    DEBUG: bool = _env_flag("DEBUG")
    BASE_URL: str = os.getenv("BASE_URL", "http://localhost:8000").rstrip("/")

    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./ivory_portal.db")
    RUN_MIGRATIONS_ON_STARTUP: bool = _env_flag("RUN_MIGRATIONS_ON_STARTUP", "true")

    # Sessions
    SESSION_SECRET_KEY: str = os.getenv("SESSION_SECRET_KEY", "")
    JWT_ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")
    SESSION_MAX_AGE_HOURS: int = int(os.getenv("SESSION_MAX_AGE_HOURS", "24"))
    SESSION_COOKIE_SECURE: bool = _env_flag("SESSION_COOKIE_SECURE", "true" if APP_ENV == "production" else "false")

    # Tokens
    VERIFICATION_TOKEN_TTL_HOURS: int = int(os.getenv("VERIFICATION_TOKEN_TTL_HOURS", "24"))
    RESET_TOKEN_TTL_MINUTES: int = int(os.getenv("RESET_TOKEN_TTL_MINUTES", "60"))

    # Login rate limit
    LOGIN_RATE_LIMIT_ATTEMPTS: int = int(os.getenv("LOGIN_RATE_LIMIT_ATTEMPTS", "10"))
    LOGIN_RATE_LIMIT_WINDOW_MINUTES: int = int(os.getenv("LOGIN_RATE_LIMIT_WINDOW_MINUTES", "15"))

    # Mail
    MAIL_FROM: str = os.getenv("MAIL_FROM", "no-reply@ivory.example")
    SMTP_HOST: str = os.getenv("SMTP_HOST", "")
    SMTP_PORT: int = int(os.getenv("SMTP_PORT", "587"))
    SMTP_USERNAME: str = os.getenv("SMTP_USERNAME", "")
    SMTP_PASSWORD: str = os.getenv("SMTP_PASSWORD", "")
    SMTP_USE_TLS: bool = _env_flag("SMTP_USE_TLS", "true")

    # Upload
    UPLOAD_DIR: str = os.getenv("UPLOAD_DIR", "protected/uploads")
    MAX_UPLOAD_SIZE_MB: int = int(os.getenv("MAX_UPLOAD_SIZE_MB", "50"))

    # Seed accounts (created only when the account table is empty)
    SEED_DEFAULT_ACCOUNTS: bool = _env_flag("SEED_DEFAULT_ACCOUNTS", "true")
    SEED_CLIENT_EMAIL: str = os.getenv("SEED_CLIENT_EMAIL", "client@ivory.example")
    SEED_CLIENT_PASSWORD: str = os.getenv("SEED_CLIENT_PASSWORD", "ChangeMe123!")
    SEED_ADMIN_EMAIL: str = os.getenv("SEED_ADMIN_EMAIL", "admin@ivory.example")
    SEED_ADMIN_PASSWORD: str = os.getenv("SEED_ADMIN_PASSWORD", "AdminChangeMe!")

    def __init__(self) -> None:
        if not self.SESSION_SECRET_KEY:
            self.session_secret_generated = True
            self.SESSION_SECRET_KEY = secrets.token_urlsafe(32)
        else:
            self.session_secret_generated = False

    def validate(self) -> list[str]:
        """Validate settings and return list of warnings."""
        warnings = []
        if self.session_secret_generated:
            warnings.append("SESSION_SECRET_KEY is not set - using auto-generated key (sessions lost on restart)")
        if not self.SMTP_HOST:
            warnings.append("SMTP_HOST is not set - verification and reset links are written to the log only")
        if self.APP_ENV == "production" and not self.SESSION_COOKIE_SECURE:
            warnings.append("SESSION_COOKIE_SECURE is disabled in production")
        if self.SEED_ADMIN_PASSWORD == "AdminChangeMe!":
            warnings.append("SEED_ADMIN_PASSWORD uses the default value - change it after first login")
        return warnings


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
