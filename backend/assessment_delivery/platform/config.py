from datetime import timedelta
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings

ConflictPolicy = Literal["reject", "auto_expire_previous", "allow_multiple"]


class Settings(BaseSettings):
    # Deployment environment
    DEPLOYMENT_ENV: str = "development"

    # Database
    DATABASE_URL: str = "sqlite:///./assessment_delivery.db"

    # Session lifecycle
    SESSION_TIMEOUT_MINUTES: int = Field(default=60, ge=1, le=1440)
    # What happens when a student starts a session while another one is active:
    # "reject" -> 409, "auto_expire_previous" -> expire the old one, "allow_multiple" -> keep both.
    SESSION_CONFLICT_POLICY: ConflictPolicy = "auto_expire_previous"

    # Cleanup sweep
    CLEANUP_INTERVAL_MINUTES: int = Field(default=30, ge=1)
    ABANDONED_SESSION_HOURS: int = Field(default=24, ge=1)
    SESSION_RETENTION_DAYS: int = Field(default=7, ge=1)
    CLEANUP_SESSION_COUNT_THRESHOLD: int = Field(default=100, ge=0)
    SESSION_CLEANUP_AUTOSTART: bool = True

    # Create missing tables on startup (local SQLite); production runs alembic.
    DATABASE_AUTO_CREATE: bool = True

    # Assessment player defaults (overridable at runtime via /player-config)
    PLAYER_ENDPOINT: str = "items.learnosity.com"

    # URLs
    FRONTEND_URL: str = "http://localhost:3000"
    BACKEND_URL: str = "http://localhost:8000"
    # Optional comma-separated extra CORS origins (e.g. Vercel preview URL)
    CORS_EXTRA_ORIGINS: Optional[str] = None
    # Optional regex for additional allowed CORS origins (e.g. all Vercel previews)
    CORS_ALLOW_ORIGIN_REGEX: Optional[str] = None

    # Sentry
    SENTRY_DSN: Optional[str] = None

    @property
    def session_timeout(self) -> timedelta:
        return timedelta(minutes=self.SESSION_TIMEOUT_MINUTES)

    @property
    def cleanup_interval(self) -> timedelta:
        return timedelta(minutes=self.CLEANUP_INTERVAL_MINUTES)

    @property
    def abandoned_after(self) -> timedelta:
        return timedelta(hours=self.ABANDONED_SESSION_HOURS)

    @property
    def retention(self) -> timedelta:
        return timedelta(days=self.SESSION_RETENTION_DAYS)

    @property
    def is_production(self) -> bool:
        return self.DEPLOYMENT_ENV.strip().lower() == "production"

    model_config = {
        "env_file": ".env",
        "extra": "ignore",
    }


settings = Settings()
