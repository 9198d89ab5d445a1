# backend/clubdesk/core/config.py
import logging
import os
from pathlib import Path
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import pytz


def is_running_tests() -> bool:
    """
    Detect if code is running under pytest.

    PYTEST_CURRENT_TEST is set automatically by pytest during test runs, and is
    not expected to be present in production environments.
    """
    return os.getenv("PYTEST_CURRENT_TEST") is not None


logger = logging.getLogger(__name__)

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).parent.parent.parent / ".env"  # Goes up to backend/.env
    logger.debug("[CONFIG] Looking for .env at: %s (exists=%s)", env_path, env_path.exists())
    load_dotenv(env_path)


class Settings(BaseSettings):
    environment: Literal["development", "testing", "staging", "production"] = "development"

    # Persistence
    database_url: str = Field(
        default="sqlite:///./clubdesk.db",
        description="SQLAlchemy URL for the scheduling database",
    )
    database_echo: bool = False

    # Redis backs the Celery broker and the distributed locks
    redis_url: Optional[str] = Field(default="redis://localhost:6379/0")
    distributed_locks_enabled: bool = Field(
        default=False,
        description="Take Redis locks in addition to process-local locks",
    )

    # Calendar
    club_timezone: str = Field(default="UTC", description="IANA zone used for 'today'")

    # Absence / makeup policy
    makeup_window_days: int = Field(default=7, ge=1, description="Days to pick a makeup")
    monthly_makeup_quota: int = Field(default=2, ge=0, description="Makeups per member per month")
    enforce_makeup_within_window: bool = Field(
        default=True,
        description="Reject makeup dates later than the makeup deadline",
    )
    allow_past_absence_dates: bool = False

    # Concurrency
    absence_transition_max_retries: int = Field(default=3, ge=1)
    makeup_lock_ttl_seconds: int = Field(default=30, ge=1)
    makeup_lock_wait_seconds: float = Field(default=5.0, gt=0)
    expiry_sweep_lock_ttl_seconds: int = Field(default=600, ge=1)

    # Scheduler
    expiry_sweep_hour: str = "0"
    expiry_sweep_minute: str = "5"
    celery_queue: str = "celery"

    is_testing: bool = False

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        env_prefix="CLUBDESK_",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("club_timezone")
    @classmethod
    def _validate_timezone(cls, value: str) -> str:
        try:
            pytz.timezone(value)
        except pytz.UnknownTimeZoneError as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    def get_database_url(self) -> str:
        """Get the appropriate database URL based on context."""
        if self.is_testing or is_running_tests():
            return os.getenv("CLUBDESK_TEST_DATABASE_URL", "sqlite+pysqlite:///:memory:")
        return self.database_url


settings = Settings()
