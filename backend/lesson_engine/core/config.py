# backend/lesson_engine/core/config.py
import logging
import os
from pathlib import Path
from typing import Literal

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
    logger.debug(f"[CONFIG] Looking for .env at: {env_path} (exists={env_path.exists()})")
    load_dotenv(env_path)


class Settings(BaseSettings):
    environment: Literal["development", "test", "staging", "production"] = Field(
        default="development",
        description="Deployment environment name",
    )

    database_url: str = Field(
        default="sqlite:///./lesson_engine.db",
        description="SQLAlchemy database URL",
    )
    sql_echo: bool = Field(default=False, description="Echo SQL statements to the log")

    # All policy decisions (notice, holidays, "today") use this timezone
    business_timezone: str = Field(
        default="America/Sao_Paulo",
        description="Fixed business timezone of the school",
    )

    # Slot proposals
    slot_step_minutes: int = Field(
        default=30,
        description="Granularity of proposed replacement start times",
    )
    proposal_horizon_months: int = Field(
        default=3,
        description="How far ahead replacement dates are proposed",
    )
    default_lesson_duration_minutes: int = Field(default=60)

    # Advance-notice policy
    default_notice_hours: int = Field(
        default=6,
        description="Minimum notice for self-service changes on particular lessons",
    )
    partner_school_tag: str = Field(
        default="YOUBECOME",
        description="Source-school tag of the partner school with stricter notice",
    )
    partner_notice_hours: int = Field(
        default=24,
        description="Minimum notice for enrollments coming from the partner school",
    )

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("business_timezone")
    @classmethod
    def _validate_timezone(cls, value: str) -> str:
        try:
            pytz.timezone(value)
        except pytz.UnknownTimeZoneError:
            raise ValueError(f"Unknown timezone: {value}")
        return value

    @field_validator("slot_step_minutes", "proposal_horizon_months", "default_lesson_duration_minutes")
    @classmethod
    def _require_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be a positive integer")
        return value

    @field_validator("default_notice_hours", "partner_notice_hours")
    @classmethod
    def _require_non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("notice hours cannot be negative")
        return value

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


settings = Settings()
