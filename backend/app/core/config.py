# backend/app/core/config.py
from datetime import date, time
from decimal import Decimal
import logging
import os
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from dotenv import load_dotenv
from pydantic import Field, SecretStr, field_validator
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
    load_dotenv(env_path)


WEEKDAY_NAMES = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

DEFAULT_BUSINESS_HOURS: Dict[str, List[str]] = {
    "0": ["09:00-17:00"],
    "1": ["09:00-17:00"],
    "2": ["09:00-17:00"],
    "3": ["09:00-17:00"],
    "4": ["09:00-17:00"],
}


def parse_time_range(raw: str) -> Tuple[time, time]:
    """Parse an ``HH:MM-HH:MM`` range into a pair of times."""
    try:
        start_raw, end_raw = (part.strip() for part in raw.split("-", 1))
        start_h, start_m = (int(p) for p in start_raw.split(":"))
        end_h, end_m = (int(p) for p in end_raw.split(":"))
        start, end = time(start_h, start_m), time(end_h, end_m)
    except ValueError as exc:
        raise ValueError(f"Invalid time range {raw!r}, expected HH:MM-HH:MM") from exc
    if start >= end:
        raise ValueError(f"Invalid time range {raw!r}, start must be before end")
    return start, end


class Settings(BaseSettings):
    """Runtime configuration for the scheduling backend."""

    environment: str = Field(default="development", description="deployment environment")
    log_level: str = Field(default="INFO")

    # Database
    database_url: str = Field(
        default="sqlite:///./scheduling.db",
        description="SQLAlchemy database URL (Postgres in production)",
    )
    database_echo: bool = False

    # Redis / Celery
    redis_url: Optional[str] = Field(
        default=None, description="Redis URL for the course schedule mutex and Celery broker"
    )
    celery_broker_url: Optional[str] = None
    celery_task_always_eager: bool = False

    # Stripe Configuration
    stripe_secret_key: SecretStr = Field(
        default=SecretStr(""),
        description="Stripe secret key for backend API calls",
    )
    stripe_webhook_secret: SecretStr = Field(
        default=SecretStr(""),
        description="Stripe webhook signing secret",
    )
    payment_currency: str = Field(default="cad", description="Currency for appointment payments")

    # Scheduling policy
    scheduling_timezone: str = Field(
        default="America/Toronto",
        description="Timezone business hours are expressed in and shown to students",
    )
    business_hours: Dict[str, List[str]] = Field(
        default_factory=lambda: dict(DEFAULT_BUSINESS_HOURS),
        description="Weekday (0=Monday) to list of HH:MM-HH:MM local windows",
    )
    closed_dates: List[date] = Field(default_factory=list)
    allowed_durations: List[int] = Field(default_factory=lambda: [60, 90, 120])
    booking_min_lead_minutes: int = Field(default=60, ge=0)
    reschedule_cutoff_hours: int = Field(default=2, ge=0)
    reschedule_reason_min_length: int = Field(default=10, ge=0)
    price_change_tolerance: Decimal = Field(default=Decimal("0.01"), ge=0)
    availability_max_range_days: int = Field(default=31, ge=1)

    # Course catalog
    course_hourly_rates: Dict[str, Decimal] = Field(
        default_factory=dict, description="Static course_id to hourly rate map"
    )
    course_catalog_url: Optional[str] = Field(
        default=None, description="Catalog service base URL serving appointment rates"
    )
    course_catalog_timeout_seconds: float = 5.0

    # Notifications
    notification_webhook_url: Optional[str] = Field(
        default=None, description="Outbound webhook receiving appointment events"
    )
    notification_timeout_seconds: float = 10.0

    # Course schedule mutex
    course_lock_ttl_seconds: int = 15
    course_lock_wait_seconds: float = 3.0

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("scheduling_timezone")
    @classmethod
    def _validate_timezone(cls, value: str) -> str:
        try:
            pytz.timezone(value)
        except pytz.UnknownTimeZoneError as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("business_hours")
    @classmethod
    def _validate_business_hours(cls, value: Dict[str, List[str]]) -> Dict[str, List[str]]:
        normalized: Dict[str, List[str]] = {}
        for key, ranges in value.items():
            weekday = str(key).strip().lower()
            if weekday in WEEKDAY_NAMES:
                weekday = str(WEEKDAY_NAMES.index(weekday))
            if weekday not in {str(i) for i in range(7)}:
                raise ValueError(f"Invalid weekday key {key!r} in business_hours")
            for raw in ranges:
                parse_time_range(raw)
            normalized[weekday] = list(ranges)
        return normalized

    @field_validator("allowed_durations")
    @classmethod
    def _validate_durations(cls, value: List[int]) -> List[int]:
        if not value or any(d <= 0 for d in value):
            raise ValueError("allowed_durations must be a non-empty list of positive minutes")
        return sorted(set(value))

    @property
    def webhook_secrets(self) -> list[str]:
        """Build list of webhook secrets to try in order."""
        secret = self.stripe_webhook_secret.get_secret_value()
        return [secret] if secret else []

    @property
    def celery_broker(self) -> str:
        return self.celery_broker_url or self.redis_url or "memory://"


settings = Settings()
