# backend/slotengine/core/config.py
"""
Runtime configuration for the slot engine.

Values are read from the environment (and a local ``.env`` file outside CI)
through pydantic-settings. Nothing scheduling-related is hardcoded in the
services: the tenant-wide fallback working hours, lock timeouts and retry
limits all come from here.
"""

import logging
import os
from typing import TYPE_CHECKING, List

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from ..schemas.schedule import WeeklySchedule

logger = logging.getLogger(__name__)

WEEKDAY_NAMES: List[str] = [
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
]


def is_running_tests() -> bool:
    """Detect if code is running under pytest."""
    return os.getenv("PYTEST_CURRENT_TEST") is not None


class Settings(BaseSettings):
    database_url: str = Field(
        default="sqlite:///./slotengine.db",
        description="SQLAlchemy URL of the reservation store",
    )
    log_level: str = Field(default="INFO", description="Root log level")

    # Reference timezone used when a tenant row carries none
    default_business_timezone: str = "UTC"

    # Tenant-wide fallback schedule used when no staff member is involved
    default_open_hours: str = Field(
        default="09:00-17:00",
        description="Comma separated HH:MM-HH:MM ranges applied on every open day",
    )
    default_open_days: str = Field(
        default=",".join(WEEKDAY_NAMES),
        description="Comma separated weekday names the default hours apply to",
    )

    # Reservation gate
    gate_lock_timeout_seconds: float = Field(default=5.0, gt=0)
    gate_lock_bucket_minutes: int = Field(default=60, ge=5, le=1440)
    gate_max_attempts: int = Field(default=3, ge=1)

    # Availability queries
    availability_default_range_days: int = Field(default=30, ge=0)
    availability_max_range_days: int = Field(default=92, ge=1)

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        env_prefix="SLOTENGINE_",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("default_open_days")
    @classmethod
    def _validate_open_days(cls, value: str) -> str:
        days = [part.strip().lower() for part in value.split(",") if part.strip()]
        unknown = [day for day in days if day not in WEEKDAY_NAMES]
        if unknown:
            raise ValueError(f"Unknown weekday(s) in default_open_days: {unknown}")
        return ",".join(days)

    @property
    def open_days(self) -> List[str]:
        return [day for day in self.default_open_days.split(",") if day]

    @model_validator(mode="after")
    def _validate_ranges(self) -> "Settings":
        if self.availability_default_range_days > self.availability_max_range_days:
            raise ValueError(
                "availability_default_range_days cannot exceed availability_max_range_days"
            )
        return self

    def default_weekly_schedule(self) -> "WeeklySchedule":
        """
        Build the tenant-wide fallback schedule from configuration.

        Returns:
            WeeklySchedule with ``default_open_hours`` on every ``default_open_days`` entry

        Raises:
            ScheduleConfigurationException: If the configured hours are malformed
        """
        from ..schemas.schedule import WeeklySchedule

        periods = []
        for chunk in self.default_open_hours.split(","):
            chunk = chunk.strip()
            if not chunk:
                continue
            start, _, end = chunk.partition("-")
            periods.append({"start": start.strip(), "end": end.strip()})

        return WeeklySchedule.from_mapping({day: periods for day in self.open_days})


settings = Settings()
