# backend/slotengine/schemas/schedule.py
"""
Weekly working-hours value type.

A WeeklySchedule maps each of the seven weekdays to an ordered list of
non-overlapping wall-clock periods in the tenant's reference timezone.
An empty list means closed. Periods are half-open: ``09:00-12:00`` followed
by ``12:00-17:00`` is valid.

Anything malformed is rejected here with ScheduleConfigurationException so
that stored schedules are valid by construction.
"""

from datetime import time
import re
from typing import Any, Dict, List, Mapping

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator

from ..core.config import WEEKDAY_NAMES
from ..core.exceptions import ScheduleConfigurationException

HHMM_PATTERN = re.compile(r"^([0-1][0-9]|2[0-3]):[0-5][0-9]$")


def parse_hhmm(value: str) -> time:
    hours, minutes = value.split(":")
    return time(int(hours), int(minutes))


class SchedulePeriod(BaseModel):
    """One open period of a day, minute precision."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    start: str
    end: str

    @field_validator("start", "end")
    @classmethod
    def validate_hhmm(cls, value: str) -> str:
        if not isinstance(value, str) or not HHMM_PATTERN.match(value):
            raise ValueError(f"Invalid time format: {value!r}. Use HH:MM format")
        return value

    @model_validator(mode="after")
    def validate_order(self) -> "SchedulePeriod":
        if self.start >= self.end:
            raise ValueError(f"Start time {self.start} must be before end time {self.end}")
        return self

    @property
    def start_time(self) -> time:
        return parse_hhmm(self.start)

    @property
    def end_time(self) -> time:
        return parse_hhmm(self.end)


def _check_day(day: str, periods: List[SchedulePeriod]) -> List[SchedulePeriod]:
    for previous, current in zip(periods, periods[1:]):
        if current.start < previous.start:
            raise ValueError(f"Periods for {day} must be sorted by start time")
        if current.start < previous.end:
            raise ValueError(
                f"Periods for {day} overlap: {previous.start}-{previous.end} "
                f"and {current.start}-{current.end}"
            )
    return periods


class WeeklySchedule(BaseModel):
    """Working hours for each weekday."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    monday: List[SchedulePeriod] = []
    tuesday: List[SchedulePeriod] = []
    wednesday: List[SchedulePeriod] = []
    thursday: List[SchedulePeriod] = []
    friday: List[SchedulePeriod] = []
    saturday: List[SchedulePeriod] = []
    sunday: List[SchedulePeriod] = []

    @model_validator(mode="after")
    def validate_days(self) -> "WeeklySchedule":
        for day in WEEKDAY_NAMES:
            _check_day(day, getattr(self, day))
        return self

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "WeeklySchedule":
        """
        Validate an authored schedule.

        Args:
            raw: weekday name (case-insensitive) to list of ``{"start", "end"}`` dicts

        Raises:
            ScheduleConfigurationException: On unknown weekday, bad HH:MM, start >= end,
                unsorted or overlapping periods
        """
        if not isinstance(raw, Mapping):
            raise ScheduleConfigurationException("Weekly schedule must be an object")

        normalized: Dict[str, Any] = {}
        for key, periods in raw.items():
            day = str(key).strip().lower()
            if day not in WEEKDAY_NAMES:
                raise ScheduleConfigurationException(
                    f"Invalid day: {key}", details={"day": str(key)}
                )
            normalized[day] = periods if periods is not None else []

        try:
            return cls.model_validate(normalized)
        except ValidationError as exc:
            raise ScheduleConfigurationException(
                "Invalid weekly schedule",
                details={"errors": _error_messages(exc)},
            ) from exc

    @classmethod
    def parse_day(cls, day: str, periods: Any) -> List[SchedulePeriod]:
        """Validate a single day's periods; raises ValueError/ValidationError when malformed."""
        if periods is None:
            return []
        if not isinstance(periods, list):
            raise ValueError(f"Periods for {day} must be a list")
        parsed = [SchedulePeriod.model_validate(period) for period in periods]
        return _check_day(day, parsed)

    def periods_for(self, weekday: int) -> List[SchedulePeriod]:
        """Periods for a ``date.weekday()`` index (0 = Monday)."""
        return list(getattr(self, WEEKDAY_NAMES[weekday]))

    def to_mapping(self) -> Dict[str, List[Dict[str, str]]]:
        return {
            day: [period.model_dump() for period in getattr(self, day)] for day in WEEKDAY_NAMES
        }


def _error_messages(exc: ValidationError) -> List[str]:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()))
        messages.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return messages
