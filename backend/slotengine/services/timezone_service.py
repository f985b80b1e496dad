"""
Centralized timezone handling for the slot engine.

Rules:
- All storage: UTC
- All comparisons: UTC
- Weekly schedules and holidays: tenant reference timezone
- Slot display: customer timezone

DST resolution when converting a local wall clock to UTC:
- Ambiguous (fall-back, the wall clock happens twice): the earlier UTC instant.
- Nonexistent (spring-forward gap): the transition instant, i.e. the first
  valid wall clock after the gap. 02:30 on a 02:00 -> 03:00 jump resolves to
  03:00 local.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Union

import pytz

from ..core.exceptions import InvalidInputException, InvalidTimezoneException

WallClock = Union[datetime, str]


class TimezoneService:
    """Handles all timezone conversions consistently."""

    @staticmethod
    def is_valid_timezone(zone_id: Any) -> bool:
        """Check whether ``zone_id`` names an IANA zone. Never raises."""
        if not isinstance(zone_id, str) or not zone_id.strip():
            return False
        try:
            pytz.timezone(zone_id)
            return True
        except (pytz.UnknownTimeZoneError, ValueError, KeyError):
            return False

    @staticmethod
    def get_timezone(zone_id: Any) -> pytz.BaseTzInfo:
        """Get timezone object; unknown zones raise InvalidTimezoneException."""
        if not TimezoneService.is_valid_timezone(zone_id):
            raise InvalidTimezoneException(zone_id)
        return pytz.timezone(zone_id)

    @staticmethod
    def parse_wall_clock(wall_clock: WallClock) -> datetime:
        """
        Parse a naive local date-time.

        Accepts a naive ``datetime`` or an ISO-8601 string without offset.
        Input that already carries an offset is rejected: it is not a wall clock.
        """
        if isinstance(wall_clock, datetime):
            parsed = wall_clock
        elif isinstance(wall_clock, str):
            try:
                parsed = datetime.fromisoformat(wall_clock.strip())
            except ValueError as exc:
                raise InvalidInputException(
                    f"Invalid local date-time: {wall_clock!r}",
                    details={"value": wall_clock},
                ) from exc
        else:
            raise InvalidInputException(
                "Local date-time must be a datetime or ISO-8601 string",
                details={"value": repr(wall_clock)},
            )

        if parsed.tzinfo is not None:
            raise InvalidInputException(
                "Local date-time must not carry a UTC offset",
                details={"value": str(wall_clock)},
            )
        return parsed

    @staticmethod
    def to_utc(wall_clock: WallClock, zone_id: str) -> datetime:
        """
        Convert a local wall clock in ``zone_id`` to an aware UTC instant.

        Uses the zone rules valid on that date (not today).

        Raises:
            InvalidTimezoneException: Unknown zone
            InvalidInputException: Unparseable, calendar-invalid, or offset-bearing input
        """
        tz = TimezoneService.get_timezone(zone_id)
        naive_dt = TimezoneService.parse_wall_clock(wall_clock)

        try:
            # is_dst=None raises exception for ambiguous/nonexistent times
            local_dt = tz.localize(naive_dt, is_dst=None)
        except pytz.exceptions.AmbiguousTimeError:
            # Wall clock occurs twice; take the earlier instant. Zones with negative
            # DST (Europe/Dublin) flag the readings the other way round.
            return min(
                tz.localize(naive_dt, is_dst=flag).astimezone(timezone.utc)
                for flag in (True, False)
            )
        except pytz.exceptions.NonExistentTimeError:
            return TimezoneService._gap_transition_utc(tz, naive_dt)

        return local_dt.astimezone(timezone.utc)

    @staticmethod
    def _gap_transition_utc(tz: pytz.BaseTzInfo, naive_dt: datetime) -> datetime:
        """
        Find the UTC instant at which the offset changes inside a DST gap.

        The two readings of a nonexistent wall clock (pre-gap and post-gap offset)
        bracket the transition; bisect down to the second.
        """
        readings = sorted(
            tz.localize(naive_dt, is_dst=flag).astimezone(timezone.utc) for flag in (True, False)
        )
        lo, hi = readings
        lo_offset = lo.astimezone(tz).utcoffset()
        if hi.astimezone(tz).utcoffset() == lo_offset:
            return hi

        while hi - lo > timedelta(seconds=1):
            mid = lo + (hi - lo) / 2
            mid = mid.replace(microsecond=0)
            if mid <= lo:
                break
            if mid.astimezone(tz).utcoffset() == lo_offset:
                lo = mid
            else:
                hi = mid
        return hi

    @staticmethod
    def from_utc(instant: datetime, zone_id: str) -> datetime:
        """
        Convert a UTC instant to the naive wall clock in ``zone_id``.

        Naive instants are treated as UTC.
        """
        tz = TimezoneService.get_timezone(zone_id)
        return TimezoneService.ensure_utc(instant).astimezone(tz).replace(tzinfo=None)

    @staticmethod
    def localize(instant: datetime, zone_id: str) -> datetime:
        """Aware datetime in ``zone_id`` for the same instant (display only)."""
        tz = TimezoneService.get_timezone(zone_id)
        return TimezoneService.ensure_utc(instant).astimezone(tz)

    @staticmethod
    def ensure_utc(instant: datetime) -> datetime:
        if instant.tzinfo is None:
            return instant.replace(tzinfo=timezone.utc)
        return instant.astimezone(timezone.utc)

    @staticmethod
    def local_date_time_to_utc(day: date, wall_time: time, zone_id: str) -> datetime:
        """Convert a local date and time-of-day to UTC."""
        return TimezoneService.to_utc(datetime.combine(day, wall_time), zone_id)

    @staticmethod
    def today_in(zone_id: str) -> date:
        return TimezoneService.localize(TimezoneService.now_utc(), zone_id).date()

    @staticmethod
    def format_for_display(instant: datetime, zone_id: str) -> str:
        """Format a UTC instant for display in ``zone_id``."""
        local_dt = TimezoneService.localize(instant, zone_id)
        return local_dt.strftime("%Y-%m-%d %H:%M %Z")

    @staticmethod
    def now_utc() -> datetime:
        return datetime.now(timezone.utc)
