"""
Preliminary next-contact date and time-zone helpers.

DST contract: the result is ``origin + days * 24h`` corrected by
``utcoffset(origin) - utcoffset(result)``, so a user called at 12:00 keeps
being reminded at 12:00 local on the other side of a clock change.
"""

from datetime import UTC, date, datetime, time, timedelta, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from checkin.config import settings
from checkin.features.scheduling.constants import FREQUENCY_MAPPINGS
from checkin.features.scheduling.domain.errors import (
    InvalidDateError,
    InvalidFrequencyError,
    InvalidTimezoneError,
)
from checkin.features.scheduling.domain.models import parse_instant
from checkin.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


def resolve_timezone(name: str | None) -> ZoneInfo:
    """Return the ZoneInfo for an IANA identifier or raise InvalidTimezoneError."""
    if not name:
        raise InvalidTimezoneError("Time zone identifier is empty")
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise InvalidTimezoneError(f"Unknown time zone: {name}") from e


def host_timezone() -> tzinfo:
    return datetime.now().astimezone().tzinfo


def timezone_or_default(name: str | None) -> tzinfo:
    """
    Resolve a caller-supplied zone, falling back to DEFAULT_TIMEZONE and
    then to the host zone. Invalid identifiers are logged, never raised.
    """
    for candidate in (name, settings.DEFAULT_TIMEZONE):
        if not candidate:
            continue
        try:
            return resolve_timezone(candidate)
        except InvalidTimezoneError as e:
            logger.warning("Invalid time zone, falling back", timezone=candidate, error=str(e))
    return host_timezone()


def frequency_days(frequency: str | None) -> int:
    key = str(frequency or "").strip().lower()
    if key not in FREQUENCY_MAPPINGS:
        raise InvalidFrequencyError(f"Invalid frequency: {frequency}")
    return FREQUENCY_MAPPINGS[key]


def add_days_keeping_wall_clock(origin: datetime, days: int, tz: tzinfo) -> datetime:
    origin_local = origin.astimezone(tz)
    shifted = (origin_local.astimezone(UTC) + timedelta(days=days)).astimezone(tz)
    correction = origin_local.utcoffset() - shifted.utcoffset()
    return (shifted + correction).astimezone(tz)


def calculate_preliminary_date(
    last_contact_date: datetime | str, frequency: str, tz: tzinfo
) -> datetime:
    """
    Compute the next-contact instant from the last contact and a frequency.

    Args:
        last_contact_date: Absolute instant (naive values are UTC) or ISO string
        frequency: daily, weekly, biweekly, monthly, quarterly or yearly
        tz: Service time zone

    Returns:
        Aware datetime in ``tz``
    """
    days = frequency_days(frequency)
    origin = parse_instant(last_contact_date)
    if origin is None:
        raise InvalidDateError(f"Invalid last contact date: {last_contact_date!r}")
    return add_days_keeping_wall_clock(origin, days, tz)


def local_at(day: date, minutes: int, tz: tzinfo) -> datetime:
    """Wall-clock instant ``minutes`` after midnight on ``day`` in ``tz``."""
    return datetime.combine(day, time(minutes // 60, minutes % 60), tzinfo=tz)


def minutes_of_day(instant: datetime) -> int:
    return instant.hour * 60 + instant.minute


def day_bounds(day: date, tz: tzinfo) -> tuple[datetime, datetime]:
    """Local midnight of ``day`` and of the following day."""
    return local_at(day, 0, tz), local_at(day + timedelta(days=1), 0, tz)
