import re
from datetime import datetime
from enum import Enum

from swiftpass.errors import MalformedTime

MINUTES_PER_DAY = 24 * 60

_HHMM_RE = re.compile(r"^(\d{2}):(\d{2})(?::(\d{2}))?$")


class Weekday(str, Enum):
    MONDAY = "Monday"
    TUESDAY = "Tuesday"
    WEDNESDAY = "Wednesday"
    THURSDAY = "Thursday"
    FRIDAY = "Friday"
    SATURDAY = "Saturday"
    SUNDAY = "Sunday"


_WEEKDAYS = list(Weekday)


def local_now() -> datetime:
    return datetime.now().astimezone()


def ensure_aware(value: datetime) -> datetime:
    # Naive values are read as local wall-clock time.
    if value.tzinfo is None:
        return value.astimezone()
    return value


def day_of_week(now: datetime) -> Weekday:
    return _WEEKDAYS[now.weekday()]


def minutes_of_day(now: datetime) -> int:
    return now.hour * 60 + now.minute


def parse_weekday(value: str) -> Weekday:
    normalized = (value or "").strip().lower()
    for day in _WEEKDAYS:
        if day.value.lower() == normalized:
            return day
    raise ValueError(f"Unknown day of week: {value!r}")


def parse_hhmm(value: str) -> int:
    """
    Parse a 24-hour "HH:MM" clock string into minutes since midnight.

    A trailing ":SS" (how the database stores TIME columns) is tolerated and
    ignored. Anything else raises MalformedTime.
    """
    if not isinstance(value, str):
        raise MalformedTime(f"Expected HH:MM text, got {type(value).__name__}")
    match = _HHMM_RE.match(value.strip())
    if not match:
        raise MalformedTime(f"Malformed time: {value!r}")
    hours = int(match.group(1))
    minutes = int(match.group(2))
    seconds = int(match.group(3) or 0)
    if hours > 23 or minutes > 59 or seconds > 59:
        raise MalformedTime(f"Time out of range: {value!r}")
    return hours * 60 + minutes


def format_hhmm(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def in_window(minute: int, start: int, end: int) -> bool:
    return start <= minute <= end
