from __future__ import annotations

from datetime import date, datetime, time
from typing import Any, Optional

_TIME_OF_DAY_FORMATS = ("%H:%M:%S", "%H:%M", "%I:%M %p", "%I:%M:%S %p")


def parse_iso_date(value: str) -> date:
    """Parse YYYY-MM-DD string into date."""
    return datetime.strptime(value, "%Y-%m-%d").date()


def now_local() -> datetime:
    """Current local time.

    Note: Wrapped so tests can patch/mocked easier.
    """
    return datetime.now()


def to_local_naive(value: datetime) -> datetime:
    """Drop timezone info after converting to local wall-clock time."""
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


def parse_date(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return to_local_naive(value).date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        return parse_iso_date(text[:10])
    except ValueError:
        parsed = parse_timestamp(text)
        return parsed.date() if parsed else None


def parse_timestamp(value: Any, *, on_date: Optional[date] = None) -> Optional[datetime]:
    """Parse the timestamp shapes the backend is known to send.

    Accepts datetime objects, ISO-8601 strings (``Z`` suffix or offsets),
    epoch seconds/milliseconds and, when ``on_date`` is given, bare
    time-of-day strings such as ``09:00 AM``. Returns None when unparseable.
    """

    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return to_local_naive(value)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        seconds = value / 1000 if value > 1e11 else value
        return datetime.fromtimestamp(seconds)

    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return to_local_naive(datetime.fromisoformat(text))
    except ValueError:
        pass

    if on_date is not None:
        for fmt in _TIME_OF_DAY_FORMATS:
            try:
                clock = datetime.strptime(text.upper(), fmt).time()
            except ValueError:
                continue
            return datetime.combine(on_date, clock)
    return None


def start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min)


def format_clock(seconds: int) -> str:
    """Countdown display, HH:MM:SS."""
    seconds = max(0, int(seconds))
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def format_hours_worked(seconds: int) -> str:
    seconds = max(0, int(seconds))
    return f"{seconds // 3600}h {(seconds % 3600) // 60}m"


def format_duration(seconds: int) -> str:
    seconds = max(0, int(seconds))
    return f"{seconds // 3600}h {(seconds % 3600) // 60}m {seconds % 60}s"


def format_date_time(value: datetime) -> str:
    return value.strftime("%b %d, %Y %I:%M %p")
