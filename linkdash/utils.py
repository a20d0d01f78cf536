from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

DEFAULT_UTC_OFFSET_HOURS = 8

Clock = Callable[[], datetime]


def now_utc() -> datetime:
    return datetime.now(tz=timezone.utc)


def shifted(now: Optional[datetime] = None, offset_hours: int = DEFAULT_UTC_OFFSET_HOURS) -> datetime:
    """Return ``now`` moved into the fixed UTC+``offset_hours`` zone.

    Naive datetimes are taken to be UTC.
    """
    now = now or now_utc()
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone(timedelta(hours=offset_hours)))


def display_timestamp(moment: datetime) -> str:
    """``2026/1/8 09:05:03``: unpadded date, zero-padded time."""
    return f"{moment.year}/{moment.month}/{moment.day} {moment:%H:%M:%S}"


def file_date(moment: datetime) -> str:
    """``2026-01-08``: zero-padded, sorts lexicographically by day."""
    return f"{moment:%Y-%m-%d}"
