import math
from datetime import datetime, timedelta, timezone

NOT_AVAILABLE = "N/A"


def as_utc(dt: datetime) -> datetime:
    """Naive datetime traktujemy jako UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_timestamp(value) -> datetime | None:
    """
    Parsuje znacznik czasu zapisany w magazynie.

    Akceptuje `datetime`, ISO 8601 (także z sufiksem 'Z') oraz format
    'YYYY-MM-DD HH:MM:SS'. Zwraca `None` dla braku lub wartości nieczytelnej.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None


def format_elapsed(delta: timedelta) -> str:
    """
    Formatuje czas trwania jako "<d> days, <h>:<mm>:00" (>= 1 dzień) lub "<h>:<mm>:00".

    Minuty są zaokrąglane do najbliższej pełnej minuty (połówki w górę), przed podziałem
    na dni: 23:59:40 to "1 days, 0:00:00".
    Ujemny czas trwania daje "N/A".
    """
    seconds = delta.total_seconds()
    if seconds < 0:
        return NOT_AVAILABLE
    total_minutes = math.floor(seconds / 60 + 0.5)
    days, rest = divmod(total_minutes, 24 * 60)
    hours, minutes = divmod(rest, 60)
    if days > 0:
        return f"{days} days, {hours}:{minutes:02d}:00"
    return f"{hours}:{minutes:02d}:00"


def elapsed_between(start: datetime | None, end: datetime) -> str:
    if start is None:
        return NOT_AVAILABLE
    return format_elapsed(as_utc(end) - as_utc(start))
