import uuid
from datetime import datetime, timezone, tzinfo
from taskdedup.ports.runtime import Clock, IdProvider


class SystemClock(Clock):
    """Zegar systemowy; domyślnie UTC, bo tak zapisujemy znaczniki ('...Z')."""

    def __init__(self, tz: tzinfo = timezone.utc) -> None:
        self.tz = tz

    def now(self) -> datetime:
        return datetime.now(self.tz)


class UuidIdProvider(IdProvider):
    """Losowe UUID4 w postaci tekstowej (36 znaków)."""

    def new_id(self) -> str:
        return str(uuid.uuid4())
