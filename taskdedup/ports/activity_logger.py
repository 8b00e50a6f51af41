from typing import Protocol
from taskdedup.domain.activity import ActivityEvent

class ActivityLogger(Protocol):
    """Dziennik aktywności: fire-and-forget.

    Błąd zapisu nigdy nie może przerwać głównej operacji wywołującego.
    """
    def log(self, event: ActivityEvent) -> None:
        pass
