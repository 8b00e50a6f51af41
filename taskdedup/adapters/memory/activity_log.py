import threading
from taskdedup.domain.activity import ActivityEvent
from taskdedup.domain.enums import ActivityAction


class InMemoryActivityLog:
    """Dziennik aktywności w pamięci: do testów i podglądu w CLI."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.events: list[ActivityEvent] = []

    def log(self, event: ActivityEvent) -> None:
        with self._lock:
            self.events.append(event)

    def by_action(self, action: ActivityAction) -> list[ActivityEvent]:
        with self._lock:
            return [e for e in self.events if e.action == action]
