import logging
from taskdedup.domain.activity import ActivityEvent
from taskdedup.ports.activity_logger import ActivityLogger

logger = logging.getLogger(__name__)


class LoggingActivityLogger(ActivityLogger):
    """
    Dziennik aktywności oparty o standardowy `logging`.

    Każde zdarzenie to jeden rekord INFO; pola zdarzenia trafiają do `extra["activity"]`,
    więc handler/formatter może je zserializować bez parsowania komunikatu.
    """

    def __init__(self, target: logging.Logger | None = None) -> None:
        self._logger = target or logging.getLogger("taskdedup.activity")

    def log(self, event: ActivityEvent) -> None:
        try:
            self._logger.info(
                "%s task=%s tenant=%s",
                event.action,
                event.task_id,
                event.tenant_id,
                extra={"activity": event.as_dict()},
            )
        except Exception:  # fire-and-forget
            logger.warning("Nie udalo sie zapisac zdarzenia %s", event.action, exc_info=True)
