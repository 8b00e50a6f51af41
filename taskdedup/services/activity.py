import logging
from taskdedup.domain.activity import ActivityEvent
from taskdedup.ports.activity_logger import ActivityLogger

logger = logging.getLogger(__name__)


def emit(activity: ActivityLogger | None, event: ActivityEvent) -> None:
    """Przekazuje zdarzenie do dziennika; błąd dziennika nigdy nie wychodzi do wywołującego."""
    if activity is None:
        return
    try:
        activity.log(event)
    except Exception:
        logger.warning("Dziennik aktywnosci odrzucil zdarzenie %s dla %s", event.action, event.task_id, exc_info=True)
