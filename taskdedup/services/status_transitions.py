from dataclasses import replace
from datetime import datetime
from taskdedup.domain.task import Task
from taskdedup.domain.enums import TaskStatus
from taskdedup.domain.duration import elapsed_between
from taskdedup.ports.runtime import Clock


### COMMENTS
# ==========================================================
# Maszyna stanów pending <-> done (services/status_transitions.py).
# ==========================================================
# - Obiekty są niemutowalne: przejście = nowa instancja przez `dataclasses.replace`.
# - `completed_at` i `elapsed` istnieją wyłącznie w stanie done.
# - Silnik nie zapisuje niczego sam; adresowanie po tożsamości idzie przez
#   DedupResolver.resolve_and_update z `mark_done()` / `mark_pending()` jako update_fn.


class StatusTransitionEngine:
    """
    Przejścia statusu zadania i metadane ukończenia.

    :param clock: Wstrzykiwane źródło czasu (domyślne `now` dla `complete`).
    """

    def __init__(self, clock: Clock) -> None:
        self.clock = clock

    def complete(self, task: Task, now: datetime | None = None) -> Task:
        """
            Marks a pending task as done.

            - Sets `status="done"`, `completed_at=now`.
            - `elapsed` is the span since `assigned_at` ("1 days, 2:15:00" / "0:46:00"),
              or "N/A" when `assigned_at` is missing.
            - Already done: returned unchanged.
        """
        if task.status == TaskStatus.DONE:
            return task
        now = now or self.clock.now()
        return replace(
            task,
            status=TaskStatus.DONE,
            completed_at=now,
            elapsed=elapsed_between(task.assigned_at, now),
        )

    def revert(self, task: Task) -> Task:
        """Przywraca zadanie do pending i czyści `completed_at`/`elapsed`; pending → bez zmian."""
        if task.status == TaskStatus.PENDING:
            return task
        return replace(task, status=TaskStatus.PENDING, completed_at=None, elapsed=None)

    def mark_done(self, now: datetime | None = None):
        return lambda task: self.complete(task, now)

    def mark_pending(self):
        return self.revert
