import logging
from taskdedup.ports.task_repository import TaskRepository, DEFAULT_BATCH_SIZE
from taskdedup.ports.runtime import IdProvider, Clock
from taskdedup.ports.activity_logger import ActivityLogger
from taskdedup.domain.task import Task, TaskId, TaskDraft
from taskdedup.domain.enums import TaskStatus, TaskPriority, ActivityAction
from taskdedup.domain.activity import ActivityEvent
from taskdedup.domain.errors import TaskValidationError, TaskNotFoundError, TenantMismatchError
from taskdedup.domain.resolution import resolve_pending
from taskdedup.services.activity import emit
from taskdedup.services.dedup_resolver import DedupResolver, UpdateFn
from taskdedup.services.status_transitions import StatusTransitionEngine
from taskdedup.services.consistency_scanner import ConsistencyScanner, ScanResult
from taskdedup.services.reconciliation_reporter import ReconciliationReporter, ReconciliationStats
from typing import Any, Iterable, Mapping

logger = logging.getLogger(__name__)


### COMMENTS
# ==========================================================
# Warstwa serwisowa (services/task_service.py): przypadki użycia.
# ==========================================================
# Rola:
# - Jedno miejsce składające DedupResolver, StatusTransitionEngine,
#   ConsistencyScanner i ReconciliationReporter nad wspólnym portem `TaskRepository`.
# - Z tej fasady korzysta CLI; warstwa UI nie dotyka adapterów ani polityk.
#
# Zasady:
# - Serwis korzysta wyłącznie z portów; nie zna technologii magazynu.
# - Każda operacja jest w zakresie jednego tenanta (poza globalnym `scan(None)`/`stats(None)`).
# - Zmiana statusu po tożsamości ZAWSZE idzie przez `resolve_and_update`.
# - Zmiana statusu po ID sprawdza przynależność rekordu do tenanta.


class TaskService:
    """
    Serwis przypadków użycia dla zadań z deduplikacją.

    :param repo: Implementacja portu TaskRepository.
    :param id_provider: Generator ID nowych zadań.
    :param clock: Źródło czasu.
    :param activity: Dziennik aktywności (opcjonalny).
    :param batch_size: Porcja odczytu dla przeglądu i raportu.
    """
    def __init__(
        self,
        repo: TaskRepository,
        id_provider: IdProvider,
        clock: Clock,
        activity: ActivityLogger | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        self.repo = repo
        self.activity = activity
        self.resolver = DedupResolver(repo, id_provider, clock, activity)
        self.transitions = StatusTransitionEngine(clock)
        self.scanner = ConsistencyScanner(repo, activity, batch_size=batch_size)
        self.reporter = ReconciliationReporter(repo, batch_size=batch_size)

    def create_task(
        self,
        tenant_id: str,
        description: str,
        assigned_to: str,
        given_by: str,
        client_name: str | None = None,
        deadline: str | None = None,
        priority: TaskPriority | str = TaskPriority.MEDIUM,
        comments: Iterable[Any] = (),
        notes: Mapping[str, Any] | None = None,
    ) -> tuple[Task, bool]:
        """
            Tworzy zadanie albo zwraca istniejące pending o tej samej tożsamości.

            :raises TaskValidationError: Gdy pola tożsamości są niepoprawne.
            :return: (zadanie, czy_utworzono)
        """
        draft = TaskDraft(
            tenant_id=tenant_id,
            description=description,
            assigned_to=assigned_to,
            given_by=given_by,
            client_name=client_name,
            deadline=deadline,
            priority=priority,
            comments=tuple(comments),
            notes=dict(notes or {}),
        )
        return self.resolver.create_or_get_existing(draft)

    def bulk_create(self, tenant_id: str, items: Iterable[Mapping[str, Any]]) -> list[tuple[Task, bool]]:
        """
            Tworzy wiele zadań; każde przechodzi przez deduplikację osobno.

            Powtórzona tożsamość w obrębie paczki zwraca ten sam rekord.
            Walidacja wszystkich pozycji odbywa się przed pierwszym zapisem.
        """
        drafts = [self.resolver.validate(TaskDraft(tenant_id=tenant_id, **dict(item))) for item in items]
        return [self.resolver.create_or_get_existing(d) for d in drafts]

    def get_task(self, tenant_id: str, task_id: TaskId) -> Task:
        """
            Zwraca pojedyncze zadanie tenanta.

            :raises TaskNotFoundError: Gdy nie znaleziono zadania.
            :raises TenantMismatchError: Gdy zadanie należy do innej organizacji.
        """
        task = self.repo.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        if task.tenant_id != tenant_id:
            raise TenantMismatchError(task_id, tenant_id)
        return task

    def list_tasks(
        self,
        tenant_id: str,
        page: int = 1,
        page_size: int = 20,
        status: TaskStatus | None = None,
    ) -> tuple[list[Task], int]:
        """
        Zwraca stronę zadań tenanta oraz łączną liczbę rekordów.

        - offset = (page - 1) * page_size, limit = page_size.
        :raises TaskValidationError: Gdy paginacja jest niepoprawna.
        """
        if page < 1 or page_size < 1:
            raise TaskValidationError("pagination", "page >= 1, page_size >= 1")

        offset = (page - 1) * page_size
        total = self.repo.count(tenant_id, status)
        items = self.repo.list_page(tenant_id, limit=page_size, offset=offset, status=status)
        return items, total

    def complete_by_identity(self, tenant_id: str, description: str, assigned_to: str, actor: str | None = None) -> Task:
        """Oznacza jako done zadanie wskazane opisem i osobą przypisaną."""
        return self._transition_by_identity(
            tenant_id, description, assigned_to, self.transitions.mark_done(), actor
        )

    def reopen_by_identity(self, tenant_id: str, description: str, assigned_to: str, actor: str | None = None) -> Task:
        """Ponowne otwarcie po tożsamości; w praktyce nigdy niczego nie zmienia.

        Dopasowanie pending jest już pending, a rekordy done są przy adresowaniu
        tożsamością tylko do odczytu. Do przywrócenia konkretnego rekordu służy `reopen_task`.
        """
        return self._transition_by_identity(
            tenant_id, description, assigned_to, self.transitions.mark_pending(), actor
        )

    def complete_task(self, tenant_id: str, task_id: TaskId, actor: str | None = None) -> Task:
        """
            Marks a task addressed by ID as done (`status="done"`).

            - Already done: returned unchanged, nothing is written.
            :raises TaskNotFoundError: If no task with the given ID exists.
        """
        task = self.get_task(tenant_id, task_id)
        return self._persist_transition(task, self.transitions.complete(task), actor)

    def reopen_task(self, tenant_id: str, task_id: TaskId, actor: str | None = None) -> Task:
        """
            Przywraca do pending zadanie wskazane ID.

            - Już pending: zwracane bez zmian.
            - Istnieje inny pending o tej samej tożsamości: rekord done zostaje done,
              zwracany jest (najnowszy) istniejący pending.
            :raises TaskNotFoundError: Gdy nie znaleziono zadania.
        """
        task = self.get_task(tenant_id, task_id)
        if task.status == TaskStatus.DONE:
            live = self.repo.query_by_fields(tenant_id, {
                "identity_hash": self.resolver.hasher.hash_task(task),
                "status": TaskStatus.PENDING,
            })
            if live:
                current = resolve_pending(live).keep
                logger.info(
                    "Nie otwieram %s: tozsamosc ma juz pending %s", task.task_id, current.task_id
                )
                return current
        return self._persist_transition(task, self.transitions.revert(task), actor)

    def remove_task(self, tenant_id: str, task_id: TaskId, actor: str | None = None) -> None:
        """
            Usuwa zadanie tenanta.

            :raises TaskNotFoundError: Gdy nie znaleziono zadania.
            :raises TenantMismatchError: Gdy zadanie należy do innej organizacji.
        """
        task = self.get_task(tenant_id, task_id)
        self.repo.remove(task.task_id)
        emit(self.activity, ActivityEvent(
            action=ActivityAction.TASK_DELETED,
            task_id=str(task.task_id),
            tenant_id=tenant_id,
            actor=actor or "system",
            details={"description": task.description},
        ))

    def check_duplicates(
        self,
        tenant_id: str,
        description: str,
        assigned_to: str,
        given_by: str,
        client_name: str | None = None,
        deadline: str | None = None,
    ) -> list[Task]:
        """Rekordy pending o podanej tożsamości (bez żadnych zmian w magazynie)."""
        return self.resolver.find_pending_duplicates(TaskDraft(
            tenant_id=tenant_id,
            description=description,
            assigned_to=assigned_to,
            given_by=given_by,
            client_name=client_name,
            deadline=deadline,
        ))

    def scan(self, tenant_id: str | None = None) -> ScanResult:
        return self.scanner.scan(tenant_id)

    def stats(self, tenant_id: str | None = None) -> ReconciliationStats:
        return self.reporter.stats(tenant_id)

    def _transition_by_identity(
        self, tenant_id: str, description: str, assigned_to: str, update_fn: UpdateFn, actor: str | None
    ) -> Task:
        before: list[Task] = []

        def tracked(task: Task) -> Task:
            before.append(task)
            return update_fn(task)

        result = self.resolver.resolve_and_update(
            tenant_id, description, assigned_to, tracked, actor=actor
        )
        if before and before[0].status != result.status:
            self._log_status(before[0], result, actor or assigned_to)
        return result

    def _persist_transition(self, task: Task, changed: Task, actor: str | None) -> Task:
        if changed == task:
            return task
        updated = self.repo.update(task.task_id, {
            "status": changed.status,
            "completed_at": changed.completed_at,
            "elapsed": changed.elapsed,
        })
        self._log_status(task, updated, actor or task.assigned_to)
        return updated

    def _log_status(self, old: Task, new: Task, actor: str) -> None:
        emit(self.activity, ActivityEvent(
            action=ActivityAction.TASK_STATUS_UPDATED,
            task_id=str(new.task_id),
            tenant_id=new.tenant_id,
            actor=actor,
            details={
                "description": new.description,
                "old_status": str(old.status),
                "new_status": str(new.status),
                "elapsed": new.elapsed,
            },
        ))
