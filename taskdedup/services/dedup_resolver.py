import logging
from dataclasses import fields, replace
from datetime import date, datetime
from typing import Callable, Iterable
from taskdedup.domain.task import Task, TaskDraft, TaskId, IMMUTABLE_FIELDS
from taskdedup.domain.enums import TaskStatus, TaskPriority, ActivityAction, CleanupReason
from taskdedup.domain.errors import TaskValidationError, TaskNotFoundError, InternalInconsistencyError
from taskdedup.domain.identity import IdentityHasher, IdentityKey
from taskdedup.domain.activity import ActivityEvent
from taskdedup.domain.resolution import resolve_pending, resolve_done, split_by_status
from taskdedup.ports.task_repository import TaskRepository, ConditionalTaskRepository
from taskdedup.ports.runtime import IdProvider, Clock
from taskdedup.ports.activity_logger import ActivityLogger
from taskdedup.services.activity import emit

logger = logging.getLogger(__name__)


### COMMENTS
# ==========================================================
# DedupResolver (services/dedup_resolver.py): co najwyżej jedno pending na tożsamość.
# ==========================================================
# Rola:
# - Idempotentne tworzenie: istniejący pending o tej samej tożsamości jest zwracany,
#   a nie dublowany. Błąd „już istnieje” nigdy nie wychodzi do wywołującego.
# - Aktualizacja po tożsamości (opis + osoba przypisana), gdy wywołujący nie zna ID.
# - Resztki wyścigów (>1 pending) są sprzątane w locie wg polityki z domain/resolution.py.
#
# Zasady:
# - Walidacja przed jakimkolwiek wywołaniem magazynu.
# - Brak blokad: dwa równoległe `create_or_get_existing` mogą oba wstawić rekord.
#   Jeśli magazyn ma `add_if_absent`, wstawienie jest warunkowe i wyścig znika u źródła.
# - Usunięcia duplikatów są niezależne; rekord usunięty już przez kogoś innego pomijamy.

UpdateFn = Callable[[Task], Task]

IDENTITY_FIELDS = ("tenant_id", "description", "assigned_to", "client_name", "deadline", "given_by")


def _require(field: str, value: str | None) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise TaskValidationError(field, "Pole nie moze byc puste")
    return cleaned


def _check_deadline(deadline: str | None) -> str:
    cleaned = (deadline or "").strip()
    if not cleaned:
        return ""
    try:
        date.fromisoformat(cleaned)
    except ValueError:
        try:
            datetime.fromisoformat(cleaned)
        except ValueError:
            raise TaskValidationError("deadline", f"Oczekiwano daty ISO (YYYY-MM-DD), otrzymano '{deadline}'")
    return cleaned


def _check_priority(priority: TaskPriority | str | None) -> TaskPriority:
    if priority is None or priority == "":
        return TaskPriority.MEDIUM
    try:
        return TaskPriority(priority)
    except ValueError:
        allowed = ", ".join(p.value for p in TaskPriority)
        raise TaskValidationError("priority", f"Dozwolone wartosci: {allowed}")


class DedupResolver:
    """
    Egzekwuje niezmiennik „co najwyżej jeden pending na tożsamość” przy tworzeniu
    i przy aktualizacji adresowanej tożsamością.

    :param repo: Implementacja portu TaskRepository.
    :param id_provider: Źródło identyfikatorów nowych zadań.
    :param clock: Źródło czasu dla `assigned_at`.
    :param activity: Dziennik aktywności (opcjonalny, fire-and-forget).
    """

    def __init__(
        self,
        repo: TaskRepository,
        id_provider: IdProvider,
        clock: Clock,
        activity: ActivityLogger | None = None,
        hasher: IdentityHasher | None = None,
    ) -> None:
        self.repo = repo
        self.id_provider = id_provider
        self.clock = clock
        self.activity = activity
        self.hasher = hasher or IdentityHasher()

    def validate(self, draft: TaskDraft) -> TaskDraft:
        """Zwraca oczyszczony draft albo rzuca `TaskValidationError`."""
        return replace(
            draft,
            tenant_id=_require("tenant_id", draft.tenant_id),
            description=_require("description", draft.description),
            assigned_to=_require("assigned_to", draft.assigned_to),
            given_by=_require("given_by", draft.given_by),
            client_name=(draft.client_name or "").strip(),
            deadline=_check_deadline(draft.deadline),
            priority=_check_priority(draft.priority),
        )

    def identity_of(self, draft: TaskDraft) -> IdentityKey:
        return self.hasher.normalize(
            draft.tenant_id, draft.description, draft.assigned_to,
            draft.client_name, draft.deadline, draft.given_by,
        )

    def find_pending_duplicates(self, draft: TaskDraft) -> list[Task]:
        """Wszystkie rekordy pending o tożsamości draftu (w dowolnej kolejności)."""
        draft = self.validate(draft)
        identity_hash = self.hasher.hash_key(self.identity_of(draft))
        return self.repo.query_by_fields(
            draft.tenant_id,
            {"identity_hash": identity_hash, "status": TaskStatus.PENDING},
        )

    def create_or_get_existing(self, draft: TaskDraft) -> tuple[Task, bool]:
        """
            Tworzy zadanie albo zwraca istniejący rekord pending o tej samej tożsamości.

            - 0 dopasowań  → nowy rekord pending, `(task, True)`.
            - 1 dopasowanie → `(istniejący, False)`.
            - >1 dopasowań → zostaje najnowszy, reszta jest usuwana (i logowana).

            :raises TaskValidationError: Gdy pola tożsamości są niepoprawne.
            :return: (zadanie, czy_utworzono)
        """
        draft = self.validate(draft)
        identity_hash = self.hasher.hash_key(self.identity_of(draft))

        matches = self.repo.query_by_fields(
            draft.tenant_id,
            {"identity_hash": identity_hash, "status": TaskStatus.PENDING},
        )
        if len(matches) == 1:
            return matches[0], False
        if len(matches) > 1:
            resolution = resolve_pending(matches)
            self._discard(
                resolution.discard,
                kept=resolution.keep,
                action=ActivityAction.DUPLICATE_TASK_DELETED,
                reason=CleanupReason.RACE_CLEANUP,
                actor=draft.given_by,
            )
            return resolution.keep, False

        task = Task(
            task_id=TaskId(self.id_provider.new_id()),
            tenant_id=draft.tenant_id,
            description=draft.description,
            assigned_to=draft.assigned_to,
            given_by=draft.given_by,
            client_name=draft.client_name,
            deadline=draft.deadline,
            identity_hash=identity_hash,
            assigned_at=self.clock.now(),
            priority=draft.priority,
            comments=tuple(draft.comments),
            notes=dict(draft.notes),
        )
        if isinstance(self.repo, ConditionalTaskRepository):
            task, created = self.repo.add_if_absent(task)
        else:
            self.repo.add(task)
            created = True

        if created:
            logger.info("Utworzono zadanie %s (tenant=%s)", task.task_id, task.tenant_id)
            emit(self.activity, ActivityEvent(
                action=ActivityAction.TASK_CREATED,
                task_id=str(task.task_id),
                tenant_id=task.tenant_id,
                actor=task.given_by,
                details={
                    "description": task.description,
                    "assigned_to": task.assigned_to,
                    "client_name": task.client_name,
                },
            ))
        return task, created

    def resolve_and_update(
        self,
        tenant_id: str,
        description: str,
        assigned_to: str,
        update_fn: UpdateFn,
        *,
        actor: str | None = None,
    ) -> Task:
        """
            Aktualizacja adresowana tożsamością (opis + osoba przypisana), bez ID.

            - Są rekordy pending → najnowszy dostaje `update_fn`; pozostałe pending o TYM SAMYM
              `identity_hash` są usuwane, pending innych tożsamości zostają nietknięte.
            - Są tylko rekordy done → brak zmian, zwracany najwcześniej utworzony done.
            - Brak dopasowań → `TaskNotFoundError`.

            :param update_fn: Funkcja Task -> Task (nowa instancja); zapisywane są tylko zmienione pola.
            :raises TaskValidationError: Gdy tenant, opis lub osoba są puste.
            :raises TaskNotFoundError: Gdy nie ma żadnego rekordu o tej tożsamości.
        """
        tenant_id = _require("tenant_id", tenant_id)
        description = _require("description", description)
        assigned_to = _require("assigned_to", assigned_to)

        matches = self.repo.query_by_fields(
            tenant_id, {"description": description, "assigned_to": assigned_to}
        )
        pending, done = split_by_status(matches)

        if pending:
            resolution = resolve_pending(pending)
            # opis + osoba mogą obejmować różne tożsamości (inny klient, termin);
            # usuwamy tylko rekordy o skrócie zachowanego
            kept_hash = self.hasher.hash_task(resolution.keep)
            duplicates = [t for t in resolution.discard if self.hasher.hash_task(t) == kept_hash]
            updated = self._apply(resolution.keep, update_fn)
            self._discard(
                duplicates,
                kept=updated,
                action=ActivityAction.DUPLICATE_TASK_DELETED,
                reason=CleanupReason.RACE_CLEANUP,
                actor=actor or assigned_to,
            )
            return updated
        if done:
            return resolve_done(done).keep
        raise TaskNotFoundError(f"{description!r} / {assigned_to!r}")

    def _apply(self, task: Task, update_fn: UpdateFn) -> Task:
        changed = update_fn(task)
        patch = {
            f.name: getattr(changed, f.name)
            for f in fields(Task)
            if getattr(changed, f.name) != getattr(task, f.name)
        }
        forbidden = IMMUTABLE_FIELDS.intersection(patch)
        if forbidden:
            raise TaskValidationError(sorted(forbidden)[0], "Pole jest niezmienne")
        if any(name in patch for name in IDENTITY_FIELDS):
            patch["identity_hash"] = self.hasher.hash_task(replace(changed, identity_hash=""))
        if not patch:
            return task
        return self.repo.update(task.task_id, patch)

    def _discard(self, tasks: Iterable[Task], **kwargs) -> int:
        return discard_duplicates(self.repo, self.activity, tasks, **kwargs)


def discard_duplicates(
    repo: TaskRepository,
    activity: ActivityLogger | None,
    tasks: Iterable[Task],
    *,
    kept: Task,
    action: ActivityAction,
    reason: CleanupReason,
    actor: str,
) -> int:
    """Usuwa nadmiarowe duplikaty; zwraca liczbę faktycznie usuniętych rekordów.

    Rekord, którego już nie ma (usunięty równolegle), jest pomijany i nie jest liczony.
    """
    removed = 0
    for task in tasks:
        if task.task_id == kept.task_id:
            raise InternalInconsistencyError(f"rekord {kept.task_id} jednoczesnie zachowany i usuwany")
        try:
            repo.remove(task.task_id)
        except TaskNotFoundError:
            logger.debug("Duplikat %s zostal juz usuniety", task.task_id)
            continue
        removed += 1
        logger.info("Usunieto duplikat %s (zostaje %s, %s)", task.task_id, kept.task_id, reason)
        emit(activity, ActivityEvent(
            action=action,
            task_id=str(task.task_id),
            tenant_id=task.tenant_id,
            actor=actor,
            details={
                "reason": str(reason),
                "kept_task_id": str(kept.task_id),
                "description": task.description,
                "status": str(task.status),
            },
        ))
    return removed
