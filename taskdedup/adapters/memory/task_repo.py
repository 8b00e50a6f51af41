import threading
from dataclasses import replace
from taskdedup.domain.task import Task, TaskId, IMMUTABLE_FIELDS
from taskdedup.domain.errors import TaskAlreadyExistsError, TaskNotFoundError, TaskValidationError
from taskdedup.domain.enums import TaskStatus
from taskdedup.ports.task_repository import DEFAULT_BATCH_SIZE
from taskdedup.domain.resolution import created_key
from typing import Iterable, Iterator, Optional, Mapping, Any

### COMMENTS
# ==========================================================
# Adapter pamięciowy magazynu zadań (adapters/memory/task_repo.py).
# ==========================================================
# - Służy do testów, prototypowania i trybu CLI bez pliku.
# - Dane przechowywane są w słowniku `_data: dict[TaskId, Task]` chronionym blokadą,
#   więc pojedyncze operacje są bezpieczne dla wątków.
# - CELOWO brak `add_if_absent`: sekwencja odczyt → sprawdzenie → zapis w serwisie
#   nie jest atomowa i wyścig tworzenia duplikatów da się odtworzyć w testach.
# - Zasady zgodne z kontraktem portu:
#     * `add`    → `TaskAlreadyExistsError`, jeśli ID istnieje,
#     * `update` / `remove` → `TaskNotFoundError`, jeśli ID nie istnieje,
#     * `iter_all` → migawka danych oddawana porcjami.


class InMemoryTaskRepository:
    """
        Inicjalizuje magazyn z opcjonalną kolekcją startowych zadań.
        :param initial: Iterable z obiektami Task do wstępnego załadowania.
        Przy powtórzonym task_id obowiązuje zasada: ostatni wygrywa (to tylko seed, nie API).
    """
    def __init__(self, initial: Iterable[Task] | None = None) -> None:
        self._lock = threading.Lock()
        self._data: dict[TaskId, Task] = {}
        for t in (initial or []):
            self._data[t.task_id] = t

    def add(self, task: Task) -> Task:
        """
            Dodaje nowe zadanie do magazynu.

            :raises TaskAlreadyExistsError: Jeśli zadanie o tym samym `task_id` już istnieje.
            :return: Zapisany obiekt `Task`.
        """
        with self._lock:
            if task.task_id in self._data:
                raise TaskAlreadyExistsError(task.task_id)
            self._data[task.task_id] = task
            return task

    def get(self, task_id: TaskId) -> Optional[Task]:
        """Zwraca zadanie albo `None`, brak rekordu nie jest tu błędem."""
        with self._lock:
            return self._data.get(task_id)

    def query_by_fields(self, tenant_id: str, fields: Mapping[str, Any]) -> list[Task]:
        """Filtr równościowy po polach `Task` w obrębie tenanta."""
        with self._lock:
            snapshot = list(self._data.values())
        return [
            t for t in snapshot
            if t.tenant_id == tenant_id
            and all(getattr(t, name) == value for name, value in fields.items())
        ]

    def update(self, task_id: TaskId, patch: Mapping[str, Any]) -> Task:
        """
            Nadpisuje wskazane pola rekordu.

            :raises TaskNotFoundError: Gdy rekord z `task_id` nie istnieje.
            :raises TaskValidationError: Gdy patch próbuje zmienić `task_id` lub `tenant_id`.
        """
        forbidden = IMMUTABLE_FIELDS.intersection(patch)
        if forbidden:
            raise TaskValidationError(sorted(forbidden)[0], "Pole jest niezmienne")
        with self._lock:
            current = self._data.get(task_id)
            if current is None:
                raise TaskNotFoundError(task_id)
            updated = replace(current, **dict(patch))
            self._data[task_id] = updated
            return updated

    def remove(self, task_id: TaskId) -> None:
        """
            Usuwa zadanie o wskazanym identyfikatorze.

            :raises TaskNotFoundError: Jeśli nie istnieje wpis o podanym `task_id`.
        """
        with self._lock:
            if task_id not in self._data:
                raise TaskNotFoundError(task_id)
            del self._data[task_id]

    def iter_all(
        self, tenant_id: Optional[str] = None, *, batch_size: int = DEFAULT_BATCH_SIZE
    ) -> Iterator[Task]:
        with self._lock:
            snapshot = [t for t in self._data.values() if tenant_id is None or t.tenant_id == tenant_id]
        snapshot.sort(key=lambda t: str(t.task_id))
        for start in range(0, len(snapshot), max(1, batch_size)):
            yield from snapshot[start : start + batch_size]

    def count(self, tenant_id: Optional[str] = None, status: Optional[TaskStatus] = None) -> int:
        with self._lock:
            return sum(
                1 for t in self._data.values()
                if (tenant_id is None or t.tenant_id == tenant_id)
                and (status is None or t.status == status)
            )

    def list_page(
        self,
        tenant_id: str,
        *,  # * „Od tego miejsca wszystkie parametry muszą być przekazane nazwami.”
        limit: Optional[int] = None,
        offset: int = 0,
        status: Optional[TaskStatus] = None,
    ) -> list[Task]:
        """
        Zwraca posortowaną i paginowaną listę zadań tenanta.

        - Sortowanie rosnące po `assigned_at`, tiebreaker po `task_id`.
        - Paginacja po sortowaniu (offset, limit).
        """
        offset = offset or 0
        if offset < 0 or (limit is not None and limit <= 0):
            raise TaskValidationError("pagination", "Offset >= 0, limit > 0")

        with self._lock:
            tasks = [
                t for t in self._data.values()
                if t.tenant_id == tenant_id and (status is None or t.status == status)
            ]
        tasks.sort(key=created_key)

        if limit is not None:
            return tasks[offset : offset + limit]
        return tasks[offset:]
